"""
Tests for configuration validation.
"""

import pytest

from mpracount.config import PipelineConfig
from mpracount.config_validator import ConfigValidator, validate_run_inputs
from mpracount.exceptions import ConfigurationError


class TestConfigValidator:
    """Test configuration validation."""

    def setup_method(self):
        """Setup test fixtures."""
        self.validator = ConfigValidator()
        self.valid_config = PipelineConfig().to_dict()

    def test_valid_config(self):
        """Test validation of a valid configuration."""
        is_valid, errors, warnings = self.validator.validate_config(self.valid_config)
        assert is_valid
        assert len(errors) == 0
        assert len(warnings) == 0

    def test_invalid_barcode_length(self):
        for value in (0, -3, "15", True):
            config = {**self.valid_config, "barcode_length": value}
            is_valid, errors, _ = self.validator.validate_config(config)
            assert not is_valid
            assert any("barcode_length" in error for error in errors)

    def test_umi_length_only_checked_with_umi(self):
        config = {**self.valid_config, "umi_length": 0}
        is_valid, _, _ = self.validator.validate_config(config)
        assert not is_valid

        config["use_umi"] = False
        is_valid, _, _ = self.validator.validate_config(config)
        assert is_valid

    def test_threshold(self):
        config = {**self.valid_config, "count_threshold": 0}
        is_valid, errors, _ = self.validator.validate_config(config)
        assert not is_valid
        assert any("count_threshold" in error for error in errors)

        config["count_threshold"] = 1
        is_valid, _, warnings = self.validator.validate_config(config)
        assert is_valid
        assert any("count_threshold" in warning for warning in warnings)

    def test_long_barcode_warning(self):
        config = {**self.valid_config, "barcode_length": 60}
        is_valid, _, warnings = self.validator.validate_config(config)
        assert is_valid
        assert len(warnings) == 1

    def test_general_settings(self):
        config = {
            **self.valid_config,
            "mpranalyze": "yes",
            "n_workers": 0,
            "pseudocount": -1,
            "max_mismatch_rate": 1.5,
            "output_directory": "",
        }
        is_valid, errors, _ = self.validator.validate_config(config)
        assert not is_valid
        assert len(errors) == 5


class TestValidateRunInputs:
    """Test checks on the files a run needs."""

    def test_valid_experiment(self, experiment_config):
        validate_run_inputs(experiment_config)

    def test_missing_experiment_file(self):
        with pytest.raises(ConfigurationError):
            validate_run_inputs(PipelineConfig())

    def test_association_requires_design(self, experiment_config):
        config = experiment_config.with_inputs(design_file=None)
        with pytest.raises(ConfigurationError, match="design file"):
            validate_run_inputs(config)

    def test_design_requires_association(self, experiment_config):
        config = experiment_config.with_inputs(association_file=None, label_file=None)
        with pytest.raises(ConfigurationError, match="association file"):
            validate_run_inputs(config)

    def test_mpranalyze_requires_association(self, experiment):
        config = PipelineConfig(mpranalyze=True).with_inputs(
            experiment_file=experiment["experiment_file"]
        )
        with pytest.raises(ConfigurationError, match="mpranalyze"):
            validate_run_inputs(config)

    def test_labels_require_association(self, experiment):
        config = PipelineConfig().with_inputs(
            experiment_file=experiment["experiment_file"],
            label_file=experiment["label_file"],
        )
        with pytest.raises(ConfigurationError, match="label file"):
            validate_run_inputs(config)

    def test_missing_file(self, experiment_config, temp_dir):
        config = experiment_config.with_inputs(label_file=str(temp_dir / "missing.tsv"))
        with pytest.raises(ConfigurationError) as exc_info:
            validate_run_inputs(config)
        assert exc_info.value.details["path"].endswith("missing.tsv")

    def test_missing_fastq_dir(self, experiment_config, temp_dir):
        config = experiment_config.with_inputs(fastq_dir=str(temp_dir / "nowhere"))
        with pytest.raises(ConfigurationError):
            validate_run_inputs(config)

    def test_umi_columns_required(self, temp_dir):
        path = temp_dir / "experiment.csv"
        path.write_text("Condition,Replicate,DNA_BC_F,DNA_BC_R,RNA_BC_F,RNA_BC_R\n")
        config = PipelineConfig().with_inputs(experiment_file=str(path))

        with pytest.raises(ConfigurationError) as exc_info:
            validate_run_inputs(config)
        assert exc_info.value.details["missing"] == ["DNA_UMI", "RNA_UMI"]

        validate_run_inputs(PipelineConfig(use_umi=False).with_inputs(experiment_file=str(path)))

    def test_invalid_settings(self, experiment_config):
        config = PipelineConfig(barcode_length=0).with_inputs(
            experiment_file=experiment_config.inputs.experiment_file
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_run_inputs(config)
        assert exc_info.value.details["errors"]
