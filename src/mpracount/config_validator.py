"""
Configuration validation for the mpracount pipeline.

Field-level checks produce error and warning lists; `validate_run_inputs`
checks that the files a run needs exist and that dependent options agree,
raising ConfigurationError so a run aborts before any stage starts.
"""

from typing import Dict, Any, List, Tuple
import logging
from pathlib import Path

from .config import PipelineConfig
from .exceptions import ConfigurationError
from .utils import read_table


UMI_COLUMNS = ("DNA_UMI", "RNA_UMI")


class ConfigValidator:
    """Validate configuration parameters for the pipeline."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.errors = []
        self.warnings = []

    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """Validate complete configuration.

        Args:
            config: Configuration dictionary to validate (snake_case keys)

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors = []
        self.warnings = []

        self._validate_barcode_config(config)
        self._validate_threshold_config(config)
        self._validate_general_config(config)

        is_valid = len(self.errors) == 0
        return is_valid, self.errors, self.warnings

    def _validate_barcode_config(self, config: Dict[str, Any]) -> None:
        """Validate barcode and UMI settings."""
        barcode_length = config.get('barcode_length')
        if not isinstance(barcode_length, int) or isinstance(barcode_length, bool):
            self.errors.append("barcode_length must be an integer")
        elif barcode_length < 1:
            self.errors.append("barcode_length must be at least 1")
        elif barcode_length > 40:
            self.warnings.append(f"barcode_length is unusually long ({barcode_length})")

        use_umi = config.get('use_umi', True)
        if not isinstance(use_umi, bool):
            self.errors.append("use_umi must be a boolean")
        elif use_umi:
            umi_length = config.get('umi_length')
            if not isinstance(umi_length, int) or isinstance(umi_length, bool):
                self.errors.append("umi_length must be an integer")
            elif umi_length < 1:
                self.errors.append("umi_length must be at least 1 when use_umi is set")

        rate = config.get('max_mismatch_rate', 0.1)
        if not isinstance(rate, (int, float)):
            self.errors.append("max_mismatch_rate must be numeric")
        elif not 0 <= rate < 1:
            self.errors.append("max_mismatch_rate must be in [0, 1)")

    def _validate_threshold_config(self, config: Dict[str, Any]) -> None:
        """Validate count threshold and normalization settings."""
        threshold = config.get('count_threshold')
        if not isinstance(threshold, int) or isinstance(threshold, bool):
            self.errors.append("count_threshold must be an integer")
        elif threshold < 1:
            self.errors.append("count_threshold must be at least 1")
        elif threshold == 1:
            self.warnings.append("count_threshold of 1 keeps inserts supported by a single barcode")

        pseudocount = config.get('pseudocount', 1)
        if not isinstance(pseudocount, (int, float)) or pseudocount < 0:
            self.errors.append("pseudocount must be a non-negative number")

        top_umis = config.get('top_umis', 10)
        if not isinstance(top_umis, int) or top_umis < 0:
            self.errors.append("top_umis must be a non-negative integer")

    def _validate_general_config(self, config: Dict[str, Any]) -> None:
        """Validate general parameters."""
        for key in ('merge_intersect', 'mpranalyze'):
            if not isinstance(config.get(key, False), bool):
                self.errors.append(f"{key} must be a boolean")

        n_workers = config.get('n_workers', 1)
        if not isinstance(n_workers, int) or n_workers < 1:
            self.errors.append("n_workers must be a positive integer")

        if not config.get('output_directory'):
            self.errors.append("output_directory must be set")


def validate_run_inputs(config: PipelineConfig) -> None:
    """Check option consistency and the presence of mandatory files.

    Raises:
        ConfigurationError: if the run cannot start
    """
    logger = logging.getLogger(__name__)

    validator = ConfigValidator()
    is_valid, errors, warnings = validator.validate_config(config.to_dict())
    for warning in warnings:
        logger.warning(warning)
    if not is_valid:
        raise ConfigurationError("Invalid configuration", {"errors": errors})

    inputs = config.inputs
    if inputs.experiment_file is None:
        raise ConfigurationError("An experiment file is required")

    if inputs.association_file is not None and inputs.design_file is None:
        raise ConfigurationError("An association file requires a design file")
    if inputs.design_file is not None and inputs.association_file is None:
        raise ConfigurationError("A design file requires an association file")
    if config.mpranalyze and inputs.association_file is None:
        raise ConfigurationError("mpranalyze output requires an association file")
    if inputs.label_file is not None and inputs.association_file is None:
        raise ConfigurationError("A label file requires an association file")

    for name in ('experiment_file', 'design_file', 'association_file', 'label_file'):
        value = getattr(inputs, name)
        if value is not None and not Path(value).is_file():
            raise ConfigurationError(f"{name} not found: {value}", {"path": value})
    if inputs.fastq_dir is not None and not Path(inputs.fastq_dir).is_dir():
        raise ConfigurationError(f"fastq_dir not found: {inputs.fastq_dir}")

    if config.use_umi:
        header = read_table(inputs.experiment_file, nrows=0)
        header.columns = [col.strip() for col in header.columns]
        missing = [col for col in UMI_COLUMNS if col not in header.columns]
        if missing:
            raise ConfigurationError(
                "use_umi is set but the experiment file lacks UMI columns",
                {"missing": missing},
            )
