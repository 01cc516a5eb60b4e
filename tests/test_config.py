"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
import yaml

from mpracount.config import PipelineConfig, config_from_dict, dump_config, load_config
from mpracount.exceptions import ConfigurationError


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()

        assert config.barcode_length == 15
        assert config.umi_length == 10
        assert config.use_umi is True
        assert config.merge_intersect is False
        assert config.count_threshold == 10
        assert config.inputs.experiment_file is None

    def test_hash_is_deterministic(self):
        assert PipelineConfig().config_hash() == PipelineConfig().config_hash()
        assert PipelineConfig().config_hash() != PipelineConfig(count_threshold=5).config_hash()

    def test_frozen(self):
        with pytest.raises(AttributeError):
            PipelineConfig().barcode_length = 10

    def test_with_inputs(self):
        config = PipelineConfig().with_inputs(experiment_file="exp.csv")
        assert config.inputs.experiment_file == "exp.csv"
        assert config.inputs.has_association is False

    def test_resolve_fastq(self, temp_dir):
        config = PipelineConfig().with_inputs(experiment_file=str(temp_dir / "exp.csv"))
        assert config.inputs.resolve_fastq("a.fastq") == temp_dir / "a.fastq"

        config = config.with_inputs(fastq_dir="/data/reads")
        assert config.inputs.resolve_fastq("a.fastq") == Path("/data/reads/a.fastq")
        assert config.inputs.resolve_fastq("/abs/a.fastq") == Path("/abs/a.fastq")


class TestConfigFromDict:
    def test_camel_case_aliases(self):
        config = config_from_dict({
            "barcodeLength": 12,
            "useUMI": False,
            "mergeIntersect": True,
            "experiment": "exp.tsv",
            "inputs": {"associationFile": "assoc.tsv", "design": "design.fa"},
        })

        assert config.barcode_length == 12
        assert config.use_umi is False
        assert config.merge_intersect is True
        assert config.inputs.experiment_file == "exp.tsv"
        assert config.inputs.association_file == "assoc.tsv"
        assert config.inputs.design_file == "design.fa"

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_dict({"barcode_len": 12})
        assert exc_info.value.details == {"key": "barcode_len"}

    def test_empty(self):
        assert config_from_dict({}) == PipelineConfig()


class TestYamlRoundTrip:
    def test_dump_and_load(self, temp_dir):
        config = PipelineConfig(run_id="run1", mpranalyze=True).with_inputs(
            experiment_file="exp.csv"
        )
        path = temp_dir / "config.yaml"
        dump_config(config, path)

        with open(path) as f:
            data = yaml.safe_load(f)
        assert data["inputs"]["experiment_file"] == "exp.csv"
        assert load_config(path) == config
