"""Configuration management for the mpracount pipeline."""

from __future__ import annotations

import hashlib
import json
import yaml
from dataclasses import dataclass, asdict, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError


# camelCase option names accepted as YAML aliases.
CAMEL_CASE_ALIASES = {
    "barcodeLength": "barcode_length",
    "umiLength": "umi_length",
    "useUMI": "use_umi",
    "mergeIntersect": "merge_intersect",
    "countThreshold": "count_threshold",
    "outputDirectory": "output_directory",
    "runId": "run_id",
    "topUMIs": "top_umis",
    "maxMismatchRate": "max_mismatch_rate",
    "defaultLabel": "default_label",
    "nWorkers": "n_workers",
}

INPUT_ALIASES = {
    "experimentFile": "experiment_file",
    "experiment": "experiment_file",
    "designFile": "design_file",
    "design": "design_file",
    "associationFile": "association_file",
    "association": "association_file",
    "labelFile": "label_file",
    "labels": "label_file",
    "fastqDir": "fastq_dir",
}


@dataclass(frozen=True)
class InputConfig:
    """Locations of the files describing one experiment."""
    experiment_file: Optional[str] = None
    design_file: Optional[str] = None
    association_file: Optional[str] = None
    label_file: Optional[str] = None
    fastq_dir: Optional[str] = None

    @property
    def has_association(self) -> bool:
        return self.association_file is not None

    def resolve_fastq(self, name: str) -> Path:
        """Resolve a FASTQ name from the manifest to a path."""
        path = Path(name)
        if path.is_absolute():
            return path
        if self.fastq_dir is not None:
            return Path(self.fastq_dir) / path
        if self.experiment_file is not None:
            return Path(self.experiment_file).parent / path
        return path


@dataclass(frozen=True)
class PipelineConfig:
    """Run-wide settings passed explicitly to every stage."""
    run_id: str = "mpra_run"
    barcode_length: int = 15
    umi_length: int = 10
    use_umi: bool = True
    merge_intersect: bool = False
    mpranalyze: bool = False
    count_threshold: int = 10
    output_directory: str = "results"
    pseudocount: int = 1
    top_umis: int = 10
    max_mismatch_rate: float = 0.1
    default_label: str = "NA"
    n_workers: int = 1
    inputs: InputConfig = field(default_factory=InputConfig)

    @property
    def output_path(self) -> Path:
        return Path(self.output_directory)

    def with_inputs(self, **kwargs: Any) -> "PipelineConfig":
        """Return a copy with some input locations replaced."""
        return replace(self, inputs=replace(self.inputs, **kwargs))

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def config_hash(self) -> str:
        """Compute deterministic hash of configuration."""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]


def _normalize_keys(data: Dict[str, Any], aliases: Dict[str, str], allowed: set) -> Dict[str, Any]:
    normalized = {}
    for key, value in data.items():
        name = aliases.get(key, key)
        if name not in allowed:
            raise ConfigurationError(f"Unknown configuration key: {key}", {"key": key})
        normalized[name] = value
    return normalized


def config_from_dict(data: Dict[str, Any]) -> PipelineConfig:
    """Build a PipelineConfig from a plain mapping, accepting camelCase names."""
    data = dict(data or {})
    inputs = data.pop("inputs", None) or {}

    top_level = {f.name for f in fields(PipelineConfig)} - {"inputs"}
    input_level = {f.name for f in fields(InputConfig)}

    # Input locations may also sit at the top level of the file.
    nested = {}
    for key in list(data):
        if INPUT_ALIASES.get(key, key) in input_level:
            nested[key] = data.pop(key)
    inputs = {**nested, **inputs}

    settings = _normalize_keys(data, CAMEL_CASE_ALIASES, top_level)
    input_settings = _normalize_keys(inputs, INPUT_ALIASES, input_level)
    input_settings = {
        key: (str(value) if value is not None else None)
        for key, value in input_settings.items()
    }
    return PipelineConfig(**settings, inputs=InputConfig(**input_settings))


def load_config(path: str | Path) -> PipelineConfig:
    """Load configuration from YAML file."""
    with open(path, 'r') as f:
        data = yaml.safe_load(f)

    return config_from_dict(data or {})


def dump_config(config: PipelineConfig, path: str | Path) -> None:
    """Save configuration to YAML file."""
    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False)
