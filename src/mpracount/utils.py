"""Utility helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pandas as pd

if TYPE_CHECKING:
    from .manifest import ReadUnit


UNIT_ARTIFACTS = {
    "raw_counts": "{dataset}_raw_counts.tsv",
    "filtered_counts": "{dataset}_filtered_counts.tsv",
    "final_counts": "{dataset}_final_counts.tsv",
    "top_umis": "{dataset}_top_umis.tsv",
}

COND_REP_ARTIFACTS = {
    "merged_counts": "{condition}_{replicate}_merged_counts.tsv",
    "counts": "{condition}_{replicate}_counts.tsv",
    "mpranalyze": "{condition}_{replicate}_mpranalyze.tsv",
}

CONDITION_ARTIFACTS = {
    "allreps": "allreps.tsv",
    "average": "average_allreps.tsv",
    "replicate_stats": "replicate_stats.tsv",
    "dna_counts": "mpranalyze_dna_counts.tsv",
    "rna_counts": "mpranalyze_rna_counts.tsv",
    "dna_annot": "mpranalyze_dna_annot.tsv",
    "rna_annot": "mpranalyze_rna_annot.tsv",
}

RUN_ARTIFACTS = {
    "summary": "run_summary.json",
    "manifest": "hash_manifest.txt",
    "log": "mpracount.log",
}


def table_separator(path: str | Path) -> str:
    """Comma for .csv files, tab otherwise (compression suffix ignored)."""
    path = Path(path)
    suffix = Path(path.stem).suffix if path.suffix == ".gz" else path.suffix
    return "," if suffix.lower() == ".csv" else "\t"


def read_table(path: str | Path, **kwargs: Any) -> pd.DataFrame:
    return pd.read_csv(path, sep=table_separator(path), **kwargs)


class PipelineIO:
    """Helper for reading/writing artifacts with deterministic paths."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def unit_path(self, key: str, unit: ReadUnit) -> Path:
        if key not in UNIT_ARTIFACTS:
            msg = f"unknown artifact key: {key}"
            raise KeyError(msg)
        directory = self.base_dir / unit.condition / unit.replicate
        return directory / UNIT_ARTIFACTS[key].format(dataset=unit.dataset_id)

    def cond_rep_path(self, key: str, condition: str, replicate: str) -> Path:
        if key not in COND_REP_ARTIFACTS:
            msg = f"unknown artifact key: {key}"
            raise KeyError(msg)
        name = COND_REP_ARTIFACTS[key].format(condition=condition, replicate=replicate)
        return self.base_dir / condition / replicate / name

    def condition_path(self, key: str, condition: str) -> Path:
        if key not in CONDITION_ARTIFACTS:
            msg = f"unknown artifact key: {key}"
            raise KeyError(msg)
        return self.base_dir / condition / CONDITION_ARTIFACTS[key]

    def path(self, key: str) -> Path:
        if key not in RUN_ARTIFACTS:
            msg = f"unknown artifact key: {key}"
            raise KeyError(msg)
        return self.base_dir / RUN_ARTIFACTS[key]

    def write_table(self, path: Path, df: pd.DataFrame, index: bool = False) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, sep="\t", index=index, float_format="%.6g")
        return path

    def write_json(self, key: str, payload: dict[str, Any]) -> Path:
        path = self.path(key)
        path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        return path
