"""DNA/RNA count joining and barcode-to-insert association.

The branch is chosen once from the configuration: the normalize branch turns
barcode counts into per-insert normalized counts and RNA/DNA ratios, the
MPRAnalyze branch keeps raw per-barcode counts of associated barcodes for an
external model. `LibraryAssociator.associate` returns one of the two result
types accordingly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from typing import Union

import numpy as np
import pandas as pd

from .config import PipelineConfig
from .library import AssociationMap, LabelMap

logger = logging.getLogger(__name__)

MERGED_COLUMNS = ["barcode", "dna_count", "rna_count", "name", "label"]
COUNT_COLUMNS = [
    "name", "label", "dna_count", "rna_count", "dna_raw", "rna_raw", "n_obs_bc", "ratio", "log2",
]
MPRANALYZE_COLUMNS = ["name", "barcode", "dna_count", "rna_count"]

CPM_SCALE = 1e6


@dataclass
class AssociationStats:
    joined: int = 0
    associated: int = 0
    unassociated: int = 0
    inserts_total: int = 0
    inserts_kept: int = 0
    inserts_below_threshold: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NormalizedCounts:
    """Per-insert normalized counts of one condition/replicate."""
    condition: str
    replicate: str
    merged: pd.DataFrame
    table: pd.DataFrame
    stats: AssociationStats


@dataclass(frozen=True)
class MPRAnalyzeCounts:
    """Raw per-barcode counts of associated barcodes of one condition/replicate."""
    condition: str
    replicate: str
    merged: pd.DataFrame
    table: pd.DataFrame
    stats: AssociationStats


AssociationResult = Union[NormalizedCounts, MPRAnalyzeCounts]


def join_counts(dna: pd.DataFrame, rna: pd.DataFrame, merge_intersect: bool) -> pd.DataFrame:
    """Join DNA and RNA final counts on barcode.

    With `merge_intersect` only barcodes seen in both fractions are kept;
    otherwise all barcodes are kept and a missing side counts as zero.
    """
    how = "inner" if merge_intersect else "outer"
    joined = pd.merge(
        dna[["barcode", "count"]].rename(columns={"count": "dna_count"}),
        rna[["barcode", "count"]].rename(columns={"count": "rna_count"}),
        on="barcode",
        how=how,
    )
    joined[["dna_count", "rna_count"]] = joined[["dna_count", "rna_count"]].fillna(0)
    joined = joined.astype({"barcode": "object", "dna_count": "int64", "rna_count": "int64"})
    joined = joined.sort_values("barcode", kind="mergesort")
    return joined.reset_index(drop=True)


def _safe_log2(values: pd.Series) -> pd.Series:
    positive = values.where(values > 0)
    return np.log2(positive)


class LibraryAssociator:
    """Resolve barcodes to designed inserts and summarize per insert."""

    def __init__(self, config: PipelineConfig, association: AssociationMap, labels: LabelMap):
        self.config = config
        self.association = association
        self.labels = labels

    def annotate(self, joined: pd.DataFrame) -> pd.DataFrame:
        """Add insert name and label columns; unassociated barcodes get no name."""
        merged = joined.copy()
        merged["name"] = merged["barcode"].map(self.association.lookup)
        merged["label"] = merged["name"].map(
            lambda name: self.labels.label_for(name) if isinstance(name, str) else None
        )
        return merged[MERGED_COLUMNS]

    def associate(
        self,
        condition: str,
        replicate: str,
        dna: pd.DataFrame,
        rna: pd.DataFrame,
    ) -> AssociationResult:
        joined = join_counts(dna, rna, self.config.merge_intersect)
        merged = self.annotate(joined)
        associated = merged[merged["name"].notna()]

        stats = AssociationStats(
            joined=len(merged),
            associated=len(associated),
            unassociated=len(merged) - len(associated),
        )
        if stats.unassociated:
            logger.debug(
                f"{condition}_{replicate}: {stats.unassociated} of {stats.joined} barcodes unassociated"
            )

        if self.config.mpranalyze:
            table = self._raw_barcode_table(associated)
            stats.inserts_total = stats.inserts_kept = int(table["name"].nunique())
            return MPRAnalyzeCounts(condition, replicate, merged, table, stats)

        table = self._normalized_table(associated, stats)
        return NormalizedCounts(condition, replicate, merged, table, stats)

    def _raw_barcode_table(self, associated: pd.DataFrame) -> pd.DataFrame:
        table = associated[MPRANALYZE_COLUMNS].sort_values(["name", "barcode"], kind="mergesort")
        return table.reset_index(drop=True)

    def _normalized_table(self, associated: pd.DataFrame, stats: AssociationStats) -> pd.DataFrame:
        """Normalize barcode counts to counts per million and sum them per insert.

        Inserts supported by fewer than `count_threshold` barcodes are removed.
        """
        if associated.empty:
            return pd.DataFrame(columns=COUNT_COLUMNS).astype(
                {"dna_raw": "int64", "rna_raw": "int64", "n_obs_bc": "int64"}
            )

        pseudocount = self.config.pseudocount
        frame = associated.copy()
        for side in ("dna", "rna"):
            shifted = frame[f"{side}_count"] + pseudocount
            total = shifted.sum()
            frame[f"{side}_norm"] = shifted / total * CPM_SCALE if total > 0 else 0.0

        per_insert = frame.groupby("name", sort=True).agg(
            dna_count=("dna_norm", "sum"),
            rna_count=("rna_norm", "sum"),
            dna_raw=("dna_count", "sum"),
            rna_raw=("rna_count", "sum"),
            n_obs_bc=("barcode", "size"),
        )
        stats.inserts_total = len(per_insert)

        per_insert = per_insert[per_insert["n_obs_bc"] >= self.config.count_threshold]
        stats.inserts_kept = len(per_insert)
        stats.inserts_below_threshold = stats.inserts_total - stats.inserts_kept

        per_insert = per_insert.reset_index()
        per_insert["ratio"] = per_insert["rna_count"] / per_insert["dna_count"].where(
            per_insert["dna_count"] > 0
        )
        per_insert["log2"] = _safe_log2(per_insert["ratio"])
        per_insert["label"] = per_insert["name"].map(self.labels.label_for)
        return per_insert[COUNT_COLUMNS].astype(
            {"dna_raw": "int64", "rna_raw": "int64", "n_obs_bc": "int64"}
        )
