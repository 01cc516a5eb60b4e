"""Per-condition aggregation of condition/replicate results."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .associate import MPRAnalyzeCounts, NormalizedCounts

logger = logging.getLogger(__name__)

ALLREPS_COLUMNS = [
    "condition", "replicate", "name", "label", "dna_count", "rna_count", "n_obs_bc", "ratio", "log2",
]
AVERAGE_COLUMNS = [
    "condition", "name", "label", "dna_count", "rna_count", "ratio", "log2", "n_bc", "n_rep",
]
REPLICATE_STATS_COLUMNS = [
    "condition", "replicate_1", "replicate_2", "n_inserts", "pearson", "spearman",
]
ANNOT_COLUMNS = ["condition", "replicate", "barcode"]


@dataclass(frozen=True)
class MasterTables:
    """Terminal tables of a condition in the normalize branch."""
    condition: str
    allreps: pd.DataFrame
    average: pd.DataFrame
    replicate_stats: pd.DataFrame


@dataclass(frozen=True)
class MPRAnalyzeTables:
    """Count matrices and annotations of a condition for MPRAnalyze."""
    condition: str
    dna_counts: pd.DataFrame
    rna_counts: pd.DataFrame
    dna_annot: pd.DataFrame
    rna_annot: pd.DataFrame


def _check_condition(condition: str, results: Sequence) -> None:
    if not results:
        raise ValueError(f"No replicate results for condition {condition}")
    others = {result.condition for result in results} - {condition}
    if others:
        raise ValueError(f"Results of other conditions passed for {condition}: {sorted(others)}")


def build_master_tables(condition: str, results: Sequence[NormalizedCounts]) -> MasterTables:
    """Stack replicate tables and average each insert over its replicates.

    Means only include replicates in which the insert passed the barcode
    threshold; a missing replicate is not counted as zero.
    """
    _check_condition(condition, results)

    frames = []
    for result in results:
        frame = result.table.copy()
        frame.insert(0, "replicate", result.replicate)
        frame.insert(0, "condition", condition)
        frames.append(frame)
    allreps = pd.concat(frames, ignore_index=True)[ALLREPS_COLUMNS]
    allreps = allreps.astype({
        "dna_count": "float64", "rna_count": "float64", "n_obs_bc": "int64",
        "ratio": "float64", "log2": "float64",
    })

    if allreps.empty:
        average = pd.DataFrame(columns=AVERAGE_COLUMNS).astype({"n_bc": "int64", "n_rep": "int64"})
    else:
        average = allreps.groupby("name", sort=True).agg(
            label=("label", "first"),
            dna_count=("dna_count", "mean"),
            rna_count=("rna_count", "mean"),
            ratio=("ratio", "mean"),
            n_bc=("n_obs_bc", "sum"),
            n_rep=("replicate", "nunique"),
        ).reset_index()
        average["log2"] = np.log2(average["ratio"].where(average["ratio"] > 0))
        average.insert(0, "condition", condition)
        average = average[AVERAGE_COLUMNS].astype({"n_bc": "int64", "n_rep": "int64"})

    replicate_stats = correlate_replicates(condition, allreps)
    logger.info(
        f"{condition}: {len(average)} inserts across {len(results)} replicates"
    )
    return MasterTables(condition, allreps, average, replicate_stats)


def _correlation(a: pd.Series, b: pd.Series, method) -> float:
    if len(a) < 3 or a.nunique() < 2 or b.nunique() < 2:
        return float("nan")
    return float(method(a, b)[0])


def correlate_replicates(condition: str, allreps: pd.DataFrame) -> pd.DataFrame:
    """Pearson and Spearman correlation of insert log2 ratios for each replicate pair."""
    rows = []
    replicates = list(dict.fromkeys(allreps["replicate"]))
    if allreps.empty:
        wide = pd.DataFrame()
    else:
        wide = allreps.pivot_table(
            index="name", columns="replicate", values="log2", aggfunc="first"
        )
    for first, second in itertools.combinations(replicates, 2):
        if first in wide.columns and second in wide.columns:
            shared = wide[[first, second]].replace([np.inf, -np.inf], np.nan).dropna()
        else:
            shared = pd.DataFrame(columns=[first, second])
        rows.append({
            "condition": condition,
            "replicate_1": first,
            "replicate_2": second,
            "n_inserts": len(shared),
            "pearson": _correlation(shared[first], shared[second], stats.pearsonr),
            "spearman": _correlation(shared[first], shared[second], stats.spearmanr),
        })
    return pd.DataFrame(rows, columns=REPLICATE_STATS_COLUMNS).astype(
        {"n_inserts": "int64", "pearson": "float64", "spearman": "float64"}
    )


def build_mpranalyze_tables(condition: str, results: Sequence[MPRAnalyzeCounts]) -> MPRAnalyzeTables:
    """Pivot per-barcode counts into insert x (replicate, barcode) matrices.

    Columns are named `{condition}_{replicate}_{index}`, where index numbers
    the barcodes of an insert within a replicate starting at 1. Cells with no
    barcode are zero.
    """
    _check_condition(condition, results)

    long_frames: List[pd.DataFrame] = []
    columns: List[str] = []
    annot_rows: Dict[str, dict] = {}
    for result in results:
        table = result.table.sort_values(["name", "barcode"], kind="mergesort").copy()
        table["index"] = table.groupby("name").cumcount() + 1
        table["column"] = [
            f"{condition}_{result.replicate}_{index}" for index in table["index"]
        ]
        max_index = int(table["index"].max()) if not table.empty else 0
        for index in range(1, max_index + 1):
            column = f"{condition}_{result.replicate}_{index}"
            columns.append(column)
            annot_rows[column] = {
                "condition": condition, "replicate": result.replicate, "barcode": index,
            }
        long_frames.append(table)

    long = pd.concat(long_frames, ignore_index=True)
    names = sorted(long["name"].unique())

    def matrix(values: str) -> pd.DataFrame:
        if long.empty:
            return pd.DataFrame(index=pd.Index(names, name="name"), columns=columns, dtype="int64")
        wide = long.pivot_table(
            index="name", columns="column", values=values, aggfunc="sum", fill_value=0
        )
        wide = wide.reindex(index=names, columns=columns, fill_value=0).astype("int64")
        wide.index.name = "name"
        wide.columns.name = None
        return wide

    annot = pd.DataFrame.from_dict(annot_rows, orient="index", columns=ANNOT_COLUMNS)
    annot = annot.reindex(columns).astype({"barcode": "int64"})
    annot.index.name = "column"

    return MPRAnalyzeTables(
        condition=condition,
        dna_counts=matrix("dna_count"),
        rna_counts=matrix("rna_count"),
        dna_annot=annot.copy(),
        rna_annot=annot.copy(),
    )
