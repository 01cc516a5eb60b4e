"""Barcode counting: raw tallies, barcode filtering and UMI collapse."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, asdict
from typing import Tuple

import pandas as pd

from .config import PipelineConfig
from .merge import MergedRecord

logger = logging.getLogger(__name__)

AMBIGUOUS_BASE = "N"

RAW_UMI_COLUMNS = ["barcode", "umi", "count"]
RAW_COLUMNS = ["barcode", "count"]
FINAL_COLUMNS = ["barcode", "count"]
TOP_UMI_COLUMNS = ["umi", "count"]


@dataclass
class FilterStats:
    input_records: int = 0
    kept: int = 0
    dropped_ambiguous: int = 0
    dropped_length: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _typed(frame: pd.DataFrame, columns: list) -> pd.DataFrame:
    dtypes = {col: ("int64" if col == "count" else "object") for col in columns}
    return frame.astype(dtypes)


def count_raw(records: Iterable[MergedRecord], config: PipelineConfig) -> pd.DataFrame:
    """Tally identical (barcode, UMI) combinations.

    UMIs are the first `umi_length` bases of the UMI read. Without UMIs only
    barcodes are tallied. Output is sorted by barcode, then UMI.
    """
    if config.use_umi:
        counts = Counter(
            (record.barcode, (record.umi or "")[:config.umi_length]) for record in records
        )
        rows = [(barcode, umi, n) for (barcode, umi), n in counts.items()]
        frame = pd.DataFrame(rows, columns=RAW_UMI_COLUMNS)
        frame = frame.sort_values(["barcode", "umi"], kind="mergesort")
        return _typed(frame.reset_index(drop=True), RAW_UMI_COLUMNS)

    counts = Counter(record.barcode for record in records)
    frame = pd.DataFrame(list(counts.items()), columns=RAW_COLUMNS)
    frame = frame.sort_values("barcode", kind="mergesort")
    return _typed(frame.reset_index(drop=True), RAW_COLUMNS)


def filter_barcodes(raw: pd.DataFrame, config: PipelineConfig) -> Tuple[pd.DataFrame, FilterStats]:
    """Drop records whose barcode has an ambiguous base or the wrong length.

    Order and multiplicity of the kept records are preserved. An empty
    result is valid.
    """
    barcodes = raw["barcode"].astype(str)
    ambiguous = barcodes.str.contains(AMBIGUOUS_BASE, regex=False)
    wrong_length = barcodes.str.len() != config.barcode_length
    keep = ~(ambiguous | wrong_length)

    stats = FilterStats(
        input_records=len(raw),
        kept=int(keep.sum()),
        dropped_ambiguous=int(ambiguous.sum()),
        dropped_length=int((wrong_length & ~ambiguous).sum()),
    )
    filtered = raw.loc[keep].reset_index(drop=True)
    return filtered, stats


def count_final(filtered: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """Collapse filtered records into one count per barcode.

    With UMIs the count is the number of distinct UMIs seen with a barcode,
    not the sum of raw occurrences. Without UMIs it is the raw occurrence
    count.
    """
    if filtered.empty:
        return _typed(pd.DataFrame(columns=FINAL_COLUMNS), FINAL_COLUMNS)

    grouped = filtered.groupby("barcode", sort=True)
    if config.use_umi:
        counts = grouped["umi"].nunique()
    else:
        counts = grouped["count"].sum()
    frame = counts.rename("count").reset_index()
    return _typed(frame, FINAL_COLUMNS)


def top_umis(filtered: pd.DataFrame, n: int) -> pd.DataFrame:
    """Most frequent UMIs of a dataset by total raw occurrences."""
    if "umi" not in filtered.columns or filtered.empty or n == 0:
        return _typed(pd.DataFrame(columns=TOP_UMI_COLUMNS), TOP_UMI_COLUMNS)

    totals = filtered.groupby("umi", sort=True)["count"].sum().rename("count").reset_index()
    totals = totals.sort_values("count", ascending=False, kind="mergesort")
    return _typed(totals.head(n).reset_index(drop=True), TOP_UMI_COLUMNS)
