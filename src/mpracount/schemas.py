"""Schema validators for pipeline tables."""

from __future__ import annotations

import polars as pl
from dataclasses import dataclass
import pandas as pd


@dataclass(frozen=True)
class Schema:
    name: str
    schema: pl.Schema

    def validate(self, frame: pd.DataFrame) -> None:
        expected = list(self.schema.names())
        if list(frame.columns) != expected:
            msg = f"{self.name} columns {list(frame.columns)} do not match {expected}"
            raise ValueError(msg)
        try:
            pl.from_pandas(frame, include_index=False).cast(self.schema)
        except Exception as exc:  # pragma: no cover - polars details vary
            msg = f"{self.name} schema validation failed: {exc}"
            raise ValueError(msg) from exc


RAW_UMI_COUNTS_SCHEMA = Schema(
    name="raw_counts",
    schema=pl.Schema({"barcode": pl.Utf8, "umi": pl.Utf8, "count": pl.Int64}),
)

RAW_COUNTS_SCHEMA = Schema(
    name="raw_counts",
    schema=pl.Schema({"barcode": pl.Utf8, "count": pl.Int64}),
)

FINAL_COUNTS_SCHEMA = Schema(
    name="final_counts",
    schema=pl.Schema({"barcode": pl.Utf8, "count": pl.Int64}),
)

TOP_UMIS_SCHEMA = Schema(
    name="top_umis",
    schema=pl.Schema({"umi": pl.Utf8, "count": pl.Int64}),
)

MERGED_COUNTS_SCHEMA = Schema(
    name="merged_counts",
    schema=pl.Schema(
        {
            "barcode": pl.Utf8,
            "dna_count": pl.Int64,
            "rna_count": pl.Int64,
            "name": pl.Utf8,
            "label": pl.Utf8,
        }
    ),
)

INSERT_COUNTS_SCHEMA = Schema(
    name="insert_counts",
    schema=pl.Schema(
        {
            "name": pl.Utf8,
            "label": pl.Utf8,
            "dna_count": pl.Float64,
            "rna_count": pl.Float64,
            "dna_raw": pl.Int64,
            "rna_raw": pl.Int64,
            "n_obs_bc": pl.Int64,
            "ratio": pl.Float64,
            "log2": pl.Float64,
        }
    ),
)

MPRANALYZE_BARCODES_SCHEMA = Schema(
    name="mpranalyze_barcodes",
    schema=pl.Schema(
        {
            "name": pl.Utf8,
            "barcode": pl.Utf8,
            "dna_count": pl.Int64,
            "rna_count": pl.Int64,
        }
    ),
)

ALLREPS_SCHEMA = Schema(
    name="allreps",
    schema=pl.Schema(
        {
            "condition": pl.Utf8,
            "replicate": pl.Utf8,
            "name": pl.Utf8,
            "label": pl.Utf8,
            "dna_count": pl.Float64,
            "rna_count": pl.Float64,
            "n_obs_bc": pl.Int64,
            "ratio": pl.Float64,
            "log2": pl.Float64,
        }
    ),
)

AVERAGE_SCHEMA = Schema(
    name="average_allreps",
    schema=pl.Schema(
        {
            "condition": pl.Utf8,
            "name": pl.Utf8,
            "label": pl.Utf8,
            "dna_count": pl.Float64,
            "rna_count": pl.Float64,
            "ratio": pl.Float64,
            "log2": pl.Float64,
            "n_bc": pl.Int64,
            "n_rep": pl.Int64,
        }
    ),
)

REPLICATE_STATS_SCHEMA = Schema(
    name="replicate_stats",
    schema=pl.Schema(
        {
            "condition": pl.Utf8,
            "replicate_1": pl.Utf8,
            "replicate_2": pl.Utf8,
            "n_inserts": pl.Int64,
            "pearson": pl.Float64,
            "spearman": pl.Float64,
        }
    ),
)

MPRANALYZE_ANNOT_SCHEMA = Schema(
    name="mpranalyze_annot",
    schema=pl.Schema(
        {
            "column": pl.Utf8,
            "condition": pl.Utf8,
            "replicate": pl.Utf8,
            "barcode": pl.Int64,
        }
    ),
)


def count_matrix_schema(name: str, columns: list[str]) -> Schema:
    """Schema of an insert x sample count matrix with its index reset to `name`."""
    return Schema(
        name=name,
        schema=pl.Schema({"name": pl.Utf8, **{column: pl.Int64 for column in columns}}),
    )
