"""mpracount: MPRA barcode counting, DNA/RNA merging and insert-level aggregation."""

from __future__ import annotations

__version__ = "0.1.0"

# Count chain
from .merge import ReadPairMerger, merge_reads
from .counting import count_raw, filter_barcodes, count_final, top_umis

# Association and aggregation
from .associate import LibraryAssociator, join_counts, NormalizedCounts, MPRAnalyzeCounts
from .aggregate import build_master_tables, build_mpranalyze_tables

# Configuration and I/O
from .config import PipelineConfig, InputConfig, load_config, dump_config
from .manifest import ReadUnit, load_manifest
from .library import load_association, load_design, load_labels
from .utils import PipelineIO
from .pipeline import run_experiment

__all__ = [
    "__version__",
    # Count chain
    "ReadPairMerger",
    "merge_reads",
    "count_raw",
    "filter_barcodes",
    "count_final",
    "top_umis",
    # Association and aggregation
    "LibraryAssociator",
    "join_counts",
    "NormalizedCounts",
    "MPRAnalyzeCounts",
    "build_master_tables",
    "build_mpranalyze_tables",
    # Configuration and I/O
    "PipelineConfig",
    "InputConfig",
    "load_config",
    "dump_config",
    "ReadUnit",
    "load_manifest",
    "load_association",
    "load_design",
    "load_labels",
    "PipelineIO",
    "run_experiment",
]
