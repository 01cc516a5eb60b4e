"""
Stage orchestration for an MPRA count run.

Each DNA or RNA unit runs merge -> raw count -> filter -> final count on its
own. A condition/replicate is joined and associated once both of its units
have succeeded, and a condition is aggregated once its condition/replicates
have all succeeded. A failed unit only blocks the steps that depend on it.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from . import schemas
from .aggregate import build_master_tables, build_mpranalyze_tables
from .associate import AssociationResult, LibraryAssociator, NormalizedCounts
from .config import PipelineConfig
from .config_validator import validate_run_inputs
from .counting import FilterStats, count_final, count_raw, filter_barcodes, top_umis
from .determinism import write_manifest
from .exceptions import UnitFailedError
from .fastq import read_quartets
from .library import load_association, load_design, load_labels
from .logging_config import PerformanceLogger, time_it
from .manifest import ReadUnit, pair_units, read_manifest
from .merge import MergeStats, merge_reads
from .utils import PipelineIO

logger = logging.getLogger(__name__)

OK = "ok"
FAILED = "failed"
BLOCKED = "blocked"


@dataclass
class UnitResult:
    unit: ReadUnit
    final_counts: pd.DataFrame
    merge_stats: MergeStats
    filter_stats: FilterStats
    outputs: List[Path] = field(default_factory=list)
    seconds: float = 0.0


@dataclass
class RunResult:
    """Statuses, diagnostics and written files of a run."""
    config_hash: str
    units: Dict[str, str] = field(default_factory=dict)
    cond_reps: Dict[str, str] = field(default_factory=dict)
    conditions: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    stats: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    outputs: List[Path] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        statuses = [*self.units.values(), *self.cond_reps.values(), *self.conditions.values()]
        return all(status == OK for status in statuses)

    def summary(self, root: Optional[Path] = None) -> Dict[str, Any]:
        outputs = [str(p.relative_to(root)) if root else str(p) for p in self.outputs]
        return {
            "config_hash": self.config_hash,
            "units": self.units,
            "cond_reps": self.cond_reps,
            "conditions": self.conditions,
            "errors": self.errors,
            "stats": self.stats,
            "outputs": sorted(outputs),
        }


def process_unit(unit: ReadUnit, config: PipelineConfig) -> UnitResult:
    """Run the count chain of one unit and write its tables."""
    io = PipelineIO(config.output_path)
    inputs = config.inputs
    umi_path = inputs.resolve_fastq(unit.umi) if config.use_umi and unit.umi else None

    with PerformanceLogger(logger, "count chain", unit.dataset_id) as timer:
        quartets = read_quartets(
            inputs.resolve_fastq(unit.forward),
            inputs.resolve_fastq(unit.reverse),
            umi_path,
            umi_length=config.umi_length if config.use_umi else 0,
        )
        records, merge_stats = merge_reads(quartets, config, unit.dataset_id)
        raw = count_raw(records, config)
        filtered, filter_stats = filter_barcodes(raw, config)
        final = count_final(filtered, config)

    raw_schema = schemas.RAW_UMI_COUNTS_SCHEMA if config.use_umi else schemas.RAW_COUNTS_SCHEMA
    raw_schema.validate(raw)
    raw_schema.validate(filtered)
    schemas.FINAL_COUNTS_SCHEMA.validate(final)

    outputs = [
        io.write_table(io.unit_path("raw_counts", unit), raw),
        io.write_table(io.unit_path("filtered_counts", unit), filtered),
        io.write_table(io.unit_path("final_counts", unit), final),
    ]
    if config.use_umi:
        umis = top_umis(filtered, config.top_umis)
        schemas.TOP_UMIS_SCHEMA.validate(umis)
        outputs.append(io.write_table(io.unit_path("top_umis", unit), umis))

    logger.info(
        f"{unit.dataset_id}: {merge_stats.merged} merged reads, "
        f"{filter_stats.kept} filtered records, {len(final)} barcodes"
    )
    return UnitResult(unit, final, merge_stats, filter_stats, outputs, round(timer.duration, 3))


def _run_unit_safely(unit: ReadUnit, config: PipelineConfig) -> Tuple[Optional[UnitResult], Optional[str]]:
    try:
        return process_unit(unit, config), None
    except Exception as exc:
        logger.exception(f"{unit.dataset_id}: count chain failed")
        return None, str(UnitFailedError(unit.dataset_id, f"{type(exc).__name__}: {exc}"))


@time_it("count chains")
def run_units(units: List[ReadUnit], config: PipelineConfig) -> Dict[str, Tuple[Optional[UnitResult], Optional[str]]]:
    """Run all unit chains, in worker processes when `n_workers > 1`.

    Returns:
        dataset id -> (result or None, error message or None)
    """
    if config.n_workers == 1 or len(units) < 2:
        return {unit.dataset_id: _run_unit_safely(unit, config) for unit in units}

    results = {}
    with ProcessPoolExecutor(max_workers=config.n_workers) as executor:
        futures = {
            unit.dataset_id: executor.submit(_run_unit_safely, unit, config) for unit in units
        }
        for dataset_id, future in futures.items():
            try:
                results[dataset_id] = future.result()
            except Exception as exc:
                logger.error(f"{dataset_id}: worker failed: {exc}")
                results[dataset_id] = (None, f"{type(exc).__name__}: {exc}")
    return results


def write_association_result(io: PipelineIO, result: AssociationResult) -> List[Path]:
    condition, replicate = result.condition, result.replicate
    schemas.MERGED_COUNTS_SCHEMA.validate(result.merged)
    outputs = [io.write_table(io.cond_rep_path("merged_counts", condition, replicate), result.merged)]
    if isinstance(result, NormalizedCounts):
        schemas.INSERT_COUNTS_SCHEMA.validate(result.table)
        outputs.append(io.write_table(io.cond_rep_path("counts", condition, replicate), result.table))
    else:
        schemas.MPRANALYZE_BARCODES_SCHEMA.validate(result.table)
        outputs.append(
            io.write_table(io.cond_rep_path("mpranalyze", condition, replicate), result.table)
        )
    return outputs


def write_condition_tables(
    io: PipelineIO, condition: str, results: List[AssociationResult], config: PipelineConfig
) -> List[Path]:
    if config.mpranalyze:
        tables = build_mpranalyze_tables(condition, results)
        for matrix in (tables.dna_counts, tables.rna_counts):
            schemas.count_matrix_schema("mpranalyze_counts", list(matrix.columns)).validate(
                matrix.reset_index()
            )
        schemas.MPRANALYZE_ANNOT_SCHEMA.validate(tables.dna_annot.reset_index())
        schemas.MPRANALYZE_ANNOT_SCHEMA.validate(tables.rna_annot.reset_index())
        return [
            io.write_table(io.condition_path("dna_counts", condition), tables.dna_counts, index=True),
            io.write_table(io.condition_path("rna_counts", condition), tables.rna_counts, index=True),
            io.write_table(io.condition_path("dna_annot", condition), tables.dna_annot, index=True),
            io.write_table(io.condition_path("rna_annot", condition), tables.rna_annot, index=True),
        ]

    tables = build_master_tables(condition, results)
    schemas.ALLREPS_SCHEMA.validate(tables.allreps)
    schemas.AVERAGE_SCHEMA.validate(tables.average)
    schemas.REPLICATE_STATS_SCHEMA.validate(tables.replicate_stats)
    return [
        io.write_table(io.condition_path("allreps", condition), tables.allreps),
        io.write_table(io.condition_path("average", condition), tables.average),
        io.write_table(io.condition_path("replicate_stats", condition), tables.replicate_stats),
    ]


def run_experiment(config: PipelineConfig) -> RunResult:
    """Run every stage of an experiment.

    Raises:
        ConfigurationError: before any processing when inputs are inconsistent
    """
    validate_run_inputs(config)
    io = PipelineIO(config.output_path)
    run = RunResult(config_hash=config.config_hash())

    units, manifest_errors = read_manifest(config.inputs.experiment_file, config.use_umi)
    pairs = pair_units(units)
    for error in manifest_errors:
        if "condition" in error.details:
            key = f"{error.details['condition']}_{error.details['replicate']}"
            run.cond_reps[key] = BLOCKED
            run.errors[key] = str(error)
        else:
            run.errors[f"line_{error.details.get('line')}"] = str(error)

    unit_results = run_units(units, config)
    finals: Dict[str, UnitResult] = {}
    for dataset_id, (result, error) in unit_results.items():
        if result is None:
            run.units[dataset_id] = FAILED
            run.errors[dataset_id] = error
            continue
        run.units[dataset_id] = OK
        run.stats[dataset_id] = {
            "merge": result.merge_stats.as_dict(),
            "filter": result.filter_stats.as_dict(),
            "barcodes": len(result.final_counts),
            "seconds": result.seconds,
        }
        run.outputs.extend(result.outputs)
        finals[dataset_id] = result

    if not config.inputs.has_association:
        logger.info("No association file given; stopping after final counts")
        return _finish(io, run)

    design = load_design(config.inputs.design_file)
    association = load_association(config.inputs.association_file, design)
    labels = load_labels(config.inputs.label_file, config.default_label)
    associator = LibraryAssociator(config, association, labels)

    # Conditions with a blocked or failed condition/replicate are not aggregated
    incomplete = {
        error.details["condition"] for error in manifest_errors if "condition" in error.details
    }
    by_condition: Dict[str, List[AssociationResult]] = {
        condition: [] for condition in sorted(incomplete)
    }
    for (condition, replicate), fractions in pairs.items():
        key = f"{condition}_{replicate}"
        by_condition.setdefault(condition, [])
        dna, rna = fractions["DNA"], fractions["RNA"]
        if dna.dataset_id not in finals or rna.dataset_id not in finals:
            logger.warning(f"{key}: skipped because a DNA or RNA unit failed")
            run.cond_reps[key] = BLOCKED
            incomplete.add(condition)
            continue
        try:
            with PerformanceLogger(logger, "association", key):
                result = associator.associate(
                    condition,
                    replicate,
                    finals[dna.dataset_id].final_counts,
                    finals[rna.dataset_id].final_counts,
                )
                run.outputs.extend(write_association_result(io, result))
        except Exception as exc:
            logger.exception(f"{key}: association failed")
            run.cond_reps[key] = FAILED
            run.errors[key] = f"{type(exc).__name__}: {exc}"
            incomplete.add(condition)
            continue
        run.cond_reps[key] = OK
        run.stats[key] = result.stats.as_dict()
        by_condition[condition].append(result)

    for condition, results in by_condition.items():
        if condition in incomplete or not results:
            logger.warning(f"{condition}: not every replicate succeeded, aggregation skipped")
            run.conditions[condition] = BLOCKED
            continue
        try:
            with PerformanceLogger(logger, "aggregation", condition):
                run.outputs.extend(write_condition_tables(io, condition, results, config))
        except Exception as exc:
            logger.exception(f"{condition}: aggregation failed")
            run.conditions[condition] = FAILED
            run.errors[condition] = f"{type(exc).__name__}: {exc}"
            continue
        run.conditions[condition] = OK

    return _finish(io, run)


def _finish(io: PipelineIO, run: RunResult) -> RunResult:
    write_manifest(run.outputs, io.path("manifest"), root=io.base_dir)
    io.write_json("summary", run.summary(root=io.base_dir))
    failed = [key for key, status in {**run.units, **run.cond_reps, **run.conditions}.items()
              if status != OK]
    if failed:
        logger.warning(f"Finished with {len(failed)} failed or blocked steps: {sorted(failed)}")
    else:
        logger.info("Finished without failures")
    return run
