"""Experiment manifest parsing into sequencing units."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .exceptions import ConfigurationError, InputFormatError
from .utils import read_table

logger = logging.getLogger(__name__)

FRACTION_TYPES = ("DNA", "RNA")
REQUIRED_COLUMNS = ("Condition", "Replicate", "DNA_BC_F", "DNA_BC_R", "RNA_BC_F", "RNA_BC_R")


@dataclass(frozen=True)
class ReadUnit:
    """One sequencing sample: a DNA or RNA fraction of a condition/replicate."""
    condition: str
    replicate: str
    fraction: str
    forward: str
    reverse: str
    umi: Optional[str] = None

    def __post_init__(self):
        if self.fraction not in FRACTION_TYPES:
            raise InputFormatError(f"Unknown fraction type: {self.fraction}")

    @property
    def dataset_id(self) -> str:
        return f"{self.condition}_{self.replicate}_{self.fraction}"

    @property
    def cond_rep(self) -> Tuple[str, str]:
        return self.condition, self.replicate


def _cell(row: pd.Series, column: str) -> Optional[str]:
    if column not in row.index:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


def read_manifest(
    path: str | Path, use_umi: bool = True
) -> Tuple[List[ReadUnit], List[InputFormatError]]:
    """Read the experiment manifest and expand each row into DNA and RNA units.

    Malformed rows are returned as errors instead of units so that the
    remaining rows can still be processed. A missing column or a repeated
    condition/replicate pair is fatal.

    Args:
        path: CSV or TSV file with a header row
        use_umi: Whether UMI read columns are required

    Returns:
        (units ordered by manifest row with DNA before RNA, row errors)
    """
    frame = read_table(path, dtype=str)
    frame.columns = [col.strip() for col in frame.columns]

    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        raise InputFormatError("Experiment file is missing columns", {"missing": missing})

    units: List[ReadUnit] = []
    errors: List[InputFormatError] = []
    seen: Dict[Tuple[str, str], int] = {}
    for index, row in frame.iterrows():
        line = index + 2
        condition = _cell(row, "Condition")
        replicate = _cell(row, "Replicate")
        if condition is None or replicate is None:
            errors.append(InputFormatError(
                f"Experiment row {line} lacks a condition or replicate", {"line": line}
            ))
            continue
        if (condition, replicate) in seen:
            raise ConfigurationError(
                f"Duplicate condition/replicate {condition}/{replicate}",
                {"lines": [seen[(condition, replicate)], line]},
            )
        seen[(condition, replicate)] = line

        row_units = []
        for fraction in FRACTION_TYPES:
            forward = _cell(row, f"{fraction}_BC_F")
            reverse = _cell(row, f"{fraction}_BC_R")
            umi = _cell(row, f"{fraction}_UMI") if use_umi else None
            if forward is None or reverse is None or (use_umi and umi is None):
                errors.append(InputFormatError(
                    f"Experiment row {line} lacks {fraction} read files",
                    {"line": line, "condition": condition, "replicate": replicate},
                ))
                break
            row_units.append(ReadUnit(condition, replicate, fraction, forward, reverse, umi))
        else:
            units.extend(row_units)

    logger.info(f"Loaded {len(units)} read units from {path}")
    for error in errors:
        logger.error(str(error))
    return units, errors


def load_manifest(path: str | Path, use_umi: bool = True) -> List[ReadUnit]:
    """Like `read_manifest` but any malformed row is an error."""
    units, errors = read_manifest(path, use_umi)
    if errors:
        raise errors[0]
    return units


def pair_units(units: List[ReadUnit]) -> Dict[Tuple[str, str], Dict[str, ReadUnit]]:
    """Group units by (condition, replicate) keeping manifest order."""
    pairs: Dict[Tuple[str, str], Dict[str, ReadUnit]] = {}
    for unit in units:
        pairs.setdefault(unit.cond_rep, {})[unit.fraction] = unit
    return pairs
