"""Loaders for the design library, barcode association and insert labels."""

from __future__ import annotations

import gzip
import logging
import pickle
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .exceptions import AssociationError
from .utils import read_table

logger = logging.getLogger(__name__)

PICKLE_SUFFIXES = (".pickle", ".pkl")


def _open_text(path: Path):
    if path.suffix == ".gz":
        return gzip.open(path, "rt")
    return open(path)


def read_fasta(path: str | Path) -> Iterator[Tuple[str, str]]:
    """Yield (name, sequence) pairs; sequences may wrap over several lines."""
    path = Path(path)
    name: Optional[str] = None
    chunks: List[str] = []
    with _open_text(path) as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                if name is not None:
                    yield name, "".join(chunks)
                name = line[1:].split()[0] if len(line) > 1 else ""
                chunks = []
            elif name is None:
                raise AssociationError(f"Sequence before first FASTA header in {path}")
            else:
                chunks.append(line.upper())
    if name is not None:
        yield name, "".join(chunks)


def load_design(path: str | Path) -> Dict[str, str]:
    """Read designed insert sequences keyed by insert name."""
    design: Dict[str, str] = {}
    for name, sequence in read_fasta(path):
        if not name:
            raise AssociationError(f"Empty insert name in {path}")
        if name in design:
            raise AssociationError(f"Duplicate insert name {name} in {path}", {"name": name})
        design[name] = sequence
    logger.info(f"Loaded {len(design)} designed inserts from {path}")
    return design


@dataclass(frozen=True)
class AssociationMap:
    """Read-only barcode -> insert name mapping."""
    barcode_to_insert: Mapping[str, str]
    ambiguous: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(
            self, "barcode_to_insert", MappingProxyType(dict(self.barcode_to_insert))
        )

    def __len__(self) -> int:
        return len(self.barcode_to_insert)

    def __contains__(self, barcode: str) -> bool:
        return barcode in self.barcode_to_insert

    def lookup(self, barcode: str) -> Optional[str]:
        return self.barcode_to_insert.get(barcode)

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(
            sorted(self.barcode_to_insert.items()), columns=["barcode", "name"]
        )
        return frame.astype({"barcode": "object", "name": "object"})


def _read_association_table(path: Path) -> Tuple[Dict[str, str], set]:
    frame = read_table(path, dtype=str)
    frame.columns = [col.strip().lower() for col in frame.columns]
    if "barcode" not in frame.columns:
        raise AssociationError(f"Association table {path} has no barcode column")
    insert_column = next((c for c in ("insert", "name") if c in frame.columns), None)
    if insert_column is None:
        raise AssociationError(f"Association table {path} has no insert column")

    frame = frame[["barcode", insert_column]].dropna()
    frame = frame.drop_duplicates()
    multiplicity = frame.groupby("barcode")[insert_column].transform("size")
    ambiguous = set(frame.loc[multiplicity > 1, "barcode"])
    unique = frame.loc[multiplicity == 1]
    return dict(zip(unique["barcode"], unique[insert_column])), ambiguous


def load_association(path: str | Path, design: Optional[Mapping[str, str]] = None) -> AssociationMap:
    """Load a barcode association from a pickled dict or a barcode/insert table.

    Barcodes mapped to more than one insert are excluded. When a design is
    given, associations to inserts not in the design are ignored.
    """
    path = Path(path)
    ambiguous: set = set()
    if path.suffix in PICKLE_SUFFIXES:
        with open(path, "rb") as f:
            try:
                mapping = pickle.load(f)
            except (pickle.UnpicklingError, EOFError) as exc:
                raise AssociationError(f"Cannot read association pickle {path}") from exc
        if not isinstance(mapping, Mapping):
            raise AssociationError(f"Association pickle {path} does not hold a mapping")
        mapping = {str(barcode): str(name) for barcode, name in mapping.items()}
    else:
        mapping, ambiguous = _read_association_table(path)

    if ambiguous:
        logger.warning(f"Excluded {len(ambiguous)} barcodes associated with several inserts")

    if design is not None:
        unknown = {name for name in mapping.values() if name not in design}
        if unknown:
            logger.warning(
                f"{len(unknown)} associated inserts are not in the design and are ignored"
            )
            mapping = {bc: name for bc, name in mapping.items() if name not in unknown}

    logger.info(f"Loaded {len(mapping)} barcode associations from {path}")
    return AssociationMap(mapping, frozenset(ambiguous))


@dataclass(frozen=True)
class LabelMap:
    """Insert name -> label with a default for unlabeled inserts."""
    labels: Mapping[str, str]
    default: str = "NA"

    def __post_init__(self):
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))

    def label_for(self, name: str) -> str:
        return self.labels.get(name, self.default)


def load_labels(path: Optional[str | Path], default: str = "NA") -> LabelMap:
    """Read a two-column name/label file without header."""
    if path is None:
        return LabelMap({}, default)
    frame = read_table(path, header=None, dtype=str)
    if frame.shape[1] < 2:
        raise AssociationError(f"Label file {path} needs two columns")
    frame = frame.iloc[:, :2].dropna()
    return LabelMap(dict(zip(frame.iloc[:, 0].str.strip(), frame.iloc[:, 1].str.strip())), default)
