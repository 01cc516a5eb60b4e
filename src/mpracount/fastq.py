"""FASTQ reading for barcode read sets."""

from __future__ import annotations

import gzip
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .exceptions import InputFormatError


@dataclass(frozen=True)
class FastqRecord:
    name: str
    sequence: str
    quality: str


@dataclass(frozen=True)
class ReadQuartet:
    """Forward, reverse and optional UMI read of one sequenced fragment."""
    forward: FastqRecord
    reverse: FastqRecord
    umi: Optional[FastqRecord] = None


class FASTQReader:
    """Streaming FASTQ reader."""

    def __init__(self, file_path: str | Path):
        """Initialize FASTQ reader.

        Args:
            file_path: Path to FASTQ file (can be gzipped)
        """
        self.file_path = Path(file_path)
        self.is_gzipped = self.file_path.suffix == ".gz"

    def _open_file(self):
        """Open file with appropriate compression handling."""
        if self.is_gzipped:
            return gzip.open(self.file_path, "rt")
        else:
            return open(self.file_path)

    def __iter__(self) -> Iterator[FastqRecord]:
        return self.read_fastq()

    def read_fastq(self) -> Iterator[FastqRecord]:
        """Yield records, raising on truncated or malformed entries."""
        with self._open_file() as f:
            line_number = 0
            while True:
                header = f.readline()
                if not header:
                    break  # EOF
                sequence = f.readline().rstrip("\n\r")
                plus = f.readline().rstrip("\n\r")
                quality = f.readline().rstrip("\n\r")
                header = header.rstrip("\n\r")
                line_number += 4

                if not header.startswith("@") or not plus.startswith("+"):
                    raise InputFormatError(
                        f"Malformed FASTQ record ending at line {line_number} in {self.file_path}"
                    )
                if len(sequence) != len(quality):
                    raise InputFormatError(
                        f"Sequence and quality lengths differ at line {line_number} in {self.file_path}"
                    )

                yield FastqRecord(
                    name=header[1:].split()[0] if len(header) > 1 else "",
                    sequence=sequence.upper(),
                    quality=quality,
                )


def read_quartets(
    forward: str | Path,
    reverse: str | Path,
    umi: str | Path | None = None,
    umi_length: int = 0,
) -> Iterator[ReadQuartet]:
    """Iterate forward/reverse(/UMI) FASTQ files in lock step.

    Forward and reverse reads must have the same length; UMI reads must be at
    least `umi_length` long.

    Raises:
        InputFormatError: on stream length or read length mismatches
    """
    streams = [iter(FASTQReader(forward)), iter(FASTQReader(reverse))]
    if umi is not None:
        streams.append(iter(FASTQReader(umi)))

    sentinel = object()
    index = 0
    while True:
        records = [next(stream, sentinel) for stream in streams]
        finished = [record is sentinel for record in records]
        if all(finished):
            return
        if any(finished):
            raise InputFormatError(
                f"Read files for {forward} end at different records",
                {"record": index},
            )

        fwd, rev = records[0], records[1]
        if len(fwd.sequence) != len(rev.sequence):
            raise InputFormatError(
                f"Forward and reverse reads differ in length at record {index}",
                {"forward": len(fwd.sequence), "reverse": len(rev.sequence)},
            )
        umi_record = records[2] if umi is not None else None
        if umi_record is not None and len(umi_record.sequence) < umi_length:
            raise InputFormatError(
                f"UMI read shorter than {umi_length} at record {index}",
                {"umi": len(umi_record.sequence)},
            )

        yield ReadQuartet(fwd, rev, umi_record)
        index += 1
