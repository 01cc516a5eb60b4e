"""
Read-pair merging for barcode reads.

Forward and reverse barcode reads are sequenced from opposite ends of the same
short fragment. The reverse read is reverse-complemented and overlapped with
the forward read; the fragment is reconstructed from the longest acceptable overlap
and read-through beyond the fragment end is clipped. Adapters are empty, so no
adapter trimming takes place. Pairs without an acceptable overlap are dropped
and counted in `MergeStats`.

Forward and reverse reads are assumed to have the same length.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, asdict
from typing import Optional, Tuple

from .config import PipelineConfig
from .exceptions import InputFormatError
from .fastq import ReadQuartet

logger = logging.getLogger(__name__)

MAX_MIN_OVERLAP = 11

_COMPLEMENT = str.maketrans("ACGTN", "TGCAN")


def reverse_complement(sequence: str) -> str:
    return sequence.translate(_COMPLEMENT)[::-1]


def min_overlap(read_length: int, barcode_length: int) -> int:
    """Overlap required between forward and reverse reads of a fragment."""
    return max(1, min(read_length + read_length - barcode_length - 1, MAX_MIN_OVERLAP))


@dataclass(frozen=True)
class MergedRecord:
    """A merged barcode fragment with the UMI read it was sequenced with."""
    barcode: str
    umi: Optional[str]
    dataset_id: str


@dataclass
class MergeStats:
    total: int = 0
    merged: int = 0
    dropped: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class ReadPairMerger:
    """Merge forward/reverse(/UMI) read quartets of one dataset."""

    def __init__(self, config: PipelineConfig, read_length: int, dataset_id: str = ""):
        if read_length < 1:
            raise ValueError("read_length must be positive")
        self.config = config
        self.read_length = read_length
        self.rev_start = read_length
        self.min_overlap = min_overlap(read_length, config.barcode_length)
        self.max_mismatch_rate = config.max_mismatch_rate
        self.dataset_id = dataset_id
        self.stats = MergeStats()

    def concatenate(self, quartet: ReadQuartet) -> Tuple[str, str]:
        """Join forward, reverse and UMI reads into one tagged sequence."""
        sequence = quartet.forward.sequence + quartet.reverse.sequence
        quality = quartet.forward.quality + quartet.reverse.quality
        if self.config.use_umi and quartet.umi is not None:
            sequence += quartet.umi.sequence
            quality += quartet.umi.quality
        return sequence, quality

    def _best_overlap(self, fwd: str, rc: str) -> Optional[Tuple[int, int, int]]:
        """Return (mismatches, overlap, fragment_length) of the best overlap."""
        f_len, r_len = len(fwd), len(rc)
        best = None
        for n in range(self.min_overlap, f_len + r_len - self.min_overlap + 1):
            start = max(0, n - r_len)
            end = min(f_len, n)
            overlap = end - start
            if overlap < self.min_overlap:
                continue
            allowed = int(overlap * self.max_mismatch_rate)
            offset = r_len - n
            mismatches = 0
            for p in range(start, end):
                a, b = fwd[p], rc[p + offset]
                if a != b and a != "N" and b != "N":
                    mismatches += 1
                    if mismatches > allowed:
                        break
            if mismatches > allowed:
                continue
            key = (-overlap, mismatches, n)
            if best is None or key < best:
                best = key
        if best is None:
            return None
        neg_overlap, mismatches, n = best
        return mismatches, -neg_overlap, n

    def merge_fragment(self, sequence: str, quality: str) -> Optional[Tuple[str, str]]:
        """Split a tagged sequence at `rev_start` and merge the barcode reads.

        Returns:
            (merged sequence, UMI sequence) or None if no overlap qualifies
        """
        f_len = self.rev_start
        fwd, fq = sequence[:f_len], quality[:f_len]
        rev, rq = sequence[f_len:2 * f_len], quality[f_len:2 * f_len]
        umi = sequence[2 * f_len:]
        rc, rcq = reverse_complement(rev), rq[::-1]

        best = self._best_overlap(fwd, rc)
        if best is None:
            return None
        _, _, n = best

        r_len = len(rc)
        offset = r_len - n
        bases = []
        for p in range(n):
            in_fwd = p < f_len
            in_rev = p >= n - r_len
            if in_fwd and in_rev:
                a, b = fwd[p], rc[p + offset]
                qa, qb = fq[p], rcq[p + offset]
                if a == b or b == "N":
                    bases.append(a)
                elif a == "N":
                    bases.append(b)
                elif qa > qb:
                    bases.append(a)
                elif qb > qa:
                    bases.append(b)
                else:
                    bases.append("N")
            elif in_fwd:
                bases.append(fwd[p])
            else:
                bases.append(rc[p + offset])
        return "".join(bases), umi

    def merge(self, quartet: ReadQuartet) -> Optional[MergedRecord]:
        """Merge one quartet, updating the drop tally."""
        if len(quartet.forward.sequence) != self.read_length:
            raise InputFormatError(
                f"{self.dataset_id}: read of length {len(quartet.forward.sequence)}, expected {self.read_length}"
            )
        self.stats.total += 1
        sequence, quality = self.concatenate(quartet)
        merged = self.merge_fragment(sequence, quality)
        if merged is None:
            self.stats.dropped += 1
            return None
        self.stats.merged += 1
        barcode, umi = merged
        return MergedRecord(
            barcode=barcode,
            umi=umi if self.config.use_umi else None,
            dataset_id=self.dataset_id,
        )

    def merge_stream(self, quartets: Iterable[ReadQuartet]) -> Iterator[MergedRecord]:
        for quartet in quartets:
            record = self.merge(quartet)
            if record is not None:
                yield record


def merge_reads(
    quartets: Iterable[ReadQuartet],
    config: PipelineConfig,
    dataset_id: str = "",
) -> Tuple[list, MergeStats]:
    """Merge all quartets of a dataset.

    The read length is taken from the first forward read.

    Returns:
        (merged records, merge statistics)
    """
    iterator = iter(quartets)
    first = next(iterator, None)
    if first is None:
        return [], MergeStats()

    merger = ReadPairMerger(config, len(first.forward.sequence), dataset_id)
    logger.debug(
        f"{dataset_id}: read length {merger.read_length}, minimum overlap {merger.min_overlap}"
    )
    records = list(merger.merge_stream(itertools.chain([first], iterator)))

    if merger.stats.dropped:
        logger.info(
            f"{dataset_id}: {merger.stats.dropped} of {merger.stats.total} read pairs did not merge"
        )
    return records, merger.stats
