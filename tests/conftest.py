"""
Test configuration and fixtures for mpracount tests.
"""

import pytest
import pandas as pd
from pathlib import Path
import tempfile
import shutil

from mpracount.config import PipelineConfig, InputConfig
from mpracount.fastq import FastqRecord, ReadQuartet
from mpracount.merge import MergedRecord, reverse_complement


def make_quartet(forward, reverse, umi=None, forward_quality=None, reverse_quality=None):
    """Build a read quartet with high base qualities unless given."""
    return ReadQuartet(
        forward=FastqRecord("r", forward, forward_quality or "I" * len(forward)),
        reverse=FastqRecord("r", reverse, reverse_quality or "I" * len(reverse)),
        umi=FastqRecord("r", umi, "I" * len(umi)) if umi is not None else None,
    )


def barcode_pair(barcode, umi=None):
    """Forward/reverse reads covering the whole barcode from both ends."""
    return barcode, reverse_complement(barcode), umi


def merged(barcode, umi=None):
    return MergedRecord(barcode=barcode, umi=umi, dataset_id="test")


def write_fastq(path, sequences, quality="I"):
    with open(path, "w") as f:
        for i, sequence in enumerate(sequences):
            f.write(f"@read{i}\n{sequence}\n+\n{quality * len(sequence)}\n")


def write_unit_fastqs(directory, prefix, pairs):
    """Write forward, reverse and UMI FASTQ files for (forward, reverse, umi) tuples."""
    names = {
        "forward": f"{prefix}_F.fastq",
        "reverse": f"{prefix}_R.fastq",
        "umi": f"{prefix}_UMI.fastq",
    }
    write_fastq(directory / names["forward"], [p[0] for p in pairs])
    write_fastq(directory / names["reverse"], [p[1] for p in pairs])
    write_fastq(directory / names["umi"], [p[2] or "" for p in pairs])
    return names


def final_counts(counts):
    """Final count table from a barcode -> count dict."""
    frame = pd.DataFrame(sorted(counts.items()), columns=["barcode", "count"])
    return frame.astype({"barcode": "object", "count": "int64"})


@pytest.fixture
def temp_dir():
    """Temporary directory for test outputs."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def umi_config():
    return PipelineConfig(barcode_length=4, umi_length=2, use_umi=True, count_threshold=1)


@pytest.fixture
def plain_config():
    return PipelineConfig(barcode_length=4, use_umi=False, count_threshold=1)


# Reads of one replicate: barcode -> UMIs seen with it (one read per UMI entry).
DNA_READS = {
    "ACGTACGT": ["AAAA", "AAAA", "CCCC"],
    "AACCGGTT": ["GGGG"],
    "TTGGCCAA": ["AAAA", "CCCC"],
    "GATCGATC": ["TTTT"],
    "CCCCAAAA": ["AAAA"],
}
RNA_READS = {
    "ACGTACGT": ["AAAA", "CCCC", "GGGG", "TTTT"],
    "AACCGGTT": ["AAAA", "CCCC", "CCCC"],
    "TTGGCCAA": ["GGGG"],
    "GATCGATC": ["AAAA"],
}
ASSOCIATION = {
    "ACGTACGT": "X",
    "AACCGGTT": "X",
    "TTGGCCAA": "Y",
    "GATCGATC": "Y",
}


def unit_pairs(reads):
    pairs = []
    for barcode, umis in reads.items():
        pairs.extend(barcode_pair(barcode, umi) for umi in umis)
    # one pair with an ambiguous base and one pair that does not overlap
    pairs.append(barcode_pair("ACGTNCGT", "AAAA"))
    pairs.append(("AAAAAAAA", "AAAAAAAA", "CCCC"))
    return pairs


@pytest.fixture
def experiment(temp_dir):
    """Two replicates of one condition plus a condition whose RNA forward reads are missing."""
    fastq_dir = temp_dir / "fastq"
    fastq_dir.mkdir()

    rows = []
    for condition, replicate in (("cond1", "1"), ("cond1", "2"), ("cond2", "1")):
        dna = write_unit_fastqs(fastq_dir, f"{condition}_{replicate}_DNA", unit_pairs(DNA_READS))
        rna = write_unit_fastqs(fastq_dir, f"{condition}_{replicate}_RNA", unit_pairs(RNA_READS))
        rows.append({
            "Condition": condition,
            "Replicate": replicate,
            "DNA_BC_F": dna["forward"],
            "DNA_BC_R": dna["reverse"],
            "DNA_UMI": dna["umi"],
            "RNA_BC_F": rna["forward"],
            "RNA_BC_R": rna["reverse"],
            "RNA_UMI": rna["umi"],
        })
    (fastq_dir / "cond2_1_RNA_F.fastq").unlink()

    experiment_file = fastq_dir / "experiment.csv"
    pd.DataFrame(rows).to_csv(experiment_file, index=False)

    design_file = temp_dir / "design.fa"
    design_file.write_text(">X\nACGTACGTACGT\n>Y\nTTTTGGGG\nCCCC\n")

    association_file = temp_dir / "association.tsv"
    association_file.write_text(
        "barcode\tinsert\n" + "".join(f"{bc}\t{name}\n" for bc, name in ASSOCIATION.items())
    )

    label_file = temp_dir / "labels.tsv"
    label_file.write_text("X\tpositive\n")

    return {
        "experiment_file": str(experiment_file),
        "design_file": str(design_file),
        "association_file": str(association_file),
        "label_file": str(label_file),
    }


@pytest.fixture
def experiment_config(temp_dir, experiment):
    return PipelineConfig(
        run_id="integration",
        barcode_length=8,
        umi_length=4,
        count_threshold=2,
        output_directory=str(temp_dir / "results"),
        inputs=InputConfig(**experiment),
    )
