"""
Tests for experiment manifest parsing.
"""

import pytest

from mpracount.exceptions import ConfigurationError, InputFormatError
from mpracount.manifest import ReadUnit, load_manifest, pair_units, read_manifest

HEADER = "Condition,Replicate,DNA_BC_F,DNA_BC_R,DNA_UMI,RNA_BC_F,RNA_BC_R,RNA_UMI\n"


def write_manifest(path, *rows, header=HEADER):
    path.write_text(header + "".join(row + "\n" for row in rows))
    return path


class TestReadManifest:
    def test_units_in_row_order(self, temp_dir):
        path = write_manifest(
            temp_dir / "experiment.csv",
            "HEPG2,1,d1f,d1r,d1u,r1f,r1r,r1u",
            "HEPG2,2,d2f,d2r,d2u,r2f,r2r,r2u",
        )
        units, errors = read_manifest(path)

        assert errors == []
        assert [u.dataset_id for u in units] == [
            "HEPG2_1_DNA", "HEPG2_1_RNA", "HEPG2_2_DNA", "HEPG2_2_RNA",
        ]
        assert units[1] == ReadUnit("HEPG2", "1", "RNA", "r1f", "r1r", "r1u")

    def test_tab_separated(self, temp_dir):
        path = write_manifest(
            temp_dir / "experiment.tsv",
            "A\t1\tdf\tdr\tdu\trf\trr\tru",
            header=HEADER.replace(",", "\t"),
        )
        assert len(load_manifest(path)) == 2

    def test_umi_columns_ignored_without_umi(self, temp_dir):
        path = write_manifest(
            temp_dir / "experiment.csv",
            "A,1,df,dr,df,rf",
            header="Condition,Replicate,DNA_BC_F,DNA_BC_R,RNA_BC_F,RNA_BC_R\n",
        )
        units = load_manifest(path, use_umi=False)

        assert all(unit.umi is None for unit in units)

    def test_missing_read_file_reported(self, temp_dir):
        """A row lacking a read file is reported and the other rows survive."""
        path = write_manifest(
            temp_dir / "experiment.csv",
            "A,1,df,dr,du,rf,,ru",
            "A,2,df,dr,du,rf,rr,ru",
        )
        units, errors = read_manifest(path)

        assert [u.dataset_id for u in units] == ["A_2_DNA", "A_2_RNA"]
        assert len(errors) == 1
        assert errors[0].details == {"line": 2, "condition": "A", "replicate": "1"}

    def test_missing_condition_reported(self, temp_dir):
        path = write_manifest(temp_dir / "experiment.csv", ",1,df,dr,du,rf,rr,ru")
        units, errors = read_manifest(path)

        assert units == []
        assert errors[0].details == {"line": 2}

    def test_load_manifest_raises_row_error(self, temp_dir):
        path = write_manifest(temp_dir / "experiment.csv", "A,1,df,dr,,rf,rr,ru")
        with pytest.raises(InputFormatError):
            load_manifest(path)

    def test_missing_column(self, temp_dir):
        path = write_manifest(
            temp_dir / "experiment.csv", "A,1,df", header="Condition,Replicate,DNA_BC_F\n"
        )
        with pytest.raises(InputFormatError) as exc_info:
            read_manifest(path)
        assert "RNA_BC_F" in exc_info.value.details["missing"]

    def test_duplicate_condition_replicate(self, temp_dir):
        path = write_manifest(
            temp_dir / "experiment.csv",
            "A,1,df,dr,du,rf,rr,ru",
            "A,1,df,dr,du,rf,rr,ru",
        )
        with pytest.raises(ConfigurationError):
            read_manifest(path)


class TestReadUnit:
    def test_unknown_fraction(self):
        with pytest.raises(InputFormatError):
            ReadUnit("A", "1", "PROTEIN", "f", "r")

    def test_pair_units(self):
        units = [
            ReadUnit("A", "1", "DNA", "f", "r"),
            ReadUnit("A", "1", "RNA", "f", "r"),
            ReadUnit("B", "1", "DNA", "f", "r"),
        ]
        pairs = pair_units(units)

        assert list(pairs) == [("A", "1"), ("B", "1")]
        assert set(pairs[("A", "1")]) == {"DNA", "RNA"}
