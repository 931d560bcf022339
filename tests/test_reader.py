"""Tests for the ATOC zip reader."""

import zipfile
from datetime import date
from pathlib import Path

import pytest
from cif_factory import bs_line, build_atoc_zip, mca_lines, msn_lines, simple_schedule

from atoc2gtfs.cif.models import FileKind
from atoc2gtfs.cif.reader import ATOCReader
from atoc2gtfs.errors import MissingExpectedFilesError, SequencingError


def test_reader_finds_members(atoc_minimal: Path) -> None:
    """Test one member of each kind is located."""
    reader = ATOCReader(atoc_minimal)
    assert reader.members == {
        FileKind.STATION_MASTER: "RJTTF793.MSN",
        FileKind.SCHEDULE_MASTER: "RJTTF793.MCA",
    }


def test_read_all(atoc_minimal: Path) -> None:
    """Test both files are decoded."""
    reader = ATOCReader(atoc_minimal)
    reader.read_all()

    assert len(reader.registry) == 3
    assert [f.train_uid for f in reader.fragments] == ["A12345"]


def test_lower_case_extensions(tmp_path: Path) -> None:
    """Test extensions match case-insensitively."""
    path = build_atoc_zip(
        tmp_path / "atoc.zip",
        msn=msn_lines(),
        mca=mca_lines(),
        msn_name="ttisf123.msn",
        mca_name="ttisf123.mca",
        extra_files={"ttisf123.flf": "", "ttisf123.ztr": ""},
    )
    assert set(ATOCReader(path).members.values()) == {"ttisf123.msn", "ttisf123.mca"}


def test_missing_schedule_master(tmp_path: Path) -> None:
    """Test an archive without the schedule file names the missing extension."""
    path = build_atoc_zip(tmp_path / "atoc.zip", msn=msn_lines(), mca=None)

    with pytest.raises(MissingExpectedFilesError) as excinfo:
        ATOCReader(path)

    assert excinfo.value.missing == frozenset({"mca"})
    assert "mca" in str(excinfo.value)
    assert "expected file type" in str(excinfo.value)


def test_empty_archive_misses_both(tmp_path: Path) -> None:
    """Test an empty archive reports both kinds."""
    path = build_atoc_zip(tmp_path / "atoc.zip")

    with pytest.raises(MissingExpectedFilesError) as excinfo:
        ATOCReader(path)
    assert excinfo.value.missing == frozenset({"msn", "mca"})


def test_two_station_masters_count_as_missing(tmp_path: Path) -> None:
    """Test more than one member of a kind is as bad as none."""
    path = build_atoc_zip(
        tmp_path / "atoc.zip",
        msn=msn_lines(),
        mca=mca_lines(),
        extra_files={"OTHER.MSN": ""},
    )
    with pytest.raises(MissingExpectedFilesError) as excinfo:
        ATOCReader(path)
    assert excinfo.value.missing == frozenset({"msn"})


def test_not_a_zip(tmp_path: Path) -> None:
    """Test a non-zip input is rejected."""
    path = tmp_path / "atoc.zip"
    path.write_bytes(b"This is not a ZIP file at all.")

    with pytest.raises(zipfile.BadZipFile):
        ATOCReader(path)


def test_schedule_errors_propagate(tmp_path: Path) -> None:
    """Test assembly errors raised in a worker thread reach the caller."""
    lines = mca_lines([bs_line("A12345", date(2024, 1, 1), date(2024, 3, 31))])
    lines += simple_schedule("B12345", date(2024, 1, 1), date(2024, 3, 31))
    path = build_atoc_zip(tmp_path / "atoc.zip", msn=msn_lines(), mca=lines)

    reader = ATOCReader(path)
    with pytest.raises(SequencingError):
        reader.read_all()
