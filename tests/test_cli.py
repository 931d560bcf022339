"""Tests for CLI."""

import subprocess
import sys
from pathlib import Path

from cif_factory import build_atoc_zip, msn_lines


def run_cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "atoc2gtfs.cli", *args],
        capture_output=True,
        text=True,
    )


def test_cli_convert_basic(atoc_minimal: Path, tmp_output: Path) -> None:
    """Test CLI conversion."""
    result = run_cli(str(atoc_minimal), str(tmp_output))

    assert result.returncode == 0
    assert "Conversion successful" in result.stdout
    assert tmp_output.exists()


def test_cli_convert_with_options(atoc_minimal: Path, tmp_path: Path, tmp_output: Path) -> None:
    """Test optional inputs are accepted."""
    holidays = tmp_path / "holidays.txt"
    holidays.write_text("2024-04-01\n")
    coords = tmp_path / "coords.csv"
    coords.write_text("code,latitude,longitude\nLDS,53.795,-1.5477\n")

    result = run_cli(
        str(atoc_minimal),
        str(tmp_output),
        "--verbose",
        "--jobs",
        "2",
        "--bank-holidays",
        str(holidays),
        "--station-coordinates",
        str(coords),
        "--skip-unknown-stops",
    )

    assert result.returncode == 0, result.stderr
    assert "DEBUG" in result.stderr


def test_cli_version() -> None:
    """Test -v prints the version and exits cleanly."""
    result = run_cli("-v")

    assert result.returncode == 0
    assert "atoc2gtfs" in result.stdout


def test_cli_help() -> None:
    """Test -h exits cleanly."""
    result = run_cli("-h")

    assert result.returncode == 0
    assert "--bank-holidays" in result.stdout


def test_cli_missing_input(tmp_path: Path) -> None:
    """Test a missing input fails with a message."""
    result = run_cli(str(tmp_path / "absent.zip"), str(tmp_path / "out.zip"))

    assert result.returncode == 1
    assert "Error: Input path does not exist" in result.stderr


def test_cli_input_is_directory(tmp_path: Path) -> None:
    """Test a directory input is rejected."""
    directory = tmp_path / "feed.zip"
    directory.mkdir()
    result = run_cli(str(directory), str(tmp_path / "out.zip"))

    assert result.returncode == 1
    assert "not a file" in result.stderr


def test_cli_requires_zip_extensions(atoc_minimal: Path, tmp_path: Path) -> None:
    """Test both paths must end in zip, in any case."""
    result = run_cli(str(atoc_minimal), str(tmp_path / "out.txt"))
    assert result.returncode == 1
    assert "Output path must be a zip file" in result.stderr

    for name in ("out.gzip", "outzip"):
        result = run_cli(str(atoc_minimal), str(tmp_path / name))
        assert result.returncode == 1, name
        assert not (tmp_path / name).exists()

    upper = run_cli(str(atoc_minimal), str(tmp_path / "OUT.ZIP"))
    assert upper.returncode == 0


def test_cli_conversion_error(tmp_path: Path) -> None:
    """Test conversion errors exit with status 1."""
    path = build_atoc_zip(tmp_path / "atoc.zip", msn=msn_lines(), mca=None)
    result = run_cli(str(path), str(tmp_path / "out.zip"))

    assert result.returncode == 1
    assert "Error: ATOC input does not contain expected file type(s): ['mca']" in result.stderr
