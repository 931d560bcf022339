"""Pytest configuration and fixtures."""

from datetime import date
from pathlib import Path

import pytest
from cif_factory import build_atoc_zip, mca_lines, msn_lines, simple_schedule


@pytest.fixture
def atoc_minimal(tmp_path: Path) -> Path:
    """Two stations, one weekday service LDS 08:00 -> YORK 09:00 for Q1 2024."""
    return build_atoc_zip(
        tmp_path / "atoc_minimal.zip",
        msn=msn_lines(),
        mca=mca_lines(simple_schedule("A12345", date(2024, 1, 1), date(2024, 3, 31))),
    )


@pytest.fixture
def atoc_overlay(tmp_path: Path) -> Path:
    """Permanent service overlaid for Feb 10-20 by a service to Harrogate."""
    return build_atoc_zip(
        tmp_path / "atoc_overlay.zip",
        msn=msn_lines(),
        mca=mca_lines(
            simple_schedule("A12345", date(2024, 1, 1), date(2024, 3, 31)),
            simple_schedule(
                "A12345", date(2024, 2, 10), date(2024, 2, 20), destination="HGTE", stp="O"
            ),
        ),
    )


@pytest.fixture
def tmp_output(tmp_path: Path) -> Path:
    """Path for the GTFS zip."""
    return tmp_path / "out" / "gtfs.zip"
