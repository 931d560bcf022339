"""Tests for GTFS zip output."""

import csv
import hashlib
import io
import zipfile
from datetime import date
from pathlib import Path

import pytest

from atoc2gtfs.gtfs.models import (
    Agency,
    Calendar,
    CalendarDate,
    GtfsFeed,
    Route,
    Stop,
    StopTime,
    Trip,
)
from atoc2gtfs.output.gtfs import format_date, format_time, write_gtfs_zip

EXPECTED_FILES = {
    "agency.txt",
    "stops.txt",
    "routes.txt",
    "trips.txt",
    "stop_times.txt",
    "calendar.txt",
    "calendar_dates.txt",
}


@pytest.fixture
def feed() -> GtfsFeed:
    return GtfsFeed(
        agencies=[Agency("NT", "Northern", "https://www.nationalrail.co.uk", "Europe/London")],
        stops=[
            Stop("LDS", "LDS", "LEEDS", 53.795, -1.5477),
            Stop("YORK", "YRK", "YORK"),
        ],
        routes=[Route("NT_LDS_YORK", "NT", "", "LEEDS to YORK", 2)],
        trips=[Trip("A12345_1", "NT_LDS_YORK", "A12345_1", "1A23", "YORK")],
        stop_times=[
            StopTime("A12345_1", "LDS", 23 * 3600 + 30 * 60, 23 * 3600 + 30 * 60, 1, 0, 1, "12"),
            StopTime("A12345_1", "YORK", 24 * 3600 + 30, 24 * 3600 + 30, 2, 1, 0),
        ],
        calendar=[
            Calendar(
                "A12345_1", True, True, True, True, True, False, False,
                date(2024, 1, 1), date(2024, 3, 31),
            )
        ],
        calendar_dates=[CalendarDate("A12345_1", date(2024, 1, 17), 2)],
    )


def read_table(zf: zipfile.ZipFile, name: str) -> list[dict[str, str]]:
    return list(csv.DictReader(io.StringIO(zf.read(name).decode("utf-8"))))


def test_format_time_past_midnight() -> None:
    """Test times after midnight keep counting hours."""
    assert format_time(0) == "00:00:00"
    assert format_time(8 * 3600 + 30) == "08:00:30"
    assert format_time(25 * 3600 + 61) == "25:01:01"


def test_format_date() -> None:
    """Test dates are YYYYMMDD."""
    assert format_date(date(2024, 1, 7)) == "20240107"


def test_write_gtfs_zip(feed: GtfsFeed, tmp_output: Path) -> None:
    """Test every table is written with headers and formatted values."""
    checksums = write_gtfs_zip(feed, tmp_output)

    assert set(checksums) == EXPECTED_FILES
    with zipfile.ZipFile(tmp_output) as zf:
        assert set(zf.namelist()) == EXPECTED_FILES
        for name, digest in checksums.items():
            assert hashlib.sha256(zf.read(name)).hexdigest() == digest

        stops = read_table(zf, "stops.txt")
        assert stops[0] == {
            "stop_id": "LDS",
            "stop_code": "LDS",
            "stop_name": "LEEDS",
            "stop_lat": "53.795000",
            "stop_lon": "-1.547700",
        }
        assert stops[1]["stop_lat"] == ""

        stop_times = read_table(zf, "stop_times.txt")
        assert [row["arrival_time"] for row in stop_times] == ["23:30:00", "24:00:30"]
        assert stop_times[0]["platform_code"] == "12"

        (calendar,) = read_table(zf, "calendar.txt")
        assert calendar["monday"] == "1"
        assert calendar["saturday"] == "0"
        assert (calendar["start_date"], calendar["end_date"]) == ("20240101", "20240331")

        (removal,) = read_table(zf, "calendar_dates.txt")
        assert removal == {"service_id": "A12345_1", "date": "20240117", "exception_type": "2"}


def test_write_empty_tables(tmp_output: Path) -> None:
    """Test empty tables still carry their header row."""
    write_gtfs_zip(GtfsFeed(), tmp_output)

    with zipfile.ZipFile(tmp_output) as zf:
        assert zf.read("calendar_dates.txt").decode("utf-8") == "service_id,date,exception_type\n"


def test_write_is_deterministic(feed: GtfsFeed, tmp_path: Path) -> None:
    """Test the same feed gives the same table checksums."""
    assert write_gtfs_zip(feed, tmp_path / "a.zip") == write_gtfs_zip(feed, tmp_path / "b.zip")


def test_failed_write_leaves_no_output(feed: GtfsFeed, tmp_output: Path) -> None:
    """Test a failure part-way leaves neither output nor temporary files."""
    feed.stop_times.append("not a stop time")  # type: ignore[arg-type]

    with pytest.raises(AttributeError):
        write_gtfs_zip(feed, tmp_output)

    assert not tmp_output.exists()
    assert list(tmp_output.parent.iterdir()) == []
