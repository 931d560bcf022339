"""GTFS zip output."""

import csv
import hashlib
import io
import logging
import os
import tempfile
import zipfile
from collections.abc import Callable, Iterable
from datetime import date
from pathlib import Path
from typing import Any

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

logger = logging.getLogger(__name__)


def format_time(seconds: int) -> str:
    """Seconds since service-day midnight as HH:MM:SS; hours may exceed 23."""
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_date(day: date) -> str:
    return day.strftime("%Y%m%d")


def _coordinate(value: float | None) -> str:
    return "" if value is None else f"{value:.6f}"


def _agency_row(agency: Agency) -> list[Any]:
    return [agency.agency_id, agency.agency_name, agency.agency_url, agency.agency_timezone]


def _stop_row(stop: Stop) -> list[Any]:
    return [
        stop.stop_id,
        stop.stop_code,
        stop.stop_name,
        _coordinate(stop.stop_lat),
        _coordinate(stop.stop_lon),
    ]


def _route_row(route: Route) -> list[Any]:
    return [
        route.route_id,
        route.agency_id,
        route.route_short_name,
        route.route_long_name,
        route.route_type,
    ]


def _trip_row(trip: Trip) -> list[Any]:
    return [trip.route_id, trip.service_id, trip.trip_id, trip.trip_headsign, trip.trip_short_name]


def _stop_time_row(st: StopTime) -> list[Any]:
    return [
        st.trip_id,
        format_time(st.arrival_time),
        format_time(st.departure_time),
        st.stop_id,
        st.stop_sequence,
        st.pickup_type,
        st.drop_off_type,
        st.platform,
    ]


def _calendar_row(cal: Calendar) -> list[Any]:
    days = [cal.monday, cal.tuesday, cal.wednesday, cal.thursday, cal.friday, cal.saturday, cal.sunday]
    return [
        cal.service_id,
        *(int(d) for d in days),
        format_date(cal.start_date),
        format_date(cal.end_date),
    ]


def _calendar_date_row(cd: CalendarDate) -> list[Any]:
    return [cd.service_id, format_date(cd.date), cd.exception_type]


# filename -> (header, feed attribute, row builder), in output order
TABLES: dict[str, tuple[list[str], str, Callable[[Any], list[Any]]]] = {
    "agency.txt": (
        ["agency_id", "agency_name", "agency_url", "agency_timezone"],
        "agencies",
        _agency_row,
    ),
    "stops.txt": (
        ["stop_id", "stop_code", "stop_name", "stop_lat", "stop_lon"],
        "stops",
        _stop_row,
    ),
    "routes.txt": (
        ["route_id", "agency_id", "route_short_name", "route_long_name", "route_type"],
        "routes",
        _route_row,
    ),
    "trips.txt": (
        ["route_id", "service_id", "trip_id", "trip_headsign", "trip_short_name"],
        "trips",
        _trip_row,
    ),
    "stop_times.txt": (
        [
            "trip_id",
            "arrival_time",
            "departure_time",
            "stop_id",
            "stop_sequence",
            "pickup_type",
            "drop_off_type",
            "platform_code",
        ],
        "stop_times",
        _stop_time_row,
    ),
    "calendar.txt": (
        [
            "service_id",
            "monday",
            "tuesday",
            "wednesday",
            "thursday",
            "friday",
            "saturday",
            "sunday",
            "start_date",
            "end_date",
        ],
        "calendar",
        _calendar_row,
    ),
    "calendar_dates.txt": (
        ["service_id", "date", "exception_type"],
        "calendar_dates",
        _calendar_date_row,
    ),
}


def render_table(header: list[str], rows: Iterable[list[Any]]) -> bytes:
    """Render rows as UTF-8 CSV with a header line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def write_gtfs_zip(feed: GtfsFeed, output_path: str | Path) -> dict[str, str]:
    """
    Write the feed as a GTFS zip.

    The archive is written to a temporary file in the target directory and
    renamed into place, so a failed write leaves no partial output.

    Returns:
        Mapping of table filename to the sha256 of its contents
    """
    output_path = Path(output_path)
    logger.info(f"Writing GTFS zip to {output_path}")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    checksums: dict[str, str] = {}
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
    )
    try:
        with os.fdopen(fd, "wb") as f, zipfile.ZipFile(f, "w", zipfile.ZIP_DEFLATED) as zf:
            for filename, (header, attribute, to_row) in TABLES.items():
                records = getattr(feed, attribute)
                content = render_table(header, (to_row(r) for r in records))
                zf.writestr(filename, content)
                checksums[filename] = hashlib.sha256(content).hexdigest()
                logger.debug(f"Wrote {filename} ({len(records)} rows)")
        os.replace(tmp_name, output_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(f"Wrote {len(checksums)} tables to {output_path}")
    return checksums
