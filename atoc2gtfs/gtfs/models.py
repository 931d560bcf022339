"""Data models for GTFS output and conversion settings."""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

DEFAULT_AGENCY_URL = "https://www.nationalrail.co.uk"
DEFAULT_AGENCY_TIMEZONE = "Europe/London"


@dataclass(frozen=True)
class Agency:
    """GTFS agency (one per train operating company)."""

    agency_id: str
    agency_name: str
    agency_url: str
    agency_timezone: str


@dataclass(frozen=True)
class Stop:
    """GTFS stop; coordinates are absent when none were supplied."""

    stop_id: str
    stop_code: str
    stop_name: str
    stop_lat: float | None = None
    stop_lon: float | None = None


@dataclass(frozen=True)
class Route:
    """GTFS route."""

    route_id: str
    agency_id: str
    route_short_name: str
    route_long_name: str
    route_type: int


@dataclass(frozen=True)
class Trip:
    """GTFS trip."""

    trip_id: str
    route_id: str
    service_id: str
    trip_short_name: str = ""
    trip_headsign: str = ""


@dataclass(frozen=True)
class StopTime:
    """GTFS stop time."""

    trip_id: str
    stop_id: str
    arrival_time: int  # seconds since midnight of the service day, may pass 24h
    departure_time: int
    stop_sequence: int
    pickup_type: int = 0
    drop_off_type: int = 0
    platform: str = ""


@dataclass(frozen=True)
class Calendar:
    """GTFS calendar entry."""

    service_id: str
    monday: bool
    tuesday: bool
    wednesday: bool
    thursday: bool
    friday: bool
    saturday: bool
    sunday: bool
    start_date: date
    end_date: date


@dataclass(frozen=True)
class CalendarDate:
    """GTFS calendar date exception (1 = added, 2 = removed)."""

    service_id: str
    date: date
    exception_type: int


@dataclass
class GtfsFeed:
    """A complete GTFS feed ready to be written."""

    agencies: list[Agency] = field(default_factory=list)
    stops: list[Stop] = field(default_factory=list)
    routes: list[Route] = field(default_factory=list)
    trips: list[Trip] = field(default_factory=list)
    stop_times: list[StopTime] = field(default_factory=list)
    calendar: list[Calendar] = field(default_factory=list)
    calendar_dates: list[CalendarDate] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)

    def counts(self) -> dict[str, int]:
        return {
            "agencies": len(self.agencies),
            "stops": len(self.stops),
            "routes": len(self.routes),
            "trips": len(self.trips),
            "stop_times": len(self.stop_times),
            "calendar": len(self.calendar),
            "calendar_dates": len(self.calendar_dates),
        }


@dataclass
class Manifest:
    """Build manifest with metadata and checksums."""

    tool_version: str
    created_at_iso: str
    inputs: dict[str, Any]
    outputs: dict[str, str]  # filename -> sha256
    stats: dict[str, int]
    build: dict[str, str]
    warnings: list[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    """Report from validation process."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


@dataclass
class ConvertConfig:
    """Configuration for conversion process."""

    input_path: str
    output_path: str
    jobs: int = 1
    agency_url: str = DEFAULT_AGENCY_URL
    agency_timezone: str = DEFAULT_AGENCY_TIMEZONE
    bank_holidays: frozenset[date] = frozenset()
    station_coordinates_path: str | None = None
    skip_unknown_stops: bool = False
