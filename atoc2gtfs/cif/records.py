"""Typed records decoded from single CIF and master-station-names lines."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Record:
    """Base for every decoded line; carries where the line came from."""

    offset: int
    line_number: int

    tag = ""

    @property
    def record_type(self) -> str:
        return getattr(self, "record_tag", "") or self.tag


# Station master (.msn)


@dataclass(frozen=True)
class StationHeaderRecord(Record):
    file_spec: str

    tag = "A"


@dataclass(frozen=True)
class StationRecord(Record):
    name: str
    cate_type: str
    tiploc: str
    crs_subsidiary: str
    crs: str
    easting: int
    estimated: bool
    northing: int
    min_change_time: int | None

    tag = "A"


@dataclass(frozen=True)
class StationAliasRecord(Record):
    name: str
    alias: str

    tag = "L"


# Schedule master (.mca)


@dataclass(frozen=True)
class HeaderRecord(Record):
    file_identity: str
    extract_date: date
    extract_time: str
    current_reference: str
    last_reference: str
    update_indicator: str
    version: str
    user_start_date: date
    user_end_date: date

    tag = "HD"


@dataclass(frozen=True)
class BasicSchedule(Record):
    transaction_type: str
    train_uid: str
    date_runs_from: date
    date_runs_to: date | None  # None for open-ended (999999)
    days_run: int
    bank_holiday_running: str
    train_status: str
    train_category: str
    signalling_id: str
    headcode: str
    service_code: str
    power_type: str
    speed: str
    seating_class: str
    sleepers: str
    reservations: str
    catering_code: str
    stp_indicator: str

    tag = "BS"


@dataclass(frozen=True)
class BasicScheduleExtra(Record):
    traction_class: str
    uic_code: str
    atoc_code: str
    timetable_code: str
    retail_service_id: str

    tag = "BX"


@dataclass(frozen=True)
class OriginLocation(Record):
    location: str
    suffix: str
    scheduled_departure: int  # seconds from midnight, half-minutes included
    public_departure: int | None
    platform: str
    line: str
    activities: tuple[str, ...]

    tag = "LO"


@dataclass(frozen=True)
class IntermediateLocation(Record):
    location: str
    suffix: str
    scheduled_arrival: int | None
    scheduled_departure: int | None
    scheduled_pass: int | None
    public_arrival: int | None
    public_departure: int | None
    platform: str
    line: str
    path: str
    activities: tuple[str, ...]

    tag = "LI"


@dataclass(frozen=True)
class ChangeEnRoute(Record):
    location: str
    suffix: str
    train_category: str
    signalling_id: str
    headcode: str
    retail_service_id: str

    tag = "CR"


@dataclass(frozen=True)
class TerminatingLocation(Record):
    location: str
    suffix: str
    scheduled_arrival: int
    public_arrival: int | None
    platform: str
    path: str
    activities: tuple[str, ...]

    tag = "LT"


@dataclass(frozen=True)
class TrailerRecord(Record):
    tag = "ZZ"


@dataclass(frozen=True)
class IgnoredRecord(Record):
    """A known record type that plays no part in the conversion (TIPLOCs, associations)."""

    record_tag: str


@dataclass(frozen=True)
class UnknownRecord(Record):
    record_tag: str
