"""Domain models decoded from an ATOC CIF feed."""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum


class FileKind(Enum):
    """Kinds of file bundled in an ATOC CIF archive, valued by extension."""

    STATION_MASTER = "msn"
    SCHEDULE_MASTER = "mca"


class StpIndicator(Enum):
    """Short-term planning indicator of a schedule."""

    PERMANENT = "P"
    OVERLAY = "O"
    NEW = "N"
    CANCELLATION = "C"

    @property
    def priority(self) -> int:
        """Higher priority wins when fragments claim the same date."""
        return _STP_PRIORITY[self]


_STP_PRIORITY = {
    StpIndicator.PERMANENT: 0,
    StpIndicator.OVERLAY: 1,
    StpIndicator.NEW: 2,
    StpIndicator.CANCELLATION: 3,
}


class CallKind(Enum):
    """Position of a call within a schedule."""

    ORIGIN = "LO"
    INTERMEDIATE = "LI"
    TERMINATING = "LT"


def parse_days_run(days: str) -> int:
    """Convert a CIF days-run string ("1111100") to a weekday bitmask (Monday = bit 0)."""
    if len(days) != 7 or any(c not in "01" for c in days):
        raise ValueError(f"Invalid days-run string: {days!r}")
    return sum(1 << i for i, c in enumerate(days) if c == "1")


def runs_on(mask: int, weekday: int) -> bool:
    """Check a weekday bitmask for a `date.weekday()` value."""
    return bool(mask & (1 << weekday))


def mask_to_days(mask: int) -> tuple[bool, ...]:
    """Expand a weekday bitmask to seven booleans, Monday first."""
    return tuple(runs_on(mask, wd) for wd in range(7))


def days_to_mask(weekdays: set[int] | frozenset[int]) -> int:
    """Build a weekday bitmask from a set of `date.weekday()` values."""
    mask = 0
    for wd in weekdays:
        mask |= 1 << wd
    return mask


@dataclass(frozen=True)
class Station:
    """A station-master entry keyed by its location code (TIPLOC)."""

    location_code: str
    name: str
    crs_code: str = ""
    alternate_code: str = ""
    easting: int | None = None  # grid units, as supplied
    northing: int | None = None
    latitude: float | None = None
    longitude: float | None = None

    def __post_init__(self) -> None:
        has_grid = self.easting is not None and self.northing is not None
        has_wgs84 = self.latitude is not None and self.longitude is not None
        if not (has_grid or has_wgs84):
            raise ValueError(f"Station {self.location_code} has no coordinate pair")


@dataclass(frozen=True)
class Call:
    """One stop event of a schedule.

    Offsets are seconds from midnight of the day the train leaves its origin.
    Public calls carry public times (None where the timetable shows no time),
    non-public calls carry working times.
    """

    location_code: str
    kind: CallKind
    sequence_number: int
    arrival_offset: int | None
    departure_offset: int | None
    public_flag: bool
    location_suffix: str = ""
    platform: str = ""
    activities: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScheduleFragment:
    """One Basic-Schedule to Terminating span as read from the schedule master."""

    train_uid: str
    stp_indicator: StpIndicator
    valid_from: date
    valid_to: date
    days_of_week: int
    calls: tuple[Call, ...] = ()
    bank_holiday_running: str = ""
    train_category: str = ""
    signalling_id: str = ""
    atoc_code: str = ""
    retail_service_id: str = ""
    sequence: int = 0
    line_number: int = 0

    def __post_init__(self) -> None:
        if self.valid_to < self.valid_from:
            raise ValueError(
                f"Schedule {self.train_uid} ends ({self.valid_to}) before it starts "
                f"({self.valid_from})"
            )
        if not self.calls:
            return
        if self.calls[0].kind is not CallKind.ORIGIN:
            raise ValueError(f"Schedule {self.train_uid} does not begin with an origin call")
        if self.calls[-1].kind is not CallKind.TERMINATING:
            raise ValueError(f"Schedule {self.train_uid} does not end with a terminating call")
        for prev, call in zip(self.calls, self.calls[1:]):
            if call.sequence_number <= prev.sequence_number:
                raise ValueError(
                    f"Schedule {self.train_uid} has non-increasing call sequence "
                    f"{prev.sequence_number} -> {call.sequence_number}"
                )
            if call.kind is CallKind.ORIGIN or prev.kind is CallKind.TERMINATING:
                raise ValueError(f"Schedule {self.train_uid} has a misplaced origin/terminating call")

    @property
    def is_cancellation(self) -> bool:
        return self.stp_indicator is StpIndicator.CANCELLATION

    @property
    def pattern_key(self) -> tuple[object, ...]:
        """Identity of the running pattern, shared by fragments that yield the same trip."""
        return (
            self.calls,
            self.atoc_code,
            self.train_category,
            self.signalling_id,
            self.retail_service_id,
        )

    @property
    def public_calls(self) -> tuple[Call, ...]:
        return tuple(call for call in self.calls if call.public_flag)


@dataclass(frozen=True)
class ServiceWindow:
    """A date range and weekday mask over which one running pattern applies."""

    start_date: date
    end_date: date
    days_of_week: int
    fragment: ScheduleFragment
    removed_dates: frozenset[date] = field(default_factory=frozenset)

    @property
    def calls(self) -> tuple[Call, ...]:
        return self.fragment.calls

    def running_dates(self) -> list[date]:
        """All dates the service actually runs within this window."""
        dates = []
        day = self.start_date
        while day <= self.end_date:
            if runs_on(self.days_of_week, day.weekday()) and day not in self.removed_dates:
                dates.append(day)
            day += timedelta(days=1)
        return dates


@dataclass(frozen=True)
class ResolvedService:
    """All non-overlapping windows of one train UID after STP resolution."""

    train_uid: str
    windows: tuple[ServiceWindow, ...]


@dataclass(frozen=True)
class AmbiguousOverlay:
    """Two fragments of equal STP priority claimed the same date and weekday."""

    train_uid: str
    stp_indicator: StpIndicator
    winner_valid_from: date
    loser_valid_from: date
    first_date: date

    def __str__(self) -> str:
        return (
            f"Ambiguous {self.stp_indicator.name.lower()} schedules for {self.train_uid} "
            f"from {self.first_date}: schedule starting {self.winner_valid_from} "
            f"overrides schedule starting {self.loser_valid_from}"
        )
