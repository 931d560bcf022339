"""Fixed-width record decoding for CIF schedule and master-station-names files.

Each record type is described by a layout of half-open, zero-based character
ranges. Extraction is bounds-checked: a required field running past the end of
the line is reported as a `MalformedRecordError` carrying the file kind, tag and
byte offset, never an IndexError.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import date

from atoc2gtfs.cif.models import FileKind, parse_days_run
from atoc2gtfs.cif.records import (
    BasicSchedule,
    BasicScheduleExtra,
    ChangeEnRoute,
    HeaderRecord,
    IgnoredRecord,
    IntermediateLocation,
    OriginLocation,
    Record,
    StationAliasRecord,
    StationHeaderRecord,
    StationRecord,
    TerminatingLocation,
    TrailerRecord,
    UnknownRecord,
)
from atoc2gtfs.errors import MalformedRecordError

logger = logging.getLogger(__name__)

MSN_FILE_SPEC_MARKER = "FILE-SPEC="
OPEN_ENDED_DATE = "999999"
STP_CODES = frozenset("PONC")
TRANSACTION_TYPES = frozenset("NDR")
SCHEDULE_IGNORED_TAGS = frozenset({"TI", "TA", "TD", "AA"})


@dataclass(frozen=True)
class Field:
    """One fixed-width field: characters [start, end) of the line."""

    name: str
    start: int
    end: int
    required: bool = True


def _layout(*fields: Field) -> dict[str, Field]:
    return {f.name: f for f in fields}


STATION_LAYOUT = _layout(
    Field("name", 5, 35),
    Field("cate_type", 35, 36),
    Field("tiploc", 36, 43),
    Field("crs_subsidiary", 43, 46),
    Field("crs", 49, 52),
    Field("easting", 52, 57),
    Field("estimated", 57, 58),
    Field("northing", 58, 63),
    Field("min_change_time", 63, 65, required=False),
)

ALIAS_LAYOUT = _layout(
    Field("name", 5, 35),
    Field("alias", 36, 62, required=False),
)

HEADER_LAYOUT = _layout(
    Field("file_identity", 2, 22),
    Field("extract_date", 22, 28),
    Field("extract_time", 28, 32),
    Field("current_reference", 32, 39),
    Field("last_reference", 39, 46),
    Field("update_indicator", 46, 47),
    Field("version", 47, 48),
    Field("user_start_date", 48, 54),
    Field("user_end_date", 54, 60),
)

BASIC_SCHEDULE_LAYOUT = _layout(
    Field("transaction_type", 2, 3),
    Field("train_uid", 3, 9),
    Field("date_runs_from", 9, 15),
    Field("date_runs_to", 15, 21),
    Field("days_run", 21, 28),
    Field("bank_holiday_running", 28, 29),
    Field("train_status", 29, 30),
    Field("train_category", 30, 32),
    Field("signalling_id", 32, 36),
    Field("headcode", 36, 40),
    Field("service_code", 41, 49),
    Field("power_type", 50, 53),
    Field("speed", 57, 60),
    Field("seating_class", 66, 67),
    Field("sleepers", 67, 68),
    Field("reservations", 68, 69),
    Field("catering_code", 70, 74),
    Field("stp_indicator", 79, 80),
)

BASIC_SCHEDULE_EXTRA_LAYOUT = _layout(
    Field("traction_class", 2, 6),
    Field("uic_code", 6, 11),
    Field("atoc_code", 11, 13),
    Field("timetable_code", 13, 14),
    Field("retail_service_id", 14, 22, required=False),
)

ORIGIN_LAYOUT = _layout(
    Field("location", 2, 9),
    Field("suffix", 9, 10),
    Field("scheduled_departure", 10, 15),
    Field("public_departure", 15, 19),
    Field("platform", 19, 22),
    Field("line", 22, 25),
    Field("activity", 29, 41),
)

INTERMEDIATE_LAYOUT = _layout(
    Field("location", 2, 9),
    Field("suffix", 9, 10),
    Field("scheduled_arrival", 10, 15),
    Field("scheduled_departure", 15, 20),
    Field("scheduled_pass", 20, 25),
    Field("public_arrival", 25, 29),
    Field("public_departure", 29, 33),
    Field("platform", 33, 36),
    Field("line", 36, 39),
    Field("path", 39, 42),
    Field("activity", 42, 54),
)

CHANGE_EN_ROUTE_LAYOUT = _layout(
    Field("location", 2, 9),
    Field("suffix", 9, 10),
    Field("train_category", 10, 12),
    Field("signalling_id", 12, 16),
    Field("headcode", 16, 20),
    Field("retail_service_id", 67, 75, required=False),
)

TERMINATING_LAYOUT = _layout(
    Field("location", 2, 9),
    Field("suffix", 9, 10),
    Field("scheduled_arrival", 10, 15),
    Field("public_arrival", 15, 19),
    Field("platform", 19, 22),
    Field("path", 22, 25),
    Field("activity", 25, 37),
)


class FixedWidthLine:
    """Bounds-checked field access on one line, raising structured decode errors."""

    def __init__(self, text: str, kind: FileKind, tag: str, offset: int, line_number: int) -> None:
        self.text = text
        self.kind = kind
        self.tag = tag
        self.offset = offset
        self.line_number = line_number

    def error(self, reason: str, field: Field | None = None) -> MalformedRecordError:
        return MalformedRecordError(
            self.kind,
            self.tag,
            self.offset,
            reason,
            line_number=self.line_number,
            field=field.name if field else None,
        )

    def raw(self, field: Field) -> str:
        """Untrimmed field contents."""
        if len(self.text) < field.end:
            if field.required:
                raise self.error(
                    f"line is {len(self.text)} characters, layout requires {field.end}", field
                )
            return self.text[field.start : field.end].ljust(field.end - field.start)
        return self.text[field.start : field.end]

    def string(self, field: Field) -> str:
        return self.raw(field).strip()

    def number(self, field: Field) -> int | None:
        value = self.string(field)
        if not value:
            return None
        if not value.isdigit():
            raise self.error(f"expected digits, got {value!r}", field)
        return int(value)

    def required_number(self, field: Field) -> int:
        value = self.number(field)
        if value is None:
            raise self.error("missing numeric value", field)
        return value

    def day(self, field: Field, order: str = "ymd") -> date | None:
        """Parse a six-digit date in `ymd` (yymmdd) or `dmy` (ddmmyy) order.

        Returns None for the open-ended 999999 marker.
        """
        value = self.string(field)
        if value == OPEN_ENDED_DATE:
            return None
        if len(value) != 6 or not value.isdigit():
            raise self.error(f"expected a six-digit date, got {value!r}", field)
        if order == "ymd":
            yy, mm, dd = int(value[0:2]), int(value[2:4]), int(value[4:6])
        else:
            dd, mm, yy = int(value[0:2]), int(value[2:4]), int(value[4:6])
        year = 1900 + yy if yy >= 60 else 2000 + yy
        try:
            return date(year, mm, dd)
        except ValueError as e:
            raise self.error(f"invalid date {value!r}: {e}", field) from e

    def required_day(self, field: Field, order: str = "ymd") -> date:
        value = self.day(field, order)
        if value is None:
            raise self.error("open-ended date not allowed here", field)
        return value

    def time(self, field: Field) -> int | None:
        """Parse HHMM with an optional trailing H (half minute) into seconds."""
        value = self.string(field)
        if not value:
            return None
        half = False
        if len(value) == 5 and value[4] == "H":
            value, half = value[:4], True
        if len(value) != 4 or not value.isdigit():
            raise self.error(f"expected an HHMM time, got {value!r}", field)
        hours, minutes = int(value[:2]), int(value[2:])
        if hours > 23 or minutes > 59:
            raise self.error(f"time out of range: {value!r}", field)
        return hours * 3600 + minutes * 60 + (30 if half else 0)

    def required_time(self, field: Field) -> int:
        value = self.time(field)
        if value is None:
            raise self.error("missing time", field)
        return value

    def public_time(self, field: Field, working: int | None) -> int | None:
        """Public times of 0000 mean "not advertised" unless the train really runs at midnight."""
        value = self.time(field)
        if value == 0 and not _near_midnight(working):
            return None
        return value

    def activities(self, field: Field) -> tuple[str, ...]:
        raw = self.raw(field)
        codes = (raw[i : i + 2].strip() for i in range(0, len(raw), 2))
        return tuple(code for code in codes if code)


def _near_midnight(seconds: int | None) -> bool:
    return seconds is not None and (seconds < 60 or seconds >= 23 * 3600 + 59 * 60)


# Station master decoders


def _decode_station_a(line: FixedWidthLine) -> Record | None:
    if MSN_FILE_SPEC_MARKER in line.text:
        marker = line.text.index(MSN_FILE_SPEC_MARKER)
        return StationHeaderRecord(
            offset=line.offset,
            line_number=line.line_number,
            file_spec=line.text[marker + len(MSN_FILE_SPEC_MARKER) :].strip(),
        )

    f = STATION_LAYOUT
    name = line.string(f["name"])
    if not name:
        # Filler rows carry the entry marker but no station
        return None
    tiploc = line.string(f["tiploc"])
    if not tiploc:
        raise line.error("station entry has no location code", f["tiploc"])

    return StationRecord(
        offset=line.offset,
        line_number=line.line_number,
        name=name,
        cate_type=line.string(f["cate_type"]),
        tiploc=tiploc,
        crs_subsidiary=line.string(f["crs_subsidiary"]),
        crs=line.string(f["crs"]),
        easting=line.required_number(f["easting"]),
        estimated=line.string(f["estimated"]) == "E",
        northing=line.required_number(f["northing"]),
        min_change_time=line.number(f["min_change_time"]),
    )


def _decode_station_alias(line: FixedWidthLine) -> Record:
    f = ALIAS_LAYOUT
    return StationAliasRecord(
        offset=line.offset,
        line_number=line.line_number,
        name=line.string(f["name"]),
        alias=line.string(f["alias"]),
    )


# Schedule master decoders


def _decode_header(line: FixedWidthLine) -> Record:
    f = HEADER_LAYOUT
    return HeaderRecord(
        offset=line.offset,
        line_number=line.line_number,
        file_identity=line.string(f["file_identity"]),
        extract_date=line.required_day(f["extract_date"], order="dmy"),
        extract_time=line.string(f["extract_time"]),
        current_reference=line.string(f["current_reference"]),
        last_reference=line.string(f["last_reference"]),
        update_indicator=line.string(f["update_indicator"]),
        version=line.string(f["version"]),
        user_start_date=line.required_day(f["user_start_date"], order="dmy"),
        user_end_date=line.required_day(f["user_end_date"], order="dmy"),
    )


def _decode_basic_schedule(line: FixedWidthLine) -> Record:
    f = BASIC_SCHEDULE_LAYOUT
    transaction_type = line.string(f["transaction_type"])
    if transaction_type not in TRANSACTION_TYPES:
        raise line.error(f"unknown transaction type {transaction_type!r}", f["transaction_type"])
    train_uid = line.string(f["train_uid"])
    if not train_uid:
        raise line.error("missing train UID", f["train_uid"])

    stp = line.string(f["stp_indicator"])
    if stp not in STP_CODES and not (transaction_type == "D" and not stp):
        raise line.error(f"unknown STP indicator {stp!r}", f["stp_indicator"])

    days_raw = line.string(f["days_run"])
    if transaction_type == "D" and not days_raw:
        days_run = 0
    else:
        try:
            days_run = parse_days_run(days_raw)
        except ValueError as e:
            raise line.error(str(e), f["days_run"]) from e

    date_runs_to = line.day(f["date_runs_to"]) if line.string(f["date_runs_to"]) else None

    return BasicSchedule(
        offset=line.offset,
        line_number=line.line_number,
        transaction_type=transaction_type,
        train_uid=train_uid,
        date_runs_from=line.required_day(f["date_runs_from"]),
        date_runs_to=date_runs_to,
        days_run=days_run,
        bank_holiday_running=line.string(f["bank_holiday_running"]),
        train_status=line.string(f["train_status"]),
        train_category=line.string(f["train_category"]),
        signalling_id=line.string(f["signalling_id"]),
        headcode=line.string(f["headcode"]),
        service_code=line.string(f["service_code"]),
        power_type=line.string(f["power_type"]),
        speed=line.string(f["speed"]),
        seating_class=line.string(f["seating_class"]),
        sleepers=line.string(f["sleepers"]),
        reservations=line.string(f["reservations"]),
        catering_code=line.string(f["catering_code"]),
        stp_indicator=stp,
    )


def _decode_basic_schedule_extra(line: FixedWidthLine) -> Record:
    f = BASIC_SCHEDULE_EXTRA_LAYOUT
    return BasicScheduleExtra(
        offset=line.offset,
        line_number=line.line_number,
        traction_class=line.string(f["traction_class"]),
        uic_code=line.string(f["uic_code"]),
        atoc_code=line.string(f["atoc_code"]),
        timetable_code=line.string(f["timetable_code"]),
        retail_service_id=line.string(f["retail_service_id"]),
    )


def _location(line: FixedWidthLine, layout: dict[str, Field]) -> str:
    location = line.string(layout["location"])
    if not location:
        raise line.error("missing location code", layout["location"])
    return location


def _decode_origin(line: FixedWidthLine) -> Record:
    f = ORIGIN_LAYOUT
    departure = line.required_time(f["scheduled_departure"])
    return OriginLocation(
        offset=line.offset,
        line_number=line.line_number,
        location=_location(line, f),
        suffix=line.string(f["suffix"]),
        scheduled_departure=departure,
        public_departure=line.public_time(f["public_departure"], departure),
        platform=line.string(f["platform"]),
        line=line.string(f["line"]),
        activities=line.activities(f["activity"]),
    )


def _decode_intermediate(line: FixedWidthLine) -> Record:
    f = INTERMEDIATE_LAYOUT
    arrival = line.time(f["scheduled_arrival"])
    departure = line.time(f["scheduled_departure"])
    passing = line.time(f["scheduled_pass"])
    if passing is None and (arrival is None or departure is None):
        raise line.error("intermediate location needs a pass time or arrival and departure")
    return IntermediateLocation(
        offset=line.offset,
        line_number=line.line_number,
        location=_location(line, f),
        suffix=line.string(f["suffix"]),
        scheduled_arrival=arrival,
        scheduled_departure=departure,
        scheduled_pass=passing,
        public_arrival=line.public_time(f["public_arrival"], arrival),
        public_departure=line.public_time(f["public_departure"], departure),
        platform=line.string(f["platform"]),
        line=line.string(f["line"]),
        path=line.string(f["path"]),
        activities=line.activities(f["activity"]),
    )


def _decode_change_en_route(line: FixedWidthLine) -> Record:
    f = CHANGE_EN_ROUTE_LAYOUT
    return ChangeEnRoute(
        offset=line.offset,
        line_number=line.line_number,
        location=_location(line, f),
        suffix=line.string(f["suffix"]),
        train_category=line.string(f["train_category"]),
        signalling_id=line.string(f["signalling_id"]),
        headcode=line.string(f["headcode"]),
        retail_service_id=line.string(f["retail_service_id"]),
    )


def _decode_terminating(line: FixedWidthLine) -> Record:
    f = TERMINATING_LAYOUT
    arrival = line.required_time(f["scheduled_arrival"])
    return TerminatingLocation(
        offset=line.offset,
        line_number=line.line_number,
        location=_location(line, f),
        suffix=line.string(f["suffix"]),
        scheduled_arrival=arrival,
        public_arrival=line.public_time(f["public_arrival"], arrival),
        platform=line.string(f["platform"]),
        path=line.string(f["path"]),
        activities=line.activities(f["activity"]),
    )


def _decode_trailer(line: FixedWidthLine) -> Record:
    return TrailerRecord(offset=line.offset, line_number=line.line_number)


Decoder = Callable[[FixedWidthLine], Record | None]

STATION_DECODERS: dict[str, Decoder] = {
    "A": _decode_station_a,
    "L": _decode_station_alias,
}

SCHEDULE_DECODERS: dict[str, Decoder] = {
    "HD": _decode_header,
    "BS": _decode_basic_schedule,
    "BX": _decode_basic_schedule_extra,
    "LO": _decode_origin,
    "LI": _decode_intermediate,
    "CR": _decode_change_en_route,
    "LT": _decode_terminating,
    "ZZ": _decode_trailer,
}

TAG_WIDTH = {FileKind.STATION_MASTER: 1, FileKind.SCHEDULE_MASTER: 2}


def decode_line(line: str, kind: FileKind, offset: int = 0, line_number: int = 0) -> Record | None:
    """
    Decode one fixed-width line.

    Args:
        line: Line text without its line ending
        kind: File the line came from
        offset: Byte offset of the line start within its file
        line_number: 1-based line number, for error messages

    Returns:
        A typed record, an UnknownRecord for unrecognised tags, or None for
        blank and filler lines

    Raises:
        MalformedRecordError: If the line is too short or a field fails to parse
    """
    if not line.strip():
        return None

    width = TAG_WIDTH[kind]
    tag = line[:width]
    if len(tag) < width:
        raise MalformedRecordError(kind, tag, offset, "line too short for a record tag", line_number)

    fixed = FixedWidthLine(line, kind, tag, offset, line_number)
    if kind is FileKind.STATION_MASTER:
        decoder = STATION_DECODERS.get(tag)
    else:
        if tag in SCHEDULE_IGNORED_TAGS:
            return IgnoredRecord(offset=offset, line_number=line_number, record_tag=tag)
        decoder = SCHEDULE_DECODERS.get(tag)

    if decoder is None:
        return UnknownRecord(offset=offset, line_number=line_number, record_tag=tag)
    return decoder(fixed)


def iter_lines(data: bytes) -> Iterator[tuple[int, int, str]]:
    """Yield (byte offset, line number, text) for each line of a file."""
    offset = 0
    for line_number, raw in enumerate(data.splitlines(keepends=True), start=1):
        text = raw.rstrip(b"\r\n").decode("latin-1")
        yield offset, line_number, text
        offset += len(raw)


def iter_records(data: bytes, kind: FileKind) -> Iterator[Record]:
    """Decode every line of a file, skipping blank lines and unknown tags with a warning."""
    unknown = 0
    for offset, line_number, text in iter_lines(data):
        record = decode_line(text, kind, offset, line_number)
        if record is None:
            continue
        if isinstance(record, UnknownRecord):
            unknown += 1
            logger.warning(
                f"Skipping unknown {kind.value} record tag {record.record_tag!r} "
                f"at byte {offset} (line {line_number})"
            )
            continue
        yield record

    if unknown:
        logger.warning(f"Skipped {unknown} unknown record(s) in {kind.value} file")
