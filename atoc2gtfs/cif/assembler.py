"""Assemble schedule fragments from the record stream of a schedule master file.

The assembler is a small state machine: a basic schedule opens a header, an
origin location starts the calls, and a terminating location closes the
fragment. `transition` is pure apart from the counters held in the context.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from atoc2gtfs.cif.models import Call, CallKind, FileKind, ScheduleFragment, StpIndicator
from atoc2gtfs.cif.records import (
    BasicSchedule,
    BasicScheduleExtra,
    ChangeEnRoute,
    HeaderRecord,
    IgnoredRecord,
    IntermediateLocation,
    OriginLocation,
    Record,
    TerminatingLocation,
    TrailerRecord,
)
from atoc2gtfs.errors import MalformedRecordError, SequencingError

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
HALF_DAY = SECONDS_PER_DAY // 2
DEFAULT_END_DATE = date(2099, 12, 31)

LocationRecord = OriginLocation | IntermediateLocation | TerminatingLocation


@dataclass(frozen=True)
class Idle:
    """Between schedules."""


@dataclass(frozen=True)
class HeaderOpen:
    """A basic schedule (and possibly its extra details) has been read."""

    schedule: BasicSchedule
    extra: BasicScheduleExtra | None = None


@dataclass(frozen=True)
class InCalls:
    """The origin has been read; collecting locations until the terminus."""

    schedule: BasicSchedule
    extra: BasicScheduleExtra | None
    locations: tuple[LocationRecord, ...]


State = Idle | HeaderOpen | InCalls


@dataclass
class AssemblyContext:
    """Mutable bookkeeping shared across transitions."""

    user_end_date: date | None = None
    fragments: int = 0
    deleted: int = 0
    changes_en_route: int = 0
    cancellations: int = 0


def _state_name(state: State) -> str:
    return type(state).__name__


def _unexpected(state: State, record: Record, reason: str) -> SequencingError:
    train_uid = None if isinstance(state, Idle) else state.schedule.train_uid
    return SequencingError(
        record.record_type,
        _state_name(state),
        reason,
        offset=record.offset,
        line_number=record.line_number,
        train_uid=train_uid,
    )


def transition(
    state: State, record: Record, context: AssemblyContext
) -> tuple[State, ScheduleFragment | None]:
    """
    Advance the assembler by one record.

    Returns:
        The next state and the fragment completed by this record, if any

    Raises:
        SequencingError: If the record is not legal in the current state
    """
    if isinstance(state, Idle):
        return _from_idle(state, record, context)
    if isinstance(state, HeaderOpen):
        return _from_header(state, record, context)
    return _from_calls(state, record, context)


def _from_idle(
    state: Idle, record: Record, context: AssemblyContext
) -> tuple[State, ScheduleFragment | None]:
    if isinstance(record, HeaderRecord):
        context.user_end_date = record.user_end_date
        logger.info(
            f"Schedule extract {record.file_identity} of {record.extract_date}, "
            f"covering {record.user_start_date} to {record.user_end_date}"
        )
        return state, None
    if isinstance(record, TrailerRecord | IgnoredRecord):
        return state, None
    if isinstance(record, BasicSchedule):
        if record.transaction_type == "D":
            context.deleted += 1
            logger.debug(f"Dropping delete transaction for {record.train_uid} at line {record.line_number}")
            return state, None
        return HeaderOpen(record), None
    raise _unexpected(state, record, "record outside a schedule")


def _from_header(
    state: HeaderOpen, record: Record, context: AssemblyContext
) -> tuple[State, ScheduleFragment | None]:
    if state.schedule.stp_indicator == StpIndicator.CANCELLATION.value:
        if isinstance(record, BasicScheduleExtra) and state.extra is None:
            return HeaderOpen(state.schedule, record), None
        fragment = _build_fragment(state.schedule, state.extra, (), context)
        next_state, _ = _from_idle(Idle(), record, context)
        return next_state, fragment

    if isinstance(record, BasicScheduleExtra):
        if state.extra is not None:
            raise _unexpected(state, record, "second basic schedule extra")
        return HeaderOpen(state.schedule, record), None
    if isinstance(record, OriginLocation):
        return InCalls(state.schedule, state.extra, (record,)), None
    raise _unexpected(state, record, "unterminated schedule")


def _from_calls(
    state: InCalls, record: Record, context: AssemblyContext
) -> tuple[State, ScheduleFragment | None]:
    if isinstance(record, IntermediateLocation):
        return InCalls(state.schedule, state.extra, state.locations + (record,)), None
    if isinstance(record, ChangeEnRoute):
        context.changes_en_route += 1
        logger.debug(
            f"Change en route for {state.schedule.train_uid} at {record.location} "
            f"(category {record.train_category})"
        )
        return state, None
    if isinstance(record, TerminatingLocation):
        fragment = _build_fragment(state.schedule, state.extra, state.locations + (record,), context)
        return Idle(), fragment
    if isinstance(record, BasicSchedule):
        raise _unexpected(state, record, "unterminated schedule")
    raise _unexpected(state, record, "illegal record inside schedule locations")


def finish(state: State, context: AssemblyContext) -> ScheduleFragment | None:
    """Close the stream; only a pending cancellation may be open at end of input."""
    if isinstance(state, Idle):
        return None
    if isinstance(state, HeaderOpen) and state.schedule.stp_indicator == StpIndicator.CANCELLATION.value:
        return _build_fragment(state.schedule, state.extra, (), context)
    schedule = state.schedule
    raise SequencingError(
        "EOF",
        _state_name(state),
        "unterminated schedule",
        offset=schedule.offset,
        line_number=schedule.line_number,
        train_uid=schedule.train_uid,
    )


def _build_fragment(
    schedule: BasicSchedule,
    extra: BasicScheduleExtra | None,
    locations: tuple[LocationRecord, ...],
    context: AssemblyContext,
) -> ScheduleFragment:
    valid_to = schedule.date_runs_to
    if valid_to is None:
        valid_to = max(context.user_end_date or DEFAULT_END_DATE, schedule.date_runs_from)

    context.fragments += 1
    try:
        fragment = ScheduleFragment(
            train_uid=schedule.train_uid,
            stp_indicator=StpIndicator(schedule.stp_indicator),
            valid_from=schedule.date_runs_from,
            valid_to=valid_to,
            days_of_week=schedule.days_run,
            calls=build_calls(locations),
            bank_holiday_running=schedule.bank_holiday_running,
            train_category=schedule.train_category,
            signalling_id=schedule.signalling_id,
            atoc_code=extra.atoc_code if extra else "",
            retail_service_id=extra.retail_service_id if extra else "",
            sequence=context.fragments,
            line_number=schedule.line_number,
        )
    except ValueError as e:
        raise MalformedRecordError(
            FileKind.SCHEDULE_MASTER, schedule.tag, schedule.offset, str(e), schedule.line_number
        ) from e

    if fragment.is_cancellation:
        context.cancellations += 1
    return fragment


class _Clock:
    """Places times of day onto a running offset from the origin day."""

    def __init__(self, origin: int) -> None:
        self.day = 0
        self.last = origin

    def working(self, seconds: int | None) -> int | None:
        if seconds is None:
            return None
        absolute = seconds + self.day * SECONDS_PER_DAY
        while absolute < self.last:
            self.day += 1
            absolute += SECONDS_PER_DAY
        self.last = absolute
        return absolute

    @staticmethod
    def public(seconds: int | None, working: int | None) -> int | None:
        """Put a public time on the same day as its working time (within twelve hours)."""
        if seconds is None:
            return None
        if working is None:
            return seconds
        aligned = seconds + (working // SECONDS_PER_DAY) * SECONDS_PER_DAY
        if aligned - working > HALF_DAY:
            aligned -= SECONDS_PER_DAY
        elif working - aligned > HALF_DAY:
            aligned += SECONDS_PER_DAY
        return max(aligned, 0)


def build_calls(locations: tuple[LocationRecord, ...]) -> tuple[Call, ...]:
    """Turn location records into calls with offsets from the origin day's midnight."""
    if not locations:
        return ()

    clock = _Clock(locations[0].scheduled_departure)
    calls = []
    for sequence_number, loc in enumerate(locations, start=1):
        if isinstance(loc, OriginLocation):
            kind = CallKind.ORIGIN
            work_arr = None
            work_dep = clock.working(loc.scheduled_departure)
            pub_arr = None
            pub_dep = clock.public(loc.public_departure, work_dep)
        elif isinstance(loc, TerminatingLocation):
            kind = CallKind.TERMINATING
            work_arr = clock.working(loc.scheduled_arrival)
            work_dep = None
            pub_arr = clock.public(loc.public_arrival, work_arr)
            pub_dep = None
        else:
            kind = CallKind.INTERMEDIATE
            if loc.scheduled_pass is not None and loc.scheduled_arrival is None:
                work_arr = work_dep = clock.working(loc.scheduled_pass)
            else:
                work_arr = clock.working(loc.scheduled_arrival)
                work_dep = clock.working(loc.scheduled_departure)
            pub_arr = clock.public(loc.public_arrival, work_arr if work_arr is not None else work_dep)
            pub_dep = clock.public(loc.public_departure, work_dep if work_dep is not None else work_arr)

        public = pub_arr is not None or pub_dep is not None
        calls.append(
            Call(
                location_code=loc.location,
                kind=kind,
                sequence_number=sequence_number,
                arrival_offset=pub_arr if public else work_arr,
                departure_offset=pub_dep if public else work_dep,
                public_flag=public,
                location_suffix=loc.suffix,
                platform=loc.platform,
                activities=loc.activities,
            )
        )
    return tuple(calls)


def assemble_schedules(records: Iterable[Record]) -> list[ScheduleFragment]:
    """
    Run the state machine over a schedule master record stream.

    Args:
        records: Decoded records in file order

    Returns:
        Schedule fragments in file order

    Raises:
        SequencingError: On an illegal record order or unterminated schedule
    """
    context = AssemblyContext()
    state: State = Idle()
    fragments = []
    for record in records:
        state, fragment = transition(state, record, context)
        if fragment is not None:
            fragments.append(fragment)

    fragment = finish(state, context)
    if fragment is not None:
        fragments.append(fragment)

    logger.info(
        f"Assembled {len(fragments)} schedules ({context.cancellations} cancellations, "
        f"{context.deleted} deletions dropped, {context.changes_en_route} changes en route)"
    )
    return fragments
