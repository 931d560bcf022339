"""Calendar resolution: turn overlapping STP schedules into non-overlapping service windows.

Fragments of one train UID are swept over the date line. Between consecutive
boundaries (every valid-from, every valid-to + 1, and each bank holiday) the
set of covering fragments is constant, so the winner of each weekday is
decided once per segment. Runs of segments won by the same call pattern are
then folded into windows, with no-service dates inside a window recorded as
removed dates.
"""

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path

from atoc2gtfs.cif.models import (
    AmbiguousOverlay,
    ResolvedService,
    ScheduleFragment,
    ServiceWindow,
    StpIndicator,
    days_to_mask,
    runs_on,
)

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)
NOT_ON_BANK_HOLIDAYS = "X"


@dataclass(frozen=True)
class Segment:
    """Dates [start, end] over which the same fragments are in force."""

    start: date
    end: date
    fragments: tuple[ScheduleFragment, ...]
    bank_holiday: bool = False

    @property
    def weekdays(self) -> frozenset[int]:
        """Weekdays that actually occur within the segment."""
        length = (self.end - self.start).days + 1
        if length >= 7:
            return frozenset(range(7))
        return frozenset((self.start + timedelta(days=i)).weekday() for i in range(length))

    def first_date_on(self, weekday: int) -> date:
        return self.start + timedelta(days=(weekday - self.start.weekday()) % 7)


@dataclass
class _OpenWindow:
    fragment: ScheduleFragment
    start: date
    mask: int = 0
    last_run_end: date | None = None
    # (segment start, segment end, mask of weekdays without service)
    empty_spans: list[tuple[date, date, int]] = field(default_factory=list)

    @property
    def key(self) -> tuple[object, ...]:
        return self.fragment.pattern_key

    def close(self) -> ServiceWindow:
        end = self.last_run_end
        removed = set()
        for span_start, span_end, empty in self.empty_spans:
            day = span_start
            while day <= span_end and day <= end:
                weekday = day.weekday()
                if runs_on(self.mask, weekday) and runs_on(empty, weekday):
                    removed.add(day)
                day += ONE_DAY
        return ServiceWindow(
            start_date=self.start,
            end_date=end,
            days_of_week=self.mask,
            fragment=self.fragment,
            removed_dates=frozenset(removed),
        )


@dataclass
class ResolutionResult:
    """Resolved services in train UID order, with the ambiguities met on the way."""

    services: list[ResolvedService]
    overlays: list[AmbiguousOverlay] = field(default_factory=list)

    @property
    def window_count(self) -> int:
        return sum(len(s.windows) for s in self.services)


def build_segments(
    fragments: Iterable[ScheduleFragment], bank_holidays: frozenset[date] = frozenset()
) -> list[Segment]:
    """Split the span of the fragments at every date where coverage can change."""
    fragments = list(fragments)
    if not fragments:
        return []

    first = min(f.valid_from for f in fragments)
    last = max(f.valid_to for f in fragments)
    boundaries = {f.valid_from for f in fragments} | {f.valid_to + ONE_DAY for f in fragments}
    holidays = {d for d in bank_holidays if first <= d <= last}
    for holiday in holidays:
        boundaries.update((holiday, holiday + ONE_DAY))

    ordered = sorted(b for b in boundaries if first <= b <= last + ONE_DAY)
    segments = []
    for start, following in zip(ordered, ordered[1:]):
        end = following - ONE_DAY
        covering = tuple(f for f in fragments if f.valid_from <= start and f.valid_to >= end)
        segments.append(
            Segment(start, end, covering, bank_holiday=start == end and start in holidays)
        )
    return segments


def _precedence(fragment: ScheduleFragment) -> tuple[int, date, int]:
    return (fragment.stp_indicator.priority, fragment.valid_from, fragment.sequence)


def resolve_group(
    train_uid: str,
    fragments: Iterable[ScheduleFragment],
    bank_holidays: frozenset[date] = frozenset(),
) -> tuple[ResolvedService, list[AmbiguousOverlay]]:
    """
    Resolve all fragments of one train UID.

    Args:
        train_uid: UID shared by the fragments
        fragments: Fragments in file order
        bank_holidays: Dates on which "not on bank holidays" services do not run

    Returns:
        The resolved service and any ambiguous equal-priority overlaps
    """
    overlays: list[AmbiguousOverlay] = []
    reported: set[tuple[int, int]] = set()
    open_windows: dict[tuple[object, ...], _OpenWindow] = {}
    closed: list[ServiceWindow] = []
    last_end: dict[int, date] = {}

    def close(window: _OpenWindow) -> None:
        del open_windows[window.key]
        service_window = window.close()
        closed.append(service_window)
        for weekday in range(7):
            if runs_on(window.mask, weekday):
                previous = last_end.get(weekday)
                if previous is None or service_window.end_date > previous:
                    last_end[weekday] = service_window.end_date

    for segment in build_segments(fragments, bank_holidays):
        occurring = segment.weekdays
        running: dict[tuple[object, ...], set[int]] = defaultdict(set)
        pattern_fragment: dict[tuple[object, ...], ScheduleFragment] = {}

        # Visit weekdays in date order from the segment start
        for weekday in sorted(occurring, key=lambda wd: (wd - segment.start.weekday()) % 7):
            candidates = [f for f in segment.fragments if runs_on(f.days_of_week, weekday)]
            if not candidates:
                continue
            winner = max(candidates, key=_precedence)
            for other in candidates:
                if other is winner or other.stp_indicator is not winner.stp_indicator:
                    continue
                if winner.is_cancellation:
                    continue
                pair = (min(winner.sequence, other.sequence), max(winner.sequence, other.sequence))
                if pair in reported:
                    continue
                reported.add(pair)
                overlay = AmbiguousOverlay(
                    train_uid=train_uid,
                    stp_indicator=winner.stp_indicator,
                    winner_valid_from=winner.valid_from,
                    loser_valid_from=other.valid_from,
                    first_date=segment.first_date_on(weekday),
                )
                overlays.append(overlay)
                logger.warning(str(overlay))

            if winner.stp_indicator is StpIndicator.CANCELLATION:
                continue
            if segment.bank_holiday and winner.bank_holiday_running == NOT_ON_BANK_HOLIDAYS:
                continue
            running[winner.pattern_key].add(weekday)
            pattern_fragment.setdefault(winner.pattern_key, winner)

        won_by = {wd: key for key, wds in running.items() for wd in wds}

        # A window gives up as soon as another pattern takes one of its weekdays
        for window in list(open_windows.values()):
            for weekday in occurring:
                if runs_on(window.mask, weekday) and won_by.get(weekday, window.key) != window.key:
                    close(window)
                    break

        for key, weekdays in running.items():
            window = open_windows.get(key)
            if window is not None:
                added = [wd for wd in weekdays if not runs_on(window.mask, wd)]
                if any(wd in last_end and last_end[wd] >= window.start for wd in added):
                    close(window)
                    window = None
            if window is None:
                window = _OpenWindow(fragment=pattern_fragment[key], start=segment.start)
                open_windows[key] = window
            window.mask |= days_to_mask(weekdays)
            window.last_run_end = segment.end

        empty = days_to_mask(set(occurring) - set(won_by))
        if empty:
            for window in open_windows.values():
                window.empty_spans.append((segment.start, segment.end, empty))

    for window in list(open_windows.values()):
        close(window)

    windows = tuple(sorted(closed, key=lambda w: (w.start_date, w.days_of_week)))
    return ResolvedService(train_uid, windows), overlays


def _resolve_chunk(
    chunk: list[tuple[str, list[ScheduleFragment]]], bank_holidays: frozenset[date]
) -> list[tuple[ResolvedService, list[AmbiguousOverlay]]]:
    return [resolve_group(uid, group, bank_holidays) for uid, group in chunk]


def resolve_services(
    fragments: Iterable[ScheduleFragment],
    bank_holidays: frozenset[date] = frozenset(),
    jobs: int = 1,
) -> ResolutionResult:
    """
    Group fragments by train UID and resolve every group.

    Groups are independent; with `jobs > 1` they are resolved in a process
    pool. Output is ordered by train UID either way.
    """
    groups: dict[str, list[ScheduleFragment]] = defaultdict(list)
    for fragment in fragments:
        groups[fragment.train_uid].append(fragment)
    items = sorted(groups.items())

    logger.info(f"Resolving {len(items)} train UIDs with {jobs} job(s)")
    results: list[tuple[ResolvedService, list[AmbiguousOverlay]]] = []
    if jobs > 1 and len(items) > 1:
        size = max(1, math.ceil(len(items) / (jobs * 4)))
        chunks = [items[i : i + size] for i in range(0, len(items), size)]
        with ProcessPoolExecutor(max_workers=jobs) as executor:
            for chunk_result in executor.map(_resolve_chunk, chunks, [bank_holidays] * len(chunks)):
                results.extend(chunk_result)
    else:
        results = _resolve_chunk(items, bank_holidays)

    result = ResolutionResult(services=[service for service, _ in results])
    for _, overlays in results:
        result.overlays.extend(overlays)

    logger.info(
        f"Resolved {len(result.services)} services into {result.window_count} windows "
        f"({len(result.overlays)} ambiguous overlays)"
    )
    return result


def parse_holiday(value: str) -> date:
    """Parse a YYYY-MM-DD or YYYYMMDD date."""
    value = value.strip()
    fmt = "%Y-%m-%d" if "-" in value else "%Y%m%d"
    return datetime.strptime(value, fmt).date()


def load_bank_holidays(path: str | Path) -> frozenset[date]:
    """
    Read bank holidays, one date per line. Blank lines and `#` comments are ignored.

    Raises:
        ValueError: If a line is not a date
    """
    holidays = set()
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            text = line.split("#", 1)[0].strip()
            if not text:
                continue
            try:
                holidays.add(parse_holiday(text))
            except ValueError as e:
                raise ValueError(f"Invalid bank holiday {text!r} in {path} (line {line_number})") from e

    logger.info(f"Loaded {len(holidays)} bank holidays from {path}")
    return frozenset(holidays)
