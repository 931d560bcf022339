"""Tests for STP calendar resolution."""

from datetime import date, timedelta
from itertools import combinations
from pathlib import Path

import pytest

from atoc2gtfs.cif.calendar import (
    build_segments,
    load_bank_holidays,
    resolve_group,
    resolve_services,
)
from atoc2gtfs.cif.models import (
    Call,
    CallKind,
    ScheduleFragment,
    ServiceWindow,
    StpIndicator,
    parse_days_run,
    runs_on,
)

WEEKDAYS = "1111100"
DAILY = "1111111"


def fragment(
    stp: str,
    start: date,
    end: date,
    days: str = WEEKDAYS,
    destination: str = "YORK",
    sequence: int = 1,
    uid: str = "A12345",
    bank_holiday: str = "",
) -> ScheduleFragment:
    indicator = StpIndicator(stp)
    calls = ()
    if indicator is not StpIndicator.CANCELLATION:
        calls = (
            Call("LDS", CallKind.ORIGIN, 1, None, 8 * 3600, True),
            Call(destination, CallKind.TERMINATING, 2, 9 * 3600, None, True),
        )
    return ScheduleFragment(
        train_uid=uid,
        stp_indicator=indicator,
        valid_from=start,
        valid_to=end,
        days_of_week=parse_days_run(days),
        calls=calls,
        bank_holiday_running=bank_holiday,
        sequence=sequence,
    )


def cells(window: ServiceWindow) -> set[date]:
    """Every date covered by the window's range and weekday mask."""
    covered = set()
    day = window.start_date
    while day <= window.end_date:
        if runs_on(window.days_of_week, day.weekday()):
            covered.add(day)
        day += timedelta(days=1)
    return covered


def running(windows: tuple[ServiceWindow, ...]) -> set[date]:
    return {d for w in windows for d in w.running_dates()}


def weekdays_between(start: date, end: date, days: str = WEEKDAYS) -> set[date]:
    mask = parse_days_run(days)
    return {
        start + timedelta(days=i)
        for i in range((end - start).days + 1)
        if runs_on(mask, (start + timedelta(days=i)).weekday())
    }


def test_single_permanent_schedule() -> None:
    """Test one permanent schedule gives one window over its dates."""
    service, overlays = resolve_group(
        "A12345", [fragment("P", date(2024, 1, 1), date(2024, 3, 31))]
    )

    (window,) = service.windows
    assert window.start_date == date(2024, 1, 1)
    assert window.end_date == date(2024, 3, 31)
    assert window.days_of_week == parse_days_run(WEEKDAYS)
    assert window.removed_dates == frozenset()
    assert overlays == []


def test_overlay_splits_into_three_windows() -> None:
    """Test an overlay with a different pattern splits the permanent schedule."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 3, 31), sequence=1)
    overlay = fragment("O", date(2024, 2, 10), date(2024, 2, 20), destination="HGTE", sequence=2)

    service, _ = resolve_group("A12345", [permanent, overlay])

    spans = [(w.start_date, w.end_date, w.fragment.stp_indicator) for w in service.windows]
    assert spans == [
        (date(2024, 1, 1), date(2024, 2, 9), StpIndicator.PERMANENT),
        (date(2024, 2, 10), date(2024, 2, 20), StpIndicator.OVERLAY),
        (date(2024, 2, 21), date(2024, 3, 31), StpIndicator.PERMANENT),
    ]


def test_single_date_cancellation_removes_only_that_date() -> None:
    """Test a one-day cancellation becomes one removed date."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 3, 31), sequence=1)
    cancel = fragment("C", date(2024, 1, 17), date(2024, 1, 17), days="0010000", sequence=2)

    service, _ = resolve_group("A12345", [permanent, cancel])

    (window,) = service.windows
    assert window.removed_dates == frozenset({date(2024, 1, 17)})
    expected = weekdays_between(date(2024, 1, 1), date(2024, 3, 31)) - {date(2024, 1, 17)}
    assert running(service.windows) == expected


def test_cancellation_range_removes_exactly_cancelled_dates() -> None:
    """Test a multi-week cancellation on some weekdays leaves all other dates untouched."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 3, 31), sequence=1)
    cancel = fragment("C", date(2024, 2, 5), date(2024, 2, 25), days="1010000", sequence=2)

    service, _ = resolve_group("A12345", [permanent, cancel])

    cancelled = weekdays_between(date(2024, 2, 5), date(2024, 2, 25), "1010000")
    expected = weekdays_between(date(2024, 1, 1), date(2024, 3, 31)) - cancelled
    assert running(service.windows) == expected


def test_same_pattern_new_schedule_merges() -> None:
    """Test consecutive schedules with the same calls share one window."""
    first = fragment("P", date(2024, 1, 1), date(2024, 1, 31), sequence=1)
    second = fragment("P", date(2024, 2, 1), date(2024, 2, 29), sequence=2)

    service, overlays = resolve_group("A12345", [first, second])

    (window,) = service.windows
    assert (window.start_date, window.end_date) == (date(2024, 1, 1), date(2024, 2, 29))
    assert overlays == []


def test_weekday_split_patterns() -> None:
    """Test different weekday patterns produce windows that never share a cell."""
    weekdays = fragment("P", date(2024, 1, 1), date(2024, 3, 31), sequence=1)
    saturdays = fragment(
        "P", date(2024, 1, 1), date(2024, 3, 31), days="0000010", destination="HGTE", sequence=2
    )
    overlay = fragment(
        "O", date(2024, 2, 1), date(2024, 2, 29), days="0000110", destination="HGTE", sequence=3
    )

    service, _ = resolve_group("A12345", [weekdays, saturdays, overlay])

    for a, b in combinations(service.windows, 2):
        assert not (cells(a) & cells(b))
    fridays_in_feb = weekdays_between(date(2024, 2, 1), date(2024, 2, 29), "0000100")
    hgte_dates = {
        d for w in service.windows if w.calls[-1].location_code == "HGTE" for d in w.running_dates()
    }
    assert fridays_in_feb <= hgte_dates


def test_new_schedule_outranks_overlay() -> None:
    """Test precedence C > N > O > P."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 1, 31), sequence=1)
    overlay = fragment("O", date(2024, 1, 1), date(2024, 1, 31), destination="HGTE", sequence=2)
    new = fragment("N", date(2024, 1, 1), date(2024, 1, 31), destination="LDS", sequence=3)

    service, _ = resolve_group("A12345", [permanent, overlay, new])

    (window,) = service.windows
    assert window.fragment.stp_indicator is StpIndicator.NEW


def test_ambiguous_overlay_reported_once() -> None:
    """Test equal-priority overlaps resolve to the later start and are reported."""
    early = fragment("O", date(2024, 1, 1), date(2024, 1, 31), destination="HGTE", sequence=1)
    late = fragment("O", date(2024, 1, 10), date(2024, 1, 20), destination="LDS", sequence=2)

    service, overlays = resolve_group("A12345", [early, late])

    assert len(overlays) == 1
    overlay = overlays[0]
    assert overlay.winner_valid_from == date(2024, 1, 10)
    assert overlay.loser_valid_from == date(2024, 1, 1)
    assert overlay.first_date == date(2024, 1, 10)
    assert "A12345" in str(overlay)
    winners = [w for w in service.windows if w.start_date <= date(2024, 1, 15) <= w.end_date]
    assert [w.fragment.valid_from for w in winners] == [date(2024, 1, 10)]


def test_overlapping_cancellations_are_not_ambiguous() -> None:
    """Test two cancellations on the same date are not reported."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 1, 31), sequence=1)
    c1 = fragment("C", date(2024, 1, 8), date(2024, 1, 8), days="1000000", sequence=2)
    c2 = fragment("C", date(2024, 1, 8), date(2024, 1, 8), days="1000000", sequence=3)

    service, overlays = resolve_group("A12345", [permanent, c1, c2])

    assert overlays == []
    assert date(2024, 1, 8) not in running(service.windows)


def test_fully_cancelled_service_has_no_windows() -> None:
    """Test a cancellation covering every date leaves nothing."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 1, 31), sequence=1)
    cancel = fragment("C", date(2024, 1, 1), date(2024, 1, 31), sequence=2)

    service, _ = resolve_group("A12345", [permanent, cancel])
    assert service.windows == ()


def test_bank_holiday_exclusion() -> None:
    """Test "not on bank holidays" services skip listed holidays."""
    permanent = fragment(
        "P", date(2024, 3, 1), date(2024, 4, 30), sequence=1, bank_holiday="X"
    )
    easter_monday = date(2024, 4, 1)

    service, _ = resolve_group("A12345", [permanent], frozenset({easter_monday}))

    (window,) = service.windows
    assert window.removed_dates == frozenset({easter_monday})


def test_bank_holiday_ignored_without_flag() -> None:
    """Test services without the X flag run on holidays."""
    permanent = fragment("P", date(2024, 3, 1), date(2024, 4, 30), sequence=1)
    service, _ = resolve_group("A12345", [permanent], frozenset({date(2024, 4, 1)}))
    assert date(2024, 4, 1) in running(service.windows)


def test_build_segments_boundaries() -> None:
    """Test segments break at every start and every day after an end."""
    permanent = fragment("P", date(2024, 1, 1), date(2024, 3, 31), sequence=1)
    overlay = fragment("O", date(2024, 2, 10), date(2024, 2, 20), sequence=2)

    segments = build_segments([permanent, overlay])

    assert [(s.start, s.end, len(s.fragments)) for s in segments] == [
        (date(2024, 1, 1), date(2024, 2, 9), 1),
        (date(2024, 2, 10), date(2024, 2, 20), 2),
        (date(2024, 2, 21), date(2024, 3, 31), 1),
    ]
    assert segments[1].weekdays == frozenset(range(7))


def test_resolve_services_groups_and_orders() -> None:
    """Test services are grouped by UID and sorted."""
    fragments = [
        fragment("P", date(2024, 1, 1), date(2024, 1, 31), uid="Z99999", sequence=1),
        fragment("P", date(2024, 1, 1), date(2024, 1, 31), uid="A00001", sequence=2),
    ]
    result = resolve_services(fragments)

    assert [s.train_uid for s in result.services] == ["A00001", "Z99999"]
    assert result.window_count == 2


def test_resolve_services_parallel_matches_serial() -> None:
    """Test a process pool gives the same result."""
    fragments = []
    for i in range(6):
        uid = f"P{i:05d}"
        fragments.append(
            fragment("P", date(2024, 1, 1), date(2024, 3, 31), uid=uid, sequence=2 * i)
        )
        fragments.append(
            fragment(
                "O", date(2024, 2, 1), date(2024, 2, 7), uid=uid, destination="HGTE", sequence=2 * i + 1
            )
        )

    serial = resolve_services(fragments)
    parallel = resolve_services(fragments, jobs=2)

    assert parallel.services == serial.services


def test_load_bank_holidays(tmp_path: Path) -> None:
    """Test holiday files accept both date formats and comments."""
    path = tmp_path / "holidays.txt"
    path.write_text("# England and Wales\n2024-03-29\n20240401  # Easter Monday\n\n")

    assert load_bank_holidays(path) == frozenset({date(2024, 3, 29), date(2024, 4, 1)})


def test_load_bank_holidays_rejects_garbage(tmp_path: Path) -> None:
    """Test invalid lines are reported."""
    path = tmp_path / "holidays.txt"
    path.write_text("2024-03-29\nEaster\n")

    with pytest.raises(ValueError, match="line 2"):
        load_bank_holidays(path)
