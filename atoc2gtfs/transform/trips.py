"""Trips, stop times and service calendars from resolved service windows."""

import logging

from atoc2gtfs.cif.models import Call, ServiceWindow, mask_to_days
from atoc2gtfs.gtfs.models import Calendar, CalendarDate, StopTime

logger = logging.getLogger(__name__)

# Pickup and drop-off types
REGULAR = 0
NONE = 1
COORDINATE_WITH_DRIVER = 3

SET_DOWN_ONLY = "D"
PICK_UP_ONLY = "U"
REQUEST_STOP = "R"

ADDED = 1
REMOVED = 2


def trip_id_for(train_uid: str, n: int) -> str:
    return f"{train_uid}_{n}"


def build_stop_times(trip_id: str, calls: list[Call]) -> list[StopTime]:
    """
    Build stop times for the public calls of one trip.

    Missing arrival or departure falls back to the other; boarding and
    alighting are disabled where there is no public time, or the activity
    codes restrict them.
    """
    stop_times = []
    for call in calls:
        arrival = call.arrival_offset if call.arrival_offset is not None else call.departure_offset
        departure = call.departure_offset if call.departure_offset is not None else call.arrival_offset

        request = REQUEST_STOP in call.activities
        pickup = COORDINATE_WITH_DRIVER if request else REGULAR
        drop_off = COORDINATE_WITH_DRIVER if request else REGULAR
        if call.departure_offset is None or SET_DOWN_ONLY in call.activities:
            pickup = NONE
        if call.arrival_offset is None or PICK_UP_ONLY in call.activities:
            drop_off = NONE

        stop_times.append(
            StopTime(
                trip_id=trip_id,
                stop_id=call.location_code,
                arrival_time=arrival,
                departure_time=departure,
                stop_sequence=call.sequence_number,
                pickup_type=pickup,
                drop_off_type=drop_off,
                platform=call.platform,
            )
        )
    return stop_times


def build_service_calendar(
    service_id: str, window: ServiceWindow
) -> tuple[Calendar | None, list[CalendarDate]]:
    """
    Express a window as a calendar entry with removals, or as explicit dates.

    Windows that lose more dates than they keep are written as added dates only.
    """
    removed = sorted(window.removed_dates)
    if removed:
        running = window.running_dates()
        if len(running) < len(removed):
            return None, [CalendarDate(service_id, day, ADDED) for day in running]

    days = mask_to_days(window.days_of_week)
    calendar = Calendar(
        service_id=service_id,
        monday=days[0],
        tuesday=days[1],
        wednesday=days[2],
        thursday=days[3],
        friday=days[4],
        saturday=days[5],
        sunday=days[6],
        start_date=window.start_date,
        end_date=window.end_date,
    )
    return calendar, [CalendarDate(service_id, day, REMOVED) for day in removed]
