"""Assemble the GTFS feed from the station registry and resolved services."""

import logging
from collections.abc import Iterable

from atoc2gtfs.cif.models import ResolvedService
from atoc2gtfs.cif.stations import StationRegistry
from atoc2gtfs.gtfs.models import ConvertConfig, GtfsFeed, Trip
from atoc2gtfs.transform.routes import RouteBuilder, build_agencies, operator_code
from atoc2gtfs.transform.stops import build_stops
from atoc2gtfs.transform.trips import build_service_calendar, build_stop_times, trip_id_for

logger = logging.getLogger(__name__)


def build_feed(
    registry: StationRegistry, services: Iterable[ResolvedService], config: ConvertConfig
) -> GtfsFeed:
    """
    Build every GTFS table.

    Each service window becomes one trip with its own service ID. Windows with
    fewer than two public calls are skipped.

    Args:
        registry: Stations, used for stops and for route and headsign names
        services: Resolved services in train UID order
        config: Agency details and the unknown-stop policy

    Returns:
        The feed; stats count skipped windows and dropped stop times
    """
    logger.info("Building GTFS feed")
    feed = GtfsFeed(stops=build_stops(registry))
    routes = RouteBuilder(registry)
    operators: set[str] = set()
    skipped_windows = 0
    dropped_stop_times = 0

    for service in services:
        for n, window in enumerate(service.windows, start=1):
            trip_id = trip_id_for(service.train_uid, n)
            calls = list(window.fragment.public_calls)

            if config.skip_unknown_stops:
                known = [call for call in calls if call.location_code in registry]
                if len(known) != len(calls):
                    unknown = sorted({c.location_code for c in calls} - {c.location_code for c in known})
                    logger.warning(f"Trip {trip_id} calls at unknown location(s) {unknown}, dropping them")
                    dropped_stop_times += len(calls) - len(known)
                    calls = known

            if len(calls) < 2:
                logger.debug(f"Skipping {trip_id}: {len(calls)} public call(s)")
                skipped_windows += 1
                continue

            fragment = window.fragment
            operator = operator_code(fragment.atoc_code)
            operators.add(operator)
            origin, destination = calls[0].location_code, calls[-1].location_code
            route = routes.route_for(operator, origin, destination, fragment.train_category)
            destination_station = registry.get(destination)

            feed.trips.append(
                Trip(
                    trip_id=trip_id,
                    route_id=route.route_id,
                    service_id=trip_id,
                    trip_short_name=fragment.signalling_id,
                    trip_headsign=destination_station.name if destination_station else destination,
                )
            )
            feed.stop_times.extend(build_stop_times(trip_id, calls))

            calendar, calendar_dates = build_service_calendar(trip_id, window)
            if calendar is not None:
                feed.calendar.append(calendar)
            feed.calendar_dates.extend(calendar_dates)

    feed.routes = routes.routes()
    feed.agencies = build_agencies(operators, config.agency_url, config.agency_timezone)
    feed.stats = {
        **feed.counts(),
        "skipped_windows": skipped_windows,
        "dropped_stop_times": dropped_stop_times,
    }

    logger.info(
        f"Built {len(feed.trips)} trips with {len(feed.stop_times)} stop times "
        f"({skipped_windows} windows skipped)"
    )
    return feed
