"""Stops from the station registry."""

import logging

from atoc2gtfs.cif.models import Station
from atoc2gtfs.cif.stations import StationRegistry
from atoc2gtfs.gtfs.models import Stop

logger = logging.getLogger(__name__)


def station_to_stop(station: Station) -> Stop:
    """Map a station to a GTFS stop keyed by location code."""
    return Stop(
        stop_id=station.location_code,
        stop_code=station.crs_code,
        stop_name=station.name,
        stop_lat=station.latitude,
        stop_lon=station.longitude,
    )


def build_stops(registry: StationRegistry) -> list[Stop]:
    """Build one stop per registered station, in location code order."""
    logger.info("Building stops from station registry")

    stops = [station_to_stop(station) for station in registry]
    located = sum(1 for stop in stops if stop.stop_lat is not None)

    logger.info(f"Built {len(stops)} stops ({located} with coordinates)")
    return stops
