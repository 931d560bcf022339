"""Agencies and routes keyed by operator and end points."""

import logging
from collections.abc import Iterable

from atoc2gtfs.cif.stations import StationRegistry
from atoc2gtfs.gtfs.models import Agency, Route

logger = logging.getLogger(__name__)

UNKNOWN_OPERATOR = "ZZ"

# Route types
RAIL = 2
BUS = 3
FERRY = 4

BUS_CATEGORIES = frozenset({"BR", "BS"})
SHIP_CATEGORIES = frozenset({"SS"})

OPERATOR_NAMES = {
    "AW": "Transport for Wales",
    "CC": "c2c",
    "CH": "Chiltern Railways",
    "CS": "Caledonian Sleeper",
    "EM": "East Midlands Railway",
    "ES": "Eurostar",
    "GC": "Grand Central",
    "GN": "Great Northern",
    "GR": "LNER",
    "GW": "Great Western Railway",
    "GX": "Gatwick Express",
    "HT": "Hull Trains",
    "HX": "Heathrow Express",
    "IL": "Island Line",
    "LD": "Lumo",
    "LE": "Greater Anglia",
    "LM": "West Midlands Trains",
    "LO": "London Overground",
    "LT": "London Underground",
    "ME": "Merseyrail",
    "NT": "Northern",
    "NY": "North Yorkshire Moors Railway",
    "SE": "Southeastern",
    "SJ": "South Yorkshire Supertram",
    "SN": "Southern",
    "SR": "ScotRail",
    "SW": "South Western Railway",
    "TL": "Thameslink",
    "TP": "TransPennine Express",
    "TW": "Tyne and Wear Metro",
    "VT": "Avanti West Coast",
    "WR": "West Coast Railways",
    "XC": "CrossCountry",
    "XR": "Elizabeth line",
    "ZZ": "Other operator",
}


def operator_code(atoc_code: str) -> str:
    return atoc_code or UNKNOWN_OPERATOR


def route_type_for_category(train_category: str) -> int:
    """GTFS route type for a CIF train category."""
    if train_category in BUS_CATEGORIES:
        return BUS
    if train_category in SHIP_CATEGORIES:
        return FERRY
    return RAIL


def build_agencies(operator_codes: Iterable[str], agency_url: str, agency_timezone: str) -> list[Agency]:
    """Build one agency per operator code, named from the operator table."""
    agencies = []
    for code in sorted(set(operator_codes)):
        name = OPERATOR_NAMES.get(code)
        if name is None:
            logger.debug(f"No operator name for {code}, using the code")
            name = code
        agencies.append(
            Agency(
                agency_id=code,
                agency_name=name,
                agency_url=agency_url,
                agency_timezone=agency_timezone,
            )
        )

    logger.info(f"Built {len(agencies)} agencies")
    return agencies


class RouteBuilder:
    """Assign route IDs to (operator, origin, destination) triples as trips are built."""

    def __init__(self, registry: StationRegistry) -> None:
        self.registry = registry
        self._routes: dict[tuple[str, str, str], Route] = {}

    def route_for(self, operator: str, origin: str, destination: str, train_category: str) -> Route:
        key = (operator, origin, destination)
        route = self._routes.get(key)
        if route is None:
            route = Route(
                route_id=f"{operator}_{origin}_{destination}",
                agency_id=operator,
                route_short_name="",
                route_long_name=f"{self._name(origin)} to {self._name(destination)}",
                route_type=route_type_for_category(train_category),
            )
            self._routes[key] = route
        return route

    def _name(self, location_code: str) -> str:
        station = self.registry.get(location_code)
        return station.name if station else location_code

    def routes(self) -> list[Route]:
        routes = [self._routes[key] for key in sorted(self._routes)]
        logger.info(f"Built {len(routes)} routes")
        return routes
