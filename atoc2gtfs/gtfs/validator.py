"""GTFS feed validator, run before anything is written."""

import logging
from collections import defaultdict

from atoc2gtfs.errors import DanglingStopReferenceError
from atoc2gtfs.gtfs.models import GtfsFeed, StopTime, ValidationReport

logger = logging.getLogger(__name__)


class GTFSValidator:
    """Validate a built GTFS feed for referential consistency and ordering."""

    def __init__(self, feed: GtfsFeed) -> None:
        """Initialize validator with the feed to check."""
        self.feed = feed
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self) -> ValidationReport:
        """
        Run all validation checks.

        Raises:
            DanglingStopReferenceError: If stop times reference unknown stops
        """
        logger.info("Validating GTFS feed")

        self._validate_stops()
        self._validate_routes()
        self._validate_trips()
        self._validate_stop_times()

        valid = len(self.errors) == 0

        report = ValidationReport(
            valid=valid,
            errors=self.errors.copy(),
            warnings=self.warnings.copy(),
            stats=self.feed.counts(),
        )

        if not valid:
            logger.error(f"Validation failed with {len(self.errors)} errors")
        elif self.warnings:
            logger.warning(f"Validation passed with {len(self.warnings)} warnings")
        else:
            logger.info("Validation passed")

        return report

    def _validate_stops(self) -> None:
        """Validate stop coordinates where present."""
        missing = 0
        for stop in self.feed.stops:
            if stop.stop_lat is None or stop.stop_lon is None:
                missing += 1
                continue
            if not (-90 <= stop.stop_lat <= 90):
                self.errors.append(f"Stop {stop.stop_id} has invalid latitude: {stop.stop_lat}")
            if not (-180 <= stop.stop_lon <= 180):
                self.errors.append(f"Stop {stop.stop_id} has invalid longitude: {stop.stop_lon}")
        if missing:
            self.warnings.append(f"{missing} stops have no coordinates")

    def _validate_routes(self) -> None:
        """Validate routes reference known agencies."""
        if not self.feed.routes:
            self.warnings.append("No routes in feed")
        agency_ids = {agency.agency_id for agency in self.feed.agencies}
        for route in self.feed.routes:
            if route.agency_id not in agency_ids:
                self.errors.append(
                    f"Route {route.route_id} references non-existent agency {route.agency_id}"
                )

    def _validate_trips(self) -> None:
        """Validate trips reference valid routes and services."""
        route_ids = {route.route_id for route in self.feed.routes}
        service_ids = {c.service_id for c in self.feed.calendar}
        service_ids.update(cd.service_id for cd in self.feed.calendar_dates)

        for trip in self.feed.trips:
            if trip.route_id not in route_ids:
                self.errors.append(
                    f"Trip {trip.trip_id} references non-existent route {trip.route_id}"
                )
            if trip.service_id not in service_ids:
                self.errors.append(
                    f"Trip {trip.trip_id} references non-existent service {trip.service_id}"
                )

    def _validate_stop_times(self) -> None:
        """Validate stop_times are ordered and reference valid stops/trips."""
        stop_ids = {stop.stop_id for stop in self.feed.stops}
        trip_ids = {trip.trip_id for trip in self.feed.trips}

        dangling: dict[str, set[str]] = defaultdict(set)
        trip_stop_times: dict[str, list[StopTime]] = defaultdict(list)
        for st in self.feed.stop_times:
            if st.stop_id not in stop_ids:
                dangling[st.stop_id].add(st.trip_id)
            trip_stop_times[st.trip_id].append(st)

        if dangling:
            raise DanglingStopReferenceError(dangling)

        for trip_id, stop_times in trip_stop_times.items():
            if trip_id not in trip_ids:
                self.errors.append(f"Stop times reference non-existent trip {trip_id}")
                continue

            sequences = [st.stop_sequence for st in stop_times]
            if any(b <= a for a, b in zip(sequences, sequences[1:])):
                self.errors.append(f"Trip {trip_id} has non-increasing stop_sequence values: {sequences}")

            prev_time = -1
            for st in stop_times:
                if st.arrival_time < prev_time or st.departure_time < st.arrival_time:
                    self.errors.append(
                        f"Trip {trip_id} goes back in time at stop {st.stop_id} "
                        f"(sequence {st.stop_sequence})"
                    )
                    break
                prev_time = st.departure_time

        for trip_id in trip_ids - trip_stop_times.keys():
            self.errors.append(f"Trip {trip_id} has no stop times")
