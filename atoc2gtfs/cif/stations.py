"""Station registry built from the master station names file."""

import csv
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import replace
from pathlib import Path

from atoc2gtfs.cif.decoder import decode_line, iter_records
from atoc2gtfs.cif.models import FileKind, Station
from atoc2gtfs.cif.records import StationAliasRecord, StationHeaderRecord, StationRecord
from atoc2gtfs.errors import DuplicateStationError

logger = logging.getLogger(__name__)


class StationRegistry:
    """Stations keyed by location code, iterated in code order."""

    def __init__(self, stations: Iterable[Station] = ()) -> None:
        self._stations: dict[str, Station] = {}
        for station in stations:
            self._stations[station.location_code] = station

    @classmethod
    def from_lines(cls, lines: Iterable[tuple[int, int, str]]) -> "StationRegistry":
        """Build a registry from (byte offset, line number, text) triples."""
        return cls._from_records(
            decode_line(text, FileKind.STATION_MASTER, offset, line_number)
            for offset, line_number, text in lines
        )

    @classmethod
    def _from_records(cls, records: Iterable[object]) -> "StationRegistry":
        stations: dict[str, Station] = {}
        aliases = 0
        skipped = 0

        for record in records:
            if isinstance(record, StationRecord):
                station = Station(
                    location_code=record.tiploc,
                    name=record.name,
                    crs_code=record.crs,
                    alternate_code=record.crs_subsidiary,
                    easting=record.easting,
                    northing=record.northing,
                )
                existing = stations.get(station.location_code)
                if existing is not None:
                    if (existing.easting, existing.northing) != (station.easting, station.northing):
                        raise DuplicateStationError(
                            station.location_code,
                            (existing.easting, existing.northing),
                            (station.easting, station.northing),
                            line_number=record.line_number,
                        )
                    logger.debug(
                        f"Station {station.location_code} repeated at line {record.line_number}, "
                        f"keeping the later entry"
                    )
                stations[station.location_code] = station
            elif isinstance(record, StationAliasRecord):
                aliases += 1
            elif isinstance(record, StationHeaderRecord):
                logger.debug(f"Station master header: {record.file_spec}")
            else:
                skipped += 1

        registry = cls(stations.values())
        logger.info(
            f"Loaded {len(registry)} stations ({aliases} aliases, {skipped} other lines)"
        )
        return registry

    def __len__(self) -> int:
        return len(self._stations)

    def __iter__(self) -> Iterator[Station]:
        for code in sorted(self._stations):
            yield self._stations[code]

    def __contains__(self, location_code: object) -> bool:
        return location_code in self._stations

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StationRegistry):
            return NotImplemented
        return self._stations == other._stations

    def __repr__(self) -> str:
        return f"StationRegistry({len(self)} stations)"

    def get(self, location_code: str) -> Station | None:
        return self._stations.get(location_code)

    def with_coordinates(self, coordinates: Mapping[str, tuple[float, float]]) -> "StationRegistry":
        """
        Return a copy whose stations carry WGS84 coordinates.

        Keys may be location codes or CRS codes; a location-code match takes
        precedence over a CRS match.
        """
        stations = []
        matched = 0
        for station in self:
            pair = coordinates.get(station.location_code)
            if pair is None and station.crs_code:
                pair = coordinates.get(station.crs_code)
            if pair is not None:
                matched += 1
                station = replace(station, latitude=pair[0], longitude=pair[1])
            stations.append(station)

        logger.info(f"Applied coordinates to {matched}/{len(stations)} stations")
        return StationRegistry(stations)


def build_station_registry(data: bytes) -> StationRegistry:
    """Decode a master station names file into a registry."""
    return StationRegistry._from_records(iter_records(data, FileKind.STATION_MASTER))


def load_station_coordinates(path: str | Path) -> dict[str, tuple[float, float]]:
    """
    Read a `code,latitude,longitude` CSV.

    Raises:
        ValueError: If a row is missing a column or has a non-numeric coordinate
    """
    coordinates: dict[str, tuple[float, float]] = {}
    with open(path, encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        missing = {"code", "latitude", "longitude"} - set(reader.fieldnames or ())
        if missing:
            raise ValueError(f"Station coordinates file {path} lacks column(s): {sorted(missing)}")
        for row_number, row in enumerate(reader, start=2):
            code = (row["code"] or "").strip()
            if not code:
                continue
            try:
                coordinates[code] = (float(row["latitude"]), float(row["longitude"]))
            except (TypeError, ValueError) as e:
                raise ValueError(
                    f"Invalid coordinates for {code!r} in {path} (row {row_number})"
                ) from e

    logger.info(f"Read {len(coordinates)} station coordinates from {path}")
    return coordinates

