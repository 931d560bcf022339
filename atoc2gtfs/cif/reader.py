"""ATOC CIF zip reader."""

import logging
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from atoc2gtfs.cif.assembler import assemble_schedules
from atoc2gtfs.cif.decoder import iter_records
from atoc2gtfs.cif.models import FileKind, ScheduleFragment
from atoc2gtfs.cif.stations import StationRegistry, build_station_registry
from atoc2gtfs.errors import MissingExpectedFilesError

logger = logging.getLogger(__name__)

EXPECTED_KINDS = frozenset(kind.value for kind in FileKind)


class ATOCReader:
    """Locate and decode the station and schedule masters of an ATOC CIF zip."""

    def __init__(self, input_path: str | Path) -> None:
        """
        Open the archive and find one member of each expected kind.

        Raises:
            MissingExpectedFilesError: If a kind has no member, or more than one
            zipfile.BadZipFile: If the input is not a zip archive
        """
        self.input_path = Path(input_path)
        if not self.input_path.is_file():
            raise ValueError(f"ATOC input not found or not a file: {input_path}")

        with zipfile.ZipFile(self.input_path) as zf:
            names = [info.filename for info in zf.infolist() if not info.is_dir()]

        self.members: dict[FileKind, str] = {}
        found = set()
        for kind in FileKind:
            matches = [name for name in names if name.lower().endswith(f".{kind.value}")]
            if len(matches) == 1:
                self.members[kind] = matches[0]
                found.add(kind.value)
            elif matches:
                logger.warning(f"Found {len(matches)} .{kind.value} files in {input_path}: {matches}")

        missing = EXPECTED_KINDS - found
        if missing:
            raise MissingExpectedFilesError(missing)

        self.registry = StationRegistry()
        self.fragments: list[ScheduleFragment] = []

    def read_member(self, kind: FileKind) -> bytes:
        with zipfile.ZipFile(self.input_path) as zf:
            return zf.read(self.members[kind])

    def read_stations(self) -> StationRegistry:
        """Decode the master station names file."""
        logger.info(f"Reading stations from {self.members[FileKind.STATION_MASTER]}")
        return build_station_registry(self.read_member(FileKind.STATION_MASTER))

    def read_schedules(self) -> list[ScheduleFragment]:
        """Decode and assemble the schedule master file."""
        logger.info(f"Reading schedules from {self.members[FileKind.SCHEDULE_MASTER]}")
        data = self.read_member(FileKind.SCHEDULE_MASTER)
        return assemble_schedules(iter_records(data, FileKind.SCHEDULE_MASTER))

    def read_all(self) -> None:
        """Read both files concurrently; decode errors propagate from either."""
        logger.info(f"Reading ATOC data from {self.input_path}")
        with ThreadPoolExecutor(max_workers=2) as executor:
            stations = executor.submit(self.read_stations)
            schedules = executor.submit(self.read_schedules)
            self.registry = stations.result()
            self.fragments = schedules.result()

        logger.info(
            f"Loaded {len(self.registry)} stations and {len(self.fragments)} schedules"
        )
