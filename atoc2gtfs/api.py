"""Public API for atoc2gtfs."""

import logging
import platform
from datetime import UTC, datetime

from atoc2gtfs.cif.calendar import resolve_services
from atoc2gtfs.cif.reader import ATOCReader
from atoc2gtfs.cif.stations import load_station_coordinates
from atoc2gtfs.errors import ConversionError
from atoc2gtfs.gtfs.models import ConvertConfig, Manifest
from atoc2gtfs.gtfs.validator import GTFSValidator
from atoc2gtfs.output.gtfs import write_gtfs_zip
from atoc2gtfs.transform.feed import build_feed
from atoc2gtfs.version import VERSION

logger = logging.getLogger(__name__)


def convert(
    input_path: str,
    output_path: str,
    config: ConvertConfig | None = None,
) -> Manifest:
    """
    Convert an ATOC CIF zip to a GTFS zip.

    Args:
        input_path: Path to the ATOC CIF zip
        output_path: Path of the GTFS zip to write
        config: Optional conversion configuration

    Returns:
        Manifest with build metadata

    Raises:
        ConversionError: On any fatal input or consistency error; nothing is written
    """
    if config is None:
        config = ConvertConfig(input_path=input_path, output_path=output_path)

    logger.info(f"Starting conversion: {input_path} -> {output_path}")
    start_time = datetime.now(UTC)

    # Read ATOC
    reader = ATOCReader(input_path)
    reader.read_all()

    registry = reader.registry
    if config.station_coordinates_path:
        registry = registry.with_coordinates(load_station_coordinates(config.station_coordinates_path))

    # Resolve calendars
    resolution = resolve_services(reader.fragments, config.bank_holidays, jobs=config.jobs)

    # Transform
    feed = build_feed(registry, resolution.services, config)

    # Validate
    validation_report = GTFSValidator(feed).validate()
    if not validation_report.valid:
        raise ConversionError(
            f"GTFS validation failed with {len(validation_report.errors)} errors: "
            f"{validation_report.errors[0]}"
        )

    # Write output
    checksums = write_gtfs_zip(feed, output_path)

    stats = {
        **feed.stats,
        "stations": len(registry),
        "schedules": len(reader.fragments),
        "windows": resolution.window_count,
        "ambiguous_overlays": len(resolution.overlays),
    }

    manifest = Manifest(
        tool_version=VERSION,
        created_at_iso=start_time.isoformat(),
        inputs={
            "atoc_path": input_path,
            "files": {kind.value: name for kind, name in reader.members.items()},
            "bank_holidays": len(config.bank_holidays),
        },
        outputs=checksums,
        stats=stats,
        build={
            "python": platform.python_version(),
            "platform": platform.platform(),
        },
        warnings=[str(overlay) for overlay in resolution.overlays] + validation_report.warnings,
    )

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Conversion completed in {elapsed:.2f}s")

    return manifest
