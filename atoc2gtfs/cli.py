"""Command-line interface for atoc2gtfs."""

import argparse
import logging
import sys
from pathlib import Path

from atoc2gtfs.api import convert
from atoc2gtfs.cif.calendar import load_bank_holidays
from atoc2gtfs.gtfs.models import ConvertConfig
from atoc2gtfs.version import VERSION


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def check_paths(input_path: str, output_path: str) -> None:
    """
    Check the input exists and both paths name zip files.

    Raises:
        ValueError: Describing the first problem found
    """
    path = Path(input_path)
    if not path.exists():
        raise ValueError(f"Input path does not exist: {input_path}")
    if not path.is_file():
        raise ValueError(f"Input path is not a file: {input_path}")
    for label, value in (("Input", input_path), ("Output", output_path)):
        if Path(value).suffix.lower() != ".zip":
            raise ValueError(f"{label} path must be a zip file: {value}")


def cmd_convert(args: argparse.Namespace) -> int:
    """Execute convert command."""
    setup_logging(args.verbose)

    try:
        check_paths(args.input, args.output)
        config = ConvertConfig(
            input_path=args.input,
            output_path=args.output,
            jobs=args.jobs,
            bank_holidays=load_bank_holidays(args.bank_holidays) if args.bank_holidays else frozenset(),
            station_coordinates_path=args.station_coordinates,
            skip_unknown_stops=args.skip_unknown_stops,
        )
        manifest = convert(args.input, args.output, config)
        print("\nConversion successful!")
        print(f"Output: {args.output}")
        print(f"Stats: {manifest.stats}")
        if manifest.warnings:
            print(f"Warnings ({len(manifest.warnings)}):")
            for warning in manifest.warnings:
                print(f"  - {warning}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Conversion failed")
        return 1


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="atoc2gtfs",
        description="Convert an ATOC CIF timetable zip to a GTFS zip",
    )
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("input", help="Path to the ATOC CIF zip (.msn and .mca files)")
    parser.add_argument("output", help="Path of the GTFS zip to write")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")
    parser.add_argument(
        "--jobs",
        type=positive_int,
        default=1,
        help="Number of parallel jobs for calendar resolution (default: 1)",
    )
    parser.add_argument(
        "--bank-holidays",
        default=None,
        help="File of bank holiday dates, one per line (YYYY-MM-DD or YYYYMMDD)",
    )
    parser.add_argument(
        "--station-coordinates",
        default=None,
        help="CSV of code,latitude,longitude keyed by TIPLOC or CRS code",
    )
    parser.add_argument(
        "--skip-unknown-stops",
        action="store_true",
        help="Drop calls at locations missing from the station master instead of failing",
    )
    parser.set_defaults(func=cmd_convert)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
