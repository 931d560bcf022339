"""atoc2gtfs - Convert ATOC CIF timetable feeds to GTFS."""

from atoc2gtfs.api import convert
from atoc2gtfs.version import VERSION

__version__ = VERSION
__all__ = ["VERSION", "convert"]
