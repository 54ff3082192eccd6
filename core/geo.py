"""
Coordinate to IANA timezone resolution backed by the timezone-boundary dataset
bundled with ``timezonefinder``.
"""
import math
from functools import lru_cache
from typing import Optional

from timezonefinder import TimezoneFinder

from core.exceptions import GeoResolutionError
from core.logger import setup_logger
from core.timeutils import is_valid_iana

logger = setup_logger(__name__)

# Global finder instance
_finder: Optional[TimezoneFinder] = None


def get_finder() -> TimezoneFinder:
    """Get the shared TimezoneFinder, loading the boundary data on first use."""
    global _finder
    if _finder is None:
        _finder = TimezoneFinder()
    return _finder


def nautical_timezone(longitude: float) -> str:
    """
    Nautical zone for open water, e.g. longitude 75 -> ``Etc/GMT-5``.

    Etc/GMT signs are inverted relative to the UTC offset.
    """
    offset = int(round(longitude / 15.0))
    if offset == 0:
        return "Etc/GMT"
    return f"Etc/GMT{-offset:+d}"


@lru_cache(maxsize=4096)
def resolve_timezone(latitude: float, longitude: float) -> str:
    """
    Resolve coordinates to an IANA timezone identifier.

    Args:
        latitude: Degrees in [-90, 90]
        longitude: Degrees in [-180, 180]

    Returns:
        IANA timezone id

    Raises:
        GeoResolutionError: If coordinates are out of range or no zone is found
    """
    details = {"latitude": latitude, "longitude": longitude}

    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise GeoResolutionError("Coordinates must be finite numbers", details=details)
    if not -90.0 <= latitude <= 90.0:
        raise GeoResolutionError(f"Latitude {latitude} is out of range [-90, 90]", details=details)
    if not -180.0 <= longitude <= 180.0:
        raise GeoResolutionError(f"Longitude {longitude} is out of range [-180, 180]", details=details)

    timezone_id = get_finder().timezone_at(lng=longitude, lat=latitude)
    if timezone_id is None:
        timezone_id = nautical_timezone(longitude)
        logger.debug(f"No zone polygon for ({latitude}, {longitude}), using {timezone_id}")

    if not is_valid_iana(timezone_id):
        raise GeoResolutionError(
            f"Coordinates resolved to unknown timezone {timezone_id!r}",
            details={**details, "timezone": timezone_id}
        )

    return timezone_id
