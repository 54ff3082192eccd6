"""
Timezone conversions between UTC instants and IANA-local wall-clock times.

UTC instants are timezone-aware datetimes in ``timezone.utc``. Local times
are naive datetimes whose meaning depends on a separately supplied zone.
"""
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import FrozenSet
from zoneinfo import ZoneInfo, available_timezones

from dateutil import parser as date_parser

from core.exceptions import FormatError, InvalidDateRangeError, InvalidTimezoneError

# tzdata ships these alongside real zones
_NON_ZONE_ENTRIES = frozenset({"Factory", "localtime", "posixrules"})


class DateKind(str, Enum):
    """How a datetime relates to UTC."""
    UTC = "utc"
    UNSPECIFIED = "unspecified"
    LOCAL = "local"


@lru_cache(maxsize=1)
def canonical_timezones() -> FrozenSet[str]:
    """Return the set of IANA zone names accepted by the service."""
    return frozenset(available_timezones()) - _NON_ZONE_ENTRIES


def is_valid_iana(timezone_id: str) -> bool:
    """Check membership in the canonical IANA zone set."""
    if not isinstance(timezone_id, str):
        return False
    return timezone_id in canonical_timezones()


@lru_cache(maxsize=None)
def get_zone(timezone_id: str) -> ZoneInfo:
    """
    Load a zone by IANA name.

    Raises:
        InvalidTimezoneError: If the name is not a canonical IANA zone
    """
    if not is_valid_iana(timezone_id):
        raise InvalidTimezoneError(
            f"Timezone must be in IANA format: {timezone_id!r}",
            details={"timezone": timezone_id}
        )
    return ZoneInfo(timezone_id)


def date_kind(value: datetime) -> DateKind:
    """Classify a datetime as UTC, unspecified (naive) or local (offset)."""
    if value.tzinfo is None or value.utcoffset() is None:
        return DateKind.UNSPECIFIED
    if value.utcoffset().total_seconds() == 0:
        return DateKind.UTC
    return DateKind.LOCAL


def to_utc(local_datetime: datetime, timezone_id: str) -> datetime:
    """
    Interpret a wall-clock time in ``timezone_id`` and return the UTC instant.

    Ambiguous times (DST fold) resolve to the earlier occurrence. Times that
    fall in a DST gap are shifted forward by the gap length.

    Args:
        local_datetime: Naive wall-clock datetime
        timezone_id: IANA zone the wall clock belongs to

    Returns:
        Aware datetime in UTC

    Raises:
        InvalidDateRangeError: If the instant falls outside years 1-9999 in UTC
    """
    zone = get_zone(timezone_id)
    if local_datetime.tzinfo is not None:
        local_datetime = local_datetime.replace(tzinfo=None)
    # fold=0 picks the pre-transition offset for both folds and gaps
    localized = local_datetime.replace(tzinfo=zone, fold=0)
    try:
        return localized.astimezone(timezone.utc)
    except OverflowError:
        raise _out_of_range(local_datetime, timezone_id)


def to_local(utc_instant: datetime, timezone_id: str) -> datetime:
    """
    Convert a UTC instant to naive wall-clock time in ``timezone_id``.

    Naive input is treated as UTC.

    Raises:
        InvalidDateRangeError: If the wall-clock time falls outside years 1-9999
    """
    zone = get_zone(timezone_id)
    if utc_instant.tzinfo is None:
        utc_instant = utc_instant.replace(tzinfo=timezone.utc)
    try:
        return utc_instant.astimezone(zone).replace(tzinfo=None)
    except OverflowError:
        raise _out_of_range(utc_instant, timezone_id)


def _out_of_range(value: datetime, timezone_id: str) -> InvalidDateRangeError:
    return InvalidDateRangeError(
        "Date is out of the supported range in the given timezone",
        details={"value": value.isoformat(), "timezone": timezone_id}
    )


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are assumed to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_local_datetime(value: str) -> datetime:
    """
    Parse a date/time string without offset, independent of the host locale.

    Raises:
        FormatError: If the string is not a date or carries an offset
    """
    text = (value or "").strip()
    if not text:
        raise FormatError("Transaction date is empty")

    try:
        parsed = date_parser.parse(text, dayfirst=False)
    except (ValueError, OverflowError) as e:
        raise FormatError(
            f"Invalid transaction date: {value!r}",
            details={"value": value, "error": str(e)}
        )

    if parsed.tzinfo is not None:
        raise FormatError(
            f"Transaction date must not carry an offset: {value!r}",
            details={"value": value}
        )
    return parsed
