"""
Request validation rules shared by the HTTP schemas and the service layer.
"""
import calendar
from datetime import datetime
from typing import Optional

from core.config import USER_TIMEZONE_HEADER
from core.exceptions import (
    ImpossibleDateError,
    IncompleteDateSpecError,
    InconsistentKindError,
    InvalidDateRangeError,
    InvalidTimezoneError,
    MissingTimezoneHeaderError,
)
from core.timeutils import DateKind, date_kind, is_valid_iana

MIN_YEAR = 1
MAX_YEAR = 9999


def validate_bound_kind(value: datetime, field_name: str) -> datetime:
    """Reject datetimes carrying a non-UTC offset."""
    if date_kind(value) == DateKind.LOCAL:
        raise InvalidDateRangeError(
            f"{field_name} must have no offsets",
            details={"field": field_name}
        )
    return value


def resolve_range_kind(start_date: datetime, end_date: datetime) -> DateKind:
    """
    Return the shared kind of a date range.

    Raises:
        InvalidDateRangeError: If a bound carries a non-UTC offset
        InconsistentKindError: If start and end differ in kind
    """
    validate_bound_kind(start_date, "StartDate")
    validate_bound_kind(end_date, "EndDate")

    start_kind = date_kind(start_date)
    end_kind = date_kind(end_date)
    if start_kind != end_kind:
        raise InconsistentKindError(
            "StartDate and EndDate must have the same kind",
            details={"start_kind": start_kind.value, "end_kind": end_kind.value}
        )
    return start_kind


def validate_date_range(start_date: Optional[datetime], end_date: Optional[datetime]) -> DateKind:
    """
    Validate a complete date range and return its kind.

    Raises:
        InvalidDateRangeError: If a bound is missing or end is not after start
        InconsistentKindError: If start and end differ in kind
    """
    if start_date is None:
        raise InvalidDateRangeError("StartDate is required")
    if end_date is None:
        raise InvalidDateRangeError("EndDate is required")

    kind = resolve_range_kind(start_date, end_date)
    if end_date <= start_date:
        raise InvalidDateRangeError(
            "EndDate must be greater than StartDate",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        )
    return kind


def validate_date_parts(year: int, month: Optional[int] = None, day: Optional[int] = None) -> None:
    """
    Validate a (year, month?, day?) date specification.

    Raises:
        ImpossibleDateError: If a component is out of range or the day does not exist
        IncompleteDateSpecError: If day is given without month
    """
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ImpossibleDateError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    if month is not None and not 1 <= month <= 12:
        raise ImpossibleDateError("Month must be between 1 and 12")
    if day is not None and not 1 <= day <= 31:
        raise ImpossibleDateError("Day must be between 1 and 31")

    if day is not None and month is None:
        raise IncompleteDateSpecError("Month can't be null if day has a value")

    if day is not None:
        _, days_in_month = calendar.monthrange(year, month)
        if day > days_in_month:
            raise ImpossibleDateError(
                "The specified day does not exist in the specified month of the specified year",
                details={"year": year, "month": month, "day": day}
            )


def require_user_timezone(value: Optional[str]) -> str:
    """
    Validate the caller timezone header value.

    Raises:
        MissingTimezoneHeaderError: If the header is missing or blank
        InvalidTimezoneError: If the value is not a canonical IANA zone
    """
    if value is None or not value.strip():
        raise MissingTimezoneHeaderError(f"Does not contain a header {USER_TIMEZONE_HEADER}")

    timezone_id = value.strip()
    if not is_valid_iana(timezone_id):
        raise InvalidTimezoneError(
            "Timezone must be in IANA format",
            details={"timezone": timezone_id}
        )
    return timezone_id
