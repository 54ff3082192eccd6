"""
CSV row mappers producing domain entities.
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Dict, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from core.exceptions import FormatError, InvalidDateRangeError
from core.geo import resolve_timezone
from core.parsing import EntityCsvMapper
from core.schema import Transaction
from core.timeutils import parse_local_datetime, to_utc

TRANSACTION_COLUMNS: Tuple[str, ...] = (
    "transaction_id",
    "name",
    "email",
    "amount",
    "transaction_date",
    "client_location",
)


def parse_amount(value: str) -> Decimal:
    """
    Parse a currency amount such as ``$1,234.50`` independent of locale.

    Raises:
        FormatError: If the value is not a finite decimal number
    """
    cleaned = (value or "").replace("$", "").replace(",", "").strip()
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise FormatError(f"Invalid amount: {value!r}", details={"value": value})

    if not amount.is_finite():
        raise FormatError(f"Invalid amount: {value!r}", details={"value": value})
    return amount


def parse_location(value: str) -> Tuple[float, float]:
    """
    Split ``"lat, lon"`` into two floats.

    Raises:
        FormatError: If there are not exactly two finite numbers
    """
    parts = (value or "").split(",")
    if len(parts) != 2:
        raise FormatError(
            f"Client location must be 'latitude, longitude': {value!r}",
            details={"value": value}
        )

    try:
        latitude, longitude = float(parts[0]), float(parts[1])
    except ValueError:
        raise FormatError(f"Invalid client location: {value!r}", details={"value": value})

    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise FormatError(f"Invalid client location: {value!r}", details={"value": value})
    return latitude, longitude


class TransactionCsvMapper(EntityCsvMapper[Transaction]):
    """Maps transaction CSV rows, deriving the origin timezone from coordinates."""

    @property
    def required_columns(self) -> Sequence[str]:
        return TRANSACTION_COLUMNS

    def map_row(self, row: Dict[str, str]) -> Transaction:
        latitude, longitude = parse_location(row["client_location"])
        timezone_id = resolve_timezone(latitude, longitude)
        local_date = parse_local_datetime(row["transaction_date"])
        try:
            date_utc = to_utc(local_date, timezone_id)
        except InvalidDateRangeError as e:
            raise FormatError(
                f"Invalid transaction date: {row['transaction_date']!r}",
                details={"timezone": timezone_id, "error": e.message}
            )

        try:
            return Transaction(
                transaction_id=row["transaction_id"],
                name=row["name"],
                email=row["email"],
                amount=parse_amount(row["amount"]),
                transaction_date_utc=date_utc,
                transaction_timezone=timezone_id,
                latitude=latitude,
                longitude=longitude,
            )
        except PydanticValidationError as e:
            raise FormatError(
                f"Invalid transaction row {row.get('transaction_id')!r}",
                details={"errors": e.errors(include_url=False, include_context=False)}
            )
