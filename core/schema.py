"""
Pydantic schemas for transactions, request bodies and read projections.
JSON uses camelCase field names.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, NamedTuple, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator
from pydantic.alias_generators import to_camel

from core.timeutils import ensure_utc
from core.validators import MAX_YEAR, MIN_YEAR, validate_bound_kind, validate_date_parts, validate_date_range


def amount_to_number(value: Decimal) -> float:
    """
    Amount as a JSON / spreadsheet number.

    Both targets hold IEEE doubles, so values are exact up to 15 significant
    digits. The stored amount keeps full decimal precision.
    """
    return float(value)


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases while accepting field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Transaction(CamelModel):
    """A stored transaction; ``transaction_date_utc`` is always an aware UTC instant."""
    transaction_id: str = Field(..., min_length=1)
    name: str
    email: str
    amount: Decimal
    transaction_date_utc: datetime
    transaction_timezone: str
    latitude: float
    longitude: float

    @field_validator("transaction_date_utc")
    @classmethod
    def normalize_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, v: Decimal) -> float:
        return amount_to_number(v)


class UserTimezoneTransaction(Transaction):
    """Transaction with its UTC time projected into the caller's timezone."""
    transaction_date_in_user_timezone: datetime


class ClientTimezoneTransaction(Transaction):
    """Transaction with its UTC time projected into its own origin timezone."""
    transaction_date_in_client_timezone: datetime


class DateRangeRequest(CamelModel):
    """
    Date range filter.

    Both bounds are either UTC (``Z``/``+00:00``) or unspecified (no offset).
    """
    start_date: datetime
    end_date: datetime

    @field_validator("start_date")
    @classmethod
    def validate_start_kind(cls, v: datetime) -> datetime:
        return validate_bound_kind(v, "StartDate")

    @field_validator("end_date")
    @classmethod
    def validate_end_kind(cls, v: datetime) -> datetime:
        return validate_bound_kind(v, "EndDate")

    @model_validator(mode="after")
    def validate_range(self) -> "DateRangeRequest":
        validate_date_range(self.start_date, self.end_date)
        return self


class TransactionByDateRequest(CamelModel):
    """Exact or partial calendar date: year, optionally month, optionally day."""
    year: int
    month: Optional[int] = None
    day: Optional[int] = None

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: int) -> int:
        if v < MIN_YEAR:
            raise ValueError(f"Year must be greater or equal to {MIN_YEAR}")
        if v > MAX_YEAR:
            raise ValueError(f"Year must be less or equal to {MAX_YEAR}")
        return v

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1 <= v <= 12:
            raise ValueError("Month must be between 1 and 12")
        return v

    @field_validator("day")
    @classmethod
    def validate_day(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and not 1 <= v <= 31:
            raise ValueError("Day must be between 1 and 31")
        return v

    @model_validator(mode="after")
    def validate_date(self) -> "TransactionByDateRequest":
        validate_date_parts(self.year, self.month, self.day)
        return self


class ExportSchema(NamedTuple):
    """Ordered (field, column header) pairs for one exported record shape."""
    sheet_name: str
    columns: Tuple[Tuple[str, str], ...]


_TRANSACTION_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("transaction_id", "TransactionId"),
    ("name", "Name"),
    ("email", "Email"),
    ("amount", "Amount"),
    ("transaction_date_utc", "TransactionDateUtc"),
    ("transaction_timezone", "TransactionTimezone"),
    ("latitude", "Latitude"),
    ("longitude", "Longitude"),
)

EXPORT_SCHEMAS: Dict[Type[Transaction], ExportSchema] = {
    Transaction: ExportSchema("Transactions", _TRANSACTION_COLUMNS),
    UserTimezoneTransaction: ExportSchema(
        "UserTimezoneTransactions",
        _TRANSACTION_COLUMNS[:5]
        + (("transaction_date_in_user_timezone", "TransactionDateInUserTimezone"),)
        + _TRANSACTION_COLUMNS[5:],
    ),
    ClientTimezoneTransaction: ExportSchema(
        "ClientTimezoneTransactions",
        _TRANSACTION_COLUMNS[:5]
        + (("transaction_date_in_client_timezone", "TransactionDateInClientTimezone"),)
        + _TRANSACTION_COLUMNS[5:],
    ),
}


def export_row(record: Transaction, schema: ExportSchema) -> Dict[str, Any]:
    """Flatten a record into spreadsheet-friendly values keyed by column header."""
    row = {}
    for field_name, header in schema.columns:
        value = getattr(record, field_name)
        if isinstance(value, Decimal):
            value = amount_to_number(value)
        elif isinstance(value, datetime) and value.tzinfo is not None:
            value = ensure_utc(value).replace(tzinfo=None)
        row[header] = value
    return row
