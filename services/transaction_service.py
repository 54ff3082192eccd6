"""
Transaction service.
Encapsulates CSV upsert and the date-range query planning for read endpoints.
"""
import asyncio
from datetime import datetime
from functools import partial
from typing import Any, Callable, List, Optional, TypeVar

from core.db import Database, get_db
from core.exceptions import DataNotFoundError, InvalidKindError
from core.exporters import export_to_excel
from core.logger import setup_logger
from core.mappers import TransactionCsvMapper
from core.parsing import parse_csv
from core.schema import ClientTimezoneTransaction, Transaction, UserTimezoneTransaction
from core.timeutils import DateKind, to_utc
from core.validators import (
    require_user_timezone,
    resolve_range_kind,
    validate_date_parts,
    validate_date_range,
)

logger = setup_logger(__name__)

R = TypeVar("R")


class TransactionService:
    """Service for ingesting transactions and querying them by date in different timezones."""

    def __init__(self, db: Optional[Database] = None):
        """
        Initialize transaction service.

        Args:
            db: Transaction store (defaults to the shared instance)
        """
        self.db = db or get_db()
        self.mapper = TransactionCsvMapper()

    async def _run(self, func: Callable[..., R], *args: Any) -> R:
        """Run a blocking store call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def upsert(self, content: bytes, filename: str) -> int:
        """
        Parse a CSV upload and upsert every transaction in it.

        The whole file is mapped before the single store write.

        Args:
            content: Raw CSV bytes
            filename: Upload file name

        Returns:
            Number of transactions written
        """
        logger.info(f"Upserting transactions from {filename} ({len(content)} bytes)")

        transactions = await self._run(parse_csv, content, filename, self.mapper)
        await self._run(self.db.upsert_transactions, transactions)

        logger.info(f"Upserted {len(transactions)} transactions from {filename}")
        return len(transactions)

    async def export_transactions(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        user_timezone: Optional[str] = None
    ) -> bytes:
        """
        Export transactions to Excel, optionally limited to a date range.

        UTC bounds are used as-is. Unspecified bounds are read in the caller's
        timezone and converted to UTC.

        Args:
            start_date: Range start, or None for all transactions
            end_date: Range end, or None for all transactions
            user_timezone: Raw caller timezone header value

        Returns:
            Workbook bytes

        Raises:
            DataNotFoundError: If no transaction matches
        """
        if start_date is None and end_date is None:
            logger.info("Exporting all transactions")
            transactions = await self._run(self.db.get_all_transactions)
        else:
            transactions = await self.get_transactions_by_date(start_date, end_date, user_timezone)

        if not transactions:
            raise DataNotFoundError("No transaction was found")

        return await self._run(export_to_excel, transactions)

    async def get_transactions_by_date(
        self,
        start_date: datetime,
        end_date: datetime,
        user_timezone: Optional[str] = None
    ) -> List[Transaction]:
        """Query transactions in a UTC or caller-local date range."""
        kind = validate_date_range(start_date, end_date)

        if kind == DateKind.UTC:
            start_utc, end_utc = start_date, end_date
            logger.info(f"Querying UTC range {start_utc} - {end_utc}")
        else:
            timezone_id = require_user_timezone(user_timezone)
            start_utc = to_utc(start_date, timezone_id)
            end_utc = to_utc(end_date, timezone_id)
            logger.info(f"Querying {timezone_id} range {start_date} - {end_date} as UTC {start_utc} - {end_utc}")

        return await self._run(self.db.get_transactions_between, start_utc, end_utc)

    async def get_transactions_for_user_timezone(
        self,
        start_date: datetime,
        end_date: datetime,
        user_timezone: Optional[str]
    ) -> List[UserTimezoneTransaction]:
        """
        Get transactions in a range expressed in the caller's timezone.

        Raises:
            InvalidKindError: If the bounds are UTC
            MissingTimezoneHeaderError: If no caller timezone is given
            InvalidTimezoneError: If the caller timezone is not IANA
            DataNotFoundError: If no transaction matches
        """
        self._require_unspecified(start_date, end_date)
        timezone_id = require_user_timezone(user_timezone)

        start_utc = to_utc(start_date, timezone_id)
        end_utc = to_utc(end_date, timezone_id)
        logger.info(f"Querying user timezone {timezone_id} range as UTC {start_utc} - {end_utc}")

        transactions = await self._run(
            self.db.get_transactions_for_user_timezone, start_utc, end_utc, timezone_id
        )
        if not transactions:
            raise DataNotFoundError("No transactions found for this date range")
        return transactions

    async def get_transactions_for_client_timezone(
        self,
        start_date: datetime,
        end_date: datetime
    ) -> List[ClientTimezoneTransaction]:
        """
        Get transactions whose local time at their origin falls within the range.

        Raises:
            InvalidKindError: If the bounds are UTC
            DataNotFoundError: If no transaction matches
        """
        self._require_unspecified(start_date, end_date)
        logger.info(f"Querying client timezone range {start_date} - {end_date}")

        transactions = await self._run(
            self.db.get_transactions_for_client_timezone, start_date, end_date
        )
        if not transactions:
            raise DataNotFoundError("No transactions found for this date range")
        return transactions

    async def get_transactions_for_client_timezone_by_date(
        self,
        year: int,
        month: Optional[int] = None,
        day: Optional[int] = None
    ) -> List[ClientTimezoneTransaction]:
        """
        Get transactions whose local date at their origin matches year[/month[/day]].

        Raises:
            IncompleteDateSpecError: If day is given without month
            ImpossibleDateError: If the date does not exist
            DataNotFoundError: If no transaction matches
        """
        validate_date_parts(year, month, day)
        logger.info(f"Querying client timezone date year={year} month={month} day={day}")

        transactions = await self._run(
            self.db.get_transactions_for_client_timezone_by_date, year, month, day
        )
        if not transactions:
            raise DataNotFoundError("No transactions found for this date")
        return transactions

    @staticmethod
    def _require_unspecified(start_date: datetime, end_date: datetime) -> None:
        if resolve_range_kind(start_date, end_date) == DateKind.UTC:
            raise InvalidKindError("Time must be local, not UTC")
