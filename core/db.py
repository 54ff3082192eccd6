"""
SQLite transaction store.

Timestamps are stored as fixed-width naive ISO text in UTC so that text
ordering matches time ordering. Each connection registers ``to_local`` so
per-row timezone conversions run inside the query.
"""
import sqlite3
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import get_settings
from core.logger import setup_logger
from core.schema import ClientTimezoneTransaction, Transaction, UserTimezoneTransaction
from core.timeutils import ensure_utc, to_local

logger = setup_logger(__name__)

_COLUMNS = (
    "transaction_id",
    "name",
    "email",
    "amount",
    "transaction_date_utc",
    "transaction_timezone",
    "latitude",
    "longitude",
)
_SELECT_COLUMNS = ", ".join(_COLUMNS)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as storage text; aware values are converted to UTC first."""
    if value.tzinfo is not None:
        value = ensure_utc(value).replace(tzinfo=None)
    return value.isoformat(sep=" ", timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _sql_to_local(utc_text: Optional[str], timezone_id: Optional[str]) -> Optional[str]:
    """SQL function: stored UTC text -> local wall-clock text in ``timezone_id``."""
    if utc_text is None or timezone_id is None:
        return None
    return format_timestamp(to_local(parse_timestamp(utc_text), timezone_id))


def _row_values(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "transaction_id": row["transaction_id"],
        "name": row["name"],
        "email": row["email"],
        "amount": Decimal(row["amount"]),
        "transaction_date_utc": ensure_utc(parse_timestamp(row["transaction_date_utc"])),
        "transaction_timezone": row["transaction_timezone"],
        "latitude": row["latitude"],
        "longitude": row["longitude"],
    }


class Database:
    def __init__(self, db_path: Optional[str] = None):
        self.settings = get_settings()
        self.db_path = db_path or self.settings.database_path

    def get_connection(self) -> sqlite3.Connection:
        """Create a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.create_function("to_local", 2, _sql_to_local, deterministic=True)
        return conn

    def init_db(self) -> None:
        """Initialize database tables."""
        conn = self.get_connection()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    transaction_id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    transaction_date_utc TEXT NOT NULL,
                    transaction_timezone TEXT NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS ix_transactions_date_utc
                ON transactions (transaction_date_utc)
            """)
            conn.commit()
            logger.info(f"Database initialized at {self.db_path}")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise
        finally:
            conn.close()

    def upsert_transactions(self, transactions: List[Transaction]) -> None:
        """Insert or overwrite transactions by id in a single commit."""
        params = [
            (
                t.transaction_id,
                t.name,
                t.email,
                str(t.amount),
                format_timestamp(t.transaction_date_utc),
                t.transaction_timezone,
                t.latitude,
                t.longitude,
            )
            for t in transactions
        ]

        conn = self.get_connection()
        try:
            with conn:
                conn.executemany(
                    f"""
                    INSERT INTO transactions ({_SELECT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(transaction_id) DO UPDATE SET
                        name = excluded.name,
                        email = excluded.email,
                        amount = excluded.amount,
                        transaction_date_utc = excluded.transaction_date_utc,
                        transaction_timezone = excluded.transaction_timezone,
                        latitude = excluded.latitude,
                        longitude = excluded.longitude
                    """,
                    params,
                )
            logger.info(f"Upserted {len(params)} transactions")
        except Exception as e:
            logger.error(f"Failed to upsert transactions: {e}")
            raise
        finally:
            conn.close()

    def _fetch(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = self.get_connection()
        try:
            return conn.execute(query, params).fetchall()
        except Exception as e:
            logger.error(f"Query failed: {e}")
            raise
        finally:
            conn.close()

    def get_all_transactions(self) -> List[Transaction]:
        """Get every transaction ordered by UTC date."""
        rows = self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM transactions ORDER BY transaction_date_utc, transaction_id"
        )
        return [Transaction(**_row_values(row)) for row in rows]

    def get_transactions_between(self, start_utc: datetime, end_utc: datetime) -> List[Transaction]:
        """Get transactions whose UTC date is within [start_utc, end_utc]."""
        rows = self._fetch(
            f"""
            SELECT {_SELECT_COLUMNS} FROM transactions
            WHERE transaction_date_utc BETWEEN ? AND ?
            ORDER BY transaction_date_utc, transaction_id
            """,
            (format_timestamp(start_utc), format_timestamp(end_utc)),
        )
        return [Transaction(**_row_values(row)) for row in rows]

    def get_transactions_for_user_timezone(
        self,
        start_utc: datetime,
        end_utc: datetime,
        timezone_id: str
    ) -> List[UserTimezoneTransaction]:
        """Get transactions in a UTC range, projected into ``timezone_id``."""
        rows = self._fetch(
            f"""
            SELECT {_SELECT_COLUMNS},
                   to_local(transaction_date_utc, ?) AS transaction_date_in_user_timezone
            FROM transactions
            WHERE transaction_date_utc BETWEEN ? AND ?
            ORDER BY transaction_date_utc, transaction_id
            """,
            (timezone_id, format_timestamp(start_utc), format_timestamp(end_utc)),
        )
        return [
            UserTimezoneTransaction(
                **_row_values(row),
                transaction_date_in_user_timezone=parse_timestamp(row["transaction_date_in_user_timezone"]),
            )
            for row in rows
        ]

    def get_transactions_for_client_timezone(
        self,
        start_local: datetime,
        end_local: datetime
    ) -> List[ClientTimezoneTransaction]:
        """Get transactions whose own-zone wall-clock time is within [start_local, end_local]."""
        rows = self._fetch(
            f"""
            SELECT * FROM (
                SELECT {_SELECT_COLUMNS},
                       to_local(transaction_date_utc, transaction_timezone) AS transaction_date_in_client_timezone
                FROM transactions
            )
            WHERE transaction_date_in_client_timezone BETWEEN ? AND ?
            ORDER BY transaction_date_utc, transaction_id
            """,
            (format_timestamp(start_local), format_timestamp(end_local)),
        )
        return [self._client_row(row) for row in rows]

    def get_transactions_for_client_timezone_by_date(
        self,
        year: int,
        month: Optional[int] = None,
        day: Optional[int] = None
    ) -> List[ClientTimezoneTransaction]:
        """Get transactions whose own-zone local date matches year and, if given, month and day."""
        rows = self._fetch(
            f"""
            SELECT * FROM (
                SELECT {_SELECT_COLUMNS},
                       to_local(transaction_date_utc, transaction_timezone) AS transaction_date_in_client_timezone
                FROM transactions
            )
            WHERE CAST(substr(transaction_date_in_client_timezone, 1, 4) AS INTEGER) = ?
              AND (? IS NULL OR CAST(substr(transaction_date_in_client_timezone, 6, 2) AS INTEGER) = ?)
              AND (? IS NULL OR CAST(substr(transaction_date_in_client_timezone, 9, 2) AS INTEGER) = ?)
            ORDER BY transaction_date_utc, transaction_id
            """,
            (year, month, month, day, day),
        )
        return [self._client_row(row) for row in rows]

    @staticmethod
    def _client_row(row: sqlite3.Row) -> ClientTimezoneTransaction:
        return ClientTimezoneTransaction(
            **_row_values(row),
            transaction_date_in_client_timezone=parse_timestamp(row["transaction_date_in_client_timezone"]),
        )


# Global DB instance
_db: Optional[Database] = None


def get_db() -> Database:
    global _db
    if _db is None:
        _db = Database()
        _db.init_db()
    return _db


def reset_db() -> None:
    """Drop the DB singleton (useful for testing)."""
    global _db
    _db = None
