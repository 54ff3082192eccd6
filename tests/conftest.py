"""
Shared fixtures: isolated settings and a temporary SQLite store per test.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from core.config import reset_settings
from core.db import Database, reset_db
from core.schema import Transaction

CSV_HEADER = "transaction_id,name,email,amount,transaction_date,client_location"


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point DATABASE_PATH at a fresh file and reset singletons."""
    path = tmp_path / "transactions.db"
    monkeypatch.setenv("DATABASE_PATH", str(path))
    reset_settings()
    reset_db()
    yield str(path)
    reset_settings()
    reset_db()


@pytest.fixture
def db(db_path):
    database = Database(db_path)
    database.init_db()
    return database


@pytest.fixture
def make_transaction():
    """Factory for Transaction entities with sensible defaults."""
    def _make(
        transaction_id="T-1",
        amount="10.00",
        date_utc=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
        timezone_id="America/New_York",
        latitude=40.7128,
        longitude=-74.006,
        name="John Smith",
        email="john@example.com",
    ):
        return Transaction(
            transaction_id=transaction_id,
            name=name,
            email=email,
            amount=Decimal(amount),
            transaction_date_utc=date_utc,
            transaction_timezone=timezone_id,
            latitude=latitude,
            longitude=longitude,
        )
    return _make


@pytest.fixture
def csv_bytes():
    """Build CSV upload bytes from data lines using the standard header."""
    def _build(*lines, header=CSV_HEADER):
        return ("\n".join((header,) + lines) + "\n").encode("utf-8")
    return _build
