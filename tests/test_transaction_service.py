"""
Tests for the transaction service: upsert flow and query planning.
"""
import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from core.exceptions import (
    DataNotFoundError,
    FormatError,
    ImpossibleDateError,
    IncompleteDateSpecError,
    InconsistentKindError,
    InvalidFormatError,
    InvalidKindError,
    InvalidTimezoneError,
    MissingTimezoneHeaderError,
    SchemaMismatchError,
)
from services.transaction_service import TransactionService

UTC = timezone.utc

NY_ROW = 'T-1,"Smith, John",john@example.com,$100.50,2024-01-15 07:00:00,"40.7128, -74.0060"'
TOKYO_ROW = 'T-2,Jane Doe,jane@example.com,$20.00,2024-01-15 21:00:00,"35.6895, 139.6917"'


@pytest.fixture
def service(db):
    return TransactionService(db=db)


@pytest.fixture
def store():
    return MagicMock()


@pytest.fixture
def mocked_service(store):
    return TransactionService(db=store)


def test_upsert_writes_all_rows(service, db, csv_bytes):
    count = asyncio.run(service.upsert(csv_bytes(NY_ROW, TOKYO_ROW), "transactions.csv"))

    assert count == 2
    stored = db.get_all_transactions()
    assert {t.transaction_id for t in stored} == {"T-1", "T-2"}
    # both happened at 12:00 UTC
    assert {t.transaction_date_utc for t in stored} == {datetime(2024, 1, 15, 12, 0, tzinfo=UTC)}


def test_upsert_twice_keeps_second_amount(service, db, csv_bytes):
    asyncio.run(service.upsert(csv_bytes(NY_ROW), "transactions.csv"))
    asyncio.run(service.upsert(csv_bytes(NY_ROW.replace("$100.50", "$75.00")), "transactions.csv"))

    stored = db.get_all_transactions()
    assert len(stored) == 1
    assert stored[0].amount == Decimal("75.00")


def test_upsert_bad_row_writes_nothing(mocked_service, store, csv_bytes):
    content = csv_bytes(NY_ROW, "T-3,Bad,bad@example.com,$1,not-a-date,\"1, 1\"")

    with pytest.raises(FormatError):
        asyncio.run(mocked_service.upsert(content, "transactions.csv"))
    store.upsert_transactions.assert_not_called()


def test_upsert_rejects_wrong_extension(mocked_service, store, csv_bytes):
    with pytest.raises(InvalidFormatError):
        asyncio.run(mocked_service.upsert(csv_bytes(NY_ROW), "transactions.xlsx"))
    store.upsert_transactions.assert_not_called()


def test_upsert_rejects_schema_mismatch(mocked_service, store, csv_bytes):
    content = csv_bytes(NY_ROW, header="transaction_id,name,email,amount,client_location,transaction_date")

    with pytest.raises(SchemaMismatchError):
        asyncio.run(mocked_service.upsert(content, "transactions.csv"))
    store.upsert_transactions.assert_not_called()


def test_by_date_utc_range_queries_directly(mocked_service, store, make_transaction):
    start = datetime(2024, 1, 1, tzinfo=UTC)
    end = datetime(2024, 2, 1, tzinfo=UTC)
    store.get_transactions_between.return_value = [make_transaction()]

    result = asyncio.run(mocked_service.get_transactions_by_date(start, end))

    assert len(result) == 1
    store.get_transactions_between.assert_called_once_with(start, end)


def test_by_date_unspecified_range_converts_with_header(mocked_service, store):
    store.get_transactions_between.return_value = []

    asyncio.run(mocked_service.get_transactions_by_date(
        datetime(2024, 1, 1), datetime(2024, 1, 2), "America/New_York"
    ))

    store.get_transactions_between.assert_called_once_with(
        datetime(2024, 1, 1, 5, 0, tzinfo=UTC), datetime(2024, 1, 2, 5, 0, tzinfo=UTC)
    )


def test_by_date_unspecified_range_requires_header(mocked_service, store):
    with pytest.raises(MissingTimezoneHeaderError):
        asyncio.run(mocked_service.get_transactions_by_date(datetime(2024, 1, 1), datetime(2024, 1, 2)))
    store.get_transactions_between.assert_not_called()


def test_mixed_kinds_rejected_before_store(mocked_service, store):
    with pytest.raises(InconsistentKindError):
        asyncio.run(mocked_service.export_transactions(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 2), "America/New_York"
        ))
    store.get_transactions_between.assert_not_called()
    store.get_all_transactions.assert_not_called()


def test_export_without_range_exports_everything(mocked_service, store, make_transaction):
    store.get_all_transactions.return_value = [make_transaction()]

    content = asyncio.run(mocked_service.export_transactions())

    assert content[:2] == b"PK"
    store.get_all_transactions.assert_called_once_with()


def test_export_empty_result_is_not_found(mocked_service, store):
    store.get_transactions_between.return_value = []

    with pytest.raises(DataNotFoundError):
        asyncio.run(mocked_service.export_transactions(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 2, tzinfo=UTC)
        ))


def test_user_timezone_query(service, db, csv_bytes):
    asyncio.run(service.upsert(csv_bytes(NY_ROW, TOKYO_ROW), "transactions.csv"))

    result = asyncio.run(service.get_transactions_for_user_timezone(
        datetime(2024, 1, 15, 13, 0), datetime(2024, 1, 15, 14, 0), "Europe/Berlin"
    ))

    assert {t.transaction_id for t in result} == {"T-1", "T-2"}
    assert {t.transaction_date_in_user_timezone for t in result} == {datetime(2024, 1, 15, 13, 0)}


def test_user_timezone_query_converts_bounds(mocked_service, store, make_transaction):
    store.get_transactions_for_user_timezone.return_value = [make_transaction()]

    asyncio.run(mocked_service.get_transactions_for_user_timezone(
        datetime(2024, 7, 1), datetime(2024, 7, 2), "Europe/Paris"
    ))

    store.get_transactions_for_user_timezone.assert_called_once_with(
        datetime(2024, 6, 30, 22, 0, tzinfo=UTC), datetime(2024, 7, 1, 22, 0, tzinfo=UTC), "Europe/Paris"
    )


def test_user_timezone_query_rejects_utc(mocked_service, store):
    with pytest.raises(InvalidKindError):
        asyncio.run(mocked_service.get_transactions_for_user_timezone(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 2, tzinfo=UTC), "Europe/Paris"
        ))
    store.get_transactions_for_user_timezone.assert_not_called()


def test_user_timezone_query_rejects_bad_header(mocked_service, store):
    with pytest.raises(InvalidTimezoneError):
        asyncio.run(mocked_service.get_transactions_for_user_timezone(
            datetime(2024, 1, 1), datetime(2024, 1, 2), "Not/AZone"
        ))
    store.get_transactions_for_user_timezone.assert_not_called()


def test_user_timezone_query_empty_is_not_found(service):
    with pytest.raises(DataNotFoundError):
        asyncio.run(service.get_transactions_for_user_timezone(
            datetime(2024, 1, 1), datetime(2024, 1, 2), "Europe/Paris"
        ))


def test_client_timezone_query(service, csv_bytes):
    asyncio.run(service.upsert(csv_bytes(NY_ROW, TOKYO_ROW), "transactions.csv"))

    result = asyncio.run(service.get_transactions_for_client_timezone(
        datetime(2024, 1, 15, 20, 0), datetime(2024, 1, 15, 22, 0)
    ))

    assert [t.transaction_id for t in result] == ["T-2"]
    assert result[0].transaction_date_in_client_timezone == datetime(2024, 1, 15, 21, 0)


def test_client_timezone_query_rejects_utc(mocked_service, store):
    with pytest.raises(InvalidKindError):
        asyncio.run(mocked_service.get_transactions_for_client_timezone(
            datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 2, tzinfo=UTC)
        ))
    store.get_transactions_for_client_timezone.assert_not_called()


def test_client_timezone_query_empty_is_not_found(mocked_service, store):
    store.get_transactions_for_client_timezone.return_value = []

    with pytest.raises(DataNotFoundError):
        asyncio.run(mocked_service.get_transactions_for_client_timezone(
            datetime(2024, 1, 1), datetime(2024, 1, 2)
        ))


def test_client_timezone_by_date(service, csv_bytes):
    asyncio.run(service.upsert(csv_bytes(NY_ROW, TOKYO_ROW), "transactions.csv"))

    by_year = asyncio.run(service.get_transactions_for_client_timezone_by_date(2024))
    by_day = asyncio.run(service.get_transactions_for_client_timezone_by_date(2024, 1, 15))

    assert {t.transaction_id for t in by_year} == {"T-1", "T-2"}
    assert {t.transaction_id for t in by_day} == {"T-1", "T-2"}


def test_client_timezone_by_date_not_found(service, csv_bytes):
    asyncio.run(service.upsert(csv_bytes(NY_ROW), "transactions.csv"))

    with pytest.raises(DataNotFoundError):
        asyncio.run(service.get_transactions_for_client_timezone_by_date(2024, 1, 16))


def test_client_timezone_by_date_validation(mocked_service, store):
    with pytest.raises(ImpossibleDateError):
        asyncio.run(mocked_service.get_transactions_for_client_timezone_by_date(2024, 2, 30))
    with pytest.raises(IncompleteDateSpecError):
        asyncio.run(mocked_service.get_transactions_for_client_timezone_by_date(2024, None, 3))
    store.get_transactions_for_client_timezone_by_date.assert_not_called()
