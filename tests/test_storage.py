"""Tests for the SQL storage layer below the engine services."""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from ledgerbook.config import DatabaseSettings
from ledgerbook.models.ledger import Contact, EntryType, LedgerEntry
from ledgerbook.services.storage import (
    DuplicatePhoneError,
    LedgerDatabase,
    NotFoundError,
    SqlContactStorage,
    SqlEntryStorage,
    StorageError,
    TransportError,
)
from ledgerbook.services.storage.sql_store import storage_errors

USER = "user-1"


@pytest.fixture
def database():
    db = LedgerDatabase(DatabaseSettings(url="sqlite://"))
    yield db
    db.dispose()


@pytest.fixture
def contacts(database):
    return SqlContactStorage(database)


class TestPhoneUniqueness:
    """Tests for the partial unique index on live phones."""

    def test_index_rejects_second_live_phone(self, contacts, run):
        """Test that the store itself refuses a duplicate the engine missed."""
        run(contacts.insert_contact(Contact(user_id=USER, name="A", phone="9876543210")))
        with pytest.raises(DuplicatePhoneError):
            run(contacts.insert_contact(Contact(user_id=USER, name="B", phone="9876543210")))

    def test_tombstones_may_share_a_phone(self, contacts, run):
        t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
        first = run(contacts.insert_contact(Contact(user_id=USER, name="A", phone="9876543210")))
        run(contacts.soft_delete_contact(first.id, t0))
        second = run(contacts.insert_contact(Contact(user_id=USER, name="B", phone="9876543210")))
        run(contacts.soft_delete_contact(second.id, t0 + timedelta(days=1)))

        found = run(contacts.find_by_phone(USER, "9876543210"))
        assert found.id == second.id

    def test_live_match_preferred_over_tombstone(self, contacts, run):
        old = run(contacts.insert_contact(Contact(user_id=USER, name="A", phone="9876543210")))
        run(contacts.soft_delete_contact(old.id, datetime.now(timezone.utc)))
        live = run(contacts.insert_contact(Contact(user_id=USER, name="B", phone="9876543210")))

        assert run(contacts.find_by_phone(USER, "9876543210")).id == live.id

    def test_restore_blocked_by_live_phone(self, contacts, run):
        old = run(contacts.insert_contact(Contact(user_id=USER, name="A", phone="9876543210")))
        run(contacts.soft_delete_contact(old.id, datetime.now(timezone.utc)))
        run(contacts.insert_contact(Contact(user_id=USER, name="B", phone="9876543210")))

        with pytest.raises(DuplicatePhoneError, match="9876543210"):
            run(contacts.restore_contact(old.id, "A"))
        assert run(contacts.get_contact(old.id)).is_deleted
        assert run(contacts.get_contact(old.id)).name == "A"


class TestEntryStorage:
    """Tests for entry rows and id handling."""

    def test_amount_stored_in_cents(self, database, contacts, run):
        contact = run(contacts.insert_contact(Contact(user_id=USER, name="A", phone="9876543210")))
        entries = SqlEntryStorage(database)
        entry = run(entries.insert_entry(LedgerEntry(
            contact_id=contact.id, amount=Decimal("12.34"), type=EntryType.CREDIT,
        )))
        assert run(entries.get_entry(entry.id)).amount == Decimal("12.34")

    def test_malformed_ids(self, database, run):
        entries = SqlEntryStorage(database)
        assert run(entries.get_entry("nope")) is None
        assert run(entries.list_entries("nope")) == []
        with pytest.raises(NotFoundError):
            run(entries.delete_entry("nope"))


class TestErrorTranslation:
    """Tests for mapping SQLAlchemy errors onto the storage hierarchy."""

    def test_operational_error_is_transport_error(self):
        with pytest.raises(TransportError):
            with storage_errors("list contacts"):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    def test_other_errors_are_storage_errors(self):
        with pytest.raises(StorageError) as exc_info:
            with storage_errors("list contacts"):
                raise SQLAlchemyError("boom")
        assert not isinstance(exc_info.value, TransportError)

    def test_storage_errors_pass_through(self):
        with pytest.raises(NotFoundError):
            with storage_errors("get contact"):
                raise NotFoundError("Contact not found")


class TestConnect:
    """Tests for start-up connection retries."""

    def test_connect_retries_transport_errors(self, monkeypatch):
        monkeypatch.setattr("time.sleep", lambda seconds: None)
        db = LedgerDatabase(DatabaseSettings(url="sqlite://", connect_attempts=3))
        real_open = db._open
        calls = []

        def flaky_open():
            calls.append(1)
            if len(calls) < 3:
                raise TransportError("unreachable")
            return real_open()

        db._open = flaky_open
        db.connect()

        assert len(calls) == 3
        db.dispose()

    def test_connect_gives_up(self, monkeypatch):
        monkeypatch.setattr("time.sleep", lambda seconds: None)
        db = LedgerDatabase(DatabaseSettings(url="sqlite://", connect_attempts=2))
        calls = []

        def down():
            calls.append(1)
            raise TransportError("unreachable")

        db._open = down
        with pytest.raises(TransportError):
            db.connect()
        assert len(calls) == 2

    def test_connect_is_cached(self, database):
        assert database.connect() is database.connect()
