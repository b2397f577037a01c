"""
Tests for LedgerBook

Test strategy:
1. Unit tests for individual components (models, validators, formatting)
2. Integration tests for the engine against an in-memory SQLite ledger
3. No external services in tests
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from ledgerbook.models.ledger import (
    DEFAULT_TAG_COLOR,
    TAG_COLORS,
    Contact,
    ContactBalance,
    ContactSaveResult,
    DateRange,
    EntryType,
    LedgerEntry,
    Tag,
    TagNamespace,
    ensure_utc,
)
from ledgerbook.models.activity import (
    ActivityEvent,
    ActivityEventBuilder,
    ActivityEventType,
    ActivitySeverity,
)


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_contact_creation(self):
        """Test Contact model creation."""
        contact = Contact(user_id="u1", name="Asha Traders", phone="9876543210")
        assert contact.name == "Asha Traders"
        assert contact.deleted_at is None
        assert contact.is_deleted is False

    def test_contact_strips_whitespace(self):
        """Test that whitespace is stripped from the contact name."""
        contact = Contact(user_id="u1", name="  Asha  ", phone="9876543210")
        assert contact.name == "Asha"

    def test_contact_rejects_empty_name(self):
        with pytest.raises(ValueError):
            Contact(user_id="u1", name="   ", phone="9876543210")

    def test_entry_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in (Decimal("0"), Decimal("-10")):
            with pytest.raises(ValueError):
                LedgerEntry(contact_id=uuid4(), amount=amount, type=EntryType.CREDIT)

    def test_entry_rejects_three_decimal_places(self):
        with pytest.raises(ValueError):
            LedgerEntry(contact_id=uuid4(), amount=Decimal("10.123"), type=EntryType.DEBIT)

    def test_entry_signed_amount(self):
        """Test that direction comes only from the entry type."""
        credit = LedgerEntry(contact_id=uuid4(), amount=Decimal("50.00"), type=EntryType.CREDIT)
        debit = LedgerEntry(contact_id=uuid4(), amount=Decimal("50.00"), type=EntryType.DEBIT)
        assert credit.signed_amount == Decimal("50.00")
        assert debit.signed_amount == Decimal("-50.00")

    def test_tag_defaults_to_first_palette_color(self):
        tag = Tag(user_id="u1", namespace=TagNamespace.CONTACT, name="Wholesale")
        assert tag.color == DEFAULT_TAG_COLOR == TAG_COLORS[0] == "#3B82F6"
        assert len(TAG_COLORS) == 8

    def test_contact_balance_is_computed(self):
        balance = ContactBalance(
            contact_id=uuid4(),
            total_credit=Decimal("600.00"),
            total_debit=Decimal("200.00"),
        )
        assert balance.balance == Decimal("400.00")
        assert balance.is_settled is False
        assert balance.model_dump()["balance"] == Decimal("400.00")

    def test_save_result_warnings(self):
        contact = Contact(user_id="u1", name="Asha", phone="9876543210")
        assert ContactSaveResult(contact=contact).has_warnings is False
        assert ContactSaveResult(contact=contact, warnings=["x"]).has_warnings is True

    def test_ensure_utc_treats_naive_as_utc(self):
        naive = datetime(2024, 1, 5, 10, 0)
        assert ensure_utc(naive) == datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)


class TestDateRange:
    """Tests for date range bounds and presets."""

    def test_unbounded(self):
        all_time = DateRange.all_time()
        assert all_time.is_unbounded
        assert all_time.lower_bound(timezone.utc) is None
        assert all_time.upper_bound(timezone.utc) is None

    def test_date_bounds_cover_whole_days(self):
        """Test that a date end includes the entire day."""
        date_range = DateRange(start=date(2024, 2, 1), end=date(2024, 2, 29))
        assert date_range.lower_bound(timezone.utc) == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert date_range.upper_bound(timezone.utc) == datetime(
            2024, 2, 29, 23, 59, 59, 999999, tzinfo=timezone.utc
        )

    def test_date_bounds_follow_timezone(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        date_range = DateRange(start=date(2024, 2, 1))
        assert date_range.lower_bound(ist) == datetime(2024, 1, 31, 18, 30, tzinfo=timezone.utc)

    def test_datetime_bounds_used_as_is(self):
        moment = datetime(2024, 2, 1, 12, 30, tzinfo=timezone.utc)
        date_range = DateRange(start=moment, end=moment)
        assert date_range.lower_bound(timezone.utc) == moment
        assert date_range.upper_bound(timezone.utc) == moment

    def test_end_before_start_rejected(self):
        with pytest.raises(ValueError):
            DateRange(start=date(2024, 2, 10), end=date(2024, 2, 1))

    def test_this_week_starts_on_monday(self):
        thursday = datetime(2024, 5, 16, 10, 0, tzinfo=timezone.utc)
        week = DateRange.this_week(now=thursday)
        assert week.start == date(2024, 5, 13)
        assert week.end == date(2024, 5, 16)

    def test_month_and_year_presets(self):
        now = datetime(2024, 5, 16, 10, 0, tzinfo=timezone.utc)
        assert DateRange.this_month(now=now).start == date(2024, 5, 1)
        assert DateRange.this_year(now=now).start == date(2024, 1, 1)
        assert DateRange.today(now=now).start == date(2024, 5, 16)

    def test_presets_read_naive_now_as_utc(self):
        """Test that 20:00 UTC on May 31 is already June in India."""
        ist = timezone(timedelta(hours=5, minutes=30))
        naive = datetime(2024, 5, 31, 20, 0)
        assert DateRange.today(ist, now=naive).start == date(2024, 6, 1)
        assert DateRange.this_month(ist, now=naive).start == date(2024, 6, 1)
        assert DateRange.this_month(timezone.utc, now=naive).start == date(2024, 5, 1)


class TestActivityModels:
    """Tests for activity-related models."""

    def test_activity_event_creation(self):
        """Test ActivityEvent model creation."""
        event = ActivityEvent(
            event_type=ActivityEventType.ENTRY_ADDED,
            description="Credit recorded",
        )
        assert event.event_type == ActivityEventType.ENTRY_ADDED
        assert event.severity == ActivitySeverity.INFO

    def test_activity_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = ActivityEvent(
            event_type=ActivityEventType.CONTACT_CREATED,
            description="Contact created",
            details={"user_id": "u1"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "contact_created"
        assert log_dict["details"]["user_id"] == "u1"

    def test_builder_entry_added(self):
        """Test ActivityEventBuilder.entry_added."""
        entry_id = uuid4()
        contact_id = uuid4()
        correlation_id = uuid4()

        event = ActivityEventBuilder.entry_added(
            entry_id=entry_id,
            contact_id=contact_id,
            entry_type="credit",
            amount="500.00",
            correlation_id=correlation_id,
        )

        assert event.event_type == ActivityEventType.ENTRY_ADDED
        assert event.entity_id == entry_id
        assert event.correlation_id == correlation_id
        assert event.details["contact_id"] == str(contact_id)

    def test_builder_tag_link_failed_is_warning(self):
        event = ActivityEventBuilder.tag_link_failed(
            contact_id=uuid4(),
            error_message="Contact tag not found",
        )
        assert event.severity == ActivitySeverity.WARNING
        assert event.error_message == "Contact tag not found"

    def test_builder_storage_error_is_error(self):
        event = ActivityEventBuilder.storage_error(
            operation="add_entry",
            error_message="database is locked",
        )
        assert event.severity == ActivitySeverity.ERROR
        assert event.details["operation"] == "add_entry"
