"""Tests for the balance engine."""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from ledgerbook.config import AppSettings
from ledgerbook.models.ledger import DateRange
from ledgerbook.orchestrator import create_engine_components
from ledgerbook.services.storage import NotFoundError

USER = "user-1"


def at(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def new_contact(ledger, run, name, phone):
    return run(ledger.contacts.create_or_restore_contact(USER, name, phone)).contact


class TestContactBalance:
    """Tests for contact_balance."""

    def test_credits_minus_debits(self, ledger, run, contact):
        """Test credit 500, debit 200, credit 100 gives a balance of 400."""
        run(ledger.entries.add_entry(contact.id, "500", "credit"))
        run(ledger.entries.add_entry(contact.id, "200", "debit"))
        run(ledger.entries.add_entry(contact.id, "100", "credit"))

        balance = run(ledger.balances.contact_balance(contact.id))

        assert balance.total_credit == Decimal("600.00")
        assert balance.total_debit == Decimal("200.00")
        assert balance.balance == Decimal("400.00")

    def test_no_entries_is_settled(self, ledger, run, contact):
        balance = run(ledger.balances.contact_balance(contact.id))
        assert balance.balance == Decimal("0.00")
        assert balance.is_settled

    def test_negative_balance(self, ledger, run, contact):
        run(ledger.entries.add_entry(contact.id, "50", "debit"))
        assert run(ledger.balances.contact_balance(contact.id)).balance == Decimal("-50.00")

    def test_date_range(self, ledger, run, contact):
        run(ledger.entries.add_entry(contact.id, "100", "credit", created_at=at(2024, 1, 5)))
        run(ledger.entries.add_entry(contact.id, "40", "debit", created_at=at(2024, 2, 10)))

        february = DateRange(start=date(2024, 2, 1), end=date(2024, 2, 29))
        balance = run(ledger.balances.contact_balance(contact.id, february))

        assert balance.total_credit == Decimal("0.00")
        assert balance.total_debit == Decimal("40.00")

    def test_unknown_contact(self, ledger, run):
        with pytest.raises(NotFoundError):
            run(ledger.balances.contact_balance(uuid4()))


class TestTagTotals:
    """Tests for per-tag totals."""

    def test_multi_tagged_entry_counts_toward_each_tag(self, ledger, run, contact):
        """Test that a debit of 150 tagged Food and Urgent is -150 under both."""
        food = run(ledger.transaction_tags.create_tag(USER, "Food"))
        urgent = run(ledger.transaction_tags.create_tag(USER, "Urgent"))
        entry = run(ledger.entries.add_entry(contact.id, "150", "debit"))
        run(ledger.transaction_tags.replace_associations(entry.id, [food.id, urgent.id]))

        totals = run(ledger.balances.tag_totals(contact.id))

        assert [t.tag_name for t in totals] == ["Food", "Urgent"]
        assert all(t.total_amount == Decimal("-150.00") for t in totals)
        assert all(t.entry_count == 1 for t in totals)

    def test_signed_sum_per_tag(self, ledger, run, contact):
        food = run(ledger.transaction_tags.create_tag(USER, "Food", "#F59E0B"))
        for amount, entry_type in (("300", "credit"), ("120", "debit")):
            entry = run(ledger.entries.add_entry(contact.id, amount, entry_type))
            run(ledger.transaction_tags.add_association(entry.id, food.id))
        run(ledger.entries.add_entry(contact.id, "999", "credit"))

        [total] = run(ledger.balances.tag_totals(contact.id))

        assert total.tag_id == food.id
        assert total.tag_color == "#F59E0B"
        assert total.total_amount == Decimal("180.00")
        assert total.entry_count == 2

    def test_untagged_contact(self, ledger, run, contact):
        run(ledger.entries.add_entry(contact.id, "10", "credit"))
        assert run(ledger.balances.tag_totals(contact.id)) == []


class TestPortfolio:
    """Tests for user-wide figures."""

    def test_portfolio_and_pending_due(self, ledger, run):
        """Test that pending due only sums what customers owe."""
        asha = new_contact(ledger, run, "Asha", "9876543210")
        ravi = new_contact(ledger, run, "Ravi", "9123456780")
        run(ledger.entries.add_entry(asha.id, "400", "credit"))
        run(ledger.entries.add_entry(ravi.id, "50", "debit"))

        assert run(ledger.balances.portfolio_balance(USER)) == Decimal("350.00")
        assert run(ledger.balances.pending_due(USER)) == Decimal("400.00")

    def test_deleted_contacts_excluded(self, ledger, run):
        asha = new_contact(ledger, run, "Asha", "9876543210")
        gone = new_contact(ledger, run, "Gone", "9123456780")
        run(ledger.entries.add_entry(asha.id, "100", "credit"))
        run(ledger.entries.add_entry(gone.id, "1000", "credit"))
        run(ledger.contacts.soft_delete_contact(gone.id))

        assert run(ledger.balances.portfolio_balance(USER)) == Decimal("100.00")
        assert run(ledger.balances.pending_due(USER)) == Decimal("100.00")

    def test_empty_ledger(self, ledger, run):
        assert run(ledger.balances.portfolio_balance(USER)) == Decimal("0.00")
        assert run(ledger.balances.pending_due(USER)) == Decimal("0.00")

    def test_month_to_date_net(self, ledger, run, contact):
        now = at(2024, 3, 15, 12, 0)
        run(ledger.entries.add_entry(contact.id, "999", "credit", created_at=at(2024, 2, 29, 23, 59)))
        run(ledger.entries.add_entry(contact.id, "300", "credit", created_at=at(2024, 3, 1)))
        run(ledger.entries.add_entry(contact.id, "120", "debit", created_at=at(2024, 3, 10)))

        assert run(ledger.balances.month_to_date_net(USER, now=now)) == Decimal("180.00")

    def test_month_boundary_follows_reporting_timezone(self, run):
        """Test that 19:00 UTC on Feb 29 is already March in India."""
        ledger = create_engine_components(
            "sqlite://",
            app_settings=AppSettings(reporting_timezone="Asia/Kolkata"),
        )
        try:
            contact = new_contact(ledger, run, "Asha", "9876543210")
            run(ledger.entries.add_entry(contact.id, "70", "credit", created_at=at(2024, 2, 29, 19, 0)))
            run(ledger.entries.add_entry(contact.id, "5", "credit", created_at=at(2024, 2, 29, 18, 0)))

            net = run(ledger.balances.month_to_date_net(USER, now=at(2024, 3, 2)))
            assert net == Decimal("70.00")
        finally:
            ledger.close()

    def test_month_start_reads_naive_now_as_utc(self, ledger):
        start = ledger.balances.month_start(datetime(2024, 3, 1, 0, 30))
        assert start == at(2024, 3, 1)

    def test_dashboard_metrics(self, ledger, run):
        asha = new_contact(ledger, run, "Asha", "9876543210")
        ravi = new_contact(ledger, run, "Ravi", "9123456780")
        now = datetime.now(timezone.utc)
        run(ledger.entries.add_entry(asha.id, "400", "credit", created_at=now))
        run(ledger.entries.add_entry(ravi.id, "50", "debit", created_at=now))

        metrics = run(ledger.balances.dashboard_metrics(USER, now=now))

        assert metrics.total_customers == 2
        assert metrics.total_balance == Decimal("350.00")
        assert metrics.pending_due == Decimal("400.00")
        assert metrics.this_month_net == Decimal("350.00")
