"""Tests for the ledger entry store."""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from ledgerbook.models.ledger import DateRange, EntryType
from ledgerbook.services.storage import NotFoundError
from ledgerbook.validation import InvalidAmountError, InvalidEntryTypeError

USER = "user-1"


def at(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestAddEntry:
    """Tests for add_entry."""

    def test_add_credit(self, ledger, run, contact):
        entry = run(ledger.entries.add_entry(contact.id, "500", "credit", note="Rice bags"))
        assert entry.amount == Decimal("500.00")
        assert entry.type is EntryType.CREDIT
        assert entry.note == "Rice bags"
        assert entry.updated_at is None
        assert run(ledger.entries.get_entry(entry.id)) == entry

    def test_blank_note_stored_as_none(self, ledger, run, contact):
        entry = run(ledger.entries.add_entry(contact.id, "10", "debit", note="   "))
        assert run(ledger.entries.get_entry(entry.id)).note is None

    @pytest.mark.parametrize("amount", ["abc", "0", "-5", "1.005", "NaN"])
    def test_invalid_amount_writes_nothing(self, ledger, run, contact, amount):
        with pytest.raises(InvalidAmountError):
            run(ledger.entries.add_entry(contact.id, amount, "credit"))
        assert run(ledger.entries.list_entries(contact.id)) == []

    def test_invalid_type(self, ledger, run, contact):
        with pytest.raises(InvalidEntryTypeError):
            run(ledger.entries.add_entry(contact.id, "10", "refund"))

    def test_unknown_contact(self, ledger, run):
        with pytest.raises(NotFoundError):
            run(ledger.entries.add_entry(uuid4(), "10", "credit"))
        with pytest.raises(NotFoundError):
            run(ledger.entries.add_entry("not-a-uuid", "10", "credit"))

    def test_deleted_contact(self, ledger, run, contact):
        run(ledger.contacts.soft_delete_contact(contact.id))
        with pytest.raises(NotFoundError):
            run(ledger.entries.add_entry(contact.id, "10", "credit"))

    def test_exact_decimal_storage(self, ledger, run, contact):
        """Test that 0.1 + 0.2 is exactly 0.30 once stored."""
        run(ledger.entries.add_entry(contact.id, 0.1, "credit"))
        run(ledger.entries.add_entry(contact.id, 0.2, "credit"))
        balance = run(ledger.balances.contact_balance(contact.id))
        assert balance.total_credit == Decimal("0.30")


class TestUpdateEntry:
    """Tests for update_entry."""

    def test_full_overwrite_with_backdate(self, ledger, run, contact):
        entry = run(ledger.entries.add_entry(contact.id, "100", "credit", note="old"))
        backdated = at(2024, 1, 5, 9, 0)

        updated = run(ledger.entries.update_entry(entry.id, "75.50", "debit", "new", backdated))

        assert updated.id == entry.id
        assert updated.contact_id == contact.id
        assert updated.amount == Decimal("75.50")
        assert updated.type is EntryType.DEBIT
        assert updated.note == "new"
        assert updated.created_at == backdated
        assert updated.updated_at is not None
        assert run(ledger.entries.get_entry(entry.id)) == updated

    def test_invalid_update_keeps_entry(self, ledger, run, contact):
        entry = run(ledger.entries.add_entry(contact.id, "100", "credit"))
        with pytest.raises(InvalidAmountError):
            run(ledger.entries.update_entry(entry.id, "-1", "credit", None, entry.created_at))
        assert run(ledger.entries.get_entry(entry.id)).amount == Decimal("100.00")

    def test_update_unknown_entry(self, ledger, run):
        with pytest.raises(NotFoundError):
            run(ledger.entries.update_entry(uuid4(), "1", "credit", None, at(2024, 1, 1)))


class TestDeleteEntry:
    """Tests for delete_entry."""

    def test_delete_restores_balance_and_unlinks_tags(self, ledger, run, contact):
        """Test that deleting an entry undoes its effect on the balance."""
        run(ledger.entries.add_entry(contact.id, "100", "credit"))
        before = run(ledger.balances.contact_balance(contact.id)).balance

        food = run(ledger.transaction_tags.create_tag(USER, "Food"))
        entry = run(ledger.entries.add_entry(contact.id, "30", "debit"))
        run(ledger.transaction_tags.replace_associations(entry.id, [food.id]))
        assert run(ledger.balances.contact_balance(contact.id)).balance == Decimal("70.00")

        run(ledger.entries.delete_entry(entry.id))

        assert run(ledger.balances.contact_balance(contact.id)).balance == before
        assert run(ledger.transaction_tags.usage_count(food.id)) == 0
        with pytest.raises(NotFoundError):
            run(ledger.entries.get_entry(entry.id))

    def test_delete_unknown_entry(self, ledger, run):
        with pytest.raises(NotFoundError):
            run(ledger.entries.delete_entry(uuid4()))


class TestListEntries:
    """Tests for list_entries ordering and filters."""

    def test_newest_first(self, ledger, run, contact):
        old = run(ledger.entries.add_entry(contact.id, "1", "credit", created_at=at(2024, 1, 1)))
        new = run(ledger.entries.add_entry(contact.id, "2", "credit", created_at=at(2024, 3, 1)))
        mid = run(ledger.entries.add_entry(contact.id, "3", "debit", created_at=at(2024, 2, 1)))

        listed = run(ledger.entries.list_entries(contact.id))
        assert [e.id for e in listed] == [new.id, mid.id, old.id]

    def test_date_range_start(self, ledger, run, contact):
        """Test that entries before the range start are excluded."""
        run(ledger.entries.add_entry(contact.id, "10", "credit", created_at=at(2024, 1, 5)))
        feb = run(ledger.entries.add_entry(contact.id, "20", "credit", created_at=at(2024, 2, 10)))

        listed = run(ledger.entries.list_entries(
            contact.id, DateRange(start=date(2024, 2, 1)),
        ))
        assert [e.id for e in listed] == [feb.id]

    def test_date_range_end_includes_whole_day(self, ledger, run, contact):
        late = run(ledger.entries.add_entry(
            contact.id, "10", "credit", created_at=at(2024, 2, 10, 23, 59, 59),
        ))
        run(ledger.entries.add_entry(contact.id, "10", "credit", created_at=at(2024, 2, 11)))

        listed = run(ledger.entries.list_entries(
            contact.id, DateRange(start=date(2024, 2, 10), end=date(2024, 2, 10)),
        ))
        assert [e.id for e in listed] == [late.id]

    def test_filter_by_transaction_tag(self, ledger, run, contact):
        food = run(ledger.transaction_tags.create_tag(USER, "Food"))
        tagged = run(ledger.entries.add_entry(contact.id, "10", "debit"))
        run(ledger.entries.add_entry(contact.id, "20", "debit"))
        run(ledger.transaction_tags.add_association(tagged.id, food.id))

        listed = run(ledger.entries.list_entries(contact.id, tag_id=food.id))
        assert [e.id for e in listed] == [tagged.id]


class TestRecentEntries:
    """Tests for the recent activity feed."""

    def test_recent_across_contacts(self, ledger, run, contact):
        ravi = run(ledger.contacts.create_or_restore_contact(USER, "Ravi", "9123456780")).contact
        now = datetime.now(timezone.utc)
        for minutes in range(7):
            run(ledger.entries.add_entry(
                contact.id if minutes % 2 else ravi.id,
                "10",
                "credit",
                created_at=now - timedelta(minutes=minutes),
            ))

        recent = run(ledger.entries.recent_entries(USER))

        assert len(recent) == 5
        assert recent[0].contact_name == "Ravi"
        assert recent[1].contact_name == "Asha Traders"
        assert [r.created_at for r in recent] == sorted((r.created_at for r in recent), reverse=True)

    def test_deleted_contacts_excluded(self, ledger, run, contact):
        run(ledger.entries.add_entry(contact.id, "10", "credit"))
        run(ledger.contacts.soft_delete_contact(contact.id))
        assert run(ledger.entries.recent_entries(USER, limit=10)) == []
