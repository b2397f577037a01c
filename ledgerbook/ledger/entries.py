"""
Ledger Entry Store

Records credits and debits against contacts.

DESIGN DECISION: Amounts are parsed into Decimal BEFORE anything is
written, and the parsed value is the only thing stored. A malformed
amount never reaches the database, so it can never poison a balance.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from ledgerbook.activity import ActivityLogger
from ledgerbook.config import AppSettings, get_settings
from ledgerbook.models.ledger import (
    DateRange,
    LedgerEntry,
    RecentTransaction,
    ensure_utc,
    utc_now,
)
from ledgerbook.services.storage import (
    EntryStorageInterface,
    NotFoundError,
    StorageError,
)
from ledgerbook.validation import LedgerValidator, ValidationError


class LedgerEntryService:
    """
    Adds, overwrites, deletes and lists ledger entries.

    Entries are append-style records of money movement. Edits overwrite
    the whole entry (including a backdated created_at) and stamp
    updated_at.
    """

    def __init__(
        self,
        storage: EntryStorageInterface,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().app
        self._validator = validator or LedgerValidator(self._settings)
        self._activity = activity_logger or ActivityLogger()

    async def _parse(
        self,
        amount: object,
        entry_type: object,
        note: Optional[str],
        correlation_id: Optional[UUID],
    ):
        try:
            return (
                self._validator.parse_amount(amount),
                self._validator.parse_entry_type(entry_type),
                self._validator.clean_note(note),
            )
        except ValidationError as e:
            await self._activity.log_validation_failed(
                "entry",
                e.to_dicts(),
                correlation_id=correlation_id,
            )
            raise

    async def add_entry(
        self,
        contact_id: UUID,
        amount: object,
        type: object,
        note: Optional[str] = None,
        created_at: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """
        Record a credit or debit against a live contact.

        Args:
            contact_id: The contact
            amount: Positive amount with at most two decimals
            type: "credit" or "debit"
            note: Optional free text; blank means none
            created_at: Transaction time, defaults to now

        Raises:
            InvalidAmountError: amount unparsable, non-positive, too
                precise or above the configured ceiling
            InvalidEntryTypeError: type is not credit/debit
            NotFoundError: contact unknown or deleted
        """
        amount, entry_type, note = await self._parse(amount, type, note, correlation_id)

        try:
            contact_key = contact_id if isinstance(contact_id, UUID) else UUID(str(contact_id))
        except ValueError:
            raise NotFoundError(f"Contact not found: {contact_id}") from None

        entry = LedgerEntry(
            contact_id=contact_key,
            amount=amount,
            type=entry_type,
            note=note,
            created_at=ensure_utc(created_at) if created_at else utc_now(),
        )

        try:
            entry = await self._storage.insert_entry(entry)
        except NotFoundError:
            raise
        except StorageError as e:
            await self._activity.log_storage_error(
                "add_entry", str(e), correlation_id=correlation_id,
            )
            raise

        await self._activity.log_entry_added(
            entry_id=entry.id,
            contact_id=entry.contact_id,
            entry_type=entry.type.value,
            amount=str(entry.amount),
            correlation_id=correlation_id,
        )
        return entry

    async def get_entry(self, entry_id: UUID) -> LedgerEntry:
        entry = await self._storage.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    async def update_entry(
        self,
        entry_id: UUID,
        amount: object,
        type: object,
        note: Optional[str],
        created_at: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        """
        Overwrite every editable field of an entry.

        created_at may move the entry backwards or forwards in time.
        Concurrent edits are last-write-wins.
        """
        amount, entry_type, note = await self._parse(amount, type, note, correlation_id)
        existing = await self.get_entry(entry_id)

        entry = existing.model_copy(update={
            "amount": amount,
            "type": entry_type,
            "note": note,
            "created_at": ensure_utc(created_at),
            "updated_at": utc_now(),
        })

        try:
            entry = await self._storage.update_entry(entry)
        except NotFoundError:
            raise
        except StorageError as e:
            await self._activity.log_storage_error(
                "update_entry", str(e), entity_id=existing.id, correlation_id=correlation_id,
            )
            raise

        await self._activity.log_entry_updated(
            entry_id=entry.id,
            entry_type=entry.type.value,
            amount=str(entry.amount),
            correlation_id=correlation_id,
        )
        return entry

    async def delete_entry(
        self,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Hard-delete an entry together with its transaction tag links."""
        try:
            await self._storage.delete_entry(entry_id)
        except NotFoundError:
            raise
        except StorageError as e:
            await self._activity.log_storage_error(
                "delete_entry", str(e), correlation_id=correlation_id,
            )
            raise

        await self._activity.log_entry_deleted(
            entry_id=entry_id,
            correlation_id=correlation_id,
        )

    async def list_entries(
        self,
        contact_id: UUID,
        date_range: Optional[DateRange] = None,
        tag_id: Optional[UUID] = None,
    ) -> list[LedgerEntry]:
        """
        A contact's entries, newest first.

        Both range bounds are inclusive and optional. Whole-day bounds are
        read in the reporting timezone.
        """
        date_from = date_to = None
        if date_range is not None:
            tz = self._settings.timezone
            date_from = date_range.lower_bound(tz)
            date_to = date_range.upper_bound(tz)

        return await self._storage.list_entries(
            contact_id,
            date_from=date_from,
            date_to=date_to,
            tag_id=tag_id,
        )

    async def recent_entries(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[RecentTransaction]:
        """Newest entries across all live contacts, for the activity feed."""
        return await self._storage.recent_entries(
            user_id,
            limit or self._settings.recent_transactions_limit,
        )
