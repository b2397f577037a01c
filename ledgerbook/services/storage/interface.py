"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap SQLite for PostgreSQL without touching business logic
2. Keep the engine services free of SQL
3. Give every backend the same error hierarchy

Every mutating method runs in ONE database transaction: it either
commits completely or leaves the store untouched and raises.

Aggregations (balances, tag totals) are part of the interface so that
backends compute them where the data lives instead of shipping rows.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledgerbook.models.ledger import (
    Contact,
    ContactBalance,
    ContactWithTags,
    LedgerEntry,
    RecentTransaction,
    Tag,
    TagAssociation,
    TagNamespace,
    TagTotal,
)


class ContactStorageInterface(ABC):
    """
    Abstract interface for contact storage.

    Contacts are soft-deleted only. (user_id, phone) is unique among
    live contacts and the backend must enforce that itself.
    """

    @abstractmethod
    async def insert_contact(self, contact: Contact) -> Contact:
        """
        Insert a new live contact.

        Raises:
            DuplicatePhoneError: a live contact of the user has this phone
        """
        pass

    @abstractmethod
    async def get_contact(self, contact_id: UUID) -> Optional[Contact]:
        """
        Retrieve a contact by id, tombstoned or not.

        Returns:
            The contact if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_phone(self, user_id: str, phone: str) -> Optional[Contact]:
        """
        Find the user's contact with this canonical phone.

        A live match wins. Otherwise the most recently deleted tombstone
        is returned, so it can be restored.
        """
        pass

    @abstractmethod
    async def phone_in_use(
        self,
        user_id: str,
        phone: str,
        exclude_contact_id: Optional[UUID] = None,
    ) -> bool:
        """Check whether another live contact of the user has this phone."""
        pass

    @abstractmethod
    async def restore_contact(self, contact_id: UUID, name: str) -> Contact:
        """
        Clear deleted_at and overwrite the name, keeping id and created_at.

        Raises:
            NotFoundError: no such contact
            DuplicatePhoneError: the phone was taken by a live contact
        """
        pass

    @abstractmethod
    async def update_contact(self, contact_id: UUID, name: str, phone: str) -> Contact:
        """
        Overwrite name and phone of a live contact.

        Raises:
            NotFoundError: unknown or tombstoned contact
            DuplicatePhoneError: another live contact has this phone
        """
        pass

    @abstractmethod
    async def soft_delete_contact(self, contact_id: UUID, deleted_at: datetime) -> bool:
        """
        Tombstone a contact.

        Returns:
            True if the contact was live, False if it was already deleted

        Raises:
            NotFoundError: no such contact
        """
        pass

    @abstractmethod
    async def list_contacts(
        self,
        user_id: str,
        tag_id: Optional[UUID] = None,
        search: Optional[str] = None,
    ) -> list[ContactWithTags]:
        """
        List live contacts, newest first, with their tags.

        Args:
            user_id: Owner of the contacts
            tag_id: Only contacts carrying this contact tag
            search: Case-insensitive substring of name or phone
        """
        pass

    @abstractmethod
    async def count_contacts(self, user_id: str) -> int:
        """Number of live contacts of the user."""
        pass


class EntryStorageInterface(ABC):
    """
    Abstract interface for ledger entry storage.

    Entries are hard-deleted; their transaction tag rows go with them.
    """

    @abstractmethod
    async def insert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Insert an entry.

        Raises:
            NotFoundError: the contact does not exist or is tombstoned
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        pass

    @abstractmethod
    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Overwrite amount, type, note, created_at and updated_at.

        Raises:
            NotFoundError: no such entry
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> None:
        """
        Delete an entry and its transaction tag rows in one commit.

        Raises:
            NotFoundError: no such entry
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        contact_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        tag_id: Optional[UUID] = None,
    ) -> list[LedgerEntry]:
        """
        List a contact's entries, newest first.

        Args:
            contact_id: The contact
            date_from: Inclusive lower bound on created_at (UTC)
            date_to: Inclusive upper bound on created_at (UTC)
            tag_id: Only entries carrying this transaction tag
        """
        pass

    @abstractmethod
    async def recent_entries(self, user_id: str, limit: int) -> list[RecentTransaction]:
        """Newest entries across the user's live contacts."""
        pass


class TagStorageInterface(ABC):
    """
    Abstract interface for one tag namespace.

    An instance serves either contact tags or transaction tags, never
    both. Ids of the other namespace are simply not found.
    """

    @property
    @abstractmethod
    def namespace(self) -> TagNamespace:
        pass

    @abstractmethod
    async def list_tags(self, user_id: str) -> list[Tag]:
        """All tags of the user, ordered by name."""
        pass

    @abstractmethod
    async def insert_tag(self, tag: Tag) -> Tag:
        pass

    @abstractmethod
    async def get_tag(self, tag_id: UUID) -> Optional[Tag]:
        pass

    @abstractmethod
    async def update_tag(self, tag_id: UUID, name: str, color: str) -> Tag:
        """
        Raises:
            NotFoundError: no such tag
        """
        pass

    @abstractmethod
    async def delete_tag(self, tag_id: UUID) -> int:
        """
        Delete all association rows of the tag, then the tag, in one commit.

        Returns:
            Number of association rows removed

        Raises:
            NotFoundError: no such tag
        """
        pass

    @abstractmethod
    async def tags_for(self, entity_id: UUID) -> list[Tag]:
        """Tags linked to a contact or transaction, ordered by name."""
        pass

    @abstractmethod
    async def associations_for(self, entity_id: UUID) -> list[TagAssociation]:
        """Raw link rows of a contact or transaction, oldest link first."""
        pass

    @abstractmethod
    async def replace_associations(
        self,
        entity_id: UUID,
        tag_ids: list[UUID],
    ) -> tuple[int, int]:
        """
        Make the entity's tag set exactly tag_ids, in one transaction.

        Returns:
            (added, removed) row counts

        Raises:
            NotFoundError: unknown entity, unknown tag, or a tag owned by
                another user. Nothing is applied in that case.
        """
        pass

    @abstractmethod
    async def add_association(self, entity_id: UUID, tag_id: UUID) -> bool:
        """
        Link one tag. Returns False when the link already existed.
        """
        pass

    @abstractmethod
    async def remove_association(self, entity_id: UUID, tag_id: UUID) -> bool:
        """
        Unlink one tag. Returns False when there was no link.
        """
        pass

    @abstractmethod
    async def usage_count(self, tag_id: UUID) -> int:
        """Number of distinct entities currently linked to the tag."""
        pass


class BalanceStorageInterface(ABC):
    """
    Abstract interface for balance aggregation.

    Portfolio figures cover live contacts only.
    """

    @abstractmethod
    async def contact_totals(
        self,
        contact_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> ContactBalance:
        """
        Credit and debit totals of one contact.

        Raises:
            NotFoundError: no such contact
        """
        pass

    @abstractmethod
    async def tag_totals(self, contact_id: UUID) -> list[TagTotal]:
        """Signed total per transaction tag of one contact's entries."""
        pass

    @abstractmethod
    async def portfolio_balance(self, user_id: str) -> Decimal:
        pass

    @abstractmethod
    async def pending_due(self, user_id: str) -> Decimal:
        """Sum of the positive contact balances only."""
        pass

    @abstractmethod
    async def net_since(self, user_id: str, since: datetime) -> Decimal:
        """Signed total of entries created at or after since."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicatePhoneError(StorageError):
    """A live contact of the same user already has this phone number."""
    pass


class TransportError(StorageError):
    """Could not reach the storage backend."""
    pass
