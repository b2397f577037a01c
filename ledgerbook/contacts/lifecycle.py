"""
Contact Lifecycle Manager

DESIGN DECISION: Contacts are never physically deleted.
Deleting sets deleted_at; the ledger entries stay where they are. Adding
a contact whose phone matches a deleted one brings the old record back
(same id, same history) instead of starting a second ledger for the same
person.

Flow of create-or-restore:
1. Validate name and phone (nothing is written on failure)
2. Look up the phone among the user's contacts, deleted ones included
3. Insert, restore, or reject as a duplicate
4. Link the requested contact tags (best effort, see below)

The contact write in step 3 is authoritative. A failure in step 4 is
reported as a warning on the result and NOT rolled back.
"""

from typing import Optional
from uuid import UUID

from ledgerbook.activity import ActivityLogger
from ledgerbook.models.ledger import (
    Contact,
    ContactSaveResult,
    ContactWithTags,
    utc_now,
)
from ledgerbook.services.storage import (
    ContactStorageInterface,
    DuplicatePhoneError,
    NotFoundError,
    StorageError,
)
from ledgerbook.tags import TagManager
from ledgerbook.validation import LedgerValidator, ValidationError


class ContactLifecycleManager:
    """
    Create, restore, edit and soft-delete contacts.

    Usage:
        result = await manager.create_or_restore_contact(
            user_id, "Asha Traders", "+91 98765 43210", tag_ids=[wholesale.id]
        )
        if result.has_warnings:
            ...  # contact saved, tags not linked
    """

    def __init__(
        self,
        storage: ContactStorageInterface,
        contact_tags: TagManager,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self._storage = storage
        self._tags = contact_tags
        self._validator = validator or LedgerValidator()
        self._activity = activity_logger or ActivityLogger()

    async def _validate(
        self,
        name: object,
        phone: object,
        correlation_id: Optional[UUID],
    ) -> tuple[str, str]:
        try:
            return self._validator.validate_contact(name, phone)
        except ValidationError as e:
            await self._activity.log_validation_failed(
                "contact",
                e.to_dicts(),
                correlation_id=correlation_id,
            )
            raise

    async def create_or_restore_contact(
        self,
        user_id: str,
        name: str,
        phone: str,
        tag_ids: Optional[list[UUID]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ContactSaveResult:
        """
        Add a contact, or bring back a deleted one with the same phone.

        Args:
            user_id: Owner
            name: Display name
            phone: Phone in any common notation
            tag_ids: Desired contact tags. None leaves existing links alone;
                an empty list clears them.

        Raises:
            InvalidNameError / InvalidPhoneError: nothing was written
            DuplicatePhoneError: a live contact already has this phone
        """
        name, phone = await self._validate(name, phone, correlation_id)

        try:
            existing = await self._storage.find_by_phone(user_id, phone)

            if existing is None:
                contact = await self._storage.insert_contact(
                    Contact(user_id=user_id, name=name, phone=phone)
                )
                restored = False
            elif not existing.is_deleted:
                raise DuplicatePhoneError(f"A contact with phone {phone} already exists")
            else:
                contact = await self._storage.restore_contact(existing.id, name)
                restored = True

        except DuplicatePhoneError:
            await self._activity.log_duplicate_phone(
                user_id=user_id,
                correlation_id=correlation_id,
            )
            raise
        except StorageError as e:
            await self._activity.log_storage_error(
                "create_or_restore_contact", str(e), correlation_id=correlation_id,
            )
            raise

        await self._activity.log_contact_saved(
            contact_id=contact.id,
            user_id=user_id,
            restored=restored,
            correlation_id=correlation_id,
        )

        warnings = []
        if tag_ids is not None:
            try:
                await self._tags.replace_associations(
                    contact.id, tag_ids, correlation_id=correlation_id,
                )
            except StorageError as e:
                warnings.append(f"Contact saved, but tags could not be linked: {e}")
                await self._activity.log_tag_link_failed(
                    contact_id=contact.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )

        return ContactSaveResult(contact=contact, restored=restored, warnings=warnings)

    async def update_contact(
        self,
        contact_id: UUID,
        name: str,
        phone: str,
        correlation_id: Optional[UUID] = None,
    ) -> Contact:
        """
        Edit name and phone of a live contact.

        Raises:
            InvalidNameError / InvalidPhoneError: nothing was written
            NotFoundError: unknown or deleted contact
            DuplicatePhoneError: another live contact of the user has the phone
        """
        name, phone = await self._validate(name, phone, correlation_id)
        existing = await self.get_contact(contact_id)
        if existing.is_deleted:
            raise NotFoundError(f"Contact not found: {contact_id}")

        try:
            if await self._storage.phone_in_use(existing.user_id, phone, existing.id):
                raise DuplicatePhoneError(f"A contact with phone {phone} already exists")
            contact = await self._storage.update_contact(existing.id, name, phone)
        except DuplicatePhoneError:
            await self._activity.log_duplicate_phone(
                user_id=existing.user_id,
                contact_id=existing.id,
                correlation_id=correlation_id,
            )
            raise
        except NotFoundError:
            raise
        except StorageError as e:
            await self._activity.log_storage_error(
                "update_contact", str(e), entity_id=existing.id, correlation_id=correlation_id,
            )
            raise

        await self._activity.log_contact_updated(contact.id, correlation_id=correlation_id)
        return contact

    async def soft_delete_contact(
        self,
        contact_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Tombstone a contact. Deleting twice is harmless.

        Entries and tag links are left untouched.
        """
        try:
            newly_deleted = await self._storage.soft_delete_contact(contact_id, utc_now())
        except NotFoundError:
            raise
        except StorageError as e:
            await self._activity.log_storage_error(
                "soft_delete_contact", str(e), correlation_id=correlation_id,
            )
            raise

        await self._activity.log_contact_deleted(
            contact_id=contact_id,
            already_deleted=not newly_deleted,
            correlation_id=correlation_id,
        )

    async def get_contact(self, contact_id: UUID) -> Contact:
        """Fetch a contact, deleted or not."""
        contact = await self._storage.get_contact(contact_id)
        if contact is None:
            raise NotFoundError(f"Contact not found: {contact_id}")
        return contact

    async def list_contacts(
        self,
        user_id: str,
        tag_id: Optional[UUID] = None,
        search: Optional[str] = None,
    ) -> list[ContactWithTags]:
        """Live contacts, newest first, with their tags."""
        return await self._storage.list_contacts(user_id, tag_id=tag_id, search=search)
