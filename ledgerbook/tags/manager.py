"""
Tag Store and Tag Association Manager

DESIGN DECISION: One TagManager per namespace. Contact tags and
transaction tags behave identically but never mix, so the namespace is
fixed when the manager is built instead of being passed on every call.

Association edits are replace-all: the caller hands over the full
desired tag set and the store diffs it against the current one inside a
single transaction. Either the whole new set is in place afterwards or
nothing changed.
"""

from typing import Optional
from uuid import UUID

from ledgerbook.activity import ActivityLogger
from ledgerbook.models.activity import ActivityEventBuilder
from ledgerbook.models.ledger import DEFAULT_TAG_COLOR, Tag, TagAssociation, TagNamespace
from ledgerbook.services.storage import (
    NotFoundError,
    StorageError,
    TagStorageInterface,
)
from ledgerbook.validation import LedgerValidator, ValidationError


class TagManager:
    """
    CRUD for one tag namespace plus its many-to-many links.

    Usage:
        contact_tags = TagManager(SqlTagStorage(TagNamespace.CONTACT, db))
        tag = await contact_tags.create_tag(user_id, "Wholesale")
        await contact_tags.replace_associations(contact.id, [tag.id])
    """

    def __init__(
        self,
        storage: TagStorageInterface,
        validator: Optional[LedgerValidator] = None,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LedgerValidator()
        self._activity = activity_logger or ActivityLogger()

    @property
    def namespace(self) -> TagNamespace:
        return self._storage.namespace

    async def _validate(
        self,
        name: object,
        color: object,
        correlation_id: Optional[UUID],
    ) -> tuple[str, str]:
        try:
            return self._validator.validate_tag(name, color)
        except ValidationError as e:
            await self._activity.log_validation_failed(
                f"{self.namespace.value}_tag",
                e.to_dicts(),
                correlation_id=correlation_id,
            )
            raise

    async def _log_storage_failure(
        self,
        operation: str,
        error: StorageError,
        entity_id: Optional[UUID],
        correlation_id: Optional[UUID],
    ) -> None:
        if not isinstance(error, NotFoundError):
            await self._activity.log_storage_error(
                operation,
                str(error),
                entity_id=entity_id,
                correlation_id=correlation_id,
            )

    # Tag store -----------------------------------------------------------

    async def list_tags(self, user_id: str) -> list[Tag]:
        """All of the user's tags in this namespace, ordered by name."""
        return await self._storage.list_tags(user_id)

    async def get_tag(self, tag_id: UUID) -> Tag:
        tag = await self._storage.get_tag(tag_id)
        if tag is None:
            raise NotFoundError(f"Tag not found: {tag_id}")
        return tag

    async def create_tag(
        self,
        user_id: str,
        name: str,
        color: str = DEFAULT_TAG_COLOR,
        correlation_id: Optional[UUID] = None,
    ) -> Tag:
        """
        Create a tag. Names are not unique.

        Raises:
            InvalidTagError: empty name or color
        """
        name, color = await self._validate(name, color, correlation_id)
        tag = Tag(user_id=user_id, namespace=self.namespace, name=name, color=color)

        try:
            tag = await self._storage.insert_tag(tag)
        except StorageError as e:
            await self._log_storage_failure("create_tag", e, tag.id, correlation_id)
            raise

        await self._activity.log(ActivityEventBuilder.tag_created(
            tag_id=tag.id,
            namespace=self.namespace.value,
            name=tag.name,
            correlation_id=correlation_id,
        ))
        return tag

    async def update_tag(
        self,
        tag_id: UUID,
        name: str,
        color: str,
        correlation_id: Optional[UUID] = None,
    ) -> Tag:
        name, color = await self._validate(name, color, correlation_id)

        try:
            tag = await self._storage.update_tag(tag_id, name, color)
        except StorageError as e:
            await self._log_storage_failure("update_tag", e, None, correlation_id)
            raise

        await self._activity.log(ActivityEventBuilder.tag_updated(
            tag_id=tag.id,
            namespace=self.namespace.value,
            correlation_id=correlation_id,
        ))
        return tag

    async def delete_tag(
        self,
        tag_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete a tag and every link to it in one commit.

        Callers that want to warn first should ask usage_count().
        """
        try:
            unlinked = await self._storage.delete_tag(tag_id)
        except StorageError as e:
            await self._log_storage_failure("delete_tag", e, None, correlation_id)
            raise

        await self._activity.log(ActivityEventBuilder.tag_deleted(
            tag_id=tag_id,
            namespace=self.namespace.value,
            unlinked=unlinked,
            correlation_id=correlation_id,
        ))

    # Associations --------------------------------------------------------

    async def list_tags_for(self, entity_id: UUID) -> list[Tag]:
        """Tags linked to a contact or transaction, ordered by name."""
        return await self._storage.tags_for(entity_id)

    async def list_associations(self, entity_id: UUID) -> list[TagAssociation]:
        """Link rows of a contact or transaction, with the time each tag was attached."""
        return await self._storage.associations_for(entity_id)

    async def replace_associations(
        self,
        entity_id: UUID,
        tag_ids: list[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Make the entity's tag set exactly tag_ids.

        Duplicate ids are collapsed. An empty list clears all links.

        Raises:
            NotFoundError: unknown entity or tag, or a tag of another
                user. Nothing is changed in that case.
            StorageError: the transaction failed and was rolled back
        """
        try:
            added, removed = await self._storage.replace_associations(entity_id, list(tag_ids))
        except StorageError as e:
            await self._log_storage_failure("replace_associations", e, None, correlation_id)
            raise

        if added or removed:
            await self._activity.log(ActivityEventBuilder.tags_replaced(
                entity_id=entity_id,
                namespace=self.namespace.value,
                added=added,
                removed=removed,
                correlation_id=correlation_id,
            ))

    async def add_association(self, entity_id: UUID, tag_id: UUID) -> bool:
        """Link one tag. Re-adding an existing link is a no-op returning False."""
        return await self._storage.add_association(entity_id, tag_id)

    async def remove_association(self, entity_id: UUID, tag_id: UUID) -> bool:
        """Unlink one tag. Returns False when there was nothing to remove."""
        return await self._storage.remove_association(entity_id, tag_id)

    async def usage_count(self, tag_id: UUID) -> int:
        """
        Number of distinct entities linked to the tag right now.

        Raises:
            NotFoundError: no such tag
        """
        await self.get_tag(tag_id)
        return await self._storage.usage_count(tag_id)
