"""
Activity Models for LedgerBook

Every mutation of the ledger, and every failure while mutating it,
produces one structured ActivityEvent. Events go to the local structured
log; they are not persisted as an audit trail.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledgerbook.models.ledger import utc_now


class ActivityEventType(str, Enum):
    """
    Types of events we log.

    One per engine mutation, plus the failure paths.
    """
    # Contacts
    CONTACT_CREATED = "contact_created"
    CONTACT_RESTORED = "contact_restored"
    CONTACT_UPDATED = "contact_updated"
    CONTACT_DELETED = "contact_deleted"
    DUPLICATE_PHONE_REJECTED = "duplicate_phone_rejected"

    # Ledger entries
    ENTRY_ADDED = "entry_added"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Tags
    TAG_CREATED = "tag_created"
    TAG_UPDATED = "tag_updated"
    TAG_DELETED = "tag_deleted"
    TAGS_REPLACED = "tags_replaced"
    TAG_LINK_FAILED = "tag_link_failed"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    STORAGE_ERROR = "storage_error"


class ActivitySeverity(str, Enum):
    """Severity level for activity events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ActivityEvent(BaseModel):
    """
    A single activity event.

    Every engine mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: ActivityEventType
    severity: ActivitySeverity = Field(default=ActivitySeverity.INFO)

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'contact', 'entry', 'tag')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking related events of one caller action
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class ActivityEventBuilder:
    """
    Helper class to build activity events with common patterns.

    Usage:
        event = ActivityEventBuilder.contact_created(contact_id, user_id)
        event = ActivityEventBuilder.entry_deleted(entry_id, contact_id)
    """

    @staticmethod
    def contact_created(
        contact_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.CONTACT_CREATED,
            entity_type="contact",
            entity_id=contact_id,
            correlation_id=correlation_id,
            description="Contact created",
            details={"user_id": user_id},
        )

    @staticmethod
    def contact_restored(
        contact_id: UUID,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.CONTACT_RESTORED,
            entity_type="contact",
            entity_id=contact_id,
            correlation_id=correlation_id,
            description="Deleted contact restored on re-add",
            details={"user_id": user_id},
        )

    @staticmethod
    def contact_updated(
        contact_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.CONTACT_UPDATED,
            entity_type="contact",
            entity_id=contact_id,
            correlation_id=correlation_id,
            description="Contact updated",
        )

    @staticmethod
    def contact_deleted(
        contact_id: UUID,
        already_deleted: bool,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.CONTACT_DELETED,
            entity_type="contact",
            entity_id=contact_id,
            correlation_id=correlation_id,
            description=(
                "Contact already deleted" if already_deleted else "Contact soft-deleted"
            ),
            details={"already_deleted": already_deleted},
        )

    @staticmethod
    def duplicate_phone_rejected(
        user_id: str,
        contact_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.DUPLICATE_PHONE_REJECTED,
            severity=ActivitySeverity.WARNING,
            entity_type="contact",
            entity_id=contact_id,
            correlation_id=correlation_id,
            description="Phone number already used by another contact",
            details={"user_id": user_id},
        )

    @staticmethod
    def entry_added(
        entry_id: UUID,
        contact_id: UUID,
        entry_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ENTRY_ADDED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"{entry_type.capitalize()} of {amount} recorded",
            details={
                "contact_id": str(contact_id),
                "type": entry_type,
                "amount": amount,
            },
        )

    @staticmethod
    def entry_updated(
        entry_id: UUID,
        entry_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Ledger entry overwritten",
            details={"type": entry_type, "amount": amount},
        )

    @staticmethod
    def entry_deleted(
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Ledger entry deleted",
        )

    @staticmethod
    def tag_created(
        tag_id: UUID,
        namespace: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.TAG_CREATED,
            entity_type=f"{namespace}_tag",
            entity_id=tag_id,
            correlation_id=correlation_id,
            description=f"Tag created: {name}",
            details={"name": name},
        )

    @staticmethod
    def tag_updated(
        tag_id: UUID,
        namespace: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.TAG_UPDATED,
            entity_type=f"{namespace}_tag",
            entity_id=tag_id,
            correlation_id=correlation_id,
            description="Tag updated",
        )

    @staticmethod
    def tag_deleted(
        tag_id: UUID,
        namespace: str,
        unlinked: int,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.TAG_DELETED,
            entity_type=f"{namespace}_tag",
            entity_id=tag_id,
            correlation_id=correlation_id,
            description=f"Tag deleted, {unlinked} links removed",
            details={"unlinked": unlinked},
        )

    @staticmethod
    def tags_replaced(
        entity_id: UUID,
        namespace: str,
        added: int,
        removed: int,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.TAGS_REPLACED,
            entity_type=namespace,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Tags replaced: +{added} -{removed}",
            details={"added": added, "removed": removed},
        )

    @staticmethod
    def tag_link_failed(
        contact_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.TAG_LINK_FAILED,
            severity=ActivitySeverity.WARNING,
            entity_type="contact",
            entity_id=contact_id,
            correlation_id=correlation_id,
            description="Contact saved but its tags could not be linked",
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.VALIDATION_FAILED,
            severity=ActivitySeverity.WARNING,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.STORAGE_ERROR,
            severity=ActivitySeverity.ERROR,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )
