"""
Activity Logger

Every mutation the engine performs is logged as one structured event.
This gives:
1. Traceability of what each caller action changed
2. Debugging capability when a write is rejected
3. Visibility of partial failures (tags not linked after a contact save)

The activity logger:
- Is async so it can sit on the same call path as the engine operations
- Logs locally only; persisting a history of changes is not a feature
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledgerbook.models.activity import (
    ActivityEvent,
    ActivityEventBuilder,
    ActivitySeverity,
)


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class ActivityLogger:
    """
    Central activity logging service.

    Routes each event to the structured logger at the level matching
    its severity.
    """

    def __init__(self, logger_name: str = "ledgerbook"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: ActivityEvent) -> None:
        """Log an activity event."""
        log_dict = event.to_log_dict()

        if event.severity == ActivitySeverity.ERROR:
            self._logger.error("activity_event", **log_dict)
        elif event.severity == ActivitySeverity.WARNING:
            self._logger.warning("activity_event", **log_dict)
        elif event.severity == ActivitySeverity.DEBUG:
            self._logger.debug("activity_event", **log_dict)
        else:
            self._logger.info("activity_event", **log_dict)

    async def log_contact_saved(
        self,
        contact_id: UUID,
        user_id: str,
        restored: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a contact insert or restore."""
        if restored:
            event = ActivityEventBuilder.contact_restored(
                contact_id=contact_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        else:
            event = ActivityEventBuilder.contact_created(
                contact_id=contact_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_contact_updated(
        self,
        contact_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.contact_updated(
            contact_id=contact_id,
            correlation_id=correlation_id,
        ))

    async def log_contact_deleted(
        self,
        contact_id: UUID,
        already_deleted: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.contact_deleted(
            contact_id=contact_id,
            already_deleted=already_deleted,
            correlation_id=correlation_id,
        ))

    async def log_duplicate_phone(
        self,
        user_id: str,
        contact_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.duplicate_phone_rejected(
            user_id=user_id,
            contact_id=contact_id,
            correlation_id=correlation_id,
        ))

    async def log_entry_added(
        self,
        entry_id: UUID,
        contact_id: UUID,
        entry_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.entry_added(
            entry_id=entry_id,
            contact_id=contact_id,
            entry_type=entry_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_entry_updated(
        self,
        entry_id: UUID,
        entry_type: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.entry_updated(
            entry_id=entry_id,
            entry_type=entry_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_entry_deleted(
        self,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.entry_deleted(
            entry_id=entry_id,
            correlation_id=correlation_id,
        ))

    async def log_tag_link_failed(
        self,
        contact_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log tags that could not be linked after a successful contact write."""
        await self.log(ActivityEventBuilder.tag_link_failed(
            contact_id=contact_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        entity_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.validation_failed(
            entity_type=entity_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(ActivityEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a caller action (e.g., saving a contact form)
    and pass it through all subsequent operations.
    """
    return uuid4()
