"""
Data Models Package

This package contains all Pydantic models used by the LedgerBook engine.
All data crossing the engine boundary must conform to these schemas.
"""

from ledgerbook.models.ledger import (
    DEFAULT_TAG_COLOR,
    TAG_COLORS,
    Contact,
    ContactBalance,
    ContactSaveResult,
    ContactWithTags,
    DashboardMetrics,
    DateRange,
    EntryType,
    LedgerEntry,
    RecentTransaction,
    Tag,
    TagAssociation,
    TagNamespace,
    TagTotal,
    ValidationIssue,
    ensure_utc,
    utc_now,
)
from ledgerbook.models.activity import (
    ActivityEvent,
    ActivityEventBuilder,
    ActivityEventType,
    ActivitySeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_TAG_COLOR",
    "TAG_COLORS",
    "Contact",
    "ContactBalance",
    "ContactSaveResult",
    "ContactWithTags",
    "DashboardMetrics",
    "DateRange",
    "EntryType",
    "LedgerEntry",
    "RecentTransaction",
    "Tag",
    "TagAssociation",
    "TagNamespace",
    "TagTotal",
    "ValidationIssue",
    "ensure_utc",
    "utc_now",
    # Activity models
    "ActivityEvent",
    "ActivityEventBuilder",
    "ActivityEventType",
    "ActivitySeverity",
]
