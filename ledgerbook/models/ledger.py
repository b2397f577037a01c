"""
Core Data Models for LedgerBook

These models define the strict schemas for everything crossing the
engine boundary. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Amounts are Decimal everywhere and never negative.
Direction lives only in EntryType, so a sign can never be applied twice.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class EntryType(str, Enum):
    """
    Direction of a ledger entry.

    CREDIT: money extended to the contact (they owe more).
    DEBIT: money received from the contact (they owe less).
    """
    CREDIT = "credit"
    DEBIT = "debit"

    @property
    def sign(self) -> int:
        return 1 if self is EntryType.CREDIT else -1


class TagNamespace(str, Enum):
    """The two independent tag namespaces."""
    CONTACT = "contact"
    TRANSACTION = "transaction"


# Palette offered by the tag pickers. Any other color string is accepted.
TAG_COLORS = (
    "#3B82F6",  # Blue
    "#10B981",  # Green
    "#F59E0B",  # Amber
    "#EF4444",  # Red
    "#8B5CF6",  # Purple
    "#EC4899",  # Pink
    "#06B6D4",  # Cyan
    "#84CC16",  # Lime
)

DEFAULT_TAG_COLOR = TAG_COLORS[0]


# =============================================================================
# CORE ENTITIES
# =============================================================================

class Contact(BaseModel):
    """
    A customer/counterparty tracked by one user.

    Contacts are never physically removed. A tombstoned contact keeps its
    id so its ledger entries stay addressable.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=20)
    created_at: datetime = Field(default_factory=utc_now)
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class LedgerEntry(BaseModel):
    """
    A single credit or debit recorded against a contact.

    created_at is the displayed transaction time and may be backdated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    contact_id: UUID
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Strictly positive amount; sign comes from type"
    )
    type: EntryType
    note: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.type.sign


class Tag(BaseModel):
    """
    A user-defined label in one of the two namespaces.

    Names are NOT unique; two tags called "Urgent" are two tags.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    namespace: TagNamespace
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default=DEFAULT_TAG_COLOR, min_length=1, max_length=20)
    created_at: datetime = Field(default_factory=utc_now)


class TagAssociation(BaseModel):
    """One row of contact_tag_map or transaction_tag_map."""

    id: UUID = Field(default_factory=uuid4)
    namespace: TagNamespace
    entity_id: UUID
    tag_id: UUID
    created_at: datetime = Field(default_factory=utc_now)


class ContactWithTags(Contact):
    """A contact together with its contact tags, as shown in listings."""

    tags: list[Tag] = Field(default_factory=list)


class ContactSaveResult(BaseModel):
    """
    Outcome of create-or-restore.

    The contact write is authoritative. Tag linking runs afterwards and may
    fail on its own; such failures are listed in warnings instead of
    undoing the contact write.
    """

    contact: Contact
    restored: bool = False
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0


# =============================================================================
# DATE RANGE FILTERS
# =============================================================================

DateBound = Union[datetime, date]


class DateRange(BaseModel):
    """
    Optional inclusive bounds on created_at.

    A bound given as a datetime is used as-is (naive means UTC).
    A bound given as a date covers that whole calendar day in the
    reporting timezone.
    """

    start: Optional[DateBound] = None
    end: Optional[DateBound] = None
    label: Optional[str] = None

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        if self.start is not None and self.end is not None:
            if self.upper_bound(timezone.utc) < self.lower_bound(timezone.utc):
                raise ValueError("Date range end cannot be before start")
        return self

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def lower_bound(self, tz: tzinfo) -> Optional[datetime]:
        """Inclusive lower bound in UTC, or None when open."""
        if self.start is None:
            return None
        if isinstance(self.start, datetime):
            return ensure_utc(self.start)
        return datetime.combine(self.start, time.min, tzinfo=tz).astimezone(timezone.utc)

    def upper_bound(self, tz: tzinfo) -> Optional[datetime]:
        """
        Inclusive upper bound in UTC, or None when open.

        A whole-day bound ends one microsecond before the next midnight.
        """
        if self.end is None:
            return None
        if isinstance(self.end, datetime):
            return ensure_utc(self.end)
        next_day = datetime.combine(self.end + timedelta(days=1), time.min, tzinfo=tz)
        return next_day.astimezone(timezone.utc) - timedelta(microseconds=1)

    # Presets offered by the date filter dropdown -------------------------

    @classmethod
    def all_time(cls) -> "DateRange":
        return cls(label="All Time")

    @classmethod
    def today(cls, tz: tzinfo = timezone.utc, now: Optional[datetime] = None) -> "DateRange":
        local_now = ensure_utc(now or utc_now()).astimezone(tz)
        return cls(start=local_now.date(), end=local_now.date(), label="Today")

    @classmethod
    def this_week(cls, tz: tzinfo = timezone.utc, now: Optional[datetime] = None) -> "DateRange":
        """Monday of the current week through today."""
        local_now = ensure_utc(now or utc_now()).astimezone(tz)
        monday = local_now.date() - timedelta(days=local_now.weekday())
        return cls(start=monday, end=local_now.date(), label="This Week")

    @classmethod
    def this_month(cls, tz: tzinfo = timezone.utc, now: Optional[datetime] = None) -> "DateRange":
        local_now = ensure_utc(now or utc_now()).astimezone(tz)
        return cls(
            start=local_now.date().replace(day=1),
            end=local_now.date(),
            label="This Month",
        )

    @classmethod
    def this_year(cls, tz: tzinfo = timezone.utc, now: Optional[datetime] = None) -> "DateRange":
        local_now = ensure_utc(now or utc_now()).astimezone(tz)
        return cls(
            start=local_now.date().replace(month=1, day=1),
            end=local_now.date(),
            label="This Year",
        )


# =============================================================================
# DERIVED READ MODELS
# =============================================================================

class ContactBalance(BaseModel):
    """Aggregate position of one contact."""

    contact_id: UUID
    total_credit: Decimal = Field(default=Decimal("0.00"))
    total_debit: Decimal = Field(default=Decimal("0.00"))

    @computed_field
    @property
    def balance(self) -> Decimal:
        """Positive: the contact owes the business. Zero: settled."""
        return self.total_credit - self.total_debit

    @property
    def is_settled(self) -> bool:
        return self.balance == 0


class TagTotal(BaseModel):
    """Signed total of every transaction carrying one tag."""

    tag_id: UUID
    tag_name: str
    tag_color: str
    total_amount: Decimal
    entry_count: int = Field(default=0, ge=0)


class DashboardMetrics(BaseModel):
    """Portfolio-wide figures for the home screen."""

    total_balance: Decimal
    total_customers: int = Field(ge=0)
    this_month_net: Decimal
    pending_due: Decimal


class RecentTransaction(BaseModel):
    """An entry in the recent activity feed, with its contact's name."""

    id: UUID
    contact_id: UUID
    contact_name: str
    amount: Decimal
    type: EntryType
    note: Optional[str] = None
    created_at: datetime


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )
