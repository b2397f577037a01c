"""
Relational Schema

DESIGN DECISION: Money is stored as integer minor units (amount_cents).
SUM() over integers is exact on every backend, so balances never pick up
floating point drift.

Timestamps are stored as naive UTC. Conversion to aware datetimes
happens at the storage boundary.
"""

from typing import NamedTuple

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base

from ledgerbook.models.ledger import TagNamespace

Base = declarative_base()


class ContactRow(Base):
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        # One live contact per phone; tombstones may repeat it
        Index(
            "uq_contacts_user_phone_live",
            "user_id",
            "phone",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    def __repr__(self):
        return f"<ContactRow(id={self.id}, name={self.name})>"


class LedgerEntryRow(Base):
    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True)
    contact_id = Column(String(36), ForeignKey("contacts.id"), nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    type = Column(String(6), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_ledger_entries_amount_positive"),
        CheckConstraint("type IN ('credit', 'debit')", name="ck_ledger_entries_type"),
        Index("ix_ledger_entries_contact_created", "contact_id", "created_at"),
    )

    def __repr__(self):
        return f"<LedgerEntryRow(id={self.id}, type={self.type}, cents={self.amount_cents})>"


class ContactTagRow(Base):
    __tablename__ = "contact_tags"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    color = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False)


class TransactionTagRow(Base):
    __tablename__ = "transaction_tags"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    color = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False)


class ContactTagMapRow(Base):
    __tablename__ = "contact_tag_map"

    id = Column(String(36), primary_key=True)
    contact_id = Column(String(36), ForeignKey("contacts.id"), nullable=False)
    tag_id = Column(String(36), ForeignKey("contact_tags.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("contact_id", "tag_id", name="uq_contact_tag_map_pair"),
    )


class TransactionTagMapRow(Base):
    __tablename__ = "transaction_tag_map"

    id = Column(String(36), primary_key=True)
    transaction_id = Column(String(36), ForeignKey("ledger_entries.id"), nullable=False)
    tag_id = Column(String(36), ForeignKey("transaction_tags.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("transaction_id", "tag_id", name="uq_transaction_tag_map_pair"),
    )


class NamespaceTables(NamedTuple):
    """The tag table and map table of one namespace, plus the map's entity column."""
    tag: type
    link: type
    entity_field: str


NAMESPACE_TABLES = {
    TagNamespace.CONTACT: NamespaceTables(
        tag=ContactTagRow,
        link=ContactTagMapRow,
        entity_field="contact_id",
    ),
    TagNamespace.TRANSACTION: NamespaceTables(
        tag=TransactionTagRow,
        link=TransactionTagMapRow,
        entity_field="transaction_id",
    ),
}
