"""
SQL Storage Implementation

DESIGN DECISION: A relational store via SQLAlchemy because:
1. The phone rule needs a partial unique index, which only a real
   database enforces under concurrency
2. Replace-all tag edits need transactions so a failure leaves no
   half-applied set
3. Balances are SUM() aggregations that belong next to the data

SQLite is the default (zero setup). Any SQLAlchemy URL works; the
partial index is declared for PostgreSQL as well.

TRADEOFFS:
- Sessions are synchronous. The async interface methods run them
  inline, which is fine for an engine embedded in one process.
- Operations are NOT retried. A transport failure surfaces as
  TransportError and the caller decides. Only the initial connect is
  retried, since nothing has been written at that point.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID, uuid4

from sqlalchemy import case, create_engine, delete, event, func, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledgerbook.config import DatabaseSettings, get_settings
from ledgerbook.models.ledger import (
    Contact,
    ContactBalance,
    ContactWithTags,
    EntryType,
    LedgerEntry,
    RecentTransaction,
    Tag,
    TagAssociation,
    TagNamespace,
    TagTotal,
    ensure_utc,
    utc_now,
)
from ledgerbook.services.storage.interface import (
    BalanceStorageInterface,
    ContactStorageInterface,
    DuplicatePhoneError,
    EntryStorageInterface,
    NotFoundError,
    StorageError,
    TagStorageInterface,
    TransportError,
)
from ledgerbook.services.storage.schema import (
    NAMESPACE_TABLES,
    Base,
    ContactRow,
    ContactTagMapRow,
    ContactTagRow,
    LedgerEntryRow,
    TransactionTagMapRow,
)


# Signed and one-sided views of an entry's amount, for SUM()
SIGNED_CENTS = case(
    (LedgerEntryRow.type == EntryType.CREDIT.value, LedgerEntryRow.amount_cents),
    else_=-LedgerEntryRow.amount_cents,
)
CREDIT_CENTS = case(
    (LedgerEntryRow.type == EntryType.CREDIT.value, LedgerEntryRow.amount_cents),
    else_=0,
)
DEBIT_CENTS = case(
    (LedgerEntryRow.type == EntryType.DEBIT.value, LedgerEntryRow.amount_cents),
    else_=0,
)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# =============================================================================
# CONVERSIONS
# =============================================================================

def _optional_key(value) -> Optional[str]:
    """Canonical string form of an id, or None if it is not a UUID."""
    if isinstance(value, UUID):
        return str(value)
    try:
        return str(UUID(str(value)))
    except ValueError:
        return None


def _key(value, kind: str) -> str:
    key = _optional_key(value)
    if key is None:
        raise NotFoundError(f"{kind} not found: {value}")
    return key


def _to_db(moment: datetime) -> datetime:
    return ensure_utc(moment).replace(tzinfo=None)


def _from_db(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    return moment.replace(tzinfo=timezone.utc)


def _to_cents(amount: Decimal) -> int:
    return int(amount.scaleb(2))


def _from_cents(cents) -> Decimal:
    return Decimal(int(cents or 0)).scaleb(-2)


def _contact_from_row(row: ContactRow) -> Contact:
    return Contact(
        id=UUID(row.id),
        user_id=row.user_id,
        name=row.name,
        phone=row.phone,
        created_at=_from_db(row.created_at),
        deleted_at=_from_db(row.deleted_at),
    )


def _entry_from_row(row: LedgerEntryRow) -> LedgerEntry:
    return LedgerEntry(
        id=UUID(row.id),
        contact_id=UUID(row.contact_id),
        amount=_from_cents(row.amount_cents),
        type=EntryType(row.type),
        note=row.note,
        created_at=_from_db(row.created_at),
        updated_at=_from_db(row.updated_at),
    )


def _tag_from_row(row, namespace: TagNamespace) -> Tag:
    return Tag(
        id=UUID(row.id),
        user_id=row.user_id,
        namespace=namespace,
        name=row.name,
        color=row.color,
        created_at=_from_db(row.created_at),
    )


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy exceptions into the storage error hierarchy."""
    try:
        yield
    except StorageError:
        raise
    except (OperationalError, InterfaceError) as e:
        raise TransportError(f"Database unavailable during {operation}: {e}") from e
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to {operation}: {e}") from e


# =============================================================================
# DATABASE
# =============================================================================

class LedgerDatabase:
    """
    Owns the SQLAlchemy engine and session factory.

    Handles connection set-up with retry logic and creates the schema
    on first connect.
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self._settings = settings or get_settings().database
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def _create_engine(self) -> Engine:
        kwargs = {"echo": self._settings.echo}
        if self._settings.is_in_memory:
            # Every session must see the same in-memory database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        elif self._settings.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(self._settings.url, **kwargs)
        if self._settings.is_sqlite:
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    def _open(self) -> Engine:
        engine = self._create_engine()
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except (OperationalError, InterfaceError) as e:
            engine.dispose()
            raise TransportError(f"Failed to connect to database: {e}") from e
        return engine

    def connect(self) -> Engine:
        """
        Establish the connection and create missing tables.

        Retries with exponential backoff up to connect_attempts times.
        """
        if self._engine is None:
            retrying = Retrying(
                stop=stop_after_attempt(self._settings.connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                retry=retry_if_exception_type(TransportError),
                reraise=True,
            )
            engine = retrying(self._open)

            with storage_errors("create schema"):
                Base.metadata.create_all(engine)

            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

        return self._engine

    def session(self) -> Session:
        """A plain session for reads."""
        self.connect()
        return self._session_factory()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """A session that commits on exit and rolls back on any error."""
        self.connect()
        with self._session_factory.begin() as session:
            yield session

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


class _SqlStorage:
    def __init__(self, database: Optional[LedgerDatabase] = None):
        self._db = database or LedgerDatabase()


# =============================================================================
# CONTACTS
# =============================================================================

class SqlContactStorage(_SqlStorage, ContactStorageInterface):
    """
    Contacts table access.

    The partial unique index is the final word on phone uniqueness.
    Any IntegrityError on a contact write is reported as a duplicate.
    """

    async def insert_contact(self, contact: Contact) -> Contact:
        row = ContactRow(
            id=str(contact.id),
            user_id=contact.user_id,
            name=contact.name,
            phone=contact.phone,
            created_at=_to_db(contact.created_at),
            deleted_at=None,
        )
        with storage_errors("insert contact"):
            try:
                with self._db.transaction() as session:
                    session.add(row)
            except IntegrityError as e:
                raise DuplicatePhoneError(
                    f"A contact with phone {contact.phone} already exists"
                ) from e
        return _contact_from_row(row)

    async def get_contact(self, contact_id: UUID) -> Optional[Contact]:
        key = _optional_key(contact_id)
        if key is None:
            return None
        with storage_errors("get contact"):
            with self._db.session() as session:
                row = session.get(ContactRow, key)
                return _contact_from_row(row) if row else None

    async def find_by_phone(self, user_id: str, phone: str) -> Optional[Contact]:
        stmt = (
            select(ContactRow)
            .where(ContactRow.user_id == user_id, ContactRow.phone == phone)
            # Live row first, then the newest tombstone
            .order_by(ContactRow.deleted_at.is_not(None), ContactRow.deleted_at.desc())
            .limit(1)
        )
        with storage_errors("find contact by phone"):
            with self._db.session() as session:
                row = session.scalars(stmt).first()
                return _contact_from_row(row) if row else None

    async def phone_in_use(
        self,
        user_id: str,
        phone: str,
        exclude_contact_id: Optional[UUID] = None,
    ) -> bool:
        stmt = (
            select(func.count())
            .select_from(ContactRow)
            .where(
                ContactRow.user_id == user_id,
                ContactRow.phone == phone,
                ContactRow.deleted_at.is_(None),
            )
        )
        if exclude_contact_id is not None:
            stmt = stmt.where(ContactRow.id != str(exclude_contact_id))
        with storage_errors("check phone"):
            with self._db.session() as session:
                return session.scalar(stmt) > 0

    async def restore_contact(self, contact_id: UUID, name: str) -> Contact:
        key = _key(contact_id, "Contact")
        phone = None
        with storage_errors("restore contact"):
            try:
                with self._db.transaction() as session:
                    row = session.get(ContactRow, key)
                    if row is None:
                        raise NotFoundError(f"Contact not found: {contact_id}")
                    # The row is expired and detached once a failed commit rolls back
                    phone = row.phone
                    row.deleted_at = None
                    row.name = name
            except IntegrityError as e:
                raise DuplicatePhoneError(
                    f"A contact with phone {phone} already exists"
                ) from e
        return _contact_from_row(row)

    async def update_contact(self, contact_id: UUID, name: str, phone: str) -> Contact:
        key = _key(contact_id, "Contact")
        with storage_errors("update contact"):
            try:
                with self._db.transaction() as session:
                    row = session.get(ContactRow, key)
                    if row is None or row.deleted_at is not None:
                        raise NotFoundError(f"Contact not found: {contact_id}")
                    row.name = name
                    row.phone = phone
            except IntegrityError as e:
                raise DuplicatePhoneError(
                    f"A contact with phone {phone} already exists"
                ) from e
        return _contact_from_row(row)

    async def soft_delete_contact(self, contact_id: UUID, deleted_at: datetime) -> bool:
        key = _key(contact_id, "Contact")
        with storage_errors("delete contact"):
            with self._db.transaction() as session:
                row = session.get(ContactRow, key)
                if row is None:
                    raise NotFoundError(f"Contact not found: {contact_id}")
                if row.deleted_at is not None:
                    return False
                row.deleted_at = _to_db(deleted_at)
        return True

    def _tags_by_contact(self, session: Session, contact_ids: list[str]) -> dict[str, list[Tag]]:
        if not contact_ids:
            return {}
        stmt = (
            select(ContactTagMapRow.contact_id, ContactTagRow)
            .join(ContactTagRow, ContactTagRow.id == ContactTagMapRow.tag_id)
            .where(ContactTagMapRow.contact_id.in_(contact_ids))
            .order_by(ContactTagRow.name, ContactTagRow.created_at)
        )
        tags: dict[str, list[Tag]] = {}
        for contact_id, tag_row in session.execute(stmt).all():
            tags.setdefault(contact_id, []).append(
                _tag_from_row(tag_row, TagNamespace.CONTACT)
            )
        return tags

    async def list_contacts(
        self,
        user_id: str,
        tag_id: Optional[UUID] = None,
        search: Optional[str] = None,
    ) -> list[ContactWithTags]:
        stmt = select(ContactRow).where(
            ContactRow.user_id == user_id,
            ContactRow.deleted_at.is_(None),
        )

        if tag_id is not None:
            tag_key = _optional_key(tag_id)
            if tag_key is None:
                return []
            stmt = stmt.where(ContactRow.id.in_(
                select(ContactTagMapRow.contact_id).where(ContactTagMapRow.tag_id == tag_key)
            ))

        if search and search.strip():
            term = search.strip().lower()
            stmt = stmt.where(or_(
                func.lower(ContactRow.name).contains(term, autoescape=True),
                ContactRow.phone.contains(term, autoescape=True),
            ))

        stmt = stmt.order_by(ContactRow.created_at.desc(), ContactRow.id)

        with storage_errors("list contacts"):
            with self._db.session() as session:
                rows = session.scalars(stmt).all()
                tags = self._tags_by_contact(session, [row.id for row in rows])

        return [
            ContactWithTags(
                **_contact_from_row(row).model_dump(),
                tags=tags.get(row.id, []),
            )
            for row in rows
        ]

    async def count_contacts(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(ContactRow)
            .where(ContactRow.user_id == user_id, ContactRow.deleted_at.is_(None))
        )
        with storage_errors("count contacts"):
            with self._db.session() as session:
                return session.scalar(stmt)


# =============================================================================
# LEDGER ENTRIES
# =============================================================================

class SqlEntryStorage(_SqlStorage, EntryStorageInterface):
    """Ledger entries table access."""

    async def insert_entry(self, entry: LedgerEntry) -> LedgerEntry:
        row = LedgerEntryRow(
            id=str(entry.id),
            contact_id=str(entry.contact_id),
            amount_cents=_to_cents(entry.amount),
            type=entry.type.value,
            note=entry.note,
            created_at=_to_db(entry.created_at),
            updated_at=None,
        )
        with storage_errors("insert entry"):
            with self._db.transaction() as session:
                contact = session.get(ContactRow, row.contact_id)
                if contact is None or contact.deleted_at is not None:
                    raise NotFoundError(f"Contact not found: {entry.contact_id}")
                session.add(row)
        return _entry_from_row(row)

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        key = _optional_key(entry_id)
        if key is None:
            return None
        with storage_errors("get entry"):
            with self._db.session() as session:
                row = session.get(LedgerEntryRow, key)
                return _entry_from_row(row) if row else None

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        with storage_errors("update entry"):
            with self._db.transaction() as session:
                row = session.get(LedgerEntryRow, str(entry.id))
                if row is None:
                    raise NotFoundError(f"Entry not found: {entry.id}")
                row.amount_cents = _to_cents(entry.amount)
                row.type = entry.type.value
                row.note = entry.note
                row.created_at = _to_db(entry.created_at)
                row.updated_at = _to_db(entry.updated_at or utc_now())
        return _entry_from_row(row)

    async def delete_entry(self, entry_id: UUID) -> None:
        key = _key(entry_id, "Entry")
        with storage_errors("delete entry"):
            with self._db.transaction() as session:
                row = session.get(LedgerEntryRow, key)
                if row is None:
                    raise NotFoundError(f"Entry not found: {entry_id}")
                session.execute(
                    delete(TransactionTagMapRow).where(TransactionTagMapRow.transaction_id == key)
                )
                session.delete(row)

    async def list_entries(
        self,
        contact_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        tag_id: Optional[UUID] = None,
    ) -> list[LedgerEntry]:
        key = _optional_key(contact_id)
        if key is None:
            return []

        stmt = select(LedgerEntryRow).where(LedgerEntryRow.contact_id == key)
        if date_from is not None:
            stmt = stmt.where(LedgerEntryRow.created_at >= _to_db(date_from))
        if date_to is not None:
            stmt = stmt.where(LedgerEntryRow.created_at <= _to_db(date_to))
        if tag_id is not None:
            tag_key = _optional_key(tag_id)
            if tag_key is None:
                return []
            stmt = stmt.where(LedgerEntryRow.id.in_(
                select(TransactionTagMapRow.transaction_id)
                .where(TransactionTagMapRow.tag_id == tag_key)
            ))
        stmt = stmt.order_by(LedgerEntryRow.created_at.desc(), LedgerEntryRow.id)

        with storage_errors("list entries"):
            with self._db.session() as session:
                return [_entry_from_row(row) for row in session.scalars(stmt).all()]

    async def recent_entries(self, user_id: str, limit: int) -> list[RecentTransaction]:
        stmt = (
            select(LedgerEntryRow, ContactRow.name)
            .join(ContactRow, ContactRow.id == LedgerEntryRow.contact_id)
            .where(ContactRow.user_id == user_id, ContactRow.deleted_at.is_(None))
            .order_by(LedgerEntryRow.created_at.desc(), LedgerEntryRow.id)
            .limit(limit)
        )
        with storage_errors("list recent entries"):
            with self._db.session() as session:
                results = session.execute(stmt).all()

        return [
            RecentTransaction(
                id=UUID(row.id),
                contact_id=UUID(row.contact_id),
                contact_name=contact_name,
                amount=_from_cents(row.amount_cents),
                type=EntryType(row.type),
                note=row.note,
                created_at=_from_db(row.created_at),
            )
            for row, contact_name in results
        ]


# =============================================================================
# TAGS
# =============================================================================

class SqlTagStorage(_SqlStorage, TagStorageInterface):
    """
    Tag table and tag map access for ONE namespace.

    Contact tags and transaction tags live in separate tables, so an id
    from the other namespace is never found here.
    """

    def __init__(self, namespace: TagNamespace, database: Optional[LedgerDatabase] = None):
        super().__init__(database)
        self._namespace = namespace
        self._tables = NAMESPACE_TABLES[namespace]

    @property
    def namespace(self) -> TagNamespace:
        return self._namespace

    @property
    def _entity_column(self):
        return getattr(self._tables.link, self._tables.entity_field)

    def _label(self) -> str:
        return f"{self._namespace.value.capitalize()} tag"

    def _entity_label(self) -> str:
        return "Contact" if self._namespace is TagNamespace.CONTACT else "Entry"

    def _entity_owner(self, session: Session, entity_key: str) -> Optional[str]:
        """user_id owning the contact or transaction, or None if it does not exist."""
        if self._namespace is TagNamespace.CONTACT:
            stmt = select(ContactRow.user_id).where(ContactRow.id == entity_key)
        else:
            stmt = (
                select(ContactRow.user_id)
                .join(LedgerEntryRow, LedgerEntryRow.contact_id == ContactRow.id)
                .where(LedgerEntryRow.id == entity_key)
            )
        return session.scalar(stmt)

    def _check_link_targets(
        self,
        session: Session,
        entity_id: UUID,
        tag_keys: list[str],
    ) -> str:
        """Verify the entity exists and every tag belongs to its owner."""
        entity_key = _key(entity_id, self._entity_label())
        owner = self._entity_owner(session, entity_key)
        if owner is None:
            raise NotFoundError(f"{self._entity_label()} not found: {entity_id}")

        if tag_keys:
            TagTable = self._tables.tag
            owners = dict(session.execute(
                select(TagTable.id, TagTable.user_id).where(TagTable.id.in_(tag_keys))
            ).all())
            missing = [key for key in tag_keys if owners.get(key) != owner]
            if missing:
                raise NotFoundError(f"{self._label()} not found: {', '.join(missing)}")

        return entity_key

    def _new_link(self, entity_key: str, tag_key: str):
        return self._tables.link(**{
            "id": str(uuid4()),
            self._tables.entity_field: entity_key,
            "tag_id": tag_key,
            "created_at": _to_db(utc_now()),
        })

    async def list_tags(self, user_id: str) -> list[Tag]:
        TagTable = self._tables.tag
        stmt = select(TagTable).where(TagTable.user_id == user_id).order_by(TagTable.name, TagTable.created_at)
        with storage_errors("list tags"):
            with self._db.session() as session:
                return [_tag_from_row(row, self._namespace) for row in session.scalars(stmt).all()]

    async def insert_tag(self, tag: Tag) -> Tag:
        row = self._tables.tag(
            id=str(tag.id),
            user_id=tag.user_id,
            name=tag.name,
            color=tag.color,
            created_at=_to_db(tag.created_at),
        )
        with storage_errors("insert tag"):
            with self._db.transaction() as session:
                session.add(row)
        return _tag_from_row(row, self._namespace)

    async def get_tag(self, tag_id: UUID) -> Optional[Tag]:
        key = _optional_key(tag_id)
        if key is None:
            return None
        with storage_errors("get tag"):
            with self._db.session() as session:
                row = session.get(self._tables.tag, key)
                return _tag_from_row(row, self._namespace) if row else None

    async def update_tag(self, tag_id: UUID, name: str, color: str) -> Tag:
        key = _key(tag_id, self._label())
        with storage_errors("update tag"):
            with self._db.transaction() as session:
                row = session.get(self._tables.tag, key)
                if row is None:
                    raise NotFoundError(f"{self._label()} not found: {tag_id}")
                row.name = name
                row.color = color
        return _tag_from_row(row, self._namespace)

    async def delete_tag(self, tag_id: UUID) -> int:
        key = _key(tag_id, self._label())
        Link = self._tables.link
        with storage_errors("delete tag"):
            with self._db.transaction() as session:
                row = session.get(self._tables.tag, key)
                if row is None:
                    raise NotFoundError(f"{self._label()} not found: {tag_id}")
                # Links first, the tag row is flushed at commit
                result = session.execute(delete(Link).where(Link.tag_id == key))
                session.delete(row)
        return result.rowcount

    async def tags_for(self, entity_id: UUID) -> list[Tag]:
        entity_key = _optional_key(entity_id)
        if entity_key is None:
            return []
        TagTable, Link = self._tables.tag, self._tables.link
        stmt = (
            select(TagTable)
            .join(Link, Link.tag_id == TagTable.id)
            .where(self._entity_column == entity_key)
            .order_by(TagTable.name, TagTable.created_at)
        )
        with storage_errors("list tags for entity"):
            with self._db.session() as session:
                return [_tag_from_row(row, self._namespace) for row in session.scalars(stmt).all()]

    async def associations_for(self, entity_id: UUID) -> list[TagAssociation]:
        entity_key = _optional_key(entity_id)
        if entity_key is None:
            return []
        Link = self._tables.link
        stmt = (
            select(Link)
            .where(self._entity_column == entity_key)
            .order_by(Link.created_at, Link.id)
        )
        with storage_errors("list tag links"):
            with self._db.session() as session:
                return [
                    TagAssociation(
                        id=UUID(row.id),
                        namespace=self._namespace,
                        entity_id=UUID(getattr(row, self._tables.entity_field)),
                        tag_id=UUID(row.tag_id),
                        created_at=_from_db(row.created_at),
                    )
                    for row in session.scalars(stmt).all()
                ]

    async def replace_associations(
        self,
        entity_id: UUID,
        tag_ids: list[UUID],
    ) -> tuple[int, int]:
        wanted = list(dict.fromkeys(_key(tag_id, self._label()) for tag_id in tag_ids))
        Link = self._tables.link

        with storage_errors("replace tags"):
            with self._db.transaction() as session:
                entity_key = self._check_link_targets(session, entity_id, wanted)

                current = set(session.scalars(
                    select(Link.tag_id).where(self._entity_column == entity_key)
                ).all())
                to_remove = current - set(wanted)
                to_add = [key for key in wanted if key not in current]

                if to_remove:
                    session.execute(delete(Link).where(
                        self._entity_column == entity_key,
                        Link.tag_id.in_(sorted(to_remove)),
                    ))
                for tag_key in to_add:
                    session.add(self._new_link(entity_key, tag_key))

        return len(to_add), len(to_remove)

    async def add_association(self, entity_id: UUID, tag_id: UUID) -> bool:
        tag_key = _key(tag_id, self._label())
        Link = self._tables.link

        with storage_errors("add tag"):
            try:
                with self._db.transaction() as session:
                    entity_key = self._check_link_targets(session, entity_id, [tag_key])
                    existing = session.scalar(
                        select(func.count())
                        .select_from(Link)
                        .where(self._entity_column == entity_key, Link.tag_id == tag_key)
                    )
                    if existing:
                        return False
                    session.add(self._new_link(entity_key, tag_key))
            except IntegrityError:
                # Linked concurrently by another writer
                return False
        return True

    async def remove_association(self, entity_id: UUID, tag_id: UUID) -> bool:
        entity_key = _optional_key(entity_id)
        tag_key = _optional_key(tag_id)
        if entity_key is None or tag_key is None:
            return False
        Link = self._tables.link

        with storage_errors("remove tag"):
            with self._db.transaction() as session:
                result = session.execute(delete(Link).where(
                    self._entity_column == entity_key,
                    Link.tag_id == tag_key,
                ))
        return result.rowcount > 0

    async def usage_count(self, tag_id: UUID) -> int:
        key = _optional_key(tag_id)
        if key is None:
            return 0
        Link = self._tables.link
        stmt = select(func.count(func.distinct(self._entity_column))).where(Link.tag_id == key)
        with storage_errors("count tag usage"):
            with self._db.session() as session:
                return session.scalar(stmt)


# =============================================================================
# BALANCES
# =============================================================================

class SqlBalanceStorage(_SqlStorage, BalanceStorageInterface):
    """
    Balance aggregation in SQL.

    Every figure is a SUM() over integer cents, converted to Decimal once.
    """

    @staticmethod
    def _live_entries(stmt, user_id: str):
        return (
            stmt.select_from(LedgerEntryRow)
            .join(ContactRow, ContactRow.id == LedgerEntryRow.contact_id)
            .where(ContactRow.user_id == user_id, ContactRow.deleted_at.is_(None))
        )

    async def contact_totals(
        self,
        contact_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> ContactBalance:
        key = _key(contact_id, "Contact")
        stmt = (
            select(
                func.coalesce(func.sum(CREDIT_CENTS), 0),
                func.coalesce(func.sum(DEBIT_CENTS), 0),
            )
            .select_from(LedgerEntryRow)
            .where(LedgerEntryRow.contact_id == key)
        )
        if date_from is not None:
            stmt = stmt.where(LedgerEntryRow.created_at >= _to_db(date_from))
        if date_to is not None:
            stmt = stmt.where(LedgerEntryRow.created_at <= _to_db(date_to))

        with storage_errors("compute contact balance"):
            with self._db.session() as session:
                if session.get(ContactRow, key) is None:
                    raise NotFoundError(f"Contact not found: {contact_id}")
                credit, debit = session.execute(stmt).one()

        return ContactBalance(
            contact_id=UUID(key),
            total_credit=_from_cents(credit),
            total_debit=_from_cents(debit),
        )

    async def tag_totals(self, contact_id: UUID) -> list[TagTotal]:
        key = _optional_key(contact_id)
        if key is None:
            return []
        TagTable = NAMESPACE_TABLES[TagNamespace.TRANSACTION].tag
        stmt = (
            select(
                TagTable.id,
                TagTable.name,
                TagTable.color,
                func.sum(SIGNED_CENTS),
                func.count(LedgerEntryRow.id),
            )
            .select_from(TransactionTagMapRow)
            .join(TagTable, TagTable.id == TransactionTagMapRow.tag_id)
            .join(LedgerEntryRow, LedgerEntryRow.id == TransactionTagMapRow.transaction_id)
            .where(LedgerEntryRow.contact_id == key)
            .group_by(TagTable.id, TagTable.name, TagTable.color)
            .order_by(TagTable.name, TagTable.id)
        )
        with storage_errors("compute tag totals"):
            with self._db.session() as session:
                results = session.execute(stmt).all()

        return [
            TagTotal(
                tag_id=UUID(tag_id),
                tag_name=name,
                tag_color=color,
                total_amount=_from_cents(cents),
                entry_count=count,
            )
            for tag_id, name, color, cents, count in results
        ]

    async def portfolio_balance(self, user_id: str) -> Decimal:
        stmt = self._live_entries(select(func.coalesce(func.sum(SIGNED_CENTS), 0)), user_id)
        with storage_errors("compute portfolio balance"):
            with self._db.session() as session:
                return _from_cents(session.scalar(stmt))

    async def pending_due(self, user_id: str) -> Decimal:
        per_contact = self._live_entries(
            select(
                LedgerEntryRow.contact_id,
                func.sum(SIGNED_CENTS).label("balance_cents"),
            ),
            user_id,
        ).group_by(LedgerEntryRow.contact_id).subquery()

        positive = case(
            (per_contact.c.balance_cents > 0, per_contact.c.balance_cents),
            else_=0,
        )
        stmt = select(func.coalesce(func.sum(positive), 0))

        with storage_errors("compute pending due"):
            with self._db.session() as session:
                return _from_cents(session.scalar(stmt))

    async def net_since(self, user_id: str, since: datetime) -> Decimal:
        stmt = self._live_entries(
            select(func.coalesce(func.sum(SIGNED_CENTS), 0)),
            user_id,
        ).where(LedgerEntryRow.created_at >= _to_db(since))
        with storage_errors("compute net"):
            with self._db.session() as session:
                return _from_cents(session.scalar(stmt))
