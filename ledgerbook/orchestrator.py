"""
Engine Wiring for LedgerBook

This module ties together all the components that share one database:
1. Contact Lifecycle Manager (create/restore/edit/delete contacts)
2. Ledger Entry Store (credits and debits)
3. Balance Engine (derived totals)
4. Tag Managers (contact tags, transaction tags)

DESIGN DECISION: Callers (screens, CLIs, tests) never build storage
objects themselves. They ask for a LedgerEngine and use its services,
so every service shares the same database, validator and activity
logger.
"""

from typing import Optional

from ledgerbook.activity import ActivityLogger
from ledgerbook.config import AppSettings, DatabaseSettings, get_settings
from ledgerbook.contacts import ContactLifecycleManager
from ledgerbook.ledger import LedgerEntryService
from ledgerbook.models.ledger import TagNamespace
from ledgerbook.queries import BalanceEngine
from ledgerbook.services.storage import (
    LedgerDatabase,
    SqlBalanceStorage,
    SqlContactStorage,
    SqlEntryStorage,
    SqlTagStorage,
)
from ledgerbook.tags import TagManager
from ledgerbook.validation import LedgerValidator


class LedgerEngine:
    """
    The engine's public surface: one attribute per component.

    Usage:
        engine = create_engine_components("sqlite:///ledger.db")
        result = await engine.contacts.create_or_restore_contact(...)
        balance = await engine.balances.contact_balance(result.contact.id)
    """

    def __init__(
        self,
        database: LedgerDatabase,
        contacts: ContactLifecycleManager,
        entries: LedgerEntryService,
        balances: BalanceEngine,
        contact_tags: TagManager,
        transaction_tags: TagManager,
    ):
        self.database = database
        self.contacts = contacts
        self.entries = entries
        self.balances = balances
        self.contact_tags = contact_tags
        self.transaction_tags = transaction_tags

    def close(self) -> None:
        """Release database connections."""
        self.database.dispose()


def create_engine_components(
    database_url: Optional[str] = None,
    app_settings: Optional[AppSettings] = None,
    activity_logger: Optional[ActivityLogger] = None,
) -> LedgerEngine:
    """
    Factory function to create all engine components.

    Args:
        database_url: SQLAlchemy URL. Defaults to LEDGER_DB_URL.
            Use "sqlite://" for a throwaway in-memory ledger.
        app_settings: Ledger rules. Defaults to LEDGER_* settings.
        activity_logger: Shared activity logger.

    Returns:
        A LedgerEngine whose database is connected and has its schema.

    Raises:
        TransportError: the database stayed unreachable after retries
    """
    settings = get_settings()
    db_settings = settings.database
    if database_url is not None:
        db_settings = DatabaseSettings(
            url=database_url,
            echo=db_settings.echo,
            connect_attempts=db_settings.connect_attempts,
        )
    app_settings = app_settings or settings.app
    activity_logger = activity_logger or ActivityLogger()
    validator = LedgerValidator(app_settings)

    database = LedgerDatabase(db_settings)
    database.connect()

    contact_tags = TagManager(
        SqlTagStorage(TagNamespace.CONTACT, database),
        validator=validator,
        activity_logger=activity_logger,
    )
    transaction_tags = TagManager(
        SqlTagStorage(TagNamespace.TRANSACTION, database),
        validator=validator,
        activity_logger=activity_logger,
    )
    contact_storage = SqlContactStorage(database)

    return LedgerEngine(
        database=database,
        contacts=ContactLifecycleManager(
            contact_storage,
            contact_tags,
            validator=validator,
            activity_logger=activity_logger,
        ),
        entries=LedgerEntryService(
            SqlEntryStorage(database),
            validator=validator,
            activity_logger=activity_logger,
            settings=app_settings,
        ),
        balances=BalanceEngine(
            SqlBalanceStorage(database),
            contact_storage,
            settings=app_settings,
        ),
        contact_tags=contact_tags,
        transaction_tags=transaction_tags,
    )
