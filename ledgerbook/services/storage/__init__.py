"""
Storage Services Package

Provides abstract interfaces and the SQLAlchemy implementation for the
ledger's relational store.
"""

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
from ledgerbook.services.storage.sql_store import (
    LedgerDatabase,
    SqlBalanceStorage,
    SqlContactStorage,
    SqlEntryStorage,
    SqlTagStorage,
)

__all__ = [
    # Interfaces
    "BalanceStorageInterface",
    "ContactStorageInterface",
    "EntryStorageInterface",
    "TagStorageInterface",
    # Exceptions
    "DuplicatePhoneError",
    "NotFoundError",
    "StorageError",
    "TransportError",
    # SQL implementation
    "LedgerDatabase",
    "SqlBalanceStorage",
    "SqlContactStorage",
    "SqlEntryStorage",
    "SqlTagStorage",
]
