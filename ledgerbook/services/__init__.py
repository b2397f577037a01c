"""Services package."""

from ledgerbook.services.storage import (
    BalanceStorageInterface,
    ContactStorageInterface,
    DuplicatePhoneError,
    EntryStorageInterface,
    LedgerDatabase,
    NotFoundError,
    SqlBalanceStorage,
    SqlContactStorage,
    SqlEntryStorage,
    SqlTagStorage,
    StorageError,
    TagStorageInterface,
    TransportError,
)

__all__ = [
    # Storage services
    "BalanceStorageInterface",
    "ContactStorageInterface",
    "DuplicatePhoneError",
    "EntryStorageInterface",
    "LedgerDatabase",
    "NotFoundError",
    "SqlBalanceStorage",
    "SqlContactStorage",
    "SqlEntryStorage",
    "SqlTagStorage",
    "StorageError",
    "TagStorageInterface",
    "TransportError",
]
