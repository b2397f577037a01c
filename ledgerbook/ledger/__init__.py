"""Ledger entry package."""

from ledgerbook.ledger.entries import LedgerEntryService

__all__ = ["LedgerEntryService"]
