"""Validation package."""

from ledgerbook.validation.validator import (
    InvalidAmountError,
    InvalidEntryTypeError,
    InvalidNameError,
    InvalidPhoneError,
    InvalidTagError,
    LedgerValidator,
    ValidationError,
)

__all__ = [
    "InvalidAmountError",
    "InvalidEntryTypeError",
    "InvalidNameError",
    "InvalidPhoneError",
    "InvalidTagError",
    "LedgerValidator",
    "ValidationError",
]
