"""
Input Validation

DESIGN DECISION: Every write operation validates its input BEFORE touching
the store. A rejected input never produces a partial write.

Validation NEVER silently fixes values. Whitespace is trimmed and phone
separators are dropped (that is canonicalisation, not correction), but a
malformed amount or phone is rejected, never rounded or padded.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from ledgerbook.config import AppSettings, get_settings
from ledgerbook.models.ledger import EntryType, ValidationIssue

NON_DIGITS = re.compile(r"\D")

NAME_MAX_LENGTH = 200
NOTE_MAX_LENGTH = 500
TAG_NAME_MAX_LENGTH = 50
TAG_COLOR_MAX_LENGTH = 20

CENT = Decimal("0.01")


class ValidationError(Exception):
    """Bad input. Raised before any write is attempted."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


class InvalidNameError(ValidationError):
    """Contact name is empty or too long."""
    pass


class InvalidPhoneError(ValidationError):
    """Phone number has the wrong number of digits."""
    pass


class InvalidAmountError(ValidationError):
    """Amount is not a finite, positive decimal with at most two places."""
    pass


class InvalidEntryTypeError(ValidationError):
    """Entry type is neither credit nor debit."""
    pass


class InvalidTagError(ValidationError):
    """Tag name or color is unusable."""
    pass


class LedgerValidator:
    """
    Validates and canonicalises caller input for the engine's writes.

    Rules that depend on configuration (phone digit bounds, amount
    ceiling) are read from AppSettings.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # Contacts ------------------------------------------------------------

    def _check_required_text(
        self,
        value: object,
        field: str,
        max_length: int,
    ) -> list[ValidationIssue]:
        if not isinstance(value, str) or not value.strip():
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field.capitalize()} is required",
            )]
        if len(value.strip()) > max_length:
            return [ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field.capitalize()} must be at most {max_length} characters",
            )]
        return []

    def _check_phone(self, phone: object) -> list[ValidationIssue]:
        if not isinstance(phone, str) or not phone.strip():
            return [ValidationIssue(
                field="phone",
                issue_type="missing",
                message="Phone number is required",
            )]

        digits = NON_DIGITS.sub("", phone)
        low = self._settings.phone_min_digits
        high = self._settings.phone_max_digits
        if not low <= len(digits) <= high:
            return [ValidationIssue(
                field="phone",
                issue_type="invalid_format",
                message="Valid phone number required",
                suggested_fix=f"Enter a number with {low} to {high} digits",
            )]
        return []

    def normalize_phone(self, phone: str) -> str:
        """
        Canonical stored form: digits only.

        "+91 98765-43210" and "91 98765 43210" both become "919876543210",
        so uniqueness compares exactly the digits that were counted.
        """
        return NON_DIGITS.sub("", phone)

    def validate_contact(self, name: object, phone: object) -> tuple[str, str]:
        """
        Validate a contact's name and phone.

        Returns:
            (trimmed_name, canonical_phone)

        Raises:
            InvalidNameError: name is empty after trimming or too long
            InvalidPhoneError: phone digit count is out of range
        """
        name_issues = self._check_required_text(name, "name", NAME_MAX_LENGTH)
        phone_issues = self._check_phone(phone)
        issues = name_issues + phone_issues

        if name_issues:
            raise InvalidNameError(issues)
        if phone_issues:
            raise InvalidPhoneError(issues)

        return name.strip(), self.normalize_phone(phone)

    # Ledger entries ------------------------------------------------------

    def parse_amount(self, raw: object) -> Decimal:
        """
        Convert raw input to a positive Decimal with two fraction digits.

        Floats go through str() so 0.1 stays 0.1 instead of its binary
        expansion.
        """
        if isinstance(raw, bool) or raw is None:
            raise InvalidAmountError([ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount must be a numeric value",
            )])

        try:
            amount = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
        except (InvalidOperation, ValueError) as exc:
            raise InvalidAmountError([ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount must be a numeric value",
            )]) from exc

        if not amount.is_finite():
            raise InvalidAmountError([ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount must be a finite number",
            )])

        if amount <= 0:
            raise InvalidAmountError([ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message="Amount must be greater than zero",
            )])

        # Checked before quantize(), which overflows on huge exponents.
        if amount > self._settings.max_entry_amount:
            raise InvalidAmountError([ValidationIssue(
                field="amount",
                issue_type="out_of_range",
                message=f"Amount cannot exceed {self._settings.max_entry_amount}",
            )])

        if amount != amount.quantize(CENT):
            raise InvalidAmountError([ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Amount can have at most two decimal places",
            )])

        return amount.quantize(CENT)

    def parse_entry_type(self, raw: object) -> EntryType:
        if isinstance(raw, EntryType):
            return raw
        try:
            return EntryType(str(raw).strip().lower())
        except ValueError as exc:
            raise InvalidEntryTypeError([ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Type must be 'credit' or 'debit'",
            )]) from exc

    def clean_note(self, note: Optional[str]) -> Optional[str]:
        """Blank notes are stored as None."""
        if note is None or not note.strip():
            return None
        note = note.strip()
        if len(note) > NOTE_MAX_LENGTH:
            raise ValidationError([ValidationIssue(
                field="note",
                issue_type="too_long",
                message=f"Note must be at most {NOTE_MAX_LENGTH} characters",
            )])
        return note

    # Tags ----------------------------------------------------------------

    def validate_tag(self, name: object, color: object) -> tuple[str, str]:
        """
        Validate a tag's name and color.

        Any color string is accepted; the palette is a UI suggestion.
        """
        issues = self._check_required_text(name, "name", TAG_NAME_MAX_LENGTH)
        issues += self._check_required_text(color, "color", TAG_COLOR_MAX_LENGTH)
        if issues:
            raise InvalidTagError(issues)
        return name.strip(), color.strip()
