"""
Presentation Helpers

Turns engine values into the strings shown on screens and in the
balance reminders sent over SMS/WhatsApp. Nothing here touches storage.
"""

from datetime import datetime, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union
from urllib.parse import quote

from ledgerbook.config import get_settings
from ledgerbook.models.ledger import EntryType, ensure_utc, utc_now
from ledgerbook.validation.validator import NON_DIGITS

Number = Union[Decimal, int, float, str]


def _group_indian(digits: str) -> str:
    """12345678 -> 1,23,45,678 (thousands, then pairs)."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def _group_western(digits: str) -> str:
    return f"{int(digits):,}"


def format_currency(
    amount: Number,
    symbol: Optional[str] = None,
    grouping: Optional[str] = None,
    decimals: int = 2,
) -> str:
    """
    Format an amount with currency symbol and digit grouping.

    format_currency(Decimal("1234567.5"))                      -> "₹12,34,567.50"
    format_currency(Decimal("1234567.5"), grouping="western")  -> "₹1,234,567.50"
    format_currency(-250, decimals=0)                          -> "-₹250"
    """
    app = get_settings().app
    symbol = app.currency_symbol if symbol is None else symbol
    grouping = grouping or app.currency_grouping

    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    value = value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)

    sign = "-" if value < 0 else ""
    whole, _, fraction = f"{abs(value):.{decimals}f}".partition(".")
    grouped = _group_indian(whole) if grouping == "indian" else _group_western(whole)

    text = f"{sign}{symbol}{grouped}"
    if fraction:
        text += f".{fraction}"
    return text


def format_signed_amount(amount: Number, entry_type: EntryType) -> str:
    """Credits as +₹500.00, debits as -₹500.00."""
    prefix = "+" if EntryType(entry_type) is EntryType.CREDIT else "-"
    return prefix + format_currency(abs(Decimal(str(amount))))


def format_relative_time(
    moment: datetime,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> str:
    """
    Short relative age for activity feeds.

    Under a minute is "Just now"; then minutes, hours and days up to a
    week; older moments show the calendar date in the reporting timezone.
    """
    moment = ensure_utc(moment)
    elapsed = int((ensure_utc(now or utc_now()) - moment).total_seconds())

    if elapsed < 60:
        return "Just now"
    if elapsed < 3600:
        return f"{elapsed // 60}m ago"
    if elapsed < 86400:
        return f"{elapsed // 3600}h ago"
    if elapsed < 604800:
        return f"{elapsed // 86400}d ago"

    tz = tz or get_settings().app.timezone
    return moment.astimezone(tz).strftime("%d/%m/%Y")


def balance_status(
    balance: Decimal,
    symbol: Optional[str] = None,
    grouping: Optional[str] = None,
) -> str:
    """
    One-line description of a balance from the business's side.

    Positive balances are owed by the contact.
    """
    if balance > 0:
        return f"You owe {format_currency(balance, symbol, grouping)}"
    if balance < 0:
        return f"We owe you {format_currency(abs(balance), symbol, grouping)}"
    return "All settled up"


def balance_reminder_message(
    contact_name: str,
    balance: Decimal,
    app_name: Optional[str] = None,
) -> str:
    """Text of the balance reminder sent to a contact."""
    app_name = app_name or get_settings().app.app_name
    return (
        f"Ledger Update - {app_name}\n\n"
        f"Customer: {contact_name}\n"
        f"Balance: {balance_status(balance)}"
    )


def sms_link(phone: str, message: str) -> str:
    """sms: URI that opens the messaging app with the message filled in."""
    return f"sms:{NON_DIGITS.sub('', phone)}?body={quote(message, safe='')}"


def whatsapp_link(phone: str, message: str) -> str:
    """wa.me link for the same message."""
    return f"https://wa.me/{NON_DIGITS.sub('', phone)}?text={quote(message, safe='')}"
