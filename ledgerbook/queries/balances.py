"""
Balance Engine

DESIGN DECISION: Balances are DERIVED, never stored.
Every figure is recomputed on demand from the ledger entries by SQL
aggregation, so there is no cached total that can drift from the rows
it summarises.

Sign convention:
- credit adds to what the contact owes
- debit subtracts from it
- balance > 0 means the contact owes the business
"""

from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from ledgerbook.config import AppSettings, get_settings
from ledgerbook.models.ledger import (
    ContactBalance,
    DashboardMetrics,
    DateRange,
    TagTotal,
    ensure_utc,
    utc_now,
)
from ledgerbook.services.storage import (
    BalanceStorageInterface,
    ContactStorageInterface,
)


class BalanceEngine:
    """
    Read-only balance computations.

    GUARANTEES:
    - Only sums entries that are actually stored
    - Exact decimal results with two fraction digits
    - Portfolio figures ignore soft-deleted contacts
    """

    def __init__(
        self,
        balances: BalanceStorageInterface,
        contacts: ContactStorageInterface,
        settings: Optional[AppSettings] = None,
    ):
        self._balances = balances
        self._contacts = contacts
        self._settings = settings or get_settings().app

    async def contact_balance(
        self,
        contact_id: UUID,
        date_range: Optional[DateRange] = None,
    ) -> ContactBalance:
        """
        Credit/debit totals and balance of one contact.

        Works for deleted contacts too; their entries are still stored.

        Raises:
            NotFoundError: no such contact
        """
        date_from = date_to = None
        if date_range is not None:
            tz = self._settings.timezone
            date_from = date_range.lower_bound(tz)
            date_to = date_range.upper_bound(tz)
        return await self._balances.contact_totals(contact_id, date_from, date_to)

    async def tag_totals(self, contact_id: UUID) -> list[TagTotal]:
        """
        Signed total per transaction tag for one contact.

        An entry with several tags counts in full toward each of them, so
        these totals do not add up to the contact balance.
        """
        return await self._balances.tag_totals(contact_id)

    async def portfolio_balance(self, user_id: str) -> Decimal:
        """Sum of all live contact balances."""
        return await self._balances.portfolio_balance(user_id)

    async def pending_due(self, user_id: str) -> Decimal:
        """Sum of positive balances only: what customers still owe."""
        return await self._balances.pending_due(user_id)

    def month_start(self, now: Optional[datetime] = None) -> datetime:
        """First instant of the current month in the reporting timezone, as UTC."""
        tz = self._settings.timezone
        local_now = ensure_utc(now or utc_now()).astimezone(tz)
        start = datetime.combine(local_now.date().replace(day=1), time.min, tzinfo=tz)
        return start.astimezone(timezone.utc)

    async def month_to_date_net(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """Credits minus debits recorded since the start of this month."""
        return await self._balances.net_since(user_id, self.month_start(now))

    async def dashboard_metrics(
        self,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> DashboardMetrics:
        """The four headline figures of the home screen."""
        return DashboardMetrics(
            total_balance=await self.portfolio_balance(user_id),
            total_customers=await self._contacts.count_contacts(user_id),
            this_month_net=await self.month_to_date_net(user_id, now),
            pending_due=await self.pending_due(user_id),
        )
