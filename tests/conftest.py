"""
Shared fixtures.

Every test gets its own in-memory SQLite ledger, so tests never see
each other's rows and need no external services.
"""

import asyncio

import pytest

from ledgerbook.config import AppSettings
from ledgerbook.orchestrator import create_engine_components

USER = "user-1"
OTHER_USER = "user-2"


@pytest.fixture
def run():
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run


@pytest.fixture
def app_settings():
    return AppSettings(
        app_name="LedgerX",
        currency_symbol="₹",
        currency_grouping="indian",
        reporting_timezone="UTC",
        phone_min_digits=10,
        phone_max_digits=12,
    )


@pytest.fixture
def ledger(app_settings):
    engine = create_engine_components("sqlite://", app_settings=app_settings)
    yield engine
    engine.close()


@pytest.fixture
def contact(ledger, run):
    """A live contact of USER."""
    result = run(ledger.contacts.create_or_restore_contact(USER, "Asha Traders", "9876543210"))
    return result.contact
