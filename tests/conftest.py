"""
Pytest fixtures and test configuration for the escrow client tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from gigvora_escrow.cache import OverviewCache
from gigvora_escrow.client import EscrowClient
from gigvora_escrow.config import EscrowSettings
from gigvora_escrow.testing import InMemoryEscrowLedger, LedgerTransport

BASE_URL = "https://api.gigvora.test/api"
FREELANCER = "fr-42"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class LedgerClock:
    """Wall clock for the ledger, in UTC."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger_clock():
    return LedgerClock()


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return EscrowSettings(_env_file=None, api_base_url=BASE_URL, auth_token="test-token")


@pytest.fixture
def ledger(ledger_clock):
    return InMemoryEscrowLedger(clock=ledger_clock)


@pytest.fixture
def transport(ledger):
    return LedgerTransport(ledger)


@pytest.fixture
def client(settings, transport):
    return EscrowClient(settings=settings, transport=transport)


@pytest.fixture
def cache(clock):
    return OverviewCache(ttl_seconds=45, clock=clock)


@pytest.fixture
def seeded(ledger):
    """A freelancer with one account and two held transactions.

    Returns a dict of the created record ids.
    """
    account = ledger.create_account(
        FREELANCER,
        {"provider": "stripe", "currencyCode": "USD", "metadata": {"accountLabel": "Main payouts"}},
    )
    design = ledger.create_transaction(
        FREELANCER,
        {
            "accountId": account["id"],
            "reference": "MS-100",
            "amount": "500.00",
            "feeAmount": "25.00",
            "milestoneLabel": "Design sprint",
            "scheduledReleaseAt": "2024-03-20T12:00:00Z",
        },
    )
    build = ledger.create_transaction(
        FREELANCER,
        {
            "accountId": account["id"],
            "reference": "MS-101",
            "amount": "1200.00",
            "feeAmount": "60.00",
            "milestoneLabel": "Build",
            "scheduledReleaseAt": "2024-03-10T12:00:00Z",
        },
    )
    return {"account": account["id"], "design": design["id"], "build": build["id"]}
