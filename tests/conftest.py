"""
conftest.py - Shared pytest fixtures for lockledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Ledgers (empty, funded, with an approved operator)
- Stand-alone components over a FakeBalances view
- Invariant assertion helper
"""

import pytest
from datetime import datetime, timedelta

from lockledger import (
    LockingLedger, LockLedger, AddressRegistry, SnapshotEngine,
    AuthorizationRegistry,
)

from tests.fake_view import FakeBalances


T0 = datetime(2025, 1, 1)
ADMIN = "admin"
OPERATOR = "operator"


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def assert_invariants(ledger: LockingLedger) -> None:
    """Fail with the discrepancy list if any ledger invariant is broken."""
    result = ledger.verify_invariants()
    assert result['valid'], f"Invariants violated: {result['discrepancies']}"


# =============================================================================
# LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Fresh ledger with no holders."""
    return LockingLedger("test", ADMIN, T0, verbose=False, test_mode=True)


@pytest.fixture
def funded_ledger(ledger):
    """Ledger where alice holds 1000 and bob holds 500."""
    ledger.mint(ADMIN, "alice", 1000)
    ledger.mint(ADMIN, "bob", 500)
    return ledger


@pytest.fixture
def operator_ledger(funded_ledger):
    """Funded ledger with an approved non-administrator operator."""
    funded_ledger.add_approved(ADMIN, OPERATOR)
    return funded_ledger


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def balances():
    return FakeBalances({"alice": 1000, "bob": 500})


@pytest.fixture
def locks(balances):
    return LockLedger(balances)


@pytest.fixture
def registry():
    return AddressRegistry()


@pytest.fixture
def snapshot_engine(balances, registry):
    return SnapshotEngine(balances, registry)


@pytest.fixture
def auth():
    return AuthorizationRegistry(ADMIN)


@pytest.fixture
def days():
    """Build a time offset from T0: days(90) == T0 + 90 days."""
    def _at(n: float) -> datetime:
        return T0 + timedelta(days=n)
    return _at
