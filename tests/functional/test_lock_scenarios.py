"""
test_lock_scenarios.py - End-to-end lock ledger scenarios

Tests complete flows through LockingLedger:
- Vesting-style lock, partial transfer, expiry
- Staggered locks with partial release
- Snapshot of a mixed registry
- Operator approval and revocation
- Rejected transfer after auto-unlock
- Grant distribution with transfer_with_lock
"""

import pytest
from datetime import datetime, timedelta

from lockledger import (
    LockingLedger,
    LockedBalanceExceeded, NotAuthorized, AccountFrozen,
)


T0 = datetime(2025, 1, 1)
ADMIN = "admin"


def make_ledger(**kwargs) -> LockingLedger:
    return LockingLedger("test", ADMIN, T0, verbose=False, test_mode=True, **kwargs)


class TestVestingLock:
    """A holder with a long lock spends only the unlocked part."""

    def test_ninety_day_lock(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "alice", 1000)
        ledger.lock(ADMIN, "alice", 400, T0 + timedelta(days=90))

        assert ledger.available_balance("alice") == 600

        with pytest.raises(LockedBalanceExceeded):
            ledger.transfer("alice", "bob", 700)
        assert ledger.balance_of("alice") == 1000

        ledger.transfer("alice", "bob", 600)
        assert ledger.balance_of("alice") == 400
        assert ledger.available_balance("alice") == 0
        assert ledger.balance_of("bob") == 600

    def test_lock_expires_and_transfer_auto_unlocks(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "alice", 1000)
        ledger.lock(ADMIN, "alice", 400, T0 + timedelta(days=90))
        ledger.transfer("alice", "bob", 600)

        ledger.advance_time(T0 + timedelta(days=90))
        ledger.transfer("alice", "bob", 400)

        assert ledger.balance_of("alice") == 0
        assert ledger.locked_amount("alice") == 0
        assert ledger.verify_invariants()['valid']


class TestStaggeredRelease:
    """Locks expiring at different times release independently."""

    def test_release_all_between_expiries(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "alice", 1000)
        ledger.lock(ADMIN, "alice", 100, T0 + timedelta(seconds=1))
        ledger.lock(ADMIN, "alice", 100, T0 + timedelta(seconds=2))

        ledger.advance_time(T0 + timedelta(seconds=1.5))
        assert ledger.release_all("alice", "alice") == 1
        assert ledger.locked_amount("alice") == 100
        assert ledger.lock_details("alice") == ((T0 + timedelta(seconds=2),), (100,))

        ledger.advance_time(T0 + timedelta(seconds=2))
        assert ledger.release_all("alice", "alice") == 1
        assert ledger.locked_amount("alice") == 0

    def test_monthly_tranches(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "alice", 1200)
        for month in range(1, 13):
            ledger.lock(ADMIN, "alice", 100, T0 + timedelta(days=30 * month))

        for month in range(1, 13):
            ledger.advance_time(T0 + timedelta(days=30 * month))
            assert ledger.available_balance("alice") == 100 * (month - 1)
            ledger.release_all("alice", "alice")
            assert ledger.locked_amount("alice") == 100 * (12 - month)
            assert ledger.lock_count("alice") == 12 - month


class TestSnapshotScenario:
    """Snapshot of a registry containing a zero-balance holder."""

    def test_zero_balance_holder_excluded(self):
        ledger = make_ledger()
        ledger.set_balance("A", 500)
        ledger.set_balance("B", 0)
        assert ledger.list_holders() == ("A", "B")

        snapshot_id = ledger.create_snapshot(ADMIN)

        assert ledger.snapshot_holders(snapshot_id) == ("A",)
        assert ledger.balance_at("A", snapshot_id) == 500
        assert ledger.balance_at("B", snapshot_id) == 0
        assert not ledger.is_in_snapshot("B", snapshot_id)
        assert ledger.total_supply_at(snapshot_id) == 500

    def test_record_date_then_trading(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "A", 500)
        ledger.mint(ADMIN, "B", 300)
        ledger.advance_time(T0 + timedelta(days=10))
        record_date = ledger.create_snapshot(ADMIN)

        ledger.transfer("A", "C", 200)
        ledger.burn("B", 300)

        assert ledger.balance_at("A", record_date) == 500
        assert ledger.balance_at("B", record_date) == 300
        assert ledger.balance_at("C", record_date) == 0
        assert ledger.total_supply_at(record_date) == 800
        assert ledger.total_supply() == 500


class TestOperatorLifecycle:
    """An approved operator acts until revoked."""

    def test_approve_then_remove(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "alice", 1000)

        ledger.add_approved(ADMIN, "X")
        assert ledger.is_capable("X")
        ledger.lock("X", "alice", 100, T0 + timedelta(days=1))

        ledger.remove_approved(ADMIN, "X")
        assert not ledger.is_capable("X")
        assert ledger.is_capable(ADMIN)
        with pytest.raises(NotAuthorized):
            ledger.lock("X", "alice", 100, T0 + timedelta(days=1))
        assert ledger.locked_amount("alice") == 100


class TestAutoUnlockRollback:
    """A transfer rejected after auto-unlock leaves no trace."""

    def test_failed_transfer_keeps_expired_lock(self):
        ledger = make_ledger()
        ledger.mint(ADMIN, "alice", 1000)
        ledger.lock(ADMIN, "alice", 300, T0 + timedelta(days=1))
        ledger.lock(ADMIN, "alice", 600, T0 + timedelta(days=60))
        ledger.advance_time(T0 + timedelta(days=2))
        seen = []
        ledger.subscribe(seen.append)

        with pytest.raises(LockedBalanceExceeded):
            ledger.transfer("alice", "bob", 500)

        assert ledger.locked_amount("alice") == 900
        assert ledger.lock_count("alice") == 2
        assert ledger.balance_of("alice") == 1000
        assert not ledger.is_registered("bob")
        assert seen == []

        # The expired lock is still releasable afterwards.
        ledger.transfer("alice", "bob", 400)
        assert ledger.locked_amount("alice") == 600
        assert len(seen) == 1


class TestGrantDistribution:
    """Administrator distributes locked grants, one recipient is frozen."""

    def test_grants(self):
        ledger = make_ledger()
        ledger.add_approved(ADMIN, "treasury")
        ledger.mint(ADMIN, "treasury", 3000)
        cliff = T0 + timedelta(days=365)

        for employee in ("e1", "e2", "e3"):
            ledger.transfer_with_lock("treasury", employee, 1000, cliff)

        assert ledger.balance_of("treasury") == 0
        summary = ledger.lock_summary()
        assert (summary.holder_count, summary.total_locked, summary.lock_count) == (3, 3000, 3)

        ledger.freeze(ADMIN, "e2")
        ledger.advance_time(cliff)

        assert ledger.release_all("e1", "e1") == 1
        with pytest.raises(AccountFrozen):
            ledger.release_all("e2", "e2")
        with pytest.raises(AccountFrozen):
            ledger.transfer("e2", "e1", 1)
        ledger.transfer("e3", "e1", 1000)

        assert ledger.balance_of("e1") == 2000
        assert ledger.locked_amount("e2") == 1000
        assert ledger.verify_invariants()['valid']
