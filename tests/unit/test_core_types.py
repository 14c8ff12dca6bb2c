"""
test_core_types.py - Unit tests for core types and helpers

Tests:
- remove_unordered swap-and-truncate behaviour
- Lock expiry
- Holder and amount validation
- Notification records
"""

import pytest
from datetime import datetime, timedelta

from lockledger import (
    Lock, LockSummary, LockEvent, UnlockEvent, SnapshotCreated,
    InvalidHolder, InvalidAmount, LedgerError,
    NULL_HOLDER, is_null_holder, remove_unordered,
)
from lockledger.core import require_amount, require_holder


T0 = datetime(2025, 1, 1)


class TestRemoveUnordered:
    """Tests for the shared swap-and-truncate primitive."""

    def test_remove_middle_moves_last_into_slot(self):
        items = ["a", "b", "c", "d"]
        removed = remove_unordered(items, 1)
        assert removed == "b"
        assert items == ["a", "d", "c"]

    def test_remove_last_just_truncates(self):
        items = ["a", "b", "c"]
        removed = remove_unordered(items, 2)
        assert removed == "c"
        assert items == ["a", "b"]

    def test_remove_first(self):
        items = [1, 2, 3]
        assert remove_unordered(items, 0) == 1
        assert items == [3, 2]

    def test_remove_only_element(self):
        items = ["x"]
        assert remove_unordered(items, 0) == "x"
        assert items == []

    def test_out_of_range_raises(self):
        items = [1, 2]
        with pytest.raises(IndexError):
            remove_unordered(items, 2)
        with pytest.raises(IndexError):
            remove_unordered(items, -1)
        assert items == [1, 2]

    def test_preserves_multiset(self):
        items = list(range(10))
        remove_unordered(items, 4)
        assert sorted(items) == [0, 1, 2, 3, 5, 6, 7, 8, 9]


class TestLock:
    """Tests for the Lock record."""

    def test_lock_is_immutable(self):
        lock = Lock(T0, 100)
        with pytest.raises(AttributeError):
            lock.amount = 50

    def test_expired_at_release_time(self):
        lock = Lock(T0 + timedelta(days=1), 100)
        assert not lock.is_expired(T0)
        assert lock.is_expired(T0 + timedelta(days=1))
        assert lock.is_expired(T0 + timedelta(days=2))

    def test_locks_compare_by_value(self):
        assert Lock(T0, 100) == Lock(T0, 100)
        assert Lock(T0, 100) != Lock(T0, 101)

    def test_summary_fields(self):
        summary = LockSummary(holder_count=2, total_locked=300, lock_count=3)
        assert summary.total_locked == 300


class TestValidation:
    """Tests for holder and amount validation helpers."""

    @pytest.mark.parametrize("holder", [None, "", NULL_HOLDER])
    def test_null_holders(self, holder):
        assert is_null_holder(holder)
        with pytest.raises(InvalidHolder):
            require_holder(holder)

    def test_real_holder_passes(self):
        assert not is_null_holder("alice")
        assert require_holder("alice") == "alice"

    @pytest.mark.parametrize("amount", [0, -1, 1.5, "10", True, None])
    def test_invalid_amounts(self, amount):
        with pytest.raises(InvalidAmount):
            require_amount(amount)

    def test_zero_allowed_when_requested(self):
        assert require_amount(0, allow_zero=True) == 0
        with pytest.raises(InvalidAmount):
            require_amount(-1, allow_zero=True)

    def test_errors_share_base_class(self):
        assert issubclass(InvalidHolder, LedgerError)
        assert issubclass(InvalidAmount, LedgerError)


class TestNotifications:
    """Tests for notification records."""

    def test_lock_event_payload(self):
        event = LockEvent("alice", 400, T0, "admin")
        assert (event.holder, event.amount, event.release_time, event.operator) == \
            ("alice", 400, T0, "admin")
        assert "LOCK alice 400" in str(event)

    def test_unlock_event_str(self):
        assert str(UnlockEvent("bob", 5, "bob")) == "UNLOCK bob 5 by bob"

    def test_snapshot_created_str(self):
        assert str(SnapshotCreated(3, 2, 1500)) == "SNAPSHOT #3 holders=2 supply=1500"
