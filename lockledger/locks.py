"""
locks.py - Per-holder time locks and the cached locked amount

=== MODEL ===

Each holder owns an unordered collection of Lock records. Alongside it the
ledger keeps a denormalized cache of the locked aggregate:

    cache[h] == sum(lock.amount for lock in locks[h])

The collection and the cache are always updated in the same step, so the
equality holds at every point observable between operations.

=== BALANCE COVERAGE ===

    balance(h) - cache[h] >= 0

A new lock is admitted only if the holder's unlocked balance covers it.
The transfer guard keeps the inequality true for balance reductions.

=== REMOVAL ===

Locks are removed with remove_unordered (swap-and-truncate). Because the
element at the removed index is replaced by the former last element, the
release-all scan re-examines the same index after a removal and only advances
when it keeps a lock. That makes the scan a single O(n) pass.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .core import (
    BalanceView, Holder, Lock, LockSummary,
    InsufficientUnlockedBalance, InvalidReleaseTime, IndexOutOfRange, LockNotExpired,
    remove_unordered, require_amount, require_holder,
)


# Opaque rollback token: (locks, cached amount) for one holder.
LockCheckpoint = Tuple[Tuple[Lock, ...], int]


class LockLedger:
    """
    Owner of every holder's locks and of the locked-amount cache.

    The balance view is read, never written: this class constrains balances
    held elsewhere.
    """

    def __init__(self, balances: BalanceView):
        self._balances = balances
        self._locks: Dict[Holder, List[Lock]] = {}
        self._locked: Dict[Holder, int] = {}

    # ========================================================================
    # QUERIES
    # ========================================================================

    def locked_amount(self, holder: Holder) -> int:
        """Cached locked aggregate for holder (O(1))."""
        return self._locked.get(holder, 0)

    def available_balance(self, holder: Holder) -> int:
        """Total balance minus the locked aggregate."""
        return self._balances.balance_of(holder) - self.locked_amount(holder)

    def lock_count(self, holder: Holder) -> int:
        return len(self._locks.get(holder, ()))

    def has_locks(self, holder: Holder) -> bool:
        return bool(self._locks.get(holder))

    def locks_of(self, holder: Holder) -> Tuple[Lock, ...]:
        return tuple(self._locks.get(holder, ()))

    def lock_details(self, holder: Holder) -> Tuple[Tuple[datetime, ...], Tuple[int, ...]]:
        """
        Release times and amounts as parallel sequences.

        Position i in both tuples describes the lock currently at index i,
        which is the index release_one() expects.
        """
        locks = self._locks.get(holder, ())
        return (
            tuple(lock.release_time for lock in locks),
            tuple(lock.amount for lock in locks),
        )

    def expired_amount(self, holder: Holder, now: datetime) -> int:
        """Sum of the amounts that release_all_expired(holder, now) would free."""
        return sum(lock.amount for lock in self._locks.get(holder, ()) if lock.is_expired(now))

    def summary(self, holders: Iterable[Holder]) -> LockSummary:
        """
        Aggregate figures over holders with a positive locked amount.

        This is a scan over the supplied holders, not a cached value.
        """
        holder_count = 0
        total_locked = 0
        lock_count = 0
        for holder in holders:
            locked = self._locked.get(holder, 0)
            if locked > 0:
                holder_count += 1
                total_locked += locked
                lock_count += len(self._locks.get(holder, ()))
        return LockSummary(holder_count, total_locked, lock_count)

    def holders_with_locks(self) -> Tuple[Holder, ...]:
        return tuple(h for h, locks in self._locks.items() if locks)

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def create_lock(
        self,
        holder: Holder,
        amount: int,
        release_time: datetime,
        now: datetime,
        max_duration: Optional[timedelta] = None,
    ) -> Lock:
        """
        Encumber amount of holder's balance until release_time.

        All checks run before anything is written.

        Raises:
            InvalidHolder: If holder is the null identity
            InvalidAmount: If amount is not a positive integer
            InvalidReleaseTime: If release_time is not strictly after now, or
                                lies more than max_duration after now
            InsufficientUnlockedBalance: If the unlocked balance is below amount
        """
        require_holder(holder)
        require_amount(amount)
        if release_time <= now:
            raise InvalidReleaseTime(
                f"Release time {release_time} is not after current time {now}"
            )
        if max_duration is not None and release_time - now > max_duration:
            raise InvalidReleaseTime(
                f"Release time {release_time} exceeds maximum lock duration {max_duration}"
            )
        available = self.available_balance(holder)
        if available < amount:
            raise InsufficientUnlockedBalance(
                f"{holder}: unlocked balance {available} < lock amount {amount}"
            )

        lock = Lock(release_time=release_time, amount=amount)
        self._locks.setdefault(holder, []).append(lock)
        self._locked[holder] = self._locked.get(holder, 0) + amount
        return lock

    def release_one(self, holder: Holder, index: int, now: datetime) -> Lock:
        """
        Release the lock at index if it has expired.

        The former last lock takes the released lock's index.

        Raises:
            InvalidHolder: If holder is the null identity
            IndexOutOfRange: If index does not address a current lock
            LockNotExpired: If now is before the lock's release time
        """
        require_holder(holder)
        locks = self._locks.get(holder, [])
        if index < 0 or index >= len(locks):
            raise IndexOutOfRange(f"{holder}: lock index {index} out of range ({len(locks)} locks)")
        lock = locks[index]
        if now < lock.release_time:
            raise LockNotExpired(f"{holder}: lock {index} releases at {lock.release_time}")
        self._remove_at(holder, locks, index)
        return lock

    def release_all_expired(self, holder: Holder, now: datetime) -> List[Lock]:
        """
        Release every lock of holder whose release_time <= now.

        Returns the released locks in the order they were removed.
        """
        require_holder(holder)
        locks = self._locks.get(holder)
        if not locks:
            return []
        released: List[Lock] = []
        i = 0
        while i < len(locks):
            if locks[i].is_expired(now):
                released.append(self._remove_at(holder, locks, i))
                # Slot i now holds the former last lock; examine it next.
            else:
                i += 1
        return released

    def _remove_at(self, holder: Holder, locks: List[Lock], index: int) -> Lock:
        lock = remove_unordered(locks, index)
        remaining = self._locked[holder] - lock.amount
        if locks:
            self._locked[holder] = remaining
        else:
            del self._locks[holder]
            del self._locked[holder]
        return lock

    # ========================================================================
    # ROLLBACK
    # ========================================================================

    def checkpoint(self, holder: Holder) -> LockCheckpoint:
        return tuple(self._locks.get(holder, ())), self._locked.get(holder, 0)

    def restore(self, holder: Holder, checkpoint: LockCheckpoint) -> None:
        locks, locked = checkpoint
        if locks:
            self._locks[holder] = list(locks)
            self._locked[holder] = locked
        else:
            self._locks.pop(holder, None)
            self._locked.pop(holder, None)

    def copy(self, balances: BalanceView) -> LockLedger:
        """Independent copy reading balances from the given view."""
        cloned = LockLedger(balances)
        cloned._locks = {h: list(locks) for h, locks in self._locks.items()}
        cloned._locked = dict(self._locked)
        return cloned

    def __repr__(self) -> str:
        return f"LockLedger({len(self._locks)} holders with locks)"
