"""
ledger.py - Stateful lock ledger

The LockingLedger class is the central state manager. It is the only module
callers use to mutate state, ensuring controlled and auditable changes.

Key responsibilities:
    - Composes the authorization registry, address registry, lock ledger,
      transfer guard and snapshot engine around a base ledger collaborator
    - Runs every operation under one re-entrant lock (single serialization point)
    - Makes every mutating operation all-or-nothing
    - Tracks logical time (advance_time) used for lock expiry and snapshots
    - Publishes notifications only for committed operations
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple
import threading

from .addresses import AddressRegistry
from .authorization import AuthorizationRegistry
from .balances import BalanceBook, PauseSwitch
from .core import (
    # Types
    BaseLedger, Holder, Lock, LockSummary, PauseSource, Notification,
    LockEvent, UnlockEvent, FreezeEvent, UnfreezeEvent, SnapshotCreated,
    # Constants
    DEFAULT_MAX_LOCK_DURATION,
    TRANSFER_KIND_TRANSFER, TRANSFER_KIND_TRANSFER_FROM, TRANSFER_KIND_BURN,
    # Exceptions
    LedgerError, AccountFrozen, InvalidReleaseTime, NotAuthorized,
    # Helpers
    require_amount, require_holder,
)
from .guard import GuardOutcome, TransferGuard, TransferRequest
from .locks import LockCheckpoint, LockLedger
from .snapshots import SnapshotEngine


Subscriber = Callable[[Notification], None]


class _Journal:
    """Undo information and pending notifications for one operation."""

    def __init__(self):
        self.lock_checkpoints: Dict[Holder, LockCheckpoint] = {}
        self.registered: List[Holder] = []
        self.events: List[Notification] = []

    def emit(self, event: Notification) -> None:
        self.events.append(event)


class LockingLedger:
    """
    Balance ledger with time locks, freezes, snapshots and capability checks.

    Balances live in a base ledger collaborator (BalanceBook by default);
    this class reads and constrains them.

    Thread Safety:
        Every public method runs under one RLock, so operations never
        interleave and queries never observe a half-applied change.

    Example:
        ledger = LockingLedger("main", administrator="admin")
        ledger.mint("admin", "alice", 1000)
        ledger.lock("admin", "alice", 400, ledger.current_time + timedelta(days=90))
        ledger.available_balance("alice")   # 600
        ledger.transfer("alice", "bob", 700)  # raises LockedBalanceExceeded
    """

    def __init__(
        self,
        name: str,
        administrator: Holder,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False,
        auto_unlock: bool = True,
        max_lock_duration: Optional[timedelta] = DEFAULT_MAX_LOCK_DURATION,
        balances: Optional[BaseLedger] = None,
        pause: Optional[PauseSource] = None,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            administrator: Holder with full privileges
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Print committed notifications and rejections (default: True)
            test_mode: Enable set_balance() calls (default: False)
            auto_unlock: Release expired locks before outgoing transfers (default: True)
            max_lock_duration: Ceiling on release_time - now, None for no ceiling
            balances: Base ledger collaborator (default: new BalanceBook)
            pause: Pause collaborator (default: new PauseSwitch)
        """
        self.name = name
        self.verbose = verbose
        self.max_lock_duration = max_lock_duration
        self._test_mode = test_mode
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._mutex = threading.RLock()
        self._subscribers: List[Subscriber] = []
        self.event_log: List[Notification] = []
        self.subscriber_errors: List[Tuple[Notification, Exception]] = []

        self.balances: BaseLedger = balances if balances is not None else BalanceBook(test_mode=test_mode)
        self.pause: PauseSource = pause if pause is not None else PauseSwitch()
        self.frozen: Set[Holder] = set()
        self.auth = AuthorizationRegistry(administrator)
        self.registry = AddressRegistry()
        self.locks = LockLedger(self.balances)
        self.snapshots = SnapshotEngine(self.balances, self.registry)
        self.guard = TransferGuard(
            self.locks, self.balances, self.registry, self.pause,
            is_frozen=self.is_frozen, auto_unlock=auto_unlock,
        )

    # ========================================================================
    # SERIALIZATION AND ROLLBACK
    # ========================================================================

    @contextmanager
    def _atomic(self, operation: str) -> Iterator[_Journal]:
        """
        Run one mutating operation as an indivisible step.

        On any exception the touched lock collections are restored, holders
        registered during the operation are removed again, and queued
        notifications are dropped.
        """
        with self._mutex:
            journal = _Journal()
            try:
                yield journal
            except Exception as exc:
                self._rollback(journal)
                if self.verbose and isinstance(exc, LedgerError):
                    print(f"✗ REJECTED {operation}: {exc}")
                raise
            self._publish(journal.events)

    def _touch_locks(self, journal: _Journal, holder: Holder) -> None:
        if holder not in journal.lock_checkpoints:
            journal.lock_checkpoints[holder] = self.locks.checkpoint(holder)

    def _rollback(self, journal: _Journal) -> None:
        for holder, checkpoint in journal.lock_checkpoints.items():
            self.locks.restore(holder, checkpoint)
        for holder in reversed(journal.registered):
            if self.registry.is_registered(holder):
                self.registry.unregister(holder)

    def _publish(self, events: List[Notification]) -> None:
        """
        Record and announce the notifications of a committed operation.

        The operation has already succeeded, so a failing subscriber is
        reported and skipped; it neither aborts the caller nor stops the
        remaining subscribers or events.
        """
        self.event_log.extend(events)
        for event in events:
            if self.verbose:
                print(f"✓ {event}")
            for subscriber in list(self._subscribers):
                try:
                    subscriber(event)
                except Exception as exc:
                    self.subscriber_errors.append((event, exc))
                    if self.verbose:
                        print(f"⚠️  SUBSCRIBER FAILED on {event}: {exc!r}")

    def subscribe(self, callback: Subscriber) -> None:
        """Call callback with every notification of a committed operation."""
        with self._mutex:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._mutex:
            self._subscribers.remove(callback)

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        with self._mutex:
            if new_time < self._current_time:
                raise ValueError(
                    f"Cannot move time backwards: {new_time} < {self._current_time}"
                )
            self._current_time = new_time

    # ========================================================================
    # BALANCE QUERIES
    # ========================================================================

    def balance_of(self, holder: Holder) -> int:
        with self._mutex:
            return self.balances.balance_of(holder)

    def total_supply(self) -> int:
        with self._mutex:
            return self.balances.total_supply()

    def available_balance(self, holder: Holder) -> int:
        """Total balance minus the locked aggregate."""
        with self._mutex:
            return self.locks.available_balance(holder)

    def allowance(self, owner: Holder, spender: Holder) -> int:
        with self._mutex:
            return self.balances.allowance(owner, spender)

    # ========================================================================
    # BASE LEDGER OPERATIONS (Mutating)
    # ========================================================================

    def mint(self, caller: Holder, to: Holder, amount: int) -> None:
        """Issue new units to a holder. Administrator only."""
        with self._atomic("mint") as journal:
            self.auth.require_administrator(caller)
            require_holder(to)
            require_amount(amount)
            if not self.balances.mint(to, amount):
                raise LedgerError(f"Base ledger refused mint of {amount} to {to}")
            if self.registry.register_if_needed(to):
                journal.registered.append(to)

    def set_balance(self, holder: Holder, amount: int) -> None:
        """
        Set a holder's balance directly and register the holder.

        WARNING: Bypasses lock coverage and is only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use mint() and transfer() to modify balances. "
                "Set test_mode=True when creating LockingLedger for testing."
            )
        with self._mutex:
            self.balances.set_balance(holder, amount)
            self.registry.register_if_needed(holder)

    def approve(self, caller: Holder, spender: Holder, amount: int) -> None:
        """Allow spender to move up to amount of caller's funds."""
        with self._atomic("approve"):
            self.balances.approve(caller, spender, amount)

    def transfer(self, caller: Holder, to: Holder, amount: int) -> GuardOutcome:
        """Move amount of caller's unlocked funds to another holder."""
        with self._atomic("transfer") as journal:
            return self._guarded(journal, caller, caller, to, amount, TRANSFER_KIND_TRANSFER)

    def transfer_from(self, caller: Holder, source: Holder, to: Holder, amount: int) -> GuardOutcome:
        """Move amount of source's unlocked funds, spending caller's allowance."""
        with self._atomic("transfer_from") as journal:
            return self._guarded(journal, caller, source, to, amount, TRANSFER_KIND_TRANSFER_FROM)

    def burn(self, caller: Holder, amount: int) -> GuardOutcome:
        """
        Destroy amount of caller's own unlocked funds.

        Self-burn is for holders only; the administrator issues supply with
        mint() and may not burn.
        """
        with self._atomic("burn") as journal:
            if self.auth.is_administrator(caller):
                raise NotAuthorized(f"{caller} is the administrator and may not self-burn")
            return self._guarded(journal, caller, caller, None, amount, TRANSFER_KIND_BURN)

    def _guarded(
        self,
        journal: _Journal,
        operator: Holder,
        source: Holder,
        dest: Optional[Holder],
        amount: int,
        kind: str,
    ) -> GuardOutcome:
        request = TransferRequest(
            operator=operator, source=source, dest=dest, amount=amount,
            timestamp=self._current_time, kind=kind,
        )
        self._touch_locks(journal, source)
        outcome = self.guard.run(request)
        for lock in outcome.released:
            journal.emit(UnlockEvent(source, lock.amount, operator))
        if outcome.recipient_registered:
            journal.registered.append(dest)
        return outcome

    # ========================================================================
    # LOCKS (Mutating)
    # ========================================================================

    def lock(self, caller: Holder, holder: Holder, amount: int, release_time: datetime) -> Lock:
        """Lock part of holder's unlocked balance. Approved callers only."""
        with self._atomic("lock") as journal:
            self.auth.require_capable(caller)
            return self._create_lock(journal, caller, holder, amount, release_time)

    def transfer_with_lock(
        self,
        caller: Holder,
        to: Holder,
        amount: int,
        release_time: datetime,
    ) -> Lock:
        """
        Deposit amount into to's balance and lock it until release_time.

        The transfer goes through the guard on the caller's side. The lock
        parameters are validated before the transfer so a bad release time
        never moves funds.
        """
        with self._atomic("transfer_with_lock") as journal:
            self.auth.require_capable(caller)
            require_holder(to)
            require_amount(amount)
            self._check_release_time(release_time)
            self._guarded(journal, caller, caller, to, amount, TRANSFER_KIND_TRANSFER)
            return self._create_lock(journal, caller, to, amount, release_time)

    def _check_release_time(self, release_time: datetime) -> None:
        now = self._current_time
        if release_time <= now:
            raise InvalidReleaseTime(f"Release time {release_time} is not after current time {now}")
        if self.max_lock_duration is not None and release_time - now > self.max_lock_duration:
            raise InvalidReleaseTime(
                f"Release time {release_time} exceeds maximum lock duration {self.max_lock_duration}"
            )

    def _create_lock(
        self,
        journal: _Journal,
        operator: Holder,
        holder: Holder,
        amount: int,
        release_time: datetime,
    ) -> Lock:
        self._touch_locks(journal, holder)
        lock = self.locks.create_lock(
            holder, amount, release_time, self._current_time, self.max_lock_duration,
        )
        journal.emit(LockEvent(holder, amount, release_time, operator))
        return lock

    def release(self, caller: Holder, holder: Holder, index: int) -> Lock:
        """
        Release one expired lock.

        The holder may release its own locks unless frozen; approved callers
        may release anyone's.
        """
        with self._atomic("release") as journal:
            self._require_release_right(caller, holder)
            self._touch_locks(journal, holder)
            lock = self.locks.release_one(holder, index, self._current_time)
            journal.emit(UnlockEvent(holder, lock.amount, caller))
            return lock

    def release_all(self, caller: Holder, holder: Holder) -> int:
        """Release every expired lock of holder. Returns the number released."""
        with self._atomic("release_all") as journal:
            self._require_release_right(caller, holder)
            self._touch_locks(journal, holder)
            released = self.locks.release_all_expired(holder, self._current_time)
            for lock in released:
                journal.emit(UnlockEvent(holder, lock.amount, caller))
            return len(released)

    def _require_release_right(self, caller: Holder, holder: Holder) -> None:
        require_holder(holder)
        if self.auth.is_capable(caller):
            return
        if caller != holder:
            raise NotAuthorized(f"{caller} may not release locks of {holder}")
        if holder in self.frozen:
            raise AccountFrozen(f"{holder} is frozen")

    # ========================================================================
    # LOCK QUERIES
    # ========================================================================

    def locked_amount(self, holder: Holder) -> int:
        with self._mutex:
            return self.locks.locked_amount(holder)

    def lock_count(self, holder: Holder) -> int:
        with self._mutex:
            return self.locks.lock_count(holder)

    def lock_details(self, holder: Holder) -> Tuple[Tuple[datetime, ...], Tuple[int, ...]]:
        with self._mutex:
            return self.locks.lock_details(holder)

    def lock_summary(self) -> LockSummary:
        """Aggregate lock figures over every registered holder (a full scan)."""
        with self._mutex:
            return self.locks.summary(self.registry)

    # ========================================================================
    # FREEZE AND CONFIGURATION (Mutating)
    # ========================================================================

    def is_frozen(self, holder: Holder) -> bool:
        return holder in self.frozen

    def freeze(self, caller: Holder, holder: Holder) -> None:
        with self._atomic("freeze") as journal:
            self.auth.require_administrator(caller)
            require_holder(holder)
            if holder not in self.frozen:
                self.frozen.add(holder)
                journal.emit(FreezeEvent(holder))

    def unfreeze(self, caller: Holder, holder: Holder) -> None:
        with self._atomic("unfreeze") as journal:
            self.auth.require_administrator(caller)
            require_holder(holder)
            if holder in self.frozen:
                self.frozen.discard(holder)
                journal.emit(UnfreezeEvent(holder))

    def is_paused(self) -> bool:
        with self._mutex:
            return self.pause.is_paused()

    @property
    def auto_unlock(self) -> bool:
        return self.guard.auto_unlock

    def set_auto_unlock(self, caller: Holder, enabled: bool) -> None:
        with self._atomic("set_auto_unlock"):
            self.auth.require_administrator(caller)
            self.guard.auto_unlock = bool(enabled)

    # ========================================================================
    # AUTHORIZATION
    # ========================================================================

    @property
    def administrator(self) -> Holder:
        return self.auth.administrator

    def is_capable(self, caller: Holder) -> bool:
        with self._mutex:
            return self.auth.is_capable(caller)

    def list_approved(self) -> Tuple[Holder, ...]:
        with self._mutex:
            return self.auth.list_approved()

    def add_approved(self, caller: Holder, member: Holder) -> None:
        with self._atomic("add_approved"):
            self.auth.add_approved(caller, member)

    def remove_approved(self, caller: Holder, member: Holder) -> bool:
        with self._atomic("remove_approved"):
            return self.auth.remove_approved(caller, member)

    # ========================================================================
    # ADDRESS REGISTRY
    # ========================================================================

    def is_registered(self, holder: Holder) -> bool:
        with self._mutex:
            return self.registry.is_registered(holder)

    def list_holders(self) -> Tuple[Holder, ...]:
        with self._mutex:
            return self.registry.holders()

    def register(self, caller: Holder, holder: Holder) -> None:
        with self._atomic("register"):
            self.auth.require_capable(caller)
            self.registry.register(holder)

    def unregister(self, caller: Holder, holder: Holder) -> None:
        with self._atomic("unregister"):
            self.auth.require_capable(caller)
            self.registry.unregister(holder)

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def create_snapshot(self, caller: Holder) -> int:
        """Record all positive balances and total supply. Returns the new id."""
        with self._atomic("create_snapshot") as journal:
            self.auth.require_administrator(caller)
            snapshot = self.snapshots.create_snapshot(self._current_time)
            journal.emit(SnapshotCreated(
                snapshot.snapshot_id, len(snapshot.included), snapshot.total_supply,
            ))
            return snapshot.snapshot_id

    def add_holder_to_snapshot(self, caller: Holder, holder: Holder, snapshot_id: int) -> bool:
        """Stamp holder's current balance into an existing snapshot."""
        with self._atomic("add_holder_to_snapshot"):
            self.auth.require_administrator(caller)
            return self.snapshots.add_holder(holder, snapshot_id)

    def add_holders_to_snapshot(self, caller: Holder, holders: List[Holder], snapshot_id: int) -> int:
        with self._atomic("add_holders_to_snapshot"):
            self.auth.require_administrator(caller)
            return self.snapshots.add_holders(holders, snapshot_id)

    @property
    def latest_snapshot_id(self) -> int:
        with self._mutex:
            return self.snapshots.latest_id

    def balance_at(self, holder: Holder, snapshot_id: int) -> int:
        with self._mutex:
            return self.snapshots.balance_at(holder, snapshot_id)

    def total_supply_at(self, snapshot_id: int) -> int:
        with self._mutex:
            return self.snapshots.total_supply_at(snapshot_id)

    def snapshot_time(self, snapshot_id: int) -> datetime:
        with self._mutex:
            return self.snapshots.timestamp_of(snapshot_id)

    def snapshot_holders(self, snapshot_id: int) -> Tuple[Holder, ...]:
        with self._mutex:
            return self.snapshots.included_holders(snapshot_id)

    def snapshot_holder_count(self, snapshot_id: int) -> int:
        with self._mutex:
            return self.snapshots.holder_count(snapshot_id)

    def is_in_snapshot(self, holder: Holder, snapshot_id: int) -> bool:
        with self._mutex:
            return self.snapshots.is_included(holder, snapshot_id)

    # ========================================================================
    # VERIFICATION AND CLONING
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the lock and registry invariants.

        Returns:
            Dict with keys:
            - 'valid': bool - True if no discrepancy was found
            - 'locked': Dict[str, int] - Cached locked amount per holder with locks
            - 'discrepancies': List[Dict] - One entry per violation, with a
              'check' key naming the violated invariant

        Example:
            result = ledger.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        with self._mutex:
            locked: Dict[Holder, int] = {}
            discrepancies: List[Dict[str, Any]] = []

            for holder in self.locks.holders_with_locks():
                cached = self.locks.locked_amount(holder)
                actual = sum(lock.amount for lock in self.locks.locks_of(holder))
                balance = self.balances.balance_of(holder)
                locked[holder] = cached
                if cached != actual:
                    discrepancies.append({
                        'check': 'cache',
                        'holder': holder,
                        'cached': cached,
                        'actual': actual,
                    })
                if balance < cached:
                    discrepancies.append({
                        'check': 'coverage',
                        'holder': holder,
                        'balance': balance,
                        'locked': cached,
                    })

            holders = self.registry.holders()
            if len(holders) != len(set(holders)):
                discrepancies.append({
                    'check': 'registry',
                    'error': 'duplicate holder in registry',
                })
            members = self.registry.members()
            if set(holders) != members:
                discrepancies.append({
                    'check': 'registry',
                    'error': 'registered flags disagree with holder list',
                    'unlisted': sorted(members - set(holders)),
                    'unflagged': sorted(set(holders) - members),
                })

            return {
                'valid': len(discrepancies) == 0,
                'locked': locked,
                'discrepancies': discrepancies,
            }

    def clone(self) -> LockingLedger:
        """
        Create an independent deep copy of this ledger.

        Requires the base ledger to support copy(); subscribers and the event
        log are not carried over.
        """
        with self._mutex:
            cloned = LockingLedger.__new__(LockingLedger)
            cloned.name = self.name
            cloned.verbose = self.verbose
            cloned.max_lock_duration = self.max_lock_duration
            cloned._test_mode = self._test_mode
            cloned._current_time = self._current_time
            cloned._mutex = threading.RLock()
            cloned._subscribers = []
            cloned.event_log = []
            cloned.subscriber_errors = []

            cloned.balances = self.balances.copy()
            cloned.pause = PauseSwitch(self.pause.is_paused())
            cloned.frozen = set(self.frozen)
            cloned.auth = self.auth.copy()
            cloned.registry = self.registry.copy()
            cloned.locks = self.locks.copy(cloned.balances)
            cloned.snapshots = self.snapshots.copy(cloned.balances, cloned.registry)
            cloned.guard = TransferGuard(
                cloned.locks, cloned.balances, cloned.registry, cloned.pause,
                is_frozen=cloned.is_frozen, auto_unlock=self.guard.auto_unlock,
            )
            return cloned

    def __repr__(self) -> str:
        return (f"LockingLedger({self.name!r}, holders={len(self.registry)}, "
                f"snapshots={len(self.snapshots)}, time={self._current_time.isoformat()})")
