"""
Core types and pure helpers for the lock ledger.

This module provides the foundational data structures and protocols:
1. Protocols: BalanceView, BaseLedger and PauseSource collaborators
2. Immutable data structures: Lock, LockSummary and the notification records
3. Exceptions: LedgerError and the domain-specific error types
4. Type aliases: Holder, BalanceMap
5. remove_unordered: the shared swap-and-truncate removal primitive

Nothing in this module mutates ledger state except remove_unordered, which
operates only on the list it is handed.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import (
    Dict, List, Optional, Any, Protocol, TypeVar, Union,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# The null identity. Never a valid holder, approved caller or lock owner.
NULL_HOLDER = "0x0000000000000000000000000000000000000000"

# Upper bound on how far in the future a lock may release.
DEFAULT_MAX_LOCK_DURATION = timedelta(days=3650)

# Kinds of balance-reducing movement the transfer guard intercepts.
TRANSFER_KIND_TRANSFER = "transfer"
TRANSFER_KIND_TRANSFER_FROM = "transfer_from"
TRANSFER_KIND_BURN = "burn"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Opaque account identifier (fixed-width address string).
Holder = str

# Mapping from holder to an integer amount of base units.
BalanceMap = Dict[str, int]

T = TypeVar("T")


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class BalanceView(Protocol):
    """
    Read-only interface to the base ledger.

    The lock engine never owns balance storage. It reads the current total
    balance of a holder (locked funds included) and the total supply through
    this protocol.
    """

    def balance_of(self, holder: Holder) -> int:
        """Return the holder's total balance, 0 if unknown."""
        ...

    def total_supply(self) -> int:
        """Return the sum of all balances."""
        ...


@runtime_checkable
class BaseLedger(BalanceView, Protocol):
    """
    Mutating interface to the base ledger.

    move/burn/mint return True on success. The guard treats a falsy return
    as a failed movement and aborts the surrounding operation.
    """

    def move(self, source: Holder, dest: Holder, amount: int) -> bool:
        ...

    def burn(self, holder: Holder, amount: int) -> bool:
        ...

    def mint(self, holder: Holder, amount: int) -> bool:
        ...

    def approve(self, owner: Holder, spender: Holder, amount: int) -> None:
        ...

    def allowance(self, owner: Holder, spender: Holder) -> int:
        ...

    def spend_allowance(self, owner: Holder, spender: Holder, amount: int) -> None:
        """Reduce the allowance, raising InsufficientAllowance if it is too small."""
        ...


@runtime_checkable
class PauseSource(Protocol):
    """Global circuit breaker consulted before every balance reduction."""

    def is_paused(self) -> bool:
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InvalidHolder(LedgerError):
    """Raised when the null identity is used where a real holder is required."""
    pass


class InvalidAmount(LedgerError):
    """Raised for a zero, negative or non-integer amount."""
    pass


class InvalidReleaseTime(LedgerError):
    """Raised when a release time is not strictly in the future or exceeds the ceiling."""
    pass


class InsufficientUnlockedBalance(LedgerError):
    """Raised when a new lock would exceed the holder's unlocked balance."""
    pass


class LockedBalanceExceeded(LedgerError):
    """Raised when a balance reduction would dip into locked funds."""
    pass


class LockNotExpired(LedgerError):
    """Raised when releasing a lock before its release time."""
    pass


class IndexOutOfRange(LedgerError):
    """Raised when a lock index does not address an existing lock."""
    pass


class NotAuthorized(LedgerError):
    """Raised when the caller lacks the capability for a privileged operation."""
    pass


class AlreadyApproved(LedgerError):
    """Raised when approving a caller that is already approved."""
    pass


class AlreadyRegistered(LedgerError):
    """Raised when registering a holder that is already in the address registry."""
    pass


class NotRegistered(LedgerError):
    """Raised when unregistering a holder that is not in the address registry."""
    pass


class AccountFrozen(LedgerError):
    """Raised when a frozen holder attempts a balance-reducing or claim operation."""
    pass


class SystemPaused(LedgerError):
    """Raised when a balance reduction is attempted while the system is paused."""
    pass


class SnapshotNotFound(LedgerError):
    """Raised when a snapshot id has not been issued."""
    pass


class InsufficientFunds(LedgerError):
    """Raised by the base ledger when a holder's balance cannot cover a movement."""
    pass


class InsufficientAllowance(LedgerError):
    """Raised when a transfer-on-behalf exceeds the spender's allowance."""
    pass


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def is_null_holder(holder: Optional[Holder]) -> bool:
    """True for None, the empty string and NULL_HOLDER."""
    return not holder or holder == NULL_HOLDER


def require_holder(holder: Optional[Holder]) -> Holder:
    """Return holder unchanged, raising InvalidHolder for the null identity."""
    if is_null_holder(holder):
        raise InvalidHolder(f"Null identity is not a valid holder: {holder!r}")
    return holder


def require_amount(amount: Any, allow_zero: bool = False) -> int:
    """
    Validate an amount of base units.

    bool is rejected even though it subclasses int.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return amount


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Lock:
    """
    An encumbrance of part of a holder's balance.

    Attributes:
        release_time: Earliest time at which the lock may be released.
        amount: Number of base units held back until release_time.

    A lock is released in full or not at all.
    """
    release_time: datetime
    amount: int

    def is_expired(self, now: datetime) -> bool:
        return self.release_time <= now

    def __repr__(self) -> str:
        return f"Lock({self.amount} until {self.release_time.isoformat()})"


@dataclass(frozen=True, slots=True)
class LockSummary:
    """
    Aggregate lock figures across all registered holders.

    Attributes:
        holder_count: Holders with a strictly positive locked amount.
        total_locked: Sum of those holders' locked amounts.
        lock_count: Sum of those holders' lock counts.
    """
    holder_count: int
    total_locked: int
    lock_count: int


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@dataclass(frozen=True, slots=True)
class LockEvent:
    holder: Holder
    amount: int
    release_time: datetime
    operator: Holder

    def __str__(self) -> str:
        return (f"LOCK {self.holder} {self.amount} until "
                f"{self.release_time.isoformat()} by {self.operator}")


@dataclass(frozen=True, slots=True)
class UnlockEvent:
    holder: Holder
    amount: int
    operator: Holder

    def __str__(self) -> str:
        return f"UNLOCK {self.holder} {self.amount} by {self.operator}"


@dataclass(frozen=True, slots=True)
class FreezeEvent:
    holder: Holder

    def __str__(self) -> str:
        return f"FREEZE {self.holder}"


@dataclass(frozen=True, slots=True)
class UnfreezeEvent:
    holder: Holder

    def __str__(self) -> str:
        return f"UNFREEZE {self.holder}"


@dataclass(frozen=True, slots=True)
class SnapshotCreated:
    snapshot_id: int
    holder_count: int
    total_supply: int

    def __str__(self) -> str:
        return (f"SNAPSHOT #{self.snapshot_id} holders={self.holder_count} "
                f"supply={self.total_supply}")


Notification = Union[LockEvent, UnlockEvent, FreezeEvent, UnfreezeEvent, SnapshotCreated]


# ============================================================================
# UNORDERED REMOVAL
# ============================================================================

def remove_unordered(items: List[T], index: int) -> T:
    """
    Remove and return items[index] in O(1) by swap-and-truncate.

    The last element is moved into the vacated slot (unless index is the last
    position) and the list shrinks by one. Element order is not preserved, so
    a forward scan that removes while iterating must re-examine the same index
    after each removal instead of advancing.

    Raises:
        IndexError: If index does not address an element.
    """
    if index < 0 or index >= len(items):
        raise IndexError(f"index {index} out of range for length {len(items)}")
    removed = items[index]
    last = len(items) - 1
    if index != last:
        items[index] = items[last]
    items.pop()
    return removed
