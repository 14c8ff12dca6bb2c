"""
lockledger - Balance ledger with time locks, snapshots and capability checks

Tracks how much of each holder's balance is encumbered by time locks,
releases locks on demand or automatically before outgoing transfers, freezes
point-in-time views of all balances, and gates privileged mutations behind
an administrator-or-approved capability check.

Usage:
    from datetime import datetime, timedelta
    from lockledger import LockingLedger, LockedBalanceExceeded

    ledger = LockingLedger("main", administrator="admin",
                           initial_time=datetime(2025, 1, 1))
    ledger.mint("admin", "alice", 1000)

    # Hold back 400 units for 90 days
    ledger.lock("admin", "alice", 400, ledger.current_time + timedelta(days=90))
    ledger.available_balance("alice")     # 600

    ledger.transfer("alice", "bob", 600)  # ok
    ledger.transfer("alice", "bob", 1)    # raises LockedBalanceExceeded

    snapshot_id = ledger.create_snapshot("admin")
    ledger.balance_at("alice", snapshot_id)   # 400
"""

# Core types
from .core import (
    BalanceView,
    BaseLedger,
    PauseSource,
    Holder,
    BalanceMap,
    Lock,
    LockSummary,
    Notification,
    LockEvent,
    UnlockEvent,
    FreezeEvent,
    UnfreezeEvent,
    SnapshotCreated,
    LedgerError,
    InvalidHolder,
    InvalidAmount,
    InvalidReleaseTime,
    InsufficientUnlockedBalance,
    LockedBalanceExceeded,
    LockNotExpired,
    IndexOutOfRange,
    NotAuthorized,
    AlreadyApproved,
    AlreadyRegistered,
    NotRegistered,
    AccountFrozen,
    SystemPaused,
    SnapshotNotFound,
    InsufficientFunds,
    InsufficientAllowance,
    NULL_HOLDER,
    DEFAULT_MAX_LOCK_DURATION,
    TRANSFER_KIND_TRANSFER,
    TRANSFER_KIND_TRANSFER_FROM,
    TRANSFER_KIND_BURN,
    is_null_holder,
    remove_unordered,
)

# Components
from .authorization import AuthorizationRegistry
from .addresses import AddressRegistry
from .locks import LockLedger
from .guard import TransferGuard, TransferRequest, GuardOutcome
from .snapshots import Snapshot, SnapshotEngine
from .balances import BalanceBook, PauseSwitch

# Ledger
from .ledger import LockingLedger

__all__ = [
    # Core
    'BalanceView', 'BaseLedger', 'PauseSource', 'Holder', 'BalanceMap',
    'Lock', 'LockSummary',
    'Notification', 'LockEvent', 'UnlockEvent', 'FreezeEvent', 'UnfreezeEvent',
    'SnapshotCreated',
    'LedgerError', 'InvalidHolder', 'InvalidAmount', 'InvalidReleaseTime',
    'InsufficientUnlockedBalance', 'LockedBalanceExceeded', 'LockNotExpired',
    'IndexOutOfRange', 'NotAuthorized', 'AlreadyApproved', 'AlreadyRegistered',
    'NotRegistered', 'AccountFrozen', 'SystemPaused', 'SnapshotNotFound',
    'InsufficientFunds', 'InsufficientAllowance',
    'NULL_HOLDER', 'DEFAULT_MAX_LOCK_DURATION',
    'TRANSFER_KIND_TRANSFER', 'TRANSFER_KIND_TRANSFER_FROM', 'TRANSFER_KIND_BURN',
    'is_null_holder', 'remove_unordered',
    # Components
    'AuthorizationRegistry', 'AddressRegistry', 'LockLedger',
    'TransferGuard', 'TransferRequest', 'GuardOutcome',
    'Snapshot', 'SnapshotEngine',
    'BalanceBook', 'PauseSwitch',
    # Ledger
    'LockingLedger',
]

__version__ = '1.0.0'
