"""
snapshots.py - Point-in-time records of balances and total supply

create_snapshot() walks the address registry once and records every holder
with a strictly positive total balance (locked funds included). Total supply
and timestamp are fixed at creation and never change afterwards.

A snapshot can gain holders later through add_holder()/add_holders(). Those
calls stamp the holder's *current* balance into the snapshot, which may
differ from the balance at creation time. Past balances are not
reconstructed; catch-up inclusion records whatever is observable now.

balance_at() returns 0 both for a holder recorded with nothing and for a
holder never recorded; is_included() tells the two apart.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from .addresses import AddressRegistry
from .core import (
    BalanceView, Holder,
    SnapshotNotFound,
    is_null_holder, require_holder,
)


@dataclass(slots=True)
class Snapshot:
    """
    One snapshot. Only the engine writes to balances and included.

    Attributes:
        snapshot_id: Sequential id, starting at 1
        total_supply: Total supply at creation
        timestamp: Ledger time at creation
        balances: Recorded balance per included holder
        included: Included holders in recording order
    """
    snapshot_id: int
    total_supply: int
    timestamp: datetime
    balances: Dict[Holder, int] = field(default_factory=dict)
    included: List[Holder] = field(default_factory=list)

    def record(self, holder: Holder, balance: int) -> None:
        if holder not in self.balances:
            self.included.append(holder)
        self.balances[holder] = balance


class SnapshotEngine:
    """Issues snapshots and answers historical balance queries."""

    def __init__(self, balances: BalanceView, registry: AddressRegistry):
        self._balances = balances
        self._registry = registry
        self._snapshots: List[Snapshot] = []

    @property
    def latest_id(self) -> int:
        """Highest issued id, 0 before the first snapshot."""
        return len(self._snapshots)

    def create_snapshot(self, now: datetime) -> Snapshot:
        """Record every registered holder with a positive balance."""
        snapshot = Snapshot(
            snapshot_id=len(self._snapshots) + 1,
            total_supply=self._balances.total_supply(),
            timestamp=now,
        )
        for holder in self._registry:
            balance = self._balances.balance_of(holder)
            if balance > 0:
                snapshot.record(holder, balance)
        self._snapshots.append(snapshot)
        return snapshot

    def add_holder(self, holder: Holder, snapshot_id: int) -> bool:
        """
        Stamp holder's current balance into an existing snapshot.

        Returns True if a balance was recorded, False for a zero balance.

        Raises:
            SnapshotNotFound: If snapshot_id has not been issued
            InvalidHolder: If holder is the null identity
        """
        snapshot = self.get(snapshot_id)
        require_holder(holder)
        return self._include(snapshot, holder)

    def add_holders(self, holders: Iterable[Holder], snapshot_id: int) -> int:
        """
        Batch add_holder(). Null and zero-balance holders are skipped silently.

        Returns the number of holders recorded.
        """
        snapshot = self.get(snapshot_id)
        recorded = 0
        for holder in holders:
            if is_null_holder(holder):
                continue
            if self._include(snapshot, holder):
                recorded += 1
        return recorded

    def _include(self, snapshot: Snapshot, holder: Holder) -> bool:
        balance = self._balances.balance_of(holder)
        if balance <= 0:
            return False
        snapshot.record(holder, balance)
        return True

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get(self, snapshot_id: int) -> Snapshot:
        if isinstance(snapshot_id, bool) or not isinstance(snapshot_id, int) \
                or snapshot_id < 1 or snapshot_id > len(self._snapshots):
            raise SnapshotNotFound(
                f"Snapshot {snapshot_id} not found (latest is {len(self._snapshots)})"
            )
        return self._snapshots[snapshot_id - 1]

    def balance_at(self, holder: Holder, snapshot_id: int) -> int:
        return self.get(snapshot_id).balances.get(holder, 0)

    def total_supply_at(self, snapshot_id: int) -> int:
        return self.get(snapshot_id).total_supply

    def timestamp_of(self, snapshot_id: int) -> datetime:
        return self.get(snapshot_id).timestamp

    def included_holders(self, snapshot_id: int) -> Tuple[Holder, ...]:
        return tuple(self.get(snapshot_id).included)

    def holder_count(self, snapshot_id: int) -> int:
        return len(self.get(snapshot_id).included)

    def is_included(self, holder: Holder, snapshot_id: int) -> bool:
        for included in self.get(snapshot_id).included:
            if included == holder:
                return True
        return False

    def copy(self, balances: BalanceView, registry: AddressRegistry) -> SnapshotEngine:
        cloned = SnapshotEngine(balances, registry)
        cloned._snapshots = [
            Snapshot(
                snapshot_id=s.snapshot_id,
                total_supply=s.total_supply,
                timestamp=s.timestamp,
                balances=dict(s.balances),
                included=list(s.included),
            )
            for s in self._snapshots
        ]
        return cloned

    def __len__(self) -> int:
        return len(self._snapshots)

    def __repr__(self) -> str:
        return f"SnapshotEngine({len(self._snapshots)} snapshots)"
