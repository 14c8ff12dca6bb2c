"""
addresses.py - Registry of every holder ever observed

The registry is the single iteration source for aggregate queries: the lock
summary and snapshot creation both walk it. Holders enter on explicit
registration or on first receipt of funds, and leave only by explicit
unregistration.

Invariant: is_registered(h) <=> h in holders(), and no holder appears twice.
"""

from __future__ import annotations
from typing import FrozenSet, Iterator, List, Set, Tuple

from .core import (
    Holder,
    AlreadyRegistered, NotRegistered,
    is_null_holder, remove_unordered, require_holder,
)


class AddressRegistry:
    """Ordered list of holders backed by a membership set."""

    def __init__(self):
        self._holders: List[Holder] = []
        self._registered: Set[Holder] = set()

    def is_registered(self, holder: Holder) -> bool:
        return holder in self._registered

    def register(self, holder: Holder) -> None:
        """
        Add holder to the registry.

        Raises:
            InvalidHolder: If holder is the null identity
            AlreadyRegistered: If holder is already present
        """
        require_holder(holder)
        if holder in self._registered:
            raise AlreadyRegistered(f"{holder} already registered")
        self._holders.append(holder)
        self._registered.add(holder)

    def register_if_needed(self, holder: Holder) -> bool:
        """Idempotent registration. Returns True only if holder was added."""
        if is_null_holder(holder) or holder in self._registered:
            return False
        self._holders.append(holder)
        self._registered.add(holder)
        return True

    def unregister(self, holder: Holder) -> None:
        """
        Remove holder from the registry by swap-and-truncate.

        Raises:
            NotRegistered: If holder is not present
        """
        if holder not in self._registered:
            raise NotRegistered(f"{holder} not registered")
        remove_unordered(self._holders, self._holders.index(holder))
        self._registered.discard(holder)

    def holders(self) -> Tuple[Holder, ...]:
        return tuple(self._holders)

    def members(self) -> FrozenSet[Holder]:
        """Holders flagged as registered."""
        return frozenset(self._registered)

    def copy(self) -> AddressRegistry:
        cloned = AddressRegistry()
        cloned._holders = list(self._holders)
        cloned._registered = set(self._registered)
        return cloned

    def __len__(self) -> int:
        return len(self._holders)

    def __iter__(self) -> Iterator[Holder]:
        return iter(tuple(self._holders))

    def __contains__(self, holder: object) -> bool:
        return holder in self._registered

    def __repr__(self) -> str:
        return f"AddressRegistry({len(self._holders)} holders)"
