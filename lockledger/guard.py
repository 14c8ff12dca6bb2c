"""
guard.py - Transfer guard for balance-reducing movements

Every transfer, transfer-on-behalf and burn passes through a fixed pipeline
of stages:

    1. unlock_expired      release the source's expired locks (if enabled)
    2. check_status        reject while paused or while the source is frozen
    3. check_coverage      reject if the movement would dip into locked funds
    4. check_allowance     reject a transfer-on-behalf beyond the allowance
    5. move                perform the movement on the base ledger
    6. register_recipient  add the recipient to the address registry

Each stage is a method taking the TransferRequest, so it can be exercised on
its own. Stage 1 mutates lock state before stage 3 may reject; the caller is
responsible for rolling back (LockingLedger does this with checkpoints).
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Tuple

from .addresses import AddressRegistry
from .core import (
    BaseLedger, Holder, Lock, PauseSource,
    LedgerError, AccountFrozen, SystemPaused, LockedBalanceExceeded, InsufficientAllowance,
    TRANSFER_KIND_TRANSFER, TRANSFER_KIND_TRANSFER_FROM, TRANSFER_KIND_BURN,
    require_amount, require_holder,
)
from .locks import LockLedger


_KINDS = (TRANSFER_KIND_TRANSFER, TRANSFER_KIND_TRANSFER_FROM, TRANSFER_KIND_BURN)


@dataclass(frozen=True, slots=True)
class TransferRequest:
    """
    A balance reduction waiting to pass the guard.

    Attributes:
        operator: Caller performing the movement (spender for transfer_from).
        source: Holder whose balance is reduced.
        dest: Recipient; None for burns. validate() rejects a null recipient
              for the other kinds.
        amount: Base units to move or burn.
        timestamp: Ledger time at which expiry is judged.
        kind: One of "transfer", "transfer_from", "burn".
    """
    operator: Holder
    source: Holder
    dest: Optional[Holder]
    amount: int
    timestamp: datetime
    kind: str = TRANSFER_KIND_TRANSFER

    def __post_init__(self):
        if self.kind not in _KINDS:
            raise ValueError(f"Unknown transfer kind: {self.kind!r}")


@dataclass(frozen=True, slots=True)
class GuardOutcome:
    """Side effects of a request that passed the guard."""
    released: Tuple[Lock, ...] = ()
    recipient_registered: bool = False


class TransferGuard:
    """
    Pipeline of checks and side effects around base-ledger movements.

    Args:
        locks: Lock ledger constraining the source's balance
        base: Base ledger performing the actual movement
        registry: Address registry receiving new recipients
        pause: Global circuit breaker
        is_frozen: Predicate telling whether a holder is frozen
        auto_unlock: Release expired locks before checking coverage
    """

    def __init__(
        self,
        locks: LockLedger,
        base: BaseLedger,
        registry: AddressRegistry,
        pause: PauseSource,
        is_frozen: Callable[[Holder], bool],
        auto_unlock: bool = True,
    ):
        self.locks = locks
        self.base = base
        self.registry = registry
        self.pause = pause
        self.is_frozen = is_frozen
        self.auto_unlock = auto_unlock

    def run(self, request: TransferRequest) -> GuardOutcome:
        """Run every stage in order. Raises on the first failing stage."""
        self.validate(request)
        released = self.unlock_expired(request)
        self.check_status(request)
        self.check_coverage(request)
        self.check_allowance(request)
        self.move(request)
        registered = self.register_recipient(request)
        return GuardOutcome(released=released, recipient_registered=registered)

    # ========================================================================
    # STAGES
    # ========================================================================

    def validate(self, request: TransferRequest) -> None:
        require_holder(request.source)
        if request.kind == TRANSFER_KIND_BURN:
            require_amount(request.amount)
        else:
            require_holder(request.dest)
            require_amount(request.amount, allow_zero=True)

    def unlock_expired(self, request: TransferRequest) -> Tuple[Lock, ...]:
        if not self.auto_unlock or not self.locks.has_locks(request.source):
            return ()
        return tuple(self.locks.release_all_expired(request.source, request.timestamp))

    def check_status(self, request: TransferRequest) -> None:
        if self.pause.is_paused():
            raise SystemPaused(f"System paused: {request.kind} from {request.source} rejected")
        if self.is_frozen(request.source):
            raise AccountFrozen(f"{request.source} is frozen")

    def check_coverage(self, request: TransferRequest) -> None:
        available = self.locks.available_balance(request.source)
        if available < request.amount:
            raise LockedBalanceExceeded(
                f"{request.source}: available {available} "
                f"(locked {self.locks.locked_amount(request.source)}) < {request.amount}"
            )

    def check_allowance(self, request: TransferRequest) -> None:
        if request.kind != TRANSFER_KIND_TRANSFER_FROM:
            return
        allowed = self.base.allowance(request.source, request.operator)
        if allowed < request.amount:
            raise InsufficientAllowance(
                f"{request.operator} may spend {allowed} of {request.source}'s funds, "
                f"requested {request.amount}"
            )

    def move(self, request: TransferRequest) -> None:
        """Perform the movement. Nothing on the base ledger changes if it refuses."""
        if request.kind == TRANSFER_KIND_BURN:
            ok = self.base.burn(request.source, request.amount)
        else:
            ok = self.base.move(request.source, request.dest, request.amount)
        if not ok:
            raise LedgerError(
                f"Base ledger refused {request.kind} of {request.amount} from {request.source}"
            )
        if request.kind == TRANSFER_KIND_TRANSFER_FROM:
            self.base.spend_allowance(request.source, request.operator, request.amount)

    def register_recipient(self, request: TransferRequest) -> bool:
        if request.kind == TRANSFER_KIND_BURN:
            return False
        return self.registry.register_if_needed(request.dest)
