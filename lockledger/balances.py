"""
balances.py - In-memory base ledger and pause switch

The lock engine treats balance storage and the circuit breaker as external
collaborators (see BaseLedger and PauseSource in core.py). This module
provides the default implementations:

- BalanceBook: integer balances, total supply and allowances
- PauseSwitch: a manually operated global pause flag

BalanceBook knows nothing about locks. Its only checks are the ones a plain
fungible ledger makes: no negative balances and no overspent allowances.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Tuple

from .core import (
    Holder, BalanceMap,
    LedgerError, InsufficientFunds, InsufficientAllowance,
    require_amount, require_holder,
)


class BalanceBook:
    """
    Single-unit fungible ledger.

    Implements the BaseLedger protocol.
    """

    def __init__(self, test_mode: bool = False):
        """
        Args:
            test_mode: Enable set_balance() for fixtures (default: False)
        """
        self._balances: Dict[Holder, int] = defaultdict(int)
        self._allowances: Dict[Tuple[Holder, Holder], int] = {}
        self._total_supply: int = 0
        self._test_mode = test_mode

    # ========================================================================
    # BalanceView
    # ========================================================================

    def balance_of(self, holder: Holder) -> int:
        return self._balances.get(holder, 0)

    def total_supply(self) -> int:
        return self._total_supply

    def balances(self) -> BalanceMap:
        """Non-zero balances."""
        return {h: b for h, b in self._balances.items() if b}

    # ========================================================================
    # MOVEMENTS
    # ========================================================================

    def move(self, source: Holder, dest: Holder, amount: int) -> bool:
        """
        Move amount from source to dest.

        Raises:
            InvalidHolder: If either side is the null identity
            InsufficientFunds: If source holds less than amount
        """
        require_holder(source)
        require_holder(dest)
        require_amount(amount, allow_zero=True)
        if self._balances.get(source, 0) < amount:
            raise InsufficientFunds(
                f"{source}: balance {self.balance_of(source)} < {amount}"
            )
        self._balances[source] -= amount
        self._balances[dest] += amount
        return True

    def mint(self, holder: Holder, amount: int) -> bool:
        require_holder(holder)
        require_amount(amount)
        self._balances[holder] += amount
        self._total_supply += amount
        return True

    def burn(self, holder: Holder, amount: int) -> bool:
        require_holder(holder)
        require_amount(amount)
        if self._balances.get(holder, 0) < amount:
            raise InsufficientFunds(
                f"{holder}: balance {self.balance_of(holder)} < burn {amount}"
            )
        self._balances[holder] -= amount
        self._total_supply -= amount
        return True

    # ========================================================================
    # ALLOWANCES
    # ========================================================================

    def approve(self, owner: Holder, spender: Holder, amount: int) -> None:
        """Set (not add to) spender's allowance over owner's funds."""
        require_holder(owner)
        require_holder(spender)
        require_amount(amount, allow_zero=True)
        self._allowances[(owner, spender)] = amount

    def allowance(self, owner: Holder, spender: Holder) -> int:
        return self._allowances.get((owner, spender), 0)

    def spend_allowance(self, owner: Holder, spender: Holder, amount: int) -> None:
        current = self.allowance(owner, spender)
        if current < amount:
            raise InsufficientAllowance(
                f"{spender} may spend {current} of {owner}'s funds, requested {amount}"
            )
        self._allowances[(owner, spender)] = current - amount

    # ========================================================================
    # TEST SUPPORT AND ROLLBACK
    # ========================================================================

    def set_balance(self, holder: Holder, amount: int) -> None:
        """
        Overwrite a balance directly, adjusting total supply to match.

        WARNING: Bypasses mint/burn and is only available in test mode.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use mint() and transfers to modify balances. "
                "Set test_mode=True when creating the ledger for testing."
            )
        require_holder(holder)
        require_amount(amount, allow_zero=True)
        self._total_supply += amount - self._balances.get(holder, 0)
        self._balances[holder] = amount

    def copy(self) -> BalanceBook:
        cloned = BalanceBook(test_mode=self._test_mode)
        cloned._balances = defaultdict(int, self._balances)
        cloned._allowances = dict(self._allowances)
        cloned._total_supply = self._total_supply
        return cloned

    def __repr__(self) -> str:
        return f"BalanceBook({len(self.balances())} holders, supply={self._total_supply})"


class PauseSwitch:
    """Manually operated circuit breaker. Implements PauseSource."""

    def __init__(self, paused: bool = False):
        self._paused = paused

    def is_paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True

    def unpause(self) -> None:
        self._paused = False

    def __repr__(self) -> str:
        return f"PauseSwitch(paused={self._paused})"
