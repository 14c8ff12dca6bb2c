"""
test_balance_book.py - Unit tests for BalanceBook and PauseSwitch
"""

import pytest

from lockledger import (
    BalanceBook, PauseSwitch, BaseLedger, PauseSource,
    LedgerError, InsufficientFunds, InsufficientAllowance, InvalidHolder, NULL_HOLDER,
)


@pytest.fixture
def book():
    b = BalanceBook(test_mode=True)
    b.mint("alice", 1000)
    return b


class TestBalanceBook:

    def test_satisfies_protocol(self, book):
        assert isinstance(book, BaseLedger)

    def test_mint_updates_supply(self, book):
        book.mint("bob", 250)
        assert book.balance_of("bob") == 250
        assert book.total_supply() == 1250

    def test_move(self, book):
        assert book.move("alice", "bob", 300) is True
        assert book.balance_of("alice") == 700
        assert book.balance_of("bob") == 300
        assert book.total_supply() == 1000

    def test_move_more_than_balance(self, book):
        with pytest.raises(InsufficientFunds):
            book.move("alice", "bob", 1001)
        assert book.balance_of("alice") == 1000

    def test_move_to_null_raises(self, book):
        with pytest.raises(InvalidHolder):
            book.move("alice", NULL_HOLDER, 1)

    def test_burn(self, book):
        book.burn("alice", 400)
        assert book.balance_of("alice") == 600
        assert book.total_supply() == 600

    def test_burn_too_much(self, book):
        with pytest.raises(InsufficientFunds):
            book.burn("alice", 2000)

    def test_balances_hides_zero(self, book):
        book.move("alice", "bob", 1000)
        assert book.balances() == {"bob": 1000}


class TestAllowances:

    def test_approve_sets_not_adds(self, book):
        book.approve("alice", "spender", 100)
        book.approve("alice", "spender", 40)
        assert book.allowance("alice", "spender") == 40

    def test_spend(self, book):
        book.approve("alice", "spender", 100)
        book.spend_allowance("alice", "spender", 60)
        assert book.allowance("alice", "spender") == 40

    def test_overspend_raises(self, book):
        book.approve("alice", "spender", 10)
        with pytest.raises(InsufficientAllowance):
            book.spend_allowance("alice", "spender", 11)
        assert book.allowance("alice", "spender") == 10


class TestTestMode:

    def test_set_balance_adjusts_supply(self, book):
        book.set_balance("alice", 400)
        book.set_balance("carol", 100)
        assert book.total_supply() == 500

    def test_set_balance_blocked_in_production(self):
        book = BalanceBook()
        with pytest.raises(LedgerError, match="disabled in production mode"):
            book.set_balance("alice", 1)

    def test_copy_is_independent(self, book):
        cloned = book.copy()
        cloned.move("alice", "bob", 500)
        assert book.balance_of("alice") == 1000
        assert cloned.balance_of("bob") == 500


class TestPauseSwitch:

    def test_toggle(self):
        switch = PauseSwitch()
        assert isinstance(switch, PauseSource)
        assert not switch.is_paused()
        switch.pause()
        assert switch.is_paused()
        switch.unpause()
        assert not switch.is_paused()
