"""
Floor Conformance Tests

INVARIANT: For every account a, after every applied transaction:
    available(a) >= floor
    held(a) >= 0

Withdrawals, transfers and disputes that would push available below the
floor are rejected instead of applied.
"""

from decimal import Decimal

from hypothesis import given, settings, note

from txledger import Ledger, RejectionReason, withdrawal

from tests.conformance.strategies import amounts, clients, floors, transaction_streams


def _assert_within_floor(ledger):
    for account in ledger.snapshot():
        assert account.available >= ledger.floor, account
        assert account.held >= 0, account


class TestFloorProperties:
    """Property-based tests for the floor invariant."""

    @given(transaction_streams(), floors)
    @settings(max_examples=200)
    def test_floor_holds_after_every_transaction(self, stream, floor):
        """
        PROPERTY: No sequence of transactions breaks the floor.

        ∀ stream S, ∀ prefix P of S:
            available(a) >= floor for all accounts a after P
        """
        ledger = Ledger("floor", floor=floor)
        for tx in stream:
            result = ledger.apply(tx)
            note(f"{result!r}")
            _assert_within_floor(ledger)

    @given(clients, amounts(), amounts())
    @settings(max_examples=100)
    def test_overdraw_is_rejected(self, client, funded, extra):
        """
        PROPERTY: Withdrawing more than available + |floor| is always rejected.
        """
        ledger = Ledger("floor", floor=Decimal("-10"))
        ledger.open_account(client, funded)
        result = ledger.apply(withdrawal(client, funded + Decimal("10") + extra))
        assert result.reason is RejectionReason.INSUFFICIENT_FUNDS
        assert ledger.get_balance(client) == funded

    @given(clients, amounts(), floors)
    @settings(max_examples=100)
    def test_withdraw_down_to_floor_is_applied(self, client, funded, floor):
        """
        PROPERTY: Withdrawing exactly available - floor lands on the floor.
        """
        ledger = Ledger("floor", floor=floor)
        ledger.open_account(client, funded)
        result = ledger.apply(withdrawal(client, funded - floor))
        assert result.applied
        assert ledger.get_balance(client) == floor
