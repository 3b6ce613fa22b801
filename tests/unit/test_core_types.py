"""
test_core_types.py - Unit tests for core data structures

Tests:
- Transaction: creation, validation, immutability, factories
- AccountSnapshot: derived fields, evolve, immutability
- Account: freeze and commit
- Amount helpers
- InputError formatting
"""

import dataclasses
from decimal import Decimal

import pytest

from txledger import (
    Transaction, TransactionType, AccountSnapshot, TransactionRecord, DisputeStatus,
    ApplyResult, ExecuteResult, RejectionReason, InputError, LedgerInvariantViolation,
    open_account, deposit, withdrawal, transfer, dispute, resolve, chargeback,
    to_amount, format_amount,
)
from txledger.core import Account, is_exact_amount


class TestTransactionCreation:
    """Tests for Transaction creation."""

    def test_create_deposit(self):
        tx = Transaction(TransactionType.DEPOSIT, 1, Decimal("10.5"), tx_id=7)
        assert tx.kind is TransactionType.DEPOSIT
        assert tx.account_id == 1
        assert tx.amount == Decimal("10.5")
        assert tx.tx_id == 7
        assert tx.counterparty is None

    def test_string_account_ids(self):
        tx = deposit("alice", "1")
        assert tx.account_id == "alice"

    def test_non_positive_amounts_are_constructible(self):
        """Zero and negative amounts are rejected by the ledger, not at construction."""
        assert deposit(1, "0").amount == Decimal("0")
        assert withdrawal(1, "-5").amount == Decimal("-5")

    def test_transaction_is_frozen(self):
        tx = deposit(1, "10")
        with pytest.raises(dataclasses.FrozenInstanceError):
            tx.amount = Decimal("20")

    def test_transactions_compare_by_value(self):
        assert deposit(1, "10", tx_id=1) == deposit(1, "10.0", tx_id=1)

    def test_repr(self):
        assert repr(deposit(1, "10", tx_id=3)) == "Deposit(1, 10, tx=3)"
        assert repr(transfer("a", "b", "5")) == "Transfer(a→b, 5)"


class TestTransactionValidation:
    """Structural validation in __post_init__."""

    def test_kind_must_be_enum(self):
        with pytest.raises(ValueError, match="TransactionType"):
            Transaction("deposit", 1, Decimal("1"))

    def test_float_amount_rejected(self):
        with pytest.raises(ValueError, match="must be Decimal"):
            Transaction(TransactionType.DEPOSIT, 1, 1.5)

    def test_nan_amount_rejected(self):
        with pytest.raises(ValueError, match="finite"):
            Transaction(TransactionType.DEPOSIT, 1, Decimal("NaN"))

    def test_infinite_amount_rejected(self):
        with pytest.raises(ValueError, match="finite"):
            Transaction(TransactionType.WITHDRAWAL, 1, Decimal("Infinity"))

    def test_deposit_requires_amount(self):
        with pytest.raises(ValueError, match="requires an amount"):
            Transaction(TransactionType.DEPOSIT, 1)

    def test_withdrawal_requires_amount(self):
        with pytest.raises(ValueError, match="requires an amount"):
            Transaction(TransactionType.WITHDRAWAL, 1, tx_id=4)

    def test_open_amount_optional(self):
        assert open_account(1).amount is None

    def test_dispute_requires_tx_id(self):
        with pytest.raises(ValueError, match="requires the tx_id"):
            Transaction(TransactionType.DISPUTE, 1)

    def test_dispute_rejects_amount(self):
        with pytest.raises(ValueError, match="must not carry an amount"):
            Transaction(TransactionType.CHARGEBACK, 1, Decimal("1"), tx_id=1)

    def test_negative_tx_id_rejected(self):
        with pytest.raises(ValueError, match="tx_id"):
            deposit(1, "1", tx_id=-1)

    def test_bool_account_id_rejected(self):
        with pytest.raises(ValueError, match="account_id"):
            deposit(True, "1")

    def test_empty_account_id_rejected(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            deposit("  ", "1")

    def test_transfer_requires_counterparty(self):
        with pytest.raises(ValueError, match="counterparty"):
            Transaction(TransactionType.TRANSFER, 1, Decimal("1"))

    def test_transfer_to_self_rejected(self):
        with pytest.raises(ValueError, match="must be different"):
            transfer(1, 1, "5")

    def test_counterparty_only_on_transfers(self):
        with pytest.raises(ValueError, match="does not take a counterparty"):
            Transaction(TransactionType.DEPOSIT, 1, Decimal("1"), counterparty=2)


class TestFactories:
    """Factory helpers build the right kinds."""

    def test_factory_kinds(self):
        assert open_account(1, "5").kind is TransactionType.OPEN
        assert deposit(1, 5).kind is TransactionType.DEPOSIT
        assert withdrawal(1, 5).kind is TransactionType.WITHDRAWAL
        assert transfer(1, 2, 5).kind is TransactionType.TRANSFER
        assert dispute(1, 9).kind is TransactionType.DISPUTE
        assert resolve(1, 9).kind is TransactionType.RESOLVE
        assert chargeback(1, 9).kind is TransactionType.CHARGEBACK

    def test_factory_refuses_float(self):
        with pytest.raises(ValueError, match="got float"):
            deposit(1, 0.1)

    def test_transaction_type_parse(self):
        assert TransactionType.parse(" Deposit ") is TransactionType.DEPOSIT
        with pytest.raises(ValueError, match="Unknown transaction type"):
            TransactionType.parse("refund")


class TestAccountSnapshot:
    """Tests for the frozen account view."""

    def test_defaults(self):
        snap = AccountSnapshot("A")
        assert snap.available == Decimal("0")
        assert snap.held == Decimal("0")
        assert snap.locked is False

    def test_total_and_balance(self):
        snap = AccountSnapshot(1, Decimal("7"), Decimal("3"))
        assert snap.total == Decimal("10")
        assert snap.balance == Decimal("7")

    def test_evolve_returns_new_snapshot(self):
        snap = AccountSnapshot(1, Decimal("7"))
        changed = snap.evolve(available=Decimal("8"))
        assert changed.available == Decimal("8")
        assert snap.available == Decimal("7")

    def test_snapshot_is_frozen(self):
        snap = AccountSnapshot(1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            snap.available = Decimal("1000")


class TestAccountCell:
    """The mutable cell owned by the ledger."""

    def test_freeze_copies_state(self):
        cell = Account(1, Decimal("5"))
        snap = cell.freeze()
        cell.available = Decimal("6")
        assert snap.available == Decimal("5")

    def test_commit(self):
        cell = Account(1)
        cell.commit(AccountSnapshot(1, Decimal("2"), Decimal("1"), True))
        assert cell.freeze() == AccountSnapshot(1, Decimal("2"), Decimal("1"), True)

    def test_commit_other_account_raises(self):
        cell = Account(1)
        with pytest.raises(LedgerInvariantViolation):
            cell.commit(AccountSnapshot(2))


class TestRecordsAndResults:

    def test_record_exposes_transaction_fields(self):
        record = TransactionRecord(deposit(3, "4", tx_id=1), sequence=0)
        assert record.account_id == 3
        assert record.amount == Decimal("4")
        assert record.kind is TransactionType.DEPOSIT
        assert record.status is DisputeStatus.PROCESSED

    def test_apply_result_applied_flag(self):
        ok = ApplyResult(ExecuteResult.APPLIED, 0, deposit(1, "1"))
        bad = ApplyResult(ExecuteResult.REJECTED, 1, deposit(1, "0"),
                          reason=RejectionReason.INVALID_AMOUNT)
        assert ok.applied
        assert not bad.applied
        assert "REJECTED" in repr(bad)


class TestAmountHelpers:

    def test_to_amount_accepts_str_int_decimal(self):
        assert to_amount("1.25") == Decimal("1.25")
        assert to_amount(3) == Decimal("3")
        assert to_amount(Decimal("4")) == Decimal("4")

    def test_to_amount_rejects_garbage(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            to_amount("ten")

    def test_to_amount_rejects_infinity(self):
        with pytest.raises(ValueError, match="finite"):
            to_amount("inf")

    def test_is_exact_amount(self):
        assert is_exact_amount(Decimal("1.2345"))
        assert is_exact_amount(Decimal("1.23450000"))
        assert is_exact_amount(Decimal("1E+3"))
        assert not is_exact_amount(Decimal("1.23456"))

    def test_format_amount(self):
        assert format_amount(Decimal("1.5")) == "1.5000"
        assert format_amount(Decimal("0")) == "0.0000"
        assert format_amount(Decimal("1E+3")) == "1000.0000"


class TestInputError:

    def test_message_names_position_and_line(self):
        err = InputError(3, "bad amount", line=4)
        assert err.position == 3
        assert err.line == 4
        assert str(err) == "record 3 (line 4): bad amount"

    def test_header_error(self):
        assert str(InputError(0, "missing column(s) type", line=1)) == "header (line 1): missing column(s) type"
