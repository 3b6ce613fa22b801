"""
applier.py - Pure transaction decision functions.

Every function here takes frozen values (AccountSnapshot, Transaction,
TransactionRecord, the floor) and returns a new value describing the outcome.
Nothing is mutated and nothing is stored, so the same inputs always produce
the same decision. The Ledger is the only caller that commits an outcome.

    outcome = decide(account, tx, floor=Decimal("0"))
    if outcome.accepted:
        ...  # outcome.account is the new state
    else:
        ...  # outcome.reason says why
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Optional, Union

from .core import (
    AccountSnapshot, Transaction, TransactionRecord, TransactionType,
    DisputeStatus, RejectionReason,
    AMOUNT_DECIMAL_PLACES, DEFAULT_FLOOR, ZERO,
    is_exact_amount,
)


@dataclass(frozen=True, slots=True)
class Accepted:
    """
    The transaction may be committed.

    Attributes:
        account: New state of the target account
        counterparty: New state of the transfer destination (transfers only)
        record_status: New dispute status of the referenced transaction
            (dispute, resolve and chargeback only)
    """
    account: AccountSnapshot
    counterparty: Optional[AccountSnapshot] = None
    record_status: Optional[DisputeStatus] = None

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Rejected:
    """The transaction must not change any state."""
    reason: RejectionReason
    detail: str = ""

    @property
    def accepted(self) -> bool:
        return False


Outcome = Union[Accepted, Rejected]


def _check_amount(transaction: Transaction, allow_zero: bool = False) -> Optional[Rejected]:
    amount = transaction.amount
    if amount is None or amount < ZERO or (amount == ZERO and not allow_zero):
        return Rejected(
            RejectionReason.INVALID_AMOUNT,
            f"{transaction.kind.value} amount must be positive, got {amount}",
        )
    if not is_exact_amount(amount):
        return Rejected(
            RejectionReason.INVALID_AMOUNT,
            f"amount {amount} has more than {AMOUNT_DECIMAL_PLACES} decimal places",
        )
    return None


def _locked(account: AccountSnapshot) -> Rejected:
    return Rejected(RejectionReason.ACCOUNT_LOCKED, f"account {account.account_id} is locked")


# ============================================================================
# SINGLE-ACCOUNT DECISIONS
# ============================================================================

def decide_open(account: AccountSnapshot, transaction: Transaction,
                floor: Decimal = DEFAULT_FLOOR) -> Outcome:
    """
    Decide an explicit account opening.

    The opening balance defaults to zero and must be non-negative. The caller
    is responsible for checking that the account did not exist before.
    """
    if transaction.amount is None:
        return Accepted(account)
    rejected = _check_amount(transaction, allow_zero=True)
    if rejected:
        return rejected
    opening = account.available + transaction.amount
    if opening < floor:
        return Rejected(RejectionReason.INSUFFICIENT_FUNDS, f"opening balance {opening} < floor {floor}")
    return Accepted(account.evolve(available=opening))


def decide_deposit(account: AccountSnapshot, transaction: Transaction) -> Outcome:
    """Deposits are accepted whenever the amount is positive."""
    rejected = _check_amount(transaction)
    if rejected:
        return rejected
    return Accepted(account.evolve(available=account.available + transaction.amount))


def decide_withdrawal(account: AccountSnapshot, transaction: Transaction,
                      floor: Decimal = DEFAULT_FLOOR) -> Outcome:
    """
    Withdrawals are accepted iff the amount is positive and the remaining
    available balance stays at or above the floor.
    """
    rejected = _check_amount(transaction)
    if rejected:
        return rejected
    remaining = account.available - transaction.amount
    if remaining < floor:
        return Rejected(
            RejectionReason.INSUFFICIENT_FUNDS,
            f"{account.account_id}: {remaining} < floor {floor}",
        )
    return Accepted(account.evolve(available=remaining))


# ============================================================================
# TRANSFERS
# ============================================================================

def decide_transfer(source: AccountSnapshot, destination: AccountSnapshot,
                    transaction: Transaction, floor: Decimal = DEFAULT_FLOOR) -> Outcome:
    """
    Decide a transfer as two coupled decisions.

    The withdrawal leg is decided against the source and the deposit leg
    against the destination. Both must be accepted or the transfer is
    rejected as a whole; the returned Accepted carries both new states so the
    ledger can commit them together.
    """
    if destination.locked:
        return _locked(destination)
    debit = decide_withdrawal(source, transaction, floor)
    if not debit.accepted:
        return debit
    credit = decide_deposit(destination, transaction)
    if not credit.accepted:
        return credit
    return Accepted(debit.account, counterparty=credit.account)


# ============================================================================
# DISPUTES
# ============================================================================

def _check_record(account: AccountSnapshot, transaction: Transaction,
                  record: Optional[TransactionRecord],
                  expected: DisputeStatus) -> Optional[Rejected]:
    if record is None:
        return Rejected(RejectionReason.UNKNOWN_TRANSACTION, f"transaction #{transaction.tx_id} not found")
    if record.account_id != account.account_id:
        return Rejected(
            RejectionReason.ACCOUNT_MISMATCH,
            f"transaction #{transaction.tx_id} does not belong to account {account.account_id}",
        )
    if record.kind is not TransactionType.DEPOSIT:
        return Rejected(
            RejectionReason.NOT_DISPUTABLE,
            f"transaction #{transaction.tx_id} is a {record.kind.value}, only deposits can be disputed",
        )
    if record.status is not expected:
        return Rejected(
            RejectionReason.INVALID_DISPUTE_STATE,
            f"transaction #{transaction.tx_id} is {record.status.value}, expected {expected.value}",
        )
    return None


def decide_dispute(account: AccountSnapshot, transaction: Transaction,
                   record: Optional[TransactionRecord],
                   floor: Decimal = DEFAULT_FLOOR) -> Outcome:
    """
    Move the disputed deposit's amount from available to held.

    Refused when the funds have already been spent far enough that holding
    them would push available below the floor.
    """
    rejected = _check_record(account, transaction, record, DisputeStatus.PROCESSED)
    if rejected:
        return rejected
    remaining = account.available - record.amount
    if remaining < floor:
        return Rejected(
            RejectionReason.INSUFFICIENT_FUNDS,
            f"{account.account_id}: holding {record.amount} leaves {remaining} < floor {floor}",
        )
    return Accepted(
        account.evolve(available=remaining, held=account.held + record.amount),
        record_status=DisputeStatus.DISPUTED,
    )


def decide_resolve(account: AccountSnapshot, transaction: Transaction,
                   record: Optional[TransactionRecord]) -> Outcome:
    """Release held funds of a disputed deposit back to available."""
    rejected = _check_record(account, transaction, record, DisputeStatus.DISPUTED)
    if rejected:
        return rejected
    return Accepted(
        account.evolve(available=account.available + record.amount, held=account.held - record.amount),
        record_status=DisputeStatus.PROCESSED,
    )


def decide_chargeback(account: AccountSnapshot, transaction: Transaction,
                      record: Optional[TransactionRecord]) -> Outcome:
    """Remove the held funds of a disputed deposit and lock the account."""
    rejected = _check_record(account, transaction, record, DisputeStatus.DISPUTED)
    if rejected:
        return rejected
    return Accepted(
        account.evolve(held=account.held - record.amount, locked=True),
        record_status=DisputeStatus.CHARGED_BACK,
    )


# ============================================================================
# DISPATCH
# ============================================================================

_SINGLE_ACCOUNT: Dict[TransactionType, Callable[..., Outcome]] = {
    TransactionType.OPEN: lambda a, tx, floor, record: decide_open(a, tx, floor),
    TransactionType.DEPOSIT: lambda a, tx, floor, record: decide_deposit(a, tx),
    TransactionType.WITHDRAWAL: lambda a, tx, floor, record: decide_withdrawal(a, tx, floor),
    TransactionType.DISPUTE: lambda a, tx, floor, record: decide_dispute(a, tx, record, floor),
    TransactionType.RESOLVE: lambda a, tx, floor, record: decide_resolve(a, tx, record),
    TransactionType.CHARGEBACK: lambda a, tx, floor, record: decide_chargeback(a, tx, record),
}


def decide(
    account: AccountSnapshot,
    transaction: Transaction,
    floor: Decimal = DEFAULT_FLOOR,
    record: Optional[TransactionRecord] = None,
    counterparty: Optional[AccountSnapshot] = None,
) -> Outcome:
    """
    Decide the effect of a transaction on an account.

    Args:
        account: Current state of the target account
        transaction: Transaction to decide
        floor: Minimum permissible available balance
        record: The referenced history record (dispute family only)
        counterparty: Current state of the destination (transfers only)

    Returns:
        Accepted with the new state(s), or Rejected with a reason
    """
    if transaction.account_id != account.account_id:
        raise ValueError(
            f"Transaction for {transaction.account_id} decided against account {account.account_id}"
        )
    if account.locked:
        return _locked(account)
    if transaction.kind is TransactionType.TRANSFER:
        if counterparty is None or counterparty.account_id != transaction.counterparty:
            raise ValueError(f"Transfer {transaction!r} needs the destination account state")
        return decide_transfer(account, counterparty, transaction, floor)
    return _SINGLE_ACCOUNT[transaction.kind](account, transaction, floor, record)
