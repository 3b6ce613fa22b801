"""
Core types and helpers for the batch ledger processor.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Transaction, AccountSnapshot, TransactionRecord, ApplyResult
3. The mutable Account cell, owned exclusively by the Ledger
4. Exceptions: LedgerError and domain-specific error types
5. Amount helpers: to_amount, is_exact_amount, format_amount
6. Transaction factories: deposit(), withdrawal(), transfer(), ...

Nothing outside the Ledger ever holds a mutable Account. Every other component
works on frozen snapshots and returns new values.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, FrozenSet, List, Optional, Protocol, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balances are exact fixed-point values. The context is configured once at
# module load so every ledger in the process does identical arithmetic.
#
# PRECONDITION: No other code should modify the global Decimal context.
# If thread-local contexts are needed, use decimal.localcontext().
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# One minor unit is 10 ** -AMOUNT_DECIMAL_PLACES.
AMOUNT_DECIMAL_PLACES = 4
AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)

ZERO = Decimal("0")

# Minimum permissible available balance unless the ledger is configured otherwise.
DEFAULT_FLOOR = Decimal("0")

# Largest balance the ledger will commit. Crossing it is an invariant violation.
MAX_BALANCE = Decimal("1e24")


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Accounts are identified by whatever the input uses: client numbers or names.
AccountId = Union[int, str]


# ============================================================================
# ENUMS
# ============================================================================

class TransactionType(Enum):
    """Kind of a transaction record, named as in the input files."""
    OPEN = "open"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER = "transfer"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @classmethod
    def parse(cls, name: str) -> TransactionType:
        """Look up a kind by name, ignoring case and surrounding whitespace."""
        try:
            return cls(name.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown transaction type {name!r}") from None


# Kinds that carry a mandatory amount.
AMOUNT_KINDS: FrozenSet[TransactionType] = frozenset({
    TransactionType.DEPOSIT,
    TransactionType.WITHDRAWAL,
    TransactionType.TRANSFER,
})

# Kinds that refer to an earlier transaction by tx_id instead of carrying an amount.
DISPUTE_KINDS: FrozenSet[TransactionType] = frozenset({
    TransactionType.DISPUTE,
    TransactionType.RESOLVE,
    TransactionType.CHARGEBACK,
})


class ExecuteResult(Enum):
    """
    Outcome of Ledger.apply().

    APPLIED: The transaction was accepted and its effect committed.
    REJECTED: The transaction was refused by ledger rules; no balance changed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class RejectionReason(Enum):
    """Why a well-formed transaction was refused. Rejections are data, not errors."""
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    UNKNOWN_ACCOUNT = "unknown_account"
    ACCOUNT_EXISTS = "account_exists"
    ACCOUNT_LOCKED = "account_locked"
    DUPLICATE_TRANSACTION = "duplicate_transaction"
    UNKNOWN_TRANSACTION = "unknown_transaction"
    ACCOUNT_MISMATCH = "account_mismatch"
    NOT_DISPUTABLE = "not_disputable"
    INVALID_DISPUTE_STATE = "invalid_dispute_state"


class DisputeStatus(Enum):
    """Dispute state of an applied transaction kept in the ledger history."""
    PROCESSED = "processed"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class InputError(LedgerError):
    """
    Raised when an input record cannot be parsed into a Transaction.

    Attributes:
        position: 1-based index of the record among the data rows
        line: Line number in the source file (0 if unknown)
        reason: Human-readable description of what was wrong
    """

    def __init__(self, position: int, reason: str, line: int = 0):
        self.position = position
        self.line = line
        self.reason = reason
        where = f"record {position}" if position else "header"
        if line:
            where += f" (line {line})"
        super().__init__(f"{where}: {reason}")


class UnknownAccount(LedgerError):
    """Raised when looking up an account the ledger has never seen."""
    pass


class AccountExists(LedgerError):
    """Raised when explicitly opening an account that is already known."""
    pass


class LedgerInvariantViolation(LedgerError):
    """Raised when committed state would break a ledger invariant. Always fatal."""
    pass


class BalanceOverflow(LedgerInvariantViolation):
    """Raised when a balance would exceed the largest representable ledger amount."""
    pass


# ============================================================================
# AMOUNT HELPERS
# ============================================================================

def to_amount(value: Union[Decimal, int, str]) -> Decimal:
    """
    Convert a value to a Decimal amount.

    Floats are refused: binary floating point cannot represent minor units
    exactly, so callers must pass Decimal, int, or a decimal string.

    Raises:
        ValueError: If the value is a float, unparsable, or not finite
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Amount must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {amount}")
    return amount


def is_exact_amount(amount: Decimal) -> bool:
    """Return True if the amount has no more than AMOUNT_DECIMAL_PLACES fractional digits."""
    if not amount.is_finite():
        return False
    return amount.normalize().as_tuple().exponent >= -AMOUNT_DECIMAL_PLACES


def quantize_amount(amount: Decimal) -> Decimal:
    """Scale an exact amount to AMOUNT_DECIMAL_PLACES places (e.g. 1.5 -> 1.5000)."""
    return amount.quantize(AMOUNT_QUANTUM)


def format_amount(amount: Decimal) -> str:
    """Render an amount in fixed-point notation with exactly four decimal places."""
    return format(quantize_amount(amount), "f")


def _check_account_id(value: Any, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"Transaction {field_name} must be int or str, got {type(value).__name__}")
    if isinstance(value, str) and not value.strip():
        raise ValueError(f"Transaction {field_name} cannot be empty")


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Writers, reports and tests depend on this protocol instead of the Ledger
    class. Every method returns frozen snapshots or copies, so a holder of a
    LedgerView cannot change balances.
    """

    @property
    def floor(self) -> Decimal:
        """Minimum permissible available balance."""
        ...

    def has_account(self, account_id: AccountId) -> bool:
        """Return True if the account is known to the ledger."""
        ...

    def get_account(self, account_id: AccountId) -> AccountSnapshot:
        """Return a frozen snapshot of one account."""
        ...

    def list_accounts(self) -> List[AccountId]:
        """Return all known account ids in first-seen order."""
        ...

    def snapshot(self) -> List[AccountSnapshot]:
        """Return snapshots of every known account in first-seen order."""
        ...


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An immutable instruction read from the input stream.

    Attributes:
        kind: What the transaction does.
        account_id: Target account (source account for transfers).
        amount: Decimal amount; required for deposit, withdrawal and transfer,
            optional opening balance for open, absent for the dispute family.
            Non-positive amounts are allowed here and rejected by the ledger.
        tx_id: Client-assigned transaction id. Required for dispute, resolve
            and chargeback, where it names the disputed deposit.
        counterparty: Destination account of a transfer.

    Structural problems raise ValueError in __post_init__; business rules are
    applied later by the applier.
    """
    kind: TransactionType
    account_id: AccountId
    amount: Optional[Decimal] = None
    tx_id: Optional[int] = None
    counterparty: Optional[AccountId] = None

    def __post_init__(self):
        if not isinstance(self.kind, TransactionType):
            raise ValueError(f"Transaction kind must be TransactionType, got {type(self.kind).__name__}")
        _check_account_id(self.account_id, "account_id")
        if self.amount is not None:
            if not isinstance(self.amount, Decimal):
                raise ValueError(f"Transaction amount must be Decimal, got {type(self.amount).__name__}")
            if not self.amount.is_finite():
                raise ValueError(f"Transaction amount must be finite, got {self.amount}")
        if self.tx_id is not None:
            if isinstance(self.tx_id, bool) or not isinstance(self.tx_id, int) or self.tx_id < 0:
                raise ValueError(f"Transaction tx_id must be a non-negative int, got {self.tx_id!r}")

        if self.kind in AMOUNT_KINDS and self.amount is None:
            raise ValueError(f"{self.kind.value} requires an amount")
        if self.kind in DISPUTE_KINDS:
            if self.amount is not None:
                raise ValueError(f"{self.kind.value} must not carry an amount")
            if self.tx_id is None:
                raise ValueError(f"{self.kind.value} requires the tx_id of the disputed transaction")

        if self.kind is TransactionType.TRANSFER:
            if self.counterparty is None:
                raise ValueError("transfer requires a counterparty")
            _check_account_id(self.counterparty, "counterparty")
            if self.counterparty == self.account_id:
                raise ValueError("Transfer source and counterparty must be different")
        elif self.counterparty is not None:
            raise ValueError(f"{self.kind.value} does not take a counterparty")

    def __repr__(self) -> str:
        parts = [str(self.account_id)]
        if self.counterparty is not None:
            parts[0] = f"{self.account_id}→{self.counterparty}"
        if self.amount is not None:
            parts.append(str(self.amount))
        if self.tx_id is not None:
            parts.append(f"tx={self.tx_id}")
        return f"{self.kind.value.capitalize()}({', '.join(parts)})"


@dataclass(frozen=True, slots=True)
class AccountSnapshot:
    """
    Frozen view of an account at one point in time.

    Attributes:
        account_id: Account identifier
        available: Spendable funds; never below the ledger floor
        held: Funds frozen by open disputes
        locked: True once a chargeback has hit the account
    """
    account_id: AccountId
    available: Decimal = ZERO
    held: Decimal = ZERO
    locked: bool = False

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    @property
    def balance(self) -> Decimal:
        """The balance the floor applies to (same as available)."""
        return self.available

    def evolve(self, **changes: Any) -> AccountSnapshot:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def __repr__(self) -> str:
        flag = ", locked" if self.locked else ""
        return (
            f"Account({self.account_id}: available={self.available}, "
            f"held={self.held}{flag})"
        )


@dataclass(slots=True)
class Account:
    """
    Mutable balance cell for one account.

    Only the Ledger creates and mutates these; everything it hands out is an
    AccountSnapshot produced by freeze().
    """
    account_id: AccountId
    available: Decimal = ZERO
    held: Decimal = ZERO
    locked: bool = False

    def freeze(self) -> AccountSnapshot:
        return AccountSnapshot(self.account_id, self.available, self.held, self.locked)

    def commit(self, state: AccountSnapshot) -> None:
        if state.account_id != self.account_id:
            raise LedgerInvariantViolation(
                f"Cannot commit state of {state.account_id} into account {self.account_id}"
            )
        self.available = state.available
        self.held = state.held
        self.locked = state.locked


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """
    An applied transaction kept in the ledger history so later disputes can refer to it.

    Attributes:
        transaction: The applied transaction (always has a tx_id)
        sequence: Ledger sequence number at which it was applied
        status: Current dispute status
    """
    transaction: Transaction
    sequence: int
    status: DisputeStatus = DisputeStatus.PROCESSED

    @property
    def account_id(self) -> AccountId:
        return self.transaction.account_id

    @property
    def amount(self) -> Decimal:
        return self.transaction.amount if self.transaction.amount is not None else ZERO

    @property
    def kind(self) -> TransactionType:
        return self.transaction.kind


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """
    Result of applying one transaction to the ledger.

    Attributes:
        status: APPLIED or REJECTED
        sequence: Monotonic sequence number assigned by the ledger
        transaction: The transaction that was applied or rejected
        snapshot: State of the target account after the attempt
            (None when the account does not exist)
        counterparty: State of the transfer destination after the attempt
        reason: Why the transaction was rejected (None when applied)
        detail: Human-readable explanation of the rejection
    """
    status: ExecuteResult
    sequence: int
    transaction: Transaction
    snapshot: Optional[AccountSnapshot] = None
    counterparty: Optional[AccountSnapshot] = None
    reason: Optional[RejectionReason] = None
    detail: str = ""

    @property
    def applied(self) -> bool:
        return self.status is ExecuteResult.APPLIED

    def __repr__(self) -> str:
        if self.applied:
            return f"ApplyResult(#{self.sequence} APPLIED {self.transaction!r})"
        return f"ApplyResult(#{self.sequence} REJECTED {self.transaction!r}: {self.reason.value})"


# ============================================================================
# TRANSACTION FACTORIES
# ============================================================================

def open_account(account_id: AccountId, opening_balance: Union[Decimal, int, str, None] = None,
                 tx_id: Optional[int] = None) -> Transaction:
    """Create an explicit account-opening record with an optional opening balance."""
    amount = to_amount(opening_balance) if opening_balance is not None else None
    return Transaction(TransactionType.OPEN, account_id, amount, tx_id)


def deposit(account_id: AccountId, amount: Union[Decimal, int, str],
            tx_id: Optional[int] = None) -> Transaction:
    """Create a deposit."""
    return Transaction(TransactionType.DEPOSIT, account_id, to_amount(amount), tx_id)


def withdrawal(account_id: AccountId, amount: Union[Decimal, int, str],
               tx_id: Optional[int] = None) -> Transaction:
    """Create a withdrawal."""
    return Transaction(TransactionType.WITHDRAWAL, account_id, to_amount(amount), tx_id)


def transfer(source: AccountId, dest: AccountId, amount: Union[Decimal, int, str],
             tx_id: Optional[int] = None) -> Transaction:
    """Create a transfer from source to dest, applied as one atomic operation."""
    return Transaction(TransactionType.TRANSFER, source, to_amount(amount), tx_id, dest)


def dispute(account_id: AccountId, tx_id: int) -> Transaction:
    """Create a dispute against an earlier deposit."""
    return Transaction(TransactionType.DISPUTE, account_id, tx_id=tx_id)


def resolve(account_id: AccountId, tx_id: int) -> Transaction:
    """Create a resolution releasing a disputed deposit."""
    return Transaction(TransactionType.RESOLVE, account_id, tx_id=tx_id)


def chargeback(account_id: AccountId, tx_id: int) -> Transaction:
    """Create a chargeback reversing a disputed deposit."""
    return Transaction(TransactionType.CHARGEBACK, account_id, tx_id=tx_id)
