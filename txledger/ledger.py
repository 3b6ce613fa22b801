"""
ledger.py - Stateful owner of all account balances for one batch run.

The Ledger class is the only component that mutates account state.

Key responsibilities:
    - Implements the LedgerView protocol (frozen snapshots only)
    - Opens accounts explicitly or on first reference
    - Applies transactions one at a time, in call order, via the pure applier
    - Commits accepted outcomes atomically (transfers touch two accounts)
    - Keeps the history of applied transactions that disputes refer to
    - Always logs: every apply() call lands in transaction_log
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple
import sys

from .applier import Accepted, Rejected, decide
from .core import (
    # Types
    Account, AccountId, AccountSnapshot, ApplyResult, Transaction, TransactionRecord,
    TransactionType, ExecuteResult, RejectionReason,
    # Constants
    DEFAULT_FLOOR, MAX_BALANCE, ZERO, DISPUTE_KINDS,
    # Exceptions
    AccountExists, BalanceOverflow, LedgerInvariantViolation, UnknownAccount,
    # Helpers
    to_amount, is_exact_amount, quantize_amount,
)


class Ledger:
    """
    In-memory account ledger for a single batch.

    The ledger owns a mapping of account id to a private mutable Account
    cell. Callers never see those cells: every read returns an
    AccountSnapshot and every write goes through apply() or open_account().

    Policies:
        floor: minimum permissible available balance (default 0, may be
            negative down to -max_balance to allow an overdraft)
        allow_implicit_open: create unknown accounts on first reference
            (default True). When False, transactions against unopened
            accounts are rejected with UNKNOWN_ACCOUNT.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own Ledger instance.

    Example:
        ledger = Ledger("main")
        ledger.apply(deposit(1, "100"))
        ledger.apply(withdrawal(1, "30"))
        ledger.snapshot()   # [Account(1: available=70, held=0)]
    """

    def __init__(
        self,
        name: str = "main",
        floor: Decimal = DEFAULT_FLOOR,
        allow_implicit_open: bool = True,
        verbose: bool = False,
        max_balance: Decimal = MAX_BALANCE,
    ):
        """
        Create an empty ledger.

        Args:
            name: Ledger identifier used in trace output
            floor: Minimum permissible available balance (Decimal, -max_balance..0)
            allow_implicit_open: Open unknown accounts on first reference
            verbose: Print a trace line per transaction to stderr
            max_balance: Largest balance that may be committed

        Raises:
            ValueError: If floor or max_balance is not a usable Decimal
        """
        if not isinstance(max_balance, Decimal) or not max_balance.is_finite() or max_balance <= ZERO:
            raise ValueError(f"Ledger max_balance must be a positive Decimal, got {max_balance!r}")
        if not isinstance(floor, Decimal) or not floor.is_finite():
            raise ValueError(f"Ledger floor must be a finite Decimal, got {floor!r}")
        if floor > ZERO:
            raise ValueError(f"Ledger floor must not be positive, got {floor}")
        # Balances stay within +-max_balance, where Decimal arithmetic is exact
        if floor < -max_balance:
            raise ValueError(f"Ledger floor must not be below -{max_balance}, got {floor}")
        self.name = name
        self._floor = floor
        self.allow_implicit_open = allow_implicit_open
        self.verbose = verbose
        self.max_balance = max_balance
        # Insertion ordered: iteration yields accounts in first-seen order
        self._accounts: Dict[AccountId, Account] = {}
        # tx_id -> applied transaction, for duplicate detection and disputes
        self._history: Dict[int, TransactionRecord] = {}
        self.transaction_log: List[ApplyResult] = []
        # Monotonic sequence counter for apply ordering
        self._next_sequence: int = 0

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def floor(self) -> Decimal:
        """Minimum permissible available balance."""
        return self._floor

    def has_account(self, account_id: AccountId) -> bool:
        """Check if an account is known."""
        return account_id in self._accounts

    def get_account(self, account_id: AccountId) -> AccountSnapshot:
        """
        Get a frozen snapshot of an account.

        Raises:
            UnknownAccount: If the account has never been referenced or opened
        """
        account = self._accounts.get(account_id)
        if account is None:
            raise UnknownAccount(f"Account {account_id} not known")
        return account.freeze()

    def get_balance(self, account_id: AccountId) -> Decimal:
        """Available balance of an account (raises UnknownAccount)."""
        return self.get_account(account_id).available

    def list_accounts(self) -> List[AccountId]:
        """List all account ids in first-seen order."""
        return list(self._accounts)

    def snapshot(self) -> List[AccountSnapshot]:
        """
        Snapshots of every known account, in first-seen order.

        No side effects; may be called any number of times.
        """
        return [account.freeze() for account in self._accounts.values()]

    def get_record(self, tx_id: int) -> Optional[TransactionRecord]:
        """The applied transaction with this id, or None."""
        return self._history.get(tx_id)

    @property
    def history(self) -> Dict[int, TransactionRecord]:
        """Copy of the applied-transaction history keyed by tx_id."""
        return dict(self._history)

    def total_funds(self) -> Decimal:
        """
        Sum of total (available + held) over all accounts.

        Accounts are sorted by key before summation so accumulation order
        does not depend on input order.
        """
        return sum(
            (self._accounts[k].available + self._accounts[k].held
             for k in sorted(self._accounts, key=lambda k: (type(k).__name__, k))),
            ZERO,
        )

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._accounts

    def __repr__(self) -> str:
        applied = sum(r.applied for r in self.transaction_log)
        return f"Ledger({self.name!r}, accounts={len(self._accounts)}, applied={applied})"

    # ========================================================================
    # ACCOUNT CREATION (Mutating)
    # ========================================================================

    def open_account(self, account_id: AccountId, opening_balance: Decimal = ZERO) -> AccountSnapshot:
        """
        Open an account explicitly.

        Args:
            account_id: Identifier of the new account
            opening_balance: Non-negative initial available balance

        Returns:
            Snapshot of the new account

        Raises:
            AccountExists: If the account is already known
            ValueError: If the opening balance is negative or not exact
        """
        if account_id in self._accounts:
            raise AccountExists(f"Account {account_id} already exists")
        opening_balance = to_amount(opening_balance)
        if opening_balance < ZERO:
            raise ValueError(f"Opening balance must not be negative, got {opening_balance}")
        if not is_exact_amount(opening_balance):
            raise ValueError(f"Opening balance {opening_balance} is not an exact amount")
        state = AccountSnapshot(account_id, quantize_amount(opening_balance))
        self._check_state(state)
        account = self._create(account_id)
        account.commit(state)
        return account.freeze()

    def _create(self, account_id: AccountId) -> Account:
        account = Account(account_id, quantize_amount(ZERO), quantize_amount(ZERO))
        self._accounts[account_id] = account
        return account

    def _resolve_account(self, account_id: AccountId) -> Optional[Account]:
        """Existing account, or a newly created one when implicit opening is on."""
        account = self._accounts.get(account_id)
        if account is None and self.allow_implicit_open:
            account = self._create(account_id)
        return account

    # ========================================================================
    # TRANSACTION APPLICATION (Mutating)
    # ========================================================================

    def apply(self, transaction: Transaction) -> ApplyResult:
        """
        Apply one transaction.

        Looks up (or creates) the target account, delegates the decision to
        the applier and commits the outcome only if it was accepted. A
        rejected transaction leaves every balance unchanged.

        Args:
            transaction: The transaction to apply

        Returns:
            ApplyResult with status APPLIED or REJECTED

        Raises:
            TypeError: If transaction is not a Transaction
            LedgerInvariantViolation: If committing would break an invariant
        """
        if not isinstance(transaction, Transaction):
            raise TypeError(f"Expected Transaction, got {type(transaction).__name__}")

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = transaction

        if tx.kind is TransactionType.OPEN:
            if tx.account_id in self._accounts:
                return self._reject(sequence, tx, RejectionReason.ACCOUNT_EXISTS,
                                    f"account {tx.account_id} already exists",
                                    self._accounts[tx.account_id].freeze())
            account = Account(tx.account_id, quantize_amount(ZERO), quantize_amount(ZERO))
        else:
            account = self._resolve_account(tx.account_id)
            if account is None:
                return self._reject(sequence, tx, RejectionReason.UNKNOWN_ACCOUNT,
                                    f"account {tx.account_id} not opened")

        if tx.tx_id is not None and tx.kind not in DISPUTE_KINDS and tx.tx_id in self._history:
            return self._reject(sequence, tx, RejectionReason.DUPLICATE_TRANSACTION,
                                f"transaction #{tx.tx_id} already applied",
                                self._snapshot_of(account))

        counterparty: Optional[Account] = None
        if tx.kind is TransactionType.TRANSFER:
            counterparty = self._resolve_account(tx.counterparty)
            if counterparty is None:
                return self._reject(sequence, tx, RejectionReason.UNKNOWN_ACCOUNT,
                                    f"account {tx.counterparty} not opened",
                                    account.freeze())

        record = self._history.get(tx.tx_id) if tx.kind in DISPUTE_KINDS else None
        outcome = decide(
            account.freeze(), tx,
            floor=self._floor,
            record=record,
            counterparty=counterparty.freeze() if counterparty is not None else None,
        )
        if isinstance(outcome, Rejected):
            return self._reject(sequence, tx, outcome.reason, outcome.detail,
                                self._snapshot_of(account),
                                counterparty.freeze() if counterparty is not None else None)

        self._commit(sequence, tx, account, outcome, counterparty, record)
        result = ApplyResult(
            status=ExecuteResult.APPLIED,
            sequence=sequence,
            transaction=tx,
            snapshot=outcome.account,
            counterparty=outcome.counterparty,
        )
        self.transaction_log.append(result)
        if self.verbose:
            self._print_result(result, "APPLIED", "✓")
        return result

    def apply_all(self, transactions: Iterable[Transaction]) -> List[ApplyResult]:
        """Apply transactions in iteration order and return every result."""
        return [self.apply(tx) for tx in transactions]

    def _snapshot_of(self, account: Account) -> Optional[AccountSnapshot]:
        # A rejected open never registers its account
        if account.account_id not in self._accounts:
            return None
        return account.freeze()

    def _reject(
        self,
        sequence: int,
        tx: Transaction,
        reason: RejectionReason,
        detail: str,
        snapshot: Optional[AccountSnapshot] = None,
        counterparty: Optional[AccountSnapshot] = None,
    ) -> ApplyResult:
        result = ApplyResult(
            status=ExecuteResult.REJECTED,
            sequence=sequence,
            transaction=tx,
            snapshot=snapshot,
            counterparty=counterparty,
            reason=reason,
            detail=detail,
        )
        self.transaction_log.append(result)
        if self.verbose:
            self._print_result(result, f"REJECTED ({reason.value}): {detail}", "✗")
        return result

    def _commit(
        self,
        sequence: int,
        tx: Transaction,
        account: Account,
        outcome: Accepted,
        counterparty: Optional[Account],
        record: Optional[TransactionRecord],
    ) -> None:
        """
        Write an accepted outcome into the account cells.

        Every new state is checked before any cell is written, so a transfer
        whose second leg would break an invariant leaves both accounts as
        they were.
        """
        staged: List[Tuple[Account, AccountSnapshot]] = [(account, outcome.account)]
        if outcome.counterparty is not None:
            if counterparty is None:
                raise LedgerInvariantViolation(f"Outcome for {tx!r} has a counterparty state but no account")
            staged.append((counterparty, outcome.counterparty))
        for _, state in staged:
            self._check_state(state)

        if tx.kind is TransactionType.OPEN:
            self._accounts[account.account_id] = account
        for cell, state in staged:
            cell.commit(state)

        if tx.kind in DISPUTE_KINDS:
            if record is None or outcome.record_status is None:
                raise LedgerInvariantViolation(f"Accepted {tx!r} without a dispute status change")
            self._history[tx.tx_id] = TransactionRecord(record.transaction, record.sequence,
                                                        outcome.record_status)
        elif tx.tx_id is not None:
            self._history[tx.tx_id] = TransactionRecord(tx, sequence)

    def _check_state(self, state: AccountSnapshot) -> None:
        """
        Verify a state before it is committed.

        Raises:
            BalanceOverflow: If available or held leaves the range +-max_balance
            LedgerInvariantViolation: If available is below the floor or held is negative
        """
        if abs(state.available) > self.max_balance or state.held > self.max_balance:
            raise BalanceOverflow(
                f"Account {state.account_id}: balance exceeds {self.max_balance} "
                f"(available={state.available}, held={state.held})"
            )
        if state.available < self._floor:
            raise LedgerInvariantViolation(
                f"Account {state.account_id}: available {state.available} < floor {self._floor}"
            )
        if state.held < ZERO:
            raise LedgerInvariantViolation(f"Account {state.account_id}: held {state.held} < 0")

    def _print_result(self, result: ApplyResult, text: str, icon: str) -> None:
        """Print one trace line for a transaction result to stderr."""
        print(f"{icon} [{self.name}#{result.sequence}] {result.transaction!r} {text}", file=sys.stderr)
