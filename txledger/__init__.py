"""
txledger - Batch Ledger Processor

Reads a batch of transactions, applies them in order to an in-memory set of
accounts and reports the resulting balances.

Usage:
    from txledger import Ledger, deposit, withdrawal, transfer

    ledger = Ledger("main")
    ledger.apply(deposit("A", "100"))
    ledger.apply(withdrawal("A", "30"))
    result = ledger.apply(withdrawal("A", "1000"))
    result.reason        # RejectionReason.INSUFFICIENT_FUNDS
    ledger.snapshot()    # [Account(A: available=70.0000, held=0.0000)]

    # CSV in, CSV out
    with open("transactions.csv", newline="") as f:
        report = run_batch(ledger, read_transactions(f))
"""

# Core types
from .core import (
    LedgerView,
    Transaction,
    TransactionType,
    TransactionRecord,
    AccountSnapshot,
    AccountId,
    ApplyResult,
    ExecuteResult,
    RejectionReason,
    DisputeStatus,
    LedgerError,
    InputError,
    UnknownAccount,
    AccountExists,
    LedgerInvariantViolation,
    BalanceOverflow,
    open_account,
    deposit,
    withdrawal,
    transfer,
    dispute,
    resolve,
    chargeback,
    to_amount,
    format_amount,
    AMOUNT_DECIMAL_PLACES,
    DEFAULT_FLOOR,
    MAX_BALANCE,
)

# Decisions
from .applier import (
    Accepted,
    Rejected,
    Outcome,
    decide,
    decide_open,
    decide_deposit,
    decide_withdrawal,
    decide_transfer,
    decide_dispute,
    decide_resolve,
    decide_chargeback,
)

# Ledger
from .ledger import Ledger

# Batch processing and CSV
from .batch import BatchReport, run_batch
from .csv_io import read_transactions, write_balances, parse_record

__all__ = [
    # Core
    'LedgerView', 'Transaction', 'TransactionType', 'TransactionRecord',
    'AccountSnapshot', 'AccountId', 'ApplyResult', 'ExecuteResult',
    'RejectionReason', 'DisputeStatus',
    'LedgerError', 'InputError', 'UnknownAccount', 'AccountExists',
    'LedgerInvariantViolation', 'BalanceOverflow',
    'open_account', 'deposit', 'withdrawal', 'transfer',
    'dispute', 'resolve', 'chargeback',
    'to_amount', 'format_amount',
    'AMOUNT_DECIMAL_PLACES', 'DEFAULT_FLOOR', 'MAX_BALANCE',
    # Decisions
    'Accepted', 'Rejected', 'Outcome', 'decide',
    'decide_open', 'decide_deposit', 'decide_withdrawal', 'decide_transfer',
    'decide_dispute', 'decide_resolve', 'decide_chargeback',
    # Ledger
    'Ledger',
    # Batch / CSV
    'BatchReport', 'run_batch', 'read_transactions', 'write_balances', 'parse_record',
]

__version__ = '1.0.0'
