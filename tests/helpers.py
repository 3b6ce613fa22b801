"""
helpers.py - Shared helper functions for txledger tests
"""

import io
from decimal import Decimal
from typing import Dict, Iterable, List

from txledger import AccountId, Ledger


def balances(ledger: Ledger) -> Dict[AccountId, Decimal]:
    """Map account id -> available balance, in first-seen order."""
    return {s.account_id: s.available for s in ledger.snapshot()}


def ledger_state_equals(ledger1: Ledger, ledger2: Ledger) -> bool:
    """Check if two ledgers hold the same accounts with the same state, in the same order."""
    return ledger1.snapshot() == ledger2.snapshot()


def csv_text(rows: Iterable[str], header: str = "type,client,tx,amount") -> str:
    """Join a header and data rows into CSV text."""
    return "\n".join([header, *rows]) + "\n"


def csv_stream(rows: Iterable[str], header: str = "type,client,tx,amount") -> io.StringIO:
    return io.StringIO(csv_text(rows, header))


def parse_output(text: str) -> List[List[str]]:
    """Split writer output into rows of cells (header included)."""
    return [line.split(",") for line in text.strip().splitlines()]
