"""
batch.py - Drive a stream of transactions through a ledger.

Structural errors abort the batch: every record before the bad one stays
applied, the bad record and everything after it are not. Rejections are
collected and never stop the run.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from .core import ApplyResult, InputError, Transaction
from .ledger import Ledger


@dataclass
class BatchReport:
    """
    Summary of one batch run.

    Attributes:
        results: ApplyResult for every record that reached the ledger, in order
        error: The structural error that aborted the run, if any
    """
    results: List[ApplyResult] = field(default_factory=list)
    error: Optional[InputError] = None

    @property
    def ok(self) -> bool:
        """True if the whole input was consumed without a structural error."""
        return self.error is None

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def applied(self) -> List[ApplyResult]:
        return [r for r in self.results if r.applied]

    @property
    def rejected(self) -> List[ApplyResult]:
        return [r for r in self.results if not r.applied]


def run_batch(
    ledger: Ledger,
    transactions: Iterable[Transaction],
    on_result: Optional[Callable[[ApplyResult], None]] = None,
) -> BatchReport:
    """
    Apply transactions to the ledger in iteration order.

    Args:
        ledger: Ledger that receives the transactions
        transactions: Usually a lazy reader such as csv_io.read_transactions()
        on_result: Optional callback invoked after every apply

    Returns:
        BatchReport; report.error is set if the input raised InputError

    Raises:
        LedgerInvariantViolation: Propagated unchanged; it stops the run
    """
    report = BatchReport()
    try:
        for tx in transactions:
            result = ledger.apply(tx)
            report.results.append(result)
            if on_result is not None:
                on_result(result)
    except InputError as exc:
        report.error = exc
    return report
