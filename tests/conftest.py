"""
conftest.py - Shared pytest fixtures for txledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Ledgers (empty, funded, overdraft-enabled, explicit-open only)
- A sample CSV batch for reader and CLI tests
- Comparison utilities live in tests/helpers.py
"""

from decimal import Decimal

import pytest

from txledger import Ledger, deposit

from tests.helpers import csv_text


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_ledger():
    """Fresh ledger with default policies."""
    return Ledger("test")


@pytest.fixture
def funded_ledger():
    """Ledger with account 1 holding 100 (deposit #1) and account 2 holding 50 (deposit #2)."""
    ledger = Ledger("test")
    ledger.apply(deposit(1, "100", tx_id=1))
    ledger.apply(deposit(2, "50", tx_id=2))
    return ledger


@pytest.fixture
def overdraft_ledger():
    """Ledger allowing available balances down to -50."""
    return Ledger("overdraft", floor=Decimal("-50"))


@pytest.fixture
def strict_ledger():
    """Ledger that refuses transactions for accounts that were never opened."""
    return Ledger("strict", allow_implicit_open=False)


# =============================================================================
# CSV FIXTURES
# =============================================================================

@pytest.fixture
def sample_csv(tmp_path):
    """The reference sample batch, written to a temporary file."""
    path = tmp_path / "transactions.csv"
    path.write_text(csv_text([
        "deposit, 1, 1, 1.0",
        "deposit, 2, 2, 2.0",
        "deposit, 1, 3, 2.0",
        "withdrawal, 1, 4, 1.5",
        "withdrawal, 2, 5, 3.0",
    ]))
    return path
