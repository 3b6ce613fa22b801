"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. floor.py - No applied transaction leaves available below the floor
2. conservation.py - Funds change only by applied deposits, withdrawals and chargebacks
3. atomicity.py - Rejected transactions and transfers are all-or-nothing
4. idempotency.py - Transaction ids are applied at most once
5. determinism.py - Same input, same balances

These tests use hypothesis for property-based testing.
"""
