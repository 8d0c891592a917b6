"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the contribution ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. accrual.py - Interest only grows active balances; PAID is terminal
2. repayment.py - Floor at zero, status follows balance, one charge per payment
3. aggregation.py - Derived views are pure functions of the collections
4. atomicity.py - Multi-collection writes are all-or-nothing
5. determinism.py - Same inputs, same clock, same ids -> same store

These tests use hypothesis for property-based testing.
"""
