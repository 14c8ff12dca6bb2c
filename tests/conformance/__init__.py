"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lock ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. lock_invariants.py - Cache equals sum of locks; locks are covered by balance
2. atomicity.py - All-or-nothing operation semantics
3. idempotency.py - Repeated calls and duplicate registrations
4. snapshot_immutability.py - Snapshots never change except by catch-up inclusion

These tests use hypothesis for property-based testing.
"""
