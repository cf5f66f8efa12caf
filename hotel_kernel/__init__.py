"""
Hotel Kernel - back-office consistency core

A small, single-process consistency engine for:
- Booking financial ledger (charges, invoices, payments)
- Idempotent invoice issuance and payment-driven reconciliation
- Access provisioning state machine with best-effort notifications
- Snapshot persistence of in-memory stores
"""

__version__ = "0.1.0"
