"""
SME Ledger Kernel

The ledger and numbering core behind a purchase-and-cheque-issuance workflow:
- Deterministic purchase totals with explicit half-up rounding
- Gap-free, monotonic cheque leaf allocation from finite books
- Append-only print ledger as the audit trail of every cheque attempt
- Per-bank cheque layout calibration in millimetres
"""

__version__ = "0.1.0"
