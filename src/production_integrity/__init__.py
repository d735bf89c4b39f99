"""Production integrity subsystem: audit ledger, counter reconciliation and OEE."""

__version__ = "0.1.0"
