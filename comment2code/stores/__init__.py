"""In-memory stores for request bookkeeping."""

from .ledger import RequestLedger

__all__ = ["RequestLedger"]
