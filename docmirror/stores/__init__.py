"""Persistence helpers for docmirror artifacts."""

from .atomic import atomic_write_text, write_if_changed
from .ledger import LEDGER_VERSION, LedgerError, LedgerStore

__all__ = ["LEDGER_VERSION", "LedgerError", "LedgerStore", "atomic_write_text", "write_if_changed"]
