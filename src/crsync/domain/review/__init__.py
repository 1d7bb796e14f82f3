"""Review gate primitives."""

from __future__ import annotations

from .ledger import LEDGER_PREFIX, LedgerEntry, LedgerNote, NoteStore, ReviewGateLedger

__all__ = ["LEDGER_PREFIX", "LedgerEntry", "LedgerNote", "NoteStore", "ReviewGateLedger"]
