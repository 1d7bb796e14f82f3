"""Append-only note ledger remembering the last commit sent to automated review."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol, Sequence

LEDGER_PREFIX = "CRSYNC_REVIEWED_SHA:"

_COMMIT_ID = re.compile(r"^[0-9a-fA-F]{7,40}$")
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class LedgerNote:
    id: str
    body: str
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class LedgerEntry:
    """The current ledger note; ``commit_id`` is ``None`` when its body is unreadable."""

    id: str
    commit_id: Optional[str]


class NoteStore(Protocol):
    def list_notes(self) -> Sequence[LedgerNote]: ...

    def create_note(self, body: str) -> LedgerNote: ...

    def update_note(self, note_id: str, body: str) -> LedgerNote: ...


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp; unparsable values sort as the oldest."""

    if not value:
        return _OLDEST
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ReviewGateLedger:
    """Keeps exactly one prefixed note per change request and reads it back.

    Older runs may have left duplicate notes; the most recently updated one is
    current (ties go to the first note in server order) and is the only one ever
    rewritten.
    """

    def __init__(self, store: NoteStore, *, prefix: str = LEDGER_PREFIX, attribution: Optional[str] = None) -> None:
        if not prefix or not prefix.strip():
            raise ValueError("ledger prefix must be a non-empty string")
        self._store = store
        self._prefix = prefix.strip()
        self._attribution = attribution.strip() if attribution and attribution.strip() else None

    @property
    def prefix(self) -> str:
        return self._prefix

    def find_current_entry(self, notes: Iterable[LedgerNote]) -> Optional[LedgerEntry]:
        best: Optional[LedgerNote] = None
        best_ts = _OLDEST
        for note in notes:
            if not note.body.lstrip().startswith(self._prefix):
                continue
            ts = parse_timestamp(note.updated_at)
            if best is None or ts > best_ts:
                best, best_ts = note, ts
        if best is None:
            return None
        return LedgerEntry(id=str(best.id), commit_id=self._commit_from_body(best.body))

    @staticmethod
    def should_review(head_commit: str, entry: Optional[LedgerEntry]) -> bool:
        if entry is None or entry.commit_id is None:
            return True
        return entry.commit_id != head_commit

    def load(self) -> Optional[LedgerEntry]:
        return self.find_current_entry(self._store.list_notes())

    def record(self, head_commit: str, entry: Optional[LedgerEntry]) -> LedgerEntry:
        if not _COMMIT_ID.match(head_commit or ""):
            raise ValueError(f"'{head_commit}' is not a commit id")
        body = self.body_for(head_commit)
        if entry is not None:
            note = self._store.update_note(entry.id, body)
        else:
            note = self._store.create_note(body)
        return LedgerEntry(id=str(note.id), commit_id=head_commit)

    def body_for(self, head_commit: str) -> str:
        body = f"{self._prefix} {head_commit}"
        if self._attribution:
            body = f"{body}\n\n{self._attribution}"
        return body

    def _commit_from_body(self, body: str) -> Optional[str]:
        remainder = body.lstrip()[len(self._prefix) :].split()
        if not remainder:
            return None
        candidate = remainder[0]
        return candidate if _COMMIT_ID.match(candidate) else None
