from __future__ import annotations

from typing import List

import pytest
from hypothesis import given
from hypothesis import strategies as st

from crsync.domain.review import LEDGER_PREFIX, LedgerEntry, LedgerNote, ReviewGateLedger


class MemoryNoteStore:
    def __init__(self, notes: List[LedgerNote] | None = None) -> None:
        self.notes = list(notes or [])
        self.created: List[str] = []
        self.updated: List[tuple[str, str]] = []

    def list_notes(self) -> List[LedgerNote]:
        return list(self.notes)

    def create_note(self, body: str) -> LedgerNote:
        note = LedgerNote(id=str(len(self.notes) + 100), body=body, updated_at="2026-01-01T00:00:00Z")
        self.notes.append(note)
        self.created.append(body)
        return note

    def update_note(self, note_id: str, body: str) -> LedgerNote:
        self.updated.append((note_id, body))
        self.notes = [LedgerNote(n.id, body, n.updated_at) if n.id == note_id else n for n in self.notes]
        return LedgerNote(note_id, body)


def _note(note_id: str, commit: str, updated_at: str) -> LedgerNote:
    return LedgerNote(id=note_id, body=f"{LEDGER_PREFIX} {commit}", updated_at=updated_at)


def test_most_recently_updated_entry_is_current() -> None:
    ledger = ReviewGateLedger(MemoryNoteStore())
    notes = [
        _note("1", "abc1234", "2026-03-01T10:00:00Z"),
        _note("2", "def5678", "2026-03-02T10:00:00Z"),
        LedgerNote("3", "LGTM", "2026-03-05T10:00:00Z"),
    ]
    assert ledger.find_current_entry(notes) == LedgerEntry(id="2", commit_id="def5678")


def test_server_order_does_not_matter_for_selection() -> None:
    ledger = ReviewGateLedger(MemoryNoteStore())
    notes = [
        _note("2", "def5678", "2026-03-02T10:00:00+00:00"),
        _note("1", "abc1234", "2026-03-01T10:00:00+00:00"),
    ]
    assert ledger.find_current_entry(list(reversed(notes))).commit_id == "def5678"


def test_ties_keep_first_note_in_server_order() -> None:
    ledger = ReviewGateLedger(MemoryNoteStore())
    notes = [_note("7", "aaaaaaa", "2026-03-01T10:00:00Z"), _note("8", "bbbbbbb", "2026-03-01T10:00:00Z")]
    assert ledger.find_current_entry(notes).id == "7"


def test_non_hex_commit_is_treated_as_absent() -> None:
    ledger = ReviewGateLedger(MemoryNoteStore())
    entry = ledger.find_current_entry([LedgerNote("5", f"{LEDGER_PREFIX} not-a-sha", "2026-01-01T00:00:00Z")])
    assert entry == LedgerEntry(id="5", commit_id=None)
    assert ReviewGateLedger.should_review("abc1234", entry)


def test_matching_head_skips_review() -> None:
    assert not ReviewGateLedger.should_review("def5678", LedgerEntry("2", "def5678"))
    assert ReviewGateLedger.should_review("def5678", None)


@given(head=st.from_regex(r"[0-9a-f]{7,40}", fullmatch=True), recorded=st.from_regex(r"[0-9a-f]{7,40}", fullmatch=True))
def test_gate_reviews_exactly_when_commit_changed(head: str, recorded: str) -> None:
    assert ReviewGateLedger.should_review(head, LedgerEntry("1", recorded)) == (head != recorded)


def test_record_updates_existing_entry_in_place() -> None:
    store = MemoryNoteStore([_note("9", "abc1234", "2026-03-01T10:00:00Z")])
    ledger = ReviewGateLedger(store, attribution="_Synced by crsync_")
    entry = ledger.load()
    recorded = ledger.record("def5678", entry)
    assert recorded == LedgerEntry("9", "def5678")
    assert store.created == []
    assert store.updated == [("9", f"{LEDGER_PREFIX} def5678\n\n_Synced by crsync_")]


def test_record_creates_exactly_one_entry_when_none_exists() -> None:
    store = MemoryNoteStore([LedgerNote("1", "Looks good", None)])
    ledger = ReviewGateLedger(store)
    ledger.record("def5678", ledger.load())
    ledger.record("0123abc", ledger.load())
    assert store.created == [f"{LEDGER_PREFIX} def5678"]
    assert ledger.load().commit_id == "0123abc"


def test_record_rejects_non_commit_ids() -> None:
    with pytest.raises(ValueError):
        ReviewGateLedger(MemoryNoteStore()).record("HEAD", None)
