from __future__ import annotations

from crsync.domain.description.attribution import append_attribution, strip_trailing_attribution

LINE = "_Synced by crsync_"


def test_append_keeps_single_trailing_line() -> None:
    once = append_attribution("Body", LINE)
    assert once == f"Body\n\n{LINE}\n"
    assert append_attribution(once, LINE) == once


def test_strip_removes_stacked_copies() -> None:
    text = f"Body\n\n{LINE}\n{LINE}\n\n{LINE}\n"
    assert strip_trailing_attribution(text, LINE) == "Body"


def test_attribution_in_the_middle_is_left_alone() -> None:
    text = f"{LINE}\n\nBody\n"
    assert append_attribution(text, LINE) == f"{LINE}\n\nBody\n\n{LINE}\n"


def test_empty_line_is_a_no_op() -> None:
    assert append_attribution("Body\n", "  ") == "Body\n"
