"""Trailing attribution line kept as the final line of a description."""

from __future__ import annotations


def strip_trailing_attribution(text: str, line: str) -> str:
    """Remove every trailing copy of ``line`` (and the blank lines around it)."""

    marker = line.strip()
    if not marker:
        return text
    body = text.rstrip()
    while body.endswith(marker):
        body = body[: -len(marker)].rstrip()
    return body


def append_attribution(text: str, line: str) -> str:
    marker = line.strip()
    if not marker:
        return text
    body = strip_trailing_attribution(text, marker)
    if not body:
        return f"{marker}\n"
    return f"{body}\n\n{marker}\n"
