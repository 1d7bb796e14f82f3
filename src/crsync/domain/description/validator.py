"""Structural checks for a merged change request description."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .markers import PLAN_BLOCK, MarkerPair
from .models import is_defect_kind
from .template import (
    DETAILS_HEADING,
    DETAILS_TABLE_HEADER,
    IMPACT_HEADING,
    PLAN_HEADING,
    RELATED_HEADING,
    RELATED_TABLE_HEADER,
    RISK_HEADING,
    RISK_TABLE_HEADER,
    ROOT_CAUSE_HEADING,
    SUMMARY_HEADING,
)

_SEPARATOR_ROW = re.compile(r"^\|(\s*:?-{3,}:?\s*\|)+$")


@dataclass(frozen=True)
class Requirement:
    """One named item of the description contract.

    A requirement is met when ``heading`` appears as a whole line, every literal in
    ``literals`` occurs somewhere in the document and, when ``table_header`` is set,
    that header line is immediately followed by a separator row and a data row.
    """

    name: str
    heading: str
    table_header: Optional[str] = None
    literals: Tuple[str, ...] = ()
    defect_only: bool = False


def _plan_requirement() -> Requirement:
    pair = MarkerPair.for_block(PLAN_BLOCK)
    return Requirement("Development Plan", PLAN_HEADING, literals=(pair.start, pair.end))


REPORT_REQUIREMENTS: Tuple[Requirement, ...] = (
    Requirement("Related Ticket", RELATED_HEADING, table_header=RELATED_TABLE_HEADER),
    Requirement("Change Summary", SUMMARY_HEADING),
    Requirement("Change Details", DETAILS_HEADING, table_header=DETAILS_TABLE_HEADER),
    Requirement("Risk Assessment", RISK_HEADING, table_header=RISK_TABLE_HEADER),
    Requirement("Impact Scope", IMPACT_HEADING, defect_only=True),
    Requirement("Root Cause", ROOT_CAUSE_HEADING, defect_only=True),
)


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    missing: Tuple[str, ...]
    is_defect: bool = False

    def to_dict(self) -> dict:
        return {"ok": self.ok, "missing": list(self.missing), "isDefect": self.is_defect}


class FormatValidator:
    """Checks every requirement and reports all missing ones in document order."""

    def __init__(self, requirements: Optional[Sequence[Requirement]] = None, *, require_plan: bool = True) -> None:
        if requirements is None:
            requirements = ((_plan_requirement(),) if require_plan else ()) + REPORT_REQUIREMENTS
        self._requirements = tuple(requirements)

    @property
    def requirements(self) -> Tuple[Requirement, ...]:
        return self._requirements

    def validate(self, document: str, issue_kind: Optional[str] = None) -> ValidationResult:
        defect = is_defect_kind(issue_kind)
        lines = [line.strip() for line in document.replace("\r\n", "\n").split("\n")]
        missing: List[str] = []
        for requirement in self._requirements:
            if requirement.defect_only and not defect:
                continue
            if not self._satisfied(requirement, document, lines):
                missing.append(requirement.name)
        return ValidationResult(ok=not missing, missing=tuple(missing), is_defect=defect)

    @staticmethod
    def _satisfied(requirement: Requirement, document: str, lines: List[str]) -> bool:
        if requirement.heading not in lines:
            return False
        if any(literal not in document for literal in requirement.literals):
            return False
        if requirement.table_header is None:
            return True
        return _has_table(lines, requirement.table_header)


def _has_table(lines: List[str], header: str) -> bool:
    for index, line in enumerate(lines):
        if line != header:
            continue
        following = lines[index + 1 : index + 3]
        if len(following) < 2:
            continue
        separator, data = following
        if _SEPARATOR_ROW.match(separator) and data.startswith("|") and not _SEPARATOR_ROW.match(data):
            return True
    return False
