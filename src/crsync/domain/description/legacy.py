"""Heuristic recovery of owned regions written before markers existed."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union

from .markers import PLAN_BLOCK, PRIOR_GENERATION_MARKERS, REPORT_BLOCK, MarkerPair
from .template import PLAN_HEADING, RELATED_HEADING, RISK_HEADING, SUMMARY_HEADING

AGENT_VERSION_HEADING = "### Agent Version"


class RecoverySource(str, Enum):
    CURRENT_MARKERS = "current-markers"
    PRIOR_MARKERS = "prior-markers"
    LEGACY_HEURISTIC = "legacy-heuristic"


@dataclass(frozen=True)
class Recovered:
    """Previously written region content together with where it was found."""

    content: str
    source: RecoverySource
    span: Tuple[int, int]
    diagnostics: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NotFound:
    diagnostics: Tuple[str, ...] = ()


Recovery = Union[Recovered, NotFound]


@dataclass(frozen=True)
class LegacyLandmarks:
    """Structural landmarks of one region's template.

    ``start`` is a heading line; ``ends`` are literal strings, the earliest one after
    the start closes the region (end of document otherwise); every ``requires``
    heading must appear inside the region for it to count.
    """

    start: str
    ends: Tuple[str, ...] = ()
    requires: Tuple[str, ...] = field(default_factory=tuple)


def default_landmarks() -> Dict[str, LegacyLandmarks]:
    plan_starts = (MarkerPair.for_block(PLAN_BLOCK).start, PRIOR_GENERATION_MARKERS[PLAN_BLOCK][0])
    report_starts = (MarkerPair.for_block(REPORT_BLOCK).start, PRIOR_GENERATION_MARKERS[REPORT_BLOCK][0])
    return {
        PLAN_BLOCK: LegacyLandmarks(
            start=PLAN_HEADING,
            ends=report_starts + (RELATED_HEADING, AGENT_VERSION_HEADING),
        ),
        REPORT_BLOCK: LegacyLandmarks(
            start=RELATED_HEADING,
            ends=(AGENT_VERSION_HEADING,) + plan_starts,
            requires=(SUMMARY_HEADING, RISK_HEADING),
        ),
    }


class LegacyHeuristicExtractor:
    """Locates un-marked legacy regions by anchoring on the last start landmark."""

    def __init__(
        self,
        landmarks: Optional[Mapping[str, LegacyLandmarks]] = None,
        *,
        trailing_line: Optional[str] = None,
    ) -> None:
        self._landmarks: Dict[str, LegacyLandmarks] = dict(landmarks or default_landmarks())
        self._trailing_line = trailing_line.strip() if trailing_line and trailing_line.strip() else None

    def extract(self, document: str, block: str) -> Recovery:
        landmarks = self._landmarks.get(block)
        if landmarks is None:
            return NotFound()

        start = self._last_heading(document, landmarks.start)
        if start is None:
            return NotFound()

        search_from = start + len(landmarks.start)
        end = len(document)
        for candidate in self._end_landmarks(landmarks):
            idx = document.find(candidate, search_from)
            if idx != -1 and idx < end:
                end = idx

        region = document[start:end]
        for heading in landmarks.requires:
            if self._last_heading(region, heading) is None:
                return NotFound(diagnostics=(f"{block}: legacy heading '{landmarks.start}' found without '{heading}'",))

        content = region.strip("\n")
        if not content.strip():
            return NotFound()
        return Recovered(content=content, source=RecoverySource.LEGACY_HEURISTIC, span=(start, end))

    def _end_landmarks(self, landmarks: LegacyLandmarks) -> Tuple[str, ...]:
        if self._trailing_line:
            return landmarks.ends + (self._trailing_line,)
        return landmarks.ends

    @staticmethod
    def _last_heading(document: str, heading: str) -> Optional[int]:
        pattern = re.compile(rf"^{re.escape(heading)}[ \t]*$", re.MULTILINE)
        last = None
        for match in pattern.finditer(document):
            last = match.start()
        return last
