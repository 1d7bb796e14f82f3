"""Marker-delimited owned regions inside free-form change request descriptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional

START_TEMPLATE = "<!-- crsync:start:{marker} -->"
END_TEMPLATE = "<!-- crsync:end:{marker} -->"

PLAN_BLOCK = "plan"
REPORT_BLOCK = "report"
BLOCKS = (PLAN_BLOCK, REPORT_BLOCK)

PRIOR_GENERATION_MARKERS = {
    PLAN_BLOCK: ("<!-- DEVELOPMENT_PLAN_START -->", "<!-- DEVELOPMENT_PLAN_END -->"),
    REPORT_BLOCK: ("<!-- DEVELOPMENT_REPORT_START -->", "<!-- DEVELOPMENT_REPORT_END -->"),
}


@dataclass(frozen=True)
class MarkerPair:
    """Literal start/end tokens delimiting one named region."""

    start: str
    end: str

    def __post_init__(self) -> None:
        if not self.start or not self.end:
            raise ValueError("marker tokens must be non-empty strings")
        if self.start == self.end:
            raise ValueError("start and end markers must differ")

    @classmethod
    def for_block(cls, name: str) -> "MarkerPair":
        return cls(start=START_TEMPLATE.format(marker=name), end=END_TEMPLATE.format(marker=name))


class MarkerScanStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class MarkerScan:
    """Location of a block inside a document.

    ``start`` is the offset of the start marker and ``end`` the offset just past the
    end marker; both are ``-1`` unless the block is present.
    """

    block: str
    status: MarkerScanStatus
    start: int = -1
    end: int = -1
    content: Optional[str] = None
    reason: Optional[str] = None

    @property
    def present(self) -> bool:
        return self.status is MarkerScanStatus.PRESENT


class MarkerBlockCodec:
    """Reads and upserts named marker blocks without touching surrounding text.

    The first start marker and the nearest end marker following it define a block.
    A start without a following end (or an end without a start) is reported as
    malformed and treated as absent, so ``upsert`` falls back to appending.
    Block content must not itself contain the block's markers.
    """

    def __init__(self, pairs: Mapping[str, MarkerPair]) -> None:
        if not pairs:
            raise ValueError("codec requires at least one marker pair")
        self._pairs: Dict[str, MarkerPair] = dict(pairs)

    @classmethod
    def current(cls, blocks: Iterable[str] = BLOCKS) -> "MarkerBlockCodec":
        return cls({name: MarkerPair.for_block(name) for name in blocks})

    @classmethod
    def prior_generation(cls) -> "MarkerBlockCodec":
        return cls({name: MarkerPair(start, end) for name, (start, end) in PRIOR_GENERATION_MARKERS.items()})

    @property
    def blocks(self) -> tuple[str, ...]:
        return tuple(self._pairs)

    def pair(self, block: str) -> MarkerPair:
        try:
            return self._pairs[block]
        except KeyError as exc:
            raise KeyError(f"unknown marker block '{block}'") from exc

    def scan(self, document: str, block: str) -> MarkerScan:
        pair = self.pair(block)
        start_idx = document.find(pair.start)
        if start_idx == -1:
            if pair.end in document:
                return MarkerScan(block=block, status=MarkerScanStatus.MALFORMED, reason="end marker without start marker")
            return MarkerScan(block=block, status=MarkerScanStatus.ABSENT)

        content_start = start_idx + len(pair.start)
        end_idx = document.find(pair.end, content_start)
        if end_idx == -1:
            return MarkerScan(block=block, status=MarkerScanStatus.MALFORMED, reason="start marker without end marker")
        return MarkerScan(
            block=block,
            status=MarkerScanStatus.PRESENT,
            start=start_idx,
            end=end_idx + len(pair.end),
            content=document[content_start:end_idx].strip("\n"),
        )

    def extract(self, document: str, block: str) -> Optional[str]:
        return self.scan(document, block).content

    def wrap(self, block: str, content: str) -> str:
        pair = self.pair(block)
        body = content.strip("\n")
        return f"{pair.start}\n{body}\n{pair.end}"

    def upsert(self, document: str, block: str, content: str) -> str:
        scan = self.scan(document, block)
        if scan.present:
            return self.splice(document, scan.start, scan.end, block, content)
        return self.append(document, block, content)

    def splice(self, document: str, start: int, end: int, block: str, content: str) -> str:
        """Replace ``document[start:end]`` with the wrapped block."""

        if not 0 <= start <= end <= len(document):
            raise ValueError(f"invalid splice range {start}:{end}")
        replacement = self.wrap(block, content)
        before = document[:start].rstrip("\n")
        after = document[end:].lstrip("\n")
        text = f"{before}\n\n{replacement}" if before else replacement
        return f"{text}\n\n{after}" if after else f"{text}\n"

    def append(self, document: str, block: str, content: str) -> str:
        replacement = self.wrap(block, content)
        base = document.rstrip("\n")
        if not base:
            return f"{replacement}\n"
        return f"{base}\n\n{replacement}\n"


CURRENT_CODEC = MarkerBlockCodec.current()
PRIOR_CODEC = MarkerBlockCodec.prior_generation()
