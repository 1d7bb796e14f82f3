"""Recovery chain for owned regions: current markers, prior markers, legacy headings."""

from __future__ import annotations

from typing import List, Optional

from .legacy import LegacyHeuristicExtractor, NotFound, Recovered, Recovery, RecoverySource
from .markers import CURRENT_CODEC, PRIOR_CODEC, MarkerBlockCodec, MarkerScanStatus


class RegionRecoverer:
    """Finds a region's previously written content and migrates it on write."""

    def __init__(
        self,
        current: MarkerBlockCodec = CURRENT_CODEC,
        prior: Optional[MarkerBlockCodec] = PRIOR_CODEC,
        extractor: Optional[LegacyHeuristicExtractor] = None,
    ) -> None:
        self._current = current
        self._prior = prior
        self._extractor = extractor if extractor is not None else LegacyHeuristicExtractor()

    @property
    def codec(self) -> MarkerBlockCodec:
        return self._current

    def recover(self, document: str, block: str) -> Recovery:
        diagnostics: List[str] = []
        attempts = [(self._current, RecoverySource.CURRENT_MARKERS)]
        if self._prior is not None and block in self._prior.blocks:
            attempts.append((self._prior, RecoverySource.PRIOR_MARKERS))

        for codec, source in attempts:
            scan = codec.scan(document, block)
            if scan.present:
                return Recovered(
                    content=scan.content or "",
                    source=source,
                    span=(scan.start, scan.end),
                    diagnostics=tuple(diagnostics),
                )
            if scan.status is MarkerScanStatus.MALFORMED:
                diagnostics.append(f"{block}: {source.value} malformed ({scan.reason}); treating as absent")

        legacy = self._extractor.extract(document, block)
        diagnostics.extend(legacy.diagnostics)
        if isinstance(legacy, Recovered):
            return Recovered(
                content=legacy.content,
                source=legacy.source,
                span=legacy.span,
                diagnostics=tuple(diagnostics),
            )
        return NotFound(diagnostics=tuple(diagnostics))

    def write(self, document: str, block: str, content: str) -> str:
        """Upsert ``content``; older-generation regions are replaced in place."""

        located = self.recover(document, block)
        if isinstance(located, Recovered) and located.source is not RecoverySource.CURRENT_MARKERS:
            start, end = located.span
            return self._current.splice(document, start, end, block, content)
        return self._current.upsert(document, block, content)
