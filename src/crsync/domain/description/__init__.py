"""Domain primitives for owned change request description regions."""

from __future__ import annotations

from .legacy import LegacyHeuristicExtractor, LegacyLandmarks, NotFound, Recovered, RecoverySource
from .markers import BLOCKS, PLAN_BLOCK, REPORT_BLOCK, MarkerBlockCodec, MarkerPair
from .models import (
    PLACEHOLDER,
    ChangeContext,
    ChangedFile,
    DescriptionInfo,
    FileEntry,
    PlanInfo,
    ReportInfo,
    RiskEntry,
)
from .recovery import RegionRecoverer
from .template import TemplateRenderer
from .validator import FormatValidator, ValidationResult

__all__ = [
    "BLOCKS",
    "PLACEHOLDER",
    "PLAN_BLOCK",
    "REPORT_BLOCK",
    "ChangeContext",
    "ChangedFile",
    "DescriptionInfo",
    "FileEntry",
    "FormatValidator",
    "LegacyHeuristicExtractor",
    "LegacyLandmarks",
    "MarkerBlockCodec",
    "MarkerPair",
    "NotFound",
    "PlanInfo",
    "Recovered",
    "RecoverySource",
    "RegionRecoverer",
    "ReportInfo",
    "RiskEntry",
    "TemplateRenderer",
    "ValidationResult",
]
