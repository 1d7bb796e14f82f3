"""Description state: the plan and report records rendered into the owned regions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

SCHEMA_VERSION = 1
PLACEHOLDER = "Please fill in"
PLACEHOLDER_RISK_LEVEL = "Medium"

_STATUS_LABELS = {
    "A": "Added",
    "M": "Modified",
    "D": "Deleted",
    "R": "Renamed",
    "C": "Copied",
    "T": "Type changed",
}


def is_defect_kind(issue_kind: Optional[str]) -> bool:
    return isinstance(issue_kind, str) and "bug" in issue_kind.lower()


def status_label(status: Optional[str]) -> str:
    """Map a ``git diff --name-status`` letter to a table label."""

    if not status or not status.strip():
        return _STATUS_LABELS["M"]
    value = status.strip()
    letter = value[0].upper()
    if len(value) == 1 or value[1:].isdigit():
        return _STATUS_LABELS.get(letter, _STATUS_LABELS["M"])
    return value


def is_gap(value: Any) -> bool:
    """True when a field carries no information (missing or placeholder)."""

    if value is None:
        return True
    return isinstance(value, str) and value.strip() == PLACEHOLDER


@dataclass(frozen=True)
class FileEntry:
    path: str
    status: str = ""
    note: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "status": self.status, "note": self.note}


@dataclass(frozen=True)
class RiskEntry:
    path: str
    risk_level: str = ""
    note: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "riskLevel": self.risk_level, "note": self.note}


@dataclass(frozen=True)
class PlanInfo:
    ticket: Optional[str] = None
    title: Optional[str] = None
    issue_kind: Optional[str] = None
    steps: Optional[Tuple[str, ...]] = None
    confirmed: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        _put(payload, "ticket", self.ticket)
        _put(payload, "title", self.title)
        _put(payload, "issueKind", self.issue_kind)
        if self.steps is not None:
            payload["steps"] = list(self.steps)
        _put(payload, "confirmed", self.confirmed)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlanInfo":
        steps = data.get("steps")
        return cls(
            ticket=data.get("ticket"),
            title=data.get("title"),
            issue_kind=data.get("issueKind"),
            steps=tuple(steps) if steps is not None else None,
            confirmed=data.get("confirmed"),
        )


@dataclass(frozen=True)
class ReportInfo:
    ticket: Optional[str] = None
    summary: Optional[str] = None
    files: Optional[Tuple[FileEntry, ...]] = None
    risks: Optional[Tuple[RiskEntry, ...]] = None
    impact_scope: Optional[str] = None
    root_cause: Optional[str] = None
    verified: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        _put(payload, "ticket", self.ticket)
        _put(payload, "summary", self.summary)
        if self.files is not None:
            payload["files"] = [entry.to_dict() for entry in self.files]
        if self.risks is not None:
            payload["risks"] = [entry.to_dict() for entry in self.risks]
        _put(payload, "impactScope", self.impact_scope)
        _put(payload, "rootCause", self.root_cause)
        _put(payload, "verified", self.verified)
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReportInfo":
        files = data.get("files")
        risks = data.get("risks")
        return cls(
            ticket=data.get("ticket"),
            summary=data.get("summary"),
            files=tuple(
                FileEntry(path=item["path"], status=item.get("status", ""), note=item.get("note", ""))
                for item in files
            )
            if files is not None
            else None,
            risks=tuple(
                RiskEntry(path=item["path"], risk_level=item.get("riskLevel", ""), note=item.get("note", ""))
                for item in risks
            )
            if risks is not None
            else None,
            impact_scope=data.get("impactScope"),
            root_cause=data.get("rootCause"),
            verified=data.get("verified"),
        )


@dataclass(frozen=True)
class DescriptionInfo:
    """Source of truth for both owned regions of a change request description."""

    plan: PlanInfo = field(default_factory=PlanInfo)
    report: ReportInfo = field(default_factory=ReportInfo)

    @property
    def ticket(self) -> Optional[str]:
        return self.plan.ticket or self.report.ticket

    @property
    def is_defect(self) -> bool:
        return is_defect_kind(self.plan.issue_kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "plan": self.plan.to_dict(),
            "report": self.report.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DescriptionInfo":
        return cls(plan=PlanInfo.from_dict(data["plan"]), report=ReportInfo.from_dict(data["report"]))


@dataclass(frozen=True)
class ChangedFile:
    path: str
    status: str = "M"


@dataclass(frozen=True)
class ChangeContext:
    """Freshly computed diff of the working branch against its target branch."""

    files: Tuple[ChangedFile, ...] = ()
    target_branch: Optional[str] = None


def _put(payload: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        payload[key] = value
