"""Local JSON source of truth for the owned description regions."""

from __future__ import annotations

import json
import re
import shutil
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from crsync.domain.description.models import (
    PLACEHOLDER,
    PLACEHOLDER_RISK_LEVEL,
    ChangeContext,
    DescriptionInfo,
    FileEntry,
    PlanInfo,
    ReportInfo,
    RiskEntry,
    is_defect_kind,
    is_gap,
    status_label,
)
from crsync.resources import schema_validator
from crsync.utils.files import atomic_write_text

from .config import DEFAULT_TICKET_PATTERN
from .errors import CorruptStateError

STATE_FILENAME = "description.json"
_SCHEMA_RESOURCE = "description_info.schema.json"


def _cell(value: Optional[str]) -> str:
    return " ".join(value.split()) if isinstance(value, str) else ""


def _known(value: Optional[str]) -> Optional[str]:
    return None if is_gap(value) else (_cell(value) or None)


def _text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _is_gap(value: Any) -> bool:
    return is_gap(value) or (isinstance(value, tuple) and not value)


class StateRepository:
    """Loads, merges, normalizes and stores ``DescriptionInfo`` per ticket.

    Each ticket owns ``<state_dir>/<TICKET>/description.json``; that directory is the
    cycle's temporary artifact and is removed by :meth:`cleanup` once the remote
    description is verified.
    """

    def __init__(self, state_dir: Path, *, ticket_pattern: str = DEFAULT_TICKET_PATTERN) -> None:
        self._state_dir = state_dir
        self._ticket_regex = re.compile(ticket_pattern)

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def path_for(self, ticket: str) -> Path:
        return self._state_dir / ticket / STATE_FILENAME

    def load(self, path: Path) -> Optional[DescriptionInfo]:
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise CorruptStateError(f"state file {path} is unreadable: {exc}") from exc
        if not text.strip():
            return None
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CorruptStateError(f"state file {path} is not valid JSON: {exc}") from exc

        validator = schema_validator(_SCHEMA_RESOURCE)
        errors = sorted(validator.iter_errors(raw), key=lambda err: [str(item) for item in err.absolute_path])
        if errors:
            first = errors[0]
            location = ".".join(str(item) for item in first.absolute_path) or "<root>"
            raise CorruptStateError(f"state file {path} is invalid at {location}: {first.message}")
        return DescriptionInfo.from_dict(raw)

    def save(self, path: Path, info: DescriptionInfo) -> None:
        atomic_write_text(path, json.dumps(info.to_dict(), ensure_ascii=False, indent=2) + "\n")

    def cleanup(self, ticket: str) -> bool:
        """Delete the ticket's state directory; returns False when nothing was there."""

        if not self._ticket_regex.fullmatch(ticket or ""):
            raise ValueError(f"refusing to clean up state for unrecognised ticket '{ticket}'")
        root = self._state_dir.resolve()
        target = (self._state_dir / ticket).resolve()
        if target.parent != root:
            raise ValueError(f"refusing to clean up {target}: outside {root}")
        if not target.exists():
            return False
        shutil.rmtree(target)
        return True

    @staticmethod
    def merge(remote: Optional[DescriptionInfo], local: Optional[DescriptionInfo]) -> DescriptionInfo:
        """Local fields win; remote-derived fields only fill local gaps."""

        if local is None:
            return remote or DescriptionInfo()
        if remote is None:
            return local
        return DescriptionInfo(
            plan=_merge_record(remote.plan, local.plan),
            report=_merge_record(remote.report, local.report),
        )

    @staticmethod
    def normalize(
        info: DescriptionInfo,
        context: Optional[ChangeContext] = None,
        *,
        ticket: Optional[str] = None,
    ) -> DescriptionInfo:
        """Fill every required field and refresh the file list from ``context``."""

        plan, report = info.plan, info.report
        resolved_ticket = _known(plan.ticket) or _known(report.ticket) or _known(ticket) or PLACEHOLDER

        normalized_plan = PlanInfo(
            ticket=resolved_ticket,
            title=_cell(plan.title) or PLACEHOLDER,
            issue_kind=_cell(plan.issue_kind) or PLACEHOLDER,
            steps=tuple(_cell(step) for step in plan.steps or () if _cell(step)),
            confirmed=bool(plan.confirmed),
        )

        files = _normalize_files(report.files or ())
        risks = _normalize_risks(report.risks or ())
        if context is not None:
            files = _files_from_context(context, files)
            risks = _risks_for_files(files, risks)

        defect = is_defect_kind(normalized_plan.issue_kind)
        impact = _text(report.impact_scope)
        root_cause = _text(report.root_cause)
        normalized_report = ReportInfo(
            ticket=_known(report.ticket) or resolved_ticket,
            summary=_text(report.summary) or PLACEHOLDER,
            files=tuple(files),
            risks=tuple(risks),
            impact_scope=(impact or PLACEHOLDER) if defect else impact,
            root_cause=(root_cause or PLACEHOLDER) if defect else root_cause,
            verified=bool(report.verified),
        )
        return DescriptionInfo(plan=normalized_plan, report=normalized_report)


def _merge_record(remote: Any, local: Any) -> Any:
    changes: Dict[str, Any] = {}
    for item in fields(local):
        local_value = getattr(local, item.name)
        remote_value = getattr(remote, item.name)
        if _is_gap(local_value) and not _is_gap(remote_value):
            changes[item.name] = remote_value
    return replace(local, **changes) if changes else local


def _normalize_files(files: Iterable[FileEntry]) -> List[FileEntry]:
    return [
        FileEntry(path=_cell(entry.path), status=status_label(entry.status), note=_cell(entry.note) or PLACEHOLDER)
        for entry in files
        if _cell(entry.path)
    ]


def _normalize_risks(risks: Iterable[RiskEntry]) -> List[RiskEntry]:
    return [
        RiskEntry(
            path=_cell(entry.path),
            risk_level=_cell(entry.risk_level) or PLACEHOLDER_RISK_LEVEL,
            note=_cell(entry.note) or PLACEHOLDER,
        )
        for entry in risks
        if _cell(entry.path)
    ]


def _files_from_context(context: ChangeContext, existing: List[FileEntry]) -> List[FileEntry]:
    notes = {entry.path: entry.note for entry in existing}
    fresh: List[FileEntry] = []
    seen = set()
    for changed in context.files:
        path = _cell(changed.path)
        if not path or path in seen:
            continue
        seen.add(path)
        fresh.append(FileEntry(path=path, status=status_label(changed.status), note=notes.get(path, PLACEHOLDER)))
    return fresh


def _risks_for_files(files: List[FileEntry], existing: List[RiskEntry]) -> List[RiskEntry]:
    by_path: Dict[str, RiskEntry] = {}
    for entry in existing:
        by_path.setdefault(entry.path, entry)
    return [
        by_path.get(entry.path) or RiskEntry(path=entry.path, risk_level=PLACEHOLDER_RISK_LEVEL, note=PLACEHOLDER)
        for entry in files
    ]
