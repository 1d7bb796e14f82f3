"""Recovery of description state from rendered regions and their hidden snapshot."""

from __future__ import annotations

import json
import re
from typing import Dict, List, Optional, Tuple

from crsync.resources import schema_validator

from .markers import PLAN_BLOCK, REPORT_BLOCK
from .models import DescriptionInfo, FileEntry, PlanInfo, ReportInfo, RiskEntry
from .template import (
    DETAILS_TABLE_HEADER,
    EMPTY_STEPS_LINE,
    IMPACT_HEADING,
    PLAN_TABLE_HEADER,
    RELATED_TABLE_HEADER,
    RISK_TABLE_HEADER,
    ROOT_CAUSE_HEADING,
    SECTION_RULE,
    SNAPSHOT_END,
    SNAPSHOT_START,
    STEPS_HEADING,
    SUMMARY_HEADING,
    TICKET_LABEL,
    TITLE_LABEL,
    TYPE_LABEL,
    TemplateRenderer,
)

_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_SEPARATOR_ROW = re.compile(r"^\|(\s*:?-{3,}:?\s*\|)+\s*$")
_HEADING_LINE = re.compile(r"^#{1,6}\s")
_STEP_LINE = re.compile(r"^\s*\d+[.)]\s+(.*)$")
_LINK_CELL = re.compile(r"^\[([^\]]+)\]\([^)]*\)$")


def _lines(markdown: str) -> List[str]:
    return markdown.replace("\r\n", "\n").split("\n")


def _split_row(line: str) -> List[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|") and not stripped.endswith("\\|"):
        stripped = stripped[:-1]
    return [cell.strip().replace("\\|", "|") for cell in _CELL_SPLIT.split(stripped)]


def parse_table(markdown: str, header: str) -> List[List[str]]:
    """Return the data rows of the first table whose header line equals ``header``."""

    lines = _lines(markdown)
    for index, line in enumerate(lines):
        if line.strip() != header:
            continue
        rows: List[List[str]] = []
        for candidate in lines[index + 1 :]:
            if not candidate.strip().startswith("|"):
                break
            if _SEPARATOR_ROW.match(candidate.strip()):
                continue
            rows.append(_split_row(candidate))
        return rows
    return []


def section_text(markdown: str, heading: str) -> Optional[str]:
    """Text below ``heading`` up to the next heading, rule or marker comment."""

    lines = _lines(markdown)
    for index, line in enumerate(lines):
        if line.strip() != heading:
            continue
        body: List[str] = []
        for candidate in lines[index + 1 :]:
            stripped = candidate.strip()
            if _HEADING_LINE.match(stripped) or stripped == SECTION_RULE or stripped.startswith("<!--"):
                break
            body.append(candidate)
        return "\n".join(body).strip()
    return None


def _strip_code(cell: str) -> str:
    if len(cell) >= 2 and cell.startswith("`") and cell.endswith("`"):
        return cell[1:-1]
    return cell


def _strip_bold(cell: str) -> str:
    if len(cell) >= 4 and cell.startswith("**") and cell.endswith("**"):
        return cell[2:-2]
    return cell


def _ticket_value(cell: str) -> str:
    match = _LINK_CELL.match(cell)
    return match.group(1) if match else cell


def _metadata(markdown: str, header: str) -> Dict[str, str]:
    rows = parse_table(markdown, header)
    return {_strip_bold(row[0]): row[1] for row in rows if len(row) >= 2}


def _steps(markdown: str) -> Optional[Tuple[str, ...]]:
    body = section_text(markdown, STEPS_HEADING)
    if body is None:
        return None
    steps: List[str] = []
    for line in body.split("\n"):
        if line.strip() == EMPTY_STEPS_LINE:
            continue
        match = _STEP_LINE.match(line)
        if match and match.group(1).strip():
            steps.append(match.group(1).strip())
    return tuple(steps)


def parse_plan(markdown: str) -> PlanInfo:
    meta = _metadata(markdown, PLAN_TABLE_HEADER)
    ticket = meta.get(TICKET_LABEL)
    return PlanInfo(
        ticket=_ticket_value(ticket) if ticket else None,
        title=meta.get(TITLE_LABEL) or None,
        issue_kind=meta.get(TYPE_LABEL) or None,
        steps=_steps(markdown),
    )


def parse_report(markdown: str) -> Tuple[ReportInfo, PlanInfo]:
    """Parse a report region; the returned ``PlanInfo`` carries title and type from its table."""

    meta = _metadata(markdown, RELATED_TABLE_HEADER)
    ticket = meta.get(TICKET_LABEL)
    file_rows = [row for row in parse_table(markdown, DETAILS_TABLE_HEADER) if len(row) >= 3]
    risk_rows = [row for row in parse_table(markdown, RISK_TABLE_HEADER) if len(row) >= 3]

    files = tuple(
        FileEntry(path=_strip_code(row[0]), status=row[1], note=row[2]) for row in file_rows if _strip_code(row[0])
    )
    risks = tuple(
        RiskEntry(path=_strip_code(row[0]), risk_level=row[1], note=row[2]) for row in risk_rows if _strip_code(row[0])
    )
    summary = section_text(markdown, SUMMARY_HEADING)
    report = ReportInfo(
        ticket=_ticket_value(ticket) if ticket else None,
        summary=summary or None,
        files=files if file_rows else None,
        risks=risks if risk_rows else None,
        impact_scope=section_text(markdown, IMPACT_HEADING) or None,
        root_cause=section_text(markdown, ROOT_CAUSE_HEADING) or None,
    )
    extras = PlanInfo(title=meta.get(TITLE_LABEL) or None, issue_kind=meta.get(TYPE_LABEL) or None)
    return report, extras


def parse_description(plan_markdown: Optional[str], report_markdown: Optional[str]) -> DescriptionInfo:
    """Combine parsed plan and report regions into one (partial) ``DescriptionInfo``."""

    plan = parse_plan(plan_markdown) if plan_markdown else PlanInfo()
    report = ReportInfo()
    if report_markdown:
        report, extras = parse_report(report_markdown)
        plan = PlanInfo(
            ticket=plan.ticket,
            title=plan.title or extras.title,
            issue_kind=plan.issue_kind or extras.issue_kind,
            steps=plan.steps,
        )
    return DescriptionInfo(plan=plan, report=report)


def parse_rendered(markdown: str) -> DescriptionInfo:
    """Parse a full rendering that holds both regions."""

    return parse_description(markdown, markdown)


def parse_snapshot(markdown: str) -> Optional[DescriptionInfo]:
    """Read the hidden JSON copy written by the renderer; ``None`` when absent or unusable."""

    start = markdown.rfind(SNAPSHOT_START)
    if start == -1:
        return None
    body_start = start + len(SNAPSHOT_START)
    end = markdown.find(SNAPSHOT_END, body_start)
    if end == -1:
        return None
    try:
        raw = json.loads(markdown[body_start:end])
    except json.JSONDecodeError:
        return None
    if not schema_validator("description_info.schema.json").is_valid(raw):
        return None
    return DescriptionInfo.from_dict(raw)


def recover_description(
    plan_markdown: Optional[str],
    report_markdown: Optional[str],
    renderer: TemplateRenderer,
) -> Tuple[DescriptionInfo, bool]:
    """Prefer the snapshot while the visible regions are still exactly its rendering.

    Returns the recovered info and whether it came from the snapshot. Regions edited
    by hand fall back to :func:`parse_description`.
    """

    snapshot = parse_snapshot(report_markdown) if report_markdown else None
    if snapshot is not None:
        regions = renderer.render_regions(snapshot)
        report_intact = regions[REPORT_BLOCK] == (report_markdown or "").strip("\n")
        plan_intact = plan_markdown is None or regions[PLAN_BLOCK] == plan_markdown.strip("\n")
        if report_intact and plan_intact:
            return snapshot, True
    return parse_description(plan_markdown, report_markdown), False
