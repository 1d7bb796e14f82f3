"""Canonical markdown rendering of the plan and report regions."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence

from .markers import PLAN_BLOCK, REPORT_BLOCK
from .models import (
    PLACEHOLDER,
    PLACEHOLDER_RISK_LEVEL,
    DescriptionInfo,
    FileEntry,
    RiskEntry,
    status_label,
)

PLAN_HEADING = "## Development Plan"
PLAN_TABLE_HEADER = "| Item | Content |"
STEPS_HEADING = "### Steps"
RELATED_HEADING = "## Related Ticket"
RELATED_TABLE_HEADER = "| Item | Value |"
SUMMARY_HEADING = "## Change Summary"
DETAILS_HEADING = "### Change Details"
DETAILS_TABLE_HEADER = "| File | Status | Note |"
RISK_HEADING = "## Risk Assessment"
RISK_TABLE_HEADER = "| File | Risk Level | Note |"
IMPACT_HEADING = "## Impact Scope"
ROOT_CAUSE_HEADING = "## Root Cause"
SECTION_RULE = "---"
SNAPSHOT_START = "<!-- crsync:description-info"
SNAPSHOT_END = "-->"

TICKET_LABEL = "Ticket"
TITLE_LABEL = "Title"
TYPE_LABEL = "Type"
EMPTY_STEPS_LINE = f"_{PLACEHOLDER}_"


def escape_cell(value: Optional[str]) -> str:
    text = value if isinstance(value, str) else ""
    return text.replace("|", "\\|").replace("\r\n", " ").replace("\n", " ").strip()


def separator_row(columns: int) -> str:
    return "|" + "---|" * columns


def _text(value: Optional[str]) -> str:
    if value is None or not value.strip():
        return PLACEHOLDER
    return value.strip()


def _row(cells: Iterable[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def _code_cell(path: str) -> str:
    cleaned = escape_cell(path)
    return f"`{cleaned}`" if cleaned else ""


class TemplateRenderer:
    """Pure ``DescriptionInfo -> markdown`` rendering with a fixed section order."""

    def __init__(self, *, browse_url: Optional[str] = None) -> None:
        self._browse_url = browse_url

    def render(self, info: DescriptionInfo) -> str:
        regions = self.render_regions(info)
        return f"{regions[PLAN_BLOCK]}\n\n{regions[REPORT_BLOCK]}\n"

    def render_regions(self, info: DescriptionInfo) -> Dict[str, str]:
        return {PLAN_BLOCK: self.render_plan(info), REPORT_BLOCK: self.render_report(info)}

    def render_plan(self, info: DescriptionInfo) -> str:
        plan = info.plan
        lines: List[str] = [PLAN_HEADING, "", PLAN_TABLE_HEADER, separator_row(2)]
        lines.extend(self._metadata_rows(plan.ticket or info.report.ticket, plan.title, plan.issue_kind))
        lines.extend(["", STEPS_HEADING, ""])
        steps = [" ".join(step.split()) for step in plan.steps or () if step.strip()]
        if steps:
            lines.extend(f"{index}. {step}" for index, step in enumerate(steps, start=1))
        else:
            lines.append(EMPTY_STEPS_LINE)
        return "\n".join(lines)

    def render_report(self, info: DescriptionInfo) -> str:
        plan, report = info.plan, info.report
        lines: List[str] = [RELATED_HEADING, "", RELATED_TABLE_HEADER, separator_row(2)]
        lines.extend(self._metadata_rows(report.ticket or plan.ticket, plan.title, plan.issue_kind))
        lines.extend(["", SECTION_RULE, ""])

        lines.extend([SUMMARY_HEADING, "", _text(report.summary), "", DETAILS_HEADING, ""])
        lines.extend([DETAILS_TABLE_HEADER, separator_row(3)])
        lines.extend(self._file_rows(report.files or ()))
        lines.extend(["", SECTION_RULE, ""])

        lines.extend([RISK_HEADING, "", RISK_TABLE_HEADER, separator_row(3)])
        lines.extend(self._risk_rows(report.risks or ()))

        if report.impact_scope is not None:
            lines.extend(["", IMPACT_HEADING, "", _text(report.impact_scope)])
        if report.root_cause is not None:
            lines.extend(["", ROOT_CAUSE_HEADING, "", _text(report.root_cause)])
        lines.extend(["", self.render_snapshot(info)])
        return "\n".join(lines)

    @staticmethod
    def render_snapshot(info: DescriptionInfo) -> str:
        """Hidden JSON copy of ``info`` so the regions can be read back losslessly.

        Gate flags are left out; ``<`` and ``>`` are escaped so the payload can never
        close the comment or look like a marker.
        """

        snapshot = DescriptionInfo(
            plan=replace(info.plan, confirmed=None),
            report=replace(info.report, verified=None),
        )
        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2)
        payload = payload.replace("<", "\\u003c").replace(">", "\\u003e")
        return f"{SNAPSHOT_START}\n{payload}\n{SNAPSHOT_END}"

    def ticket_cell(self, ticket: Optional[str]) -> str:
        value = escape_cell(ticket) or PLACEHOLDER
        if self._browse_url and value != PLACEHOLDER:
            return f"[{value}]({self._browse_url.format(ticket=value)})"
        return value

    def _metadata_rows(self, ticket: Optional[str], title: Optional[str], issue_kind: Optional[str]) -> List[str]:
        return [
            _row([f"**{TICKET_LABEL}**", self.ticket_cell(ticket)]),
            _row([f"**{TITLE_LABEL}**", escape_cell(title) or PLACEHOLDER]),
            _row([f"**{TYPE_LABEL}**", escape_cell(issue_kind) or PLACEHOLDER]),
        ]

    @staticmethod
    def _file_rows(files: Sequence[FileEntry]) -> List[str]:
        if not files:
            return [_row(["", status_label(None), PLACEHOLDER])]
        return [
            _row([_code_cell(entry.path), escape_cell(status_label(entry.status)), escape_cell(entry.note) or PLACEHOLDER])
            for entry in files
        ]

    @staticmethod
    def _risk_rows(risks: Sequence[RiskEntry]) -> List[str]:
        if not risks:
            return [_row(["", PLACEHOLDER_RISK_LEVEL, PLACEHOLDER])]
        return [
            _row(
                [
                    _code_cell(entry.path),
                    escape_cell(entry.risk_level) or PLACEHOLDER_RISK_LEVEL,
                    escape_cell(entry.note) or PLACEHOLDER,
                ]
            )
            for entry in risks
        ]
