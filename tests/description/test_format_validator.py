from __future__ import annotations

from crsync.domain.description.markers import CURRENT_CODEC
from crsync.domain.description.models import DescriptionInfo, FileEntry, PlanInfo, ReportInfo
from crsync.domain.description.template import TemplateRenderer
from crsync.domain.description.validator import FormatValidator, Requirement


def _document(issue_kind: str = "Story") -> str:
    info = DescriptionInfo(
        plan=PlanInfo(ticket="ABC-1", title="T", issue_kind=issue_kind, steps=("one",)),
        report=ReportInfo(
            summary="done",
            files=(FileEntry("a.py", "Modified", "n"),),
            impact_scope="api" if issue_kind == "Bug" else None,
            root_cause="typo" if issue_kind == "Bug" else None,
        ),
    )
    regions = TemplateRenderer().render_regions(info)
    document = "Human intro"
    for block, content in regions.items():
        document = CURRENT_CODEC.upsert(document, block, content)
    return document


def test_complete_document_passes() -> None:
    result = FormatValidator().validate(_document())
    assert result.ok
    assert result.missing == ()


def test_table_without_data_row_is_missing() -> None:
    document = _document().replace("| `a.py` | Modified | n |\n", "")
    result = FormatValidator().validate(document)
    assert not result.ok
    assert result.missing == ("Change Details",)


def test_reports_every_missing_section() -> None:
    document = _document().replace("## Change Summary\n", "").replace("| File | Risk Level | Note |", "| File | Level |")
    result = FormatValidator().validate(document)
    assert result.missing == ("Change Summary", "Risk Assessment")


def test_defect_kinds_require_impact_and_root_cause() -> None:
    document = _document("Story")
    result = FormatValidator().validate(document, issue_kind="Production Bug")
    assert result.is_defect
    assert result.missing == ("Impact Scope", "Root Cause")
    assert FormatValidator().validate(_document("Bug"), issue_kind="Bug").ok


def test_plan_requirement_needs_markers_and_can_be_disabled() -> None:
    document = _document().replace("<!-- crsync:start:plan -->\n", "")
    assert FormatValidator().validate(document).missing == ("Development Plan",)
    assert FormatValidator(require_plan=False).validate(document).ok


def test_headings_must_be_whole_lines() -> None:
    document = _document().replace("## Change Summary\n", "See ## Change Summary below\n")
    assert FormatValidator().validate(document).missing == ("Change Summary",)


def test_custom_requirements() -> None:
    validator = FormatValidator([Requirement("Notes", "## Notes")])
    assert validator.validate("## Notes\n").ok
    assert validator.validate("# Notes\n").missing == ("Notes",)
