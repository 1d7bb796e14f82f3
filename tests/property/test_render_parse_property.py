from __future__ import annotations

import string
from dataclasses import replace

from hypothesis import given, settings
from hypothesis import strategies as st

from crsync.app.sync.state import StateRepository
from crsync.domain.description.markers import PLAN_BLOCK, REPORT_BLOCK
from crsync.domain.description.models import DescriptionInfo, FileEntry, PlanInfo, ReportInfo, RiskEntry
from crsync.domain.description.parser import parse_rendered, recover_description
from crsync.domain.description.template import TemplateRenderer

CELL = st.text(alphabet=string.ascii_letters + string.digits + " -./|", min_size=1, max_size=24)
STEP = st.text(alphabet=string.ascii_letters + string.digits + " .,", min_size=1, max_size=40)
PLAIN_PROSE = st.text(alphabet=string.ascii_letters + string.digits + " .,\n", max_size=80)
PROSE = st.text(alphabet=string.ascii_letters + string.digits + " .,#-<>!`\n", max_size=80)
KINDS = st.sampled_from(["Story", "Task", "Bug", "Production bug"])
STATUSES = st.sampled_from(["A", "M", "D", "R", "C", "T"])
MARKUP = st.sampled_from(["## Heading", "---", "<!-- note -->", "<!-- crsync:end:report -->", "-->", "| a | b |"])

files = st.builds(FileEntry, path=CELL, status=STATUSES, note=st.one_of(st.just(""), CELL))
risks = st.builds(RiskEntry, path=CELL, risk_level=st.one_of(st.just(""), CELL), note=st.one_of(st.just(""), CELL))


def _infos(prose: st.SearchStrategy[str]) -> st.SearchStrategy[DescriptionInfo]:
    return st.builds(
        DescriptionInfo,
        plan=st.builds(
            PlanInfo,
            ticket=st.one_of(st.none(), CELL),
            title=st.one_of(st.none(), CELL),
            issue_kind=st.one_of(st.none(), KINDS),
            steps=st.one_of(st.none(), st.lists(STEP, max_size=5).map(tuple)),
            confirmed=st.one_of(st.none(), st.booleans()),
        ),
        report=st.builds(
            ReportInfo,
            summary=st.one_of(st.none(), prose),
            files=st.one_of(st.none(), st.lists(files, max_size=4).map(tuple)),
            risks=st.one_of(st.none(), st.lists(risks, max_size=4).map(tuple)),
            impact_scope=st.one_of(st.none(), prose),
            root_cause=st.one_of(st.none(), prose),
            verified=st.one_of(st.none(), st.booleans()),
        ),
    )


structured_prose = st.one_of(
    PROSE,
    st.lists(st.one_of(PROSE, MARKUP), min_size=1, max_size=4).map("\n\n".join),
)


@settings(max_examples=100)
@given(info=_infos(PLAIN_PROSE), linked=st.booleans())
def test_markdown_fallback_inverts_render_on_emitted_fields(info: DescriptionInfo, linked: bool) -> None:
    normalized = StateRepository.normalize(info)
    renderer = TemplateRenderer(browse_url="https://tracker.example/browse/{ticket}" if linked else None)
    parsed = parse_rendered(renderer.render(normalized))

    assert parsed.plan.ticket == normalized.plan.ticket
    assert parsed.plan.title == normalized.plan.title
    assert parsed.plan.issue_kind == normalized.plan.issue_kind
    assert parsed.plan.steps == normalized.plan.steps
    assert parsed.report.ticket == normalized.report.ticket
    assert parsed.report.summary == normalized.report.summary
    assert parsed.report.files == normalized.report.files
    assert parsed.report.risks == normalized.report.risks
    assert parsed.report.impact_scope == normalized.report.impact_scope
    assert parsed.report.root_cause == normalized.report.root_cause


@settings(max_examples=100)
@given(info=_infos(structured_prose), linked=st.booleans())
def test_rendered_regions_recover_exactly_with_markup_in_prose(info: DescriptionInfo, linked: bool) -> None:
    normalized = StateRepository.normalize(info)
    renderer = TemplateRenderer(browse_url="https://tracker.example/browse/{ticket}" if linked else None)
    regions = renderer.render_regions(normalized)

    recovered, from_snapshot = recover_description(regions[PLAN_BLOCK], regions[REPORT_BLOCK], renderer)

    assert from_snapshot
    assert recovered == DescriptionInfo(
        plan=replace(normalized.plan, confirmed=None),
        report=replace(normalized.report, verified=None),
    )


@settings(max_examples=50)
@given(info=_infos(PROSE))
def test_normalize_is_stable(info: DescriptionInfo) -> None:
    once = StateRepository.normalize(info)
    assert StateRepository.normalize(once) == once
