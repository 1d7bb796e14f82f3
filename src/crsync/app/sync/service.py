"""Application service driving one description synchronisation cycle."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from crsync.domain.description.attribution import append_attribution, strip_trailing_attribution
from crsync.domain.description.legacy import LegacyHeuristicExtractor, Recovered
from crsync.domain.description.markers import BLOCKS, CURRENT_CODEC, PLAN_BLOCK, PRIOR_CODEC, REPORT_BLOCK
from crsync.domain.description.models import ChangeContext, DescriptionInfo
from crsync.domain.description.parser import recover_description
from crsync.domain.description.recovery import RegionRecoverer
from crsync.domain.description.template import SNAPSHOT_START, TemplateRenderer
from crsync.domain.description.validator import FormatValidator
from crsync.domain.review import LedgerEntry, LedgerNote, ReviewGateLedger
from crsync.ports.change_request import ChangeRequest, ChangeRequestClient, ChangeRequestClientError
from crsync.ports.review import ReviewSubmission, ReviewSubmitter
from crsync.ports.vcs import VcsClient, VcsError

from .config import SyncConfig
from .errors import (
    ChangeRequestNotFoundError,
    DescriptionSyncError,
    GateNotSatisfiedError,
    ReviewPreconditionError,
    ValidationFailedError,
)
from .state import StateRepository

DEFAULT_TARGET_BRANCH = "main"


class ReviewDecision(str, Enum):
    SUBMITTED = "submitted"
    UP_TO_DATE = "up-to-date"
    SKIPPED_BY_CALLER = "skipped-by-caller"
    NOT_CONFIGURED = "not-configured"


@dataclass(frozen=True)
class SyncRequest:
    project_root: Path
    ticket: Optional[str] = None
    branch: Optional[str] = None
    skip_review: bool = False
    cleanup: bool = True


@dataclass(frozen=True)
class SyncResult:
    change_request_id: str
    ticket: str
    state_path: Path
    pushed: bool
    verified: bool
    cleaned_up: bool
    review: ReviewDecision
    web_url: Optional[str] = None
    reviewed_commit: Optional[str] = None
    recovered_from: Dict[str, str] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    messages: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changeRequest": self.change_request_id,
            "ticket": self.ticket,
            "webUrl": self.web_url,
            "statePath": str(self.state_path),
            "pushed": self.pushed,
            "verified": self.verified,
            "cleanedUp": self.cleaned_up,
            "review": self.review.value,
            "reviewedCommit": self.reviewed_commit,
            "recoveredFrom": dict(self.recovered_from),
            "warnings": list(self.warnings),
            "messages": list(self.messages),
        }


class ChangeRequestNoteStore:
    """Binds a change request's note stream to the ledger's store interface."""

    def __init__(self, client: ChangeRequestClient, iid: str) -> None:
        self._client = client
        self._iid = iid

    def list_notes(self) -> Sequence[LedgerNote]:
        return self._client.list_notes(self._iid)

    def create_note(self, body: str) -> LedgerNote:
        return self._client.create_note(self._iid, body)

    def update_note(self, note_id: str, body: str) -> LedgerNote:
        return self._client.update_note(self._iid, note_id, body)


class DescriptionSyncService:
    """Fetch, recover, merge, render, validate, push, verify, then gate the review.

    Remote writes happen strictly before the review gate is consulted so that a
    reviewer is never invited before the description is consistent.
    """

    def __init__(
        self,
        config: SyncConfig,
        client: ChangeRequestClient,
        vcs: VcsClient,
        reviewer: Optional[ReviewSubmitter] = None,
        *,
        state: Optional[StateRepository] = None,
        recoverer: Optional[RegionRecoverer] = None,
        renderer: Optional[TemplateRenderer] = None,
        validator: Optional[FormatValidator] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._vcs = vcs
        self._reviewer = reviewer
        self._state = state
        self._recoverer = recoverer or RegionRecoverer(
            CURRENT_CODEC,
            PRIOR_CODEC,
            LegacyHeuristicExtractor(trailing_line=config.attribution),
        )
        self._renderer = renderer or TemplateRenderer(browse_url=config.ticket_browse_url)
        self._validator = validator or FormatValidator()

    def run(self, request: SyncRequest) -> SyncResult:
        warnings: List[str] = []
        messages: List[str] = []
        state = self._state or StateRepository(
            self._config.resolve_state_dir(request.project_root),
            ticket_pattern=self._config.ticket_pattern,
        )

        if self._config.require_clean_worktree and not self._vcs.is_clean():
            raise GateNotSatisfiedError("working tree has uncommitted changes", code="WORKTREE_DIRTY")

        branch = request.branch or self._vcs.current_branch()
        ticket = self.resolve_ticket(branch, request.ticket)
        change_request = self._client.find_open(branch)
        if change_request is None:
            raise ChangeRequestNotFoundError(f"no open change request for branch '{branch}'")

        recovered = self._recover(change_request.description, warnings)
        remote_info = self._remote_info(recovered, warnings)

        state_path = state.path_for(ticket)
        local_info = state.load(state_path)
        merged = state.merge(remote_info, local_info)
        context = self._change_context(change_request, warnings)
        info = state.normalize(merged, context, ticket=ticket)
        state.save(state_path, info)

        if self._config.require_gates:
            self._check_gates(info)

        regions = self._renderer.render_regions(info)
        document = self.compose(change_request.description, regions)
        result = self._validator.validate(document, issue_kind=info.plan.issue_kind)
        if not result.ok:
            raise ValidationFailedError(result.missing)

        self._client.update_description(change_request.iid, document, add_labels=self._config.labels)
        refreshed: Optional[ChangeRequest] = None
        try:
            refreshed = self._client.fetch(change_request.iid)
        except ChangeRequestClientError as exc:
            warnings.append(f"could not re-read the change request to verify the push: {exc}; local state kept")
        verified = refreshed is not None and self._verify(document, refreshed.description)
        cleaned_up = False
        if refreshed is not None and not verified:
            warnings.append("remote description differs from the pushed regions; local state kept for the next sync")
        elif verified and request.cleanup:
            cleaned_up = self._cleanup(state, ticket, warnings)

        current = refreshed or replace(change_request, description=document)
        review, reviewed_commit = self._gate_review(request, current, warnings, messages)
        return SyncResult(
            change_request_id=change_request.iid,
            ticket=ticket,
            state_path=state_path,
            pushed=True,
            verified=verified,
            cleaned_up=cleaned_up,
            review=review,
            web_url=current.web_url or change_request.web_url,
            reviewed_commit=reviewed_commit,
            recovered_from={block: item.source.value for block, item in recovered.items()},
            warnings=tuple(warnings),
            messages=tuple(messages),
        )

    def resolve_ticket(self, branch: str, explicit: Optional[str] = None) -> str:
        if explicit and explicit.strip():
            return explicit.strip()
        match = self._config.ticket_regex().search(branch or "")
        if match is None:
            raise DescriptionSyncError(f"cannot derive a ticket from branch '{branch}'", code="TICKET_UNRESOLVED")
        return match.group(0)

    def compose(self, description: str, regions: Dict[str, str]) -> str:
        """Upsert every rendered region and keep the attribution as the last line."""

        attribution = self._config.attribution
        document = strip_trailing_attribution(description, attribution) if attribution else description
        for block in BLOCKS:
            document = self._recoverer.write(document, block, regions[block])
        if attribution:
            document = append_attribution(document, attribution)
        return document

    def _recover(self, description: str, warnings: List[str]) -> Dict[str, Recovered]:
        found: Dict[str, Recovered] = {}
        for block in BLOCKS:
            outcome = self._recoverer.recover(description, block)
            warnings.extend(outcome.diagnostics)
            if isinstance(outcome, Recovered):
                found[block] = outcome
        return found

    def _remote_info(self, recovered: Dict[str, Recovered], warnings: List[str]) -> Optional[DescriptionInfo]:
        if not recovered:
            return None
        plan = recovered[PLAN_BLOCK].content if PLAN_BLOCK in recovered else None
        report = recovered[REPORT_BLOCK].content if REPORT_BLOCK in recovered else None
        info, from_snapshot = recover_description(plan, report, self._renderer)
        if not from_snapshot and report and SNAPSHOT_START in report:
            warnings.append("owned regions were edited outside crsync; recovered them from their markdown")
        return info

    def _change_context(self, change_request: ChangeRequest, warnings: List[str]) -> Optional[ChangeContext]:
        target = self._config.target_branch or change_request.target_branch or DEFAULT_TARGET_BRANCH
        try:
            files = self._vcs.changed_files(target)
        except VcsError as exc:
            warnings.append(f"could not diff against '{target}': {exc}; keeping the recorded file list")
            return None
        return ChangeContext(files=tuple(files), target_branch=target)

    @staticmethod
    def _check_gates(info: DescriptionInfo) -> None:
        if not info.plan.confirmed:
            raise GateNotSatisfiedError("development plan is not confirmed", code="GATE_PLAN_UNCONFIRMED")
        if not info.report.verified:
            raise GateNotSatisfiedError("development result is not verified", code="GATE_REPORT_UNVERIFIED")

    def _verify(self, intended: str, actual: str) -> bool:
        codec = self._recoverer.codec
        return all(codec.extract(actual, block) == codec.extract(intended, block) for block in BLOCKS)

    @staticmethod
    def _cleanup(state: StateRepository, ticket: str, warnings: List[str]) -> bool:
        try:
            return state.cleanup(ticket)
        except (OSError, ValueError) as exc:
            warnings.append(f"state cleanup skipped: {exc}")
            return False

    def _gate_review(
        self,
        request: SyncRequest,
        change_request: ChangeRequest,
        warnings: List[str],
        messages: List[str],
    ) -> Tuple[ReviewDecision, Optional[str]]:
        if request.skip_review:
            return ReviewDecision.SKIPPED_BY_CALLER, None
        if self._reviewer is None or not self._reviewer.is_configured():
            messages.append("automated review is not configured; skipping")
            return ReviewDecision.NOT_CONFIGURED, None

        head = change_request.head_commit
        if not head:
            raise ReviewPreconditionError("change request has no head commit yet", code="CR_HEAD_MISSING")
        local_head = self._vcs.head_commit()
        if local_head != head:
            raise ReviewPreconditionError(
                f"local HEAD {local_head[:12]} does not match change request head {head[:12]}; push first"
            )

        ledger = ReviewGateLedger(
            ChangeRequestNoteStore(self._client, change_request.iid),
            attribution=self._config.attribution,
        )
        entry: Optional[LedgerEntry] = None
        try:
            entry = ledger.load()
        except ChangeRequestClientError as exc:
            warnings.append(f"could not list review ledger notes: {exc}")

        if not ledger.should_review(head, entry):
            messages.append(f"commit {head[:12]} was already reviewed; skipping")
            return ReviewDecision.UP_TO_DATE, head

        email = self._config.review_email or self._client.current_user_email() or self._vcs.user_email()
        self._reviewer.submit(
            ReviewSubmission(change_request_url=change_request.web_url or "", head_commit=head, email=email)
        )
        try:
            ledger.record(head, entry)
        except ChangeRequestClientError as exc:
            raise DescriptionSyncError(f"review submitted but ledger update failed: {exc}", code="LEDGER_WRITE_FAILED") from exc
        return ReviewDecision.SUBMITTED, head
