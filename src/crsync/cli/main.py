"""Command line entry point for crsync."""

from __future__ import annotations

import argparse
import getpass
import json
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

from crsync import __version__
from crsync.adapters.credentials import ChainedCredentialProvider, EnvCredentialProvider
from crsync.adapters.git import GitCli, parse_remote_url
from crsync.adapters.gitlab import GitLabClient
from crsync.adapters.review_api import HttpReviewSubmitter
from crsync.app.sync.config import SyncConfig
from crsync.app.sync.errors import DescriptionSyncError, SyncConfigError
from crsync.app.sync.service import DescriptionSyncService, SyncRequest, SyncResult
from crsync.app.sync.state import StateRepository
from crsync.domain.description.models import DescriptionInfo, PlanInfo
from crsync.domain.description.template import TemplateRenderer
from crsync.domain.description.validator import FormatValidator
from crsync.ports.change_request import ChangeRequestClientError
from crsync.ports.credentials import CredentialProvider
from crsync.ports.review import ReviewSubmissionError
from crsync.ports.vcs import VcsError
from crsync.settings import SETTINGS
from crsync.utils.telemetry import clear as telemetry_clear
from crsync.utils.telemetry import iter_events as telemetry_iter
from crsync.utils.telemetry import record_structured_event, tail as telemetry_recent
from crsync.utils.telemetry import summarize as telemetry_summarize

HELP_OVERVIEW = """Keep merge request descriptions in sync with the local development plan and report.

Typical flow:
  crsync state init          create the local state for the current branch's ticket
  crsync state confirm --plan --report
  crsync sync                push the plan/report regions and request an automated review
"""

_HANDLED_ERRORS = (
    DescriptionSyncError,
    SyncConfigError,
    ChangeRequestClientError,
    ReviewSubmissionError,
    VcsError,
)


class PromptCredentialProvider(CredentialProvider):
    """Asks for a secret on the terminal; returns ``None`` when stdin is not interactive."""

    def __init__(self, prompt: str) -> None:
        self._prompt = prompt

    def resolve(self) -> Optional[str]:
        if not sys.stdin.isatty():
            return None
        value = getpass.getpass(self._prompt).strip()
        return value or None


def _project_root(raw: str | None) -> Path:
    return Path(raw).expanduser().resolve() if raw else Path.cwd()


def _load_config(project_root: Path, raw_config: str | None) -> SyncConfig:
    config_path = Path(raw_config).expanduser() if raw_config else None
    if config_path is not None and not config_path.is_absolute():
        config_path = (project_root / config_path).resolve()
    return SyncConfig.load(project_root, config_path)


def _print_error(exc: Exception) -> None:
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    print(f"{code}: {message}" if code else message, file=sys.stderr)
    remediation = getattr(exc, "remediation", None)
    if remediation:
        print(f"  remediation: {remediation}", file=sys.stderr)


def _gitlab_location(config: SyncConfig, vcs: GitCli) -> Tuple[str, str]:
    base_url, project = config.gitlab_base_url, config.gitlab_project
    if base_url and project:
        return base_url, project
    remote = vcs.remote_url()
    parsed = parse_remote_url(remote) if remote else None
    if parsed is None:
        raise SyncConfigError("set gitlab.base_url and gitlab.project; they cannot be derived from the git remote")
    host, path = parsed
    return base_url or f"https://{host}", project or path


def _build_sync_service(project_root: Path, config: SyncConfig) -> DescriptionSyncService:
    vcs = GitCli(project_root)
    base_url, project = _gitlab_location(config, vcs)
    gitlab_token = ChainedCredentialProvider(
        [
            EnvCredentialProvider(config.gitlab_token_env),
            PromptCredentialProvider(f"GitLab token ({config.gitlab_token_env}): "),
        ]
    )
    reviewer = HttpReviewSubmitter(
        config.review_url,
        EnvCredentialProvider(config.review_token_env),
        task_id=config.review_task_id,
    )
    return DescriptionSyncService(config, GitLabClient(base_url, project, gitlab_token), vcs, reviewer)


def _resolve_ticket(args: argparse.Namespace, project_root: Path, config: SyncConfig) -> str:
    explicit = getattr(args, "ticket", None)
    if explicit:
        return explicit.strip()
    branch = getattr(args, "branch", None) or GitCli(project_root).current_branch()
    match = config.ticket_regex().search(branch)
    if match is None:
        raise DescriptionSyncError(f"cannot derive a ticket from branch '{branch}'", code="TICKET_UNRESOLVED")
    return match.group(0)


def _state_context(args: argparse.Namespace) -> Tuple[StateRepository, Path, str, SyncConfig]:
    project_root = _project_root(getattr(args, "path", None))
    config = _load_config(project_root, getattr(args, "config", None))
    ticket = _resolve_ticket(args, project_root, config)
    repository = StateRepository(config.resolve_state_dir(project_root), ticket_pattern=config.ticket_pattern)
    return repository, repository.path_for(ticket), ticket, config


def _print_sync_result(result: SyncResult, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return
    print(f"Change request !{result.change_request_id} ({result.ticket}) updated")
    if result.web_url:
        print(f"  url: {result.web_url}")
    print(f"  verified: {'yes' if result.verified else 'no'}")
    print(f"  local state cleaned up: {'yes' if result.cleaned_up else 'no'}")
    print(f"  review: {result.review.value}")
    for message in result.messages:
        print(f"  {message}")
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)


def _sync_cmd(args: argparse.Namespace) -> int:
    project_root = _project_root(args.path)
    started = time.monotonic()
    try:
        config = _load_config(project_root, args.config)
        service = _build_sync_service(project_root, config)
        result = service.run(
            SyncRequest(
                project_root=project_root,
                ticket=args.ticket,
                branch=args.branch,
                skip_review=args.no_review,
                cleanup=not args.no_cleanup,
            )
        )
    except _HANDLED_ERRORS as exc:
        _print_error(exc)
        record_structured_event(
            SETTINGS,
            "sync",
            level="error",
            status="error",
            component="sync",
            payload={"code": getattr(exc, "code", None) or type(exc).__name__, "message": str(exc)},
            duration_ms=(time.monotonic() - started) * 1000,
        )
        return 1

    _print_sync_result(result, as_json=args.json)
    record_structured_event(
        SETTINGS,
        "sync",
        level="warn" if result.warnings else "info",
        status="verified" if result.verified else "unverified",
        component="sync",
        payload=result.to_dict(),
        duration_ms=(time.monotonic() - started) * 1000,
    )
    return 0


def _state_cmd(args: argparse.Namespace) -> int:
    try:
        repository, path, ticket, _ = _state_context(args)
        current = repository.load(path)
        if args.state_command == "show":
            if current is None:
                print(f"No local state for {ticket} ({path})", file=sys.stderr)
                return 1
            print(json.dumps(current.to_dict(), indent=2, ensure_ascii=False))
            return 0
        if args.state_command == "init":
            if current is not None and not args.force:
                print(f"State for {ticket} already exists at {path}")
                return 0
            seed = DescriptionInfo(plan=PlanInfo(title=args.title, issue_kind=args.issue_kind))
            repository.save(path, repository.normalize(seed, ticket=ticket))
            print(f"Initialised state for {ticket} at {path}")
            return 0
        if args.state_command == "confirm":
            if not args.plan and not args.report:
                print("state confirm: pass --plan and/or --report", file=sys.stderr)
                return 1
            info = repository.normalize(current or DescriptionInfo(), ticket=ticket)
            plan, report = info.plan, info.report
            if args.plan:
                plan = replace(plan, confirmed=True)
            if args.report:
                report = replace(report, verified=True)
            repository.save(path, DescriptionInfo(plan=plan, report=report))
            print(f"Confirmed {ticket}: plan={plan.confirmed} report={report.verified}")
            return 0
    except _HANDLED_ERRORS as exc:
        _print_error(exc)
        return 1
    print("Unsupported state command", file=sys.stderr)
    return 2


def _render_cmd(args: argparse.Namespace) -> int:
    try:
        repository, path, ticket, config = _state_context(args)
        info = repository.normalize(repository.load(path) or DescriptionInfo(), ticket=ticket)
    except _HANDLED_ERRORS as exc:
        _print_error(exc)
        return 1
    sys.stdout.write(TemplateRenderer(browse_url=config.ticket_browse_url).render(info))
    return 0


def _validate_cmd(args: argparse.Namespace) -> int:
    path = Path(args.file)
    try:
        document = path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        print(f"validate: cannot read {path}: {exc}", file=sys.stderr)
        return 1
    result = FormatValidator(require_plan=not args.no_plan).validate(document, issue_kind=args.issue_kind)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.ok:
        print(f"{path}: ok")
    else:
        print(f"{path}: missing {', '.join(result.missing)}", file=sys.stderr)
    record_structured_event(
        SETTINGS,
        "validate",
        level="info" if result.ok else "warn",
        status="ok" if result.ok else "invalid",
        component="validator",
        payload=result.to_dict(),
    )
    return 0 if result.ok else 1


def _telemetry_cmd(args: argparse.Namespace) -> int:
    if args.telemetry_command == "summary":
        print(json.dumps(telemetry_summarize(telemetry_iter(SETTINGS)), indent=2, ensure_ascii=False))
        return 0
    if args.telemetry_command == "clear":
        removed = telemetry_clear(SETTINGS)
        print("Telemetry log cleared" if removed else "Telemetry log is already empty")
        return 0
    if args.telemetry_command == "tail":
        for evt in telemetry_recent(SETTINGS, args.limit):
            print(json.dumps(evt, ensure_ascii=False))
        return 0
    print("Unsupported telemetry command", file=sys.stderr)
    return 2


def _add_state_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", nargs="?", help="Project path (default: current directory)")
    parser.add_argument("--ticket", help="Ticket key (default: derived from the branch name)")
    parser.add_argument("--branch", help="Branch to derive the ticket from (default: current branch)")
    parser.add_argument("--config", help="Config file (default: .crsync/config.yaml)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crsync",
        description=HELP_OVERVIEW,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"crsync {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    sync_cmd = sub.add_parser("sync", help="Synchronise the merge request description and gate the review")
    sync_cmd.add_argument("path", nargs="?", help="Project path (default: current directory)")
    sync_cmd.add_argument("--ticket", help="Ticket key (default: derived from the branch name)")
    sync_cmd.add_argument("--branch", help="Source branch (default: current branch)")
    sync_cmd.add_argument("--no-review", action="store_true", help="Never submit an automated review")
    sync_cmd.add_argument("--no-cleanup", action="store_true", help="Keep the local state after a verified sync")
    sync_cmd.add_argument("--config", help="Config file (default: .crsync/config.yaml)")
    sync_cmd.add_argument("--json", action="store_true", help="Print the result as JSON")
    sync_cmd.set_defaults(func=_sync_cmd)

    state_cmd = sub.add_parser("state", help="Inspect or edit the local plan/report state")
    state_sub = state_cmd.add_subparsers(dest="state_command", required=True)
    state_show = state_sub.add_parser("show", help="Print the local state as JSON")
    _add_state_arguments(state_show)
    state_init = state_sub.add_parser("init", help="Create a placeholder state for the ticket")
    _add_state_arguments(state_init)
    state_init.add_argument("--title", help="Ticket title")
    state_init.add_argument("--issue-kind", help="Issue type, e.g. Story or Bug")
    state_init.add_argument("--force", action="store_true", help="Overwrite an existing state")
    state_confirm = state_sub.add_parser("confirm", help="Set the plan/report gate flags")
    _add_state_arguments(state_confirm)
    state_confirm.add_argument("--plan", action="store_true", help="Mark the development plan as confirmed")
    state_confirm.add_argument("--report", action="store_true", help="Mark the development result as verified")
    state_cmd.set_defaults(func=_state_cmd)

    render_cmd = sub.add_parser("render", help="Print the rendered plan/report regions")
    _add_state_arguments(render_cmd)
    render_cmd.set_defaults(func=_render_cmd)

    validate_cmd = sub.add_parser("validate", help="Check a description file for required sections")
    validate_cmd.add_argument("file", help="Markdown file holding the full description")
    validate_cmd.add_argument("--issue-kind", help="Issue type; bug types require impact scope and root cause")
    validate_cmd.add_argument("--no-plan", action="store_true", help="Do not require the development plan region")
    validate_cmd.add_argument("--json", action="store_true", help="Print the result as JSON")
    validate_cmd.set_defaults(func=_validate_cmd)

    telemetry_cmd = sub.add_parser("telemetry", help="Inspect local telemetry logs")
    telemetry_sub = telemetry_cmd.add_subparsers(dest="telemetry_command", required=True)
    telemetry_tail = telemetry_sub.add_parser("tail", help="Print the most recent events")
    telemetry_tail.add_argument("--limit", type=int, default=20, help="Number of events (default: 20)")
    telemetry_sub.add_parser("summary", help="Summarise events by name and level")
    telemetry_sub.add_parser("clear", help="Delete the telemetry log")
    telemetry_cmd.set_defaults(func=_telemetry_cmd)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
