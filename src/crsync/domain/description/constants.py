"""Error codes and remediation hints for description synchronisation."""

from __future__ import annotations

ERROR_REMEDIATIONS = {
    "CR_NOT_FOUND": "Push the branch and open a merge request for it before running crsync sync.",
    "CR_HEAD_MISSING": "Wait for the merge request pipeline to register the pushed commit, then retry.",
    "GATE_PLAN_UNCONFIRMED": "Review the plan and run `crsync state confirm --plan`.",
    "GATE_REPORT_UNVERIFIED": "Verify the change and run `crsync state confirm --report`.",
    "WORKTREE_DIRTY": "Commit or stash local changes before syncing.",
    "TICKET_UNRESOLVED": "Pass --ticket or name the branch after the ticket (for example feature/PROJ-123).",
    "VALIDATION_FAILED": "Fill in the missing sections in the local state file and rerun crsync sync.",
    "STATE_CORRUPT": "Fix or delete the local state file; it must hold 'plan' and 'report' objects.",
    "CONFIG_INVALID": "Update .crsync/config.yaml to match the documented keys.",
    "REVIEW_UNPUSHED_COMMITS": "Push local commits so the merge request head matches HEAD.",
    "REVIEW_SUBMISSION_FAILED": "Check the review endpoint and credentials, then rerun crsync sync.",
    "LEDGER_WRITE_FAILED": "Check merge request note permissions, then rerun crsync sync.",
    "GITLAB_REQUEST_FAILED": "Check gitlab.base_url, gitlab.project and the access token.",
    "GITLAB_TOKEN_MISSING": "Export the token named by gitlab.token_env.",
    "VCS_FAILED": "Run the command inside a git checkout with an 'origin' remote.",
}


def remediation_for(code: str) -> str | None:
    """Return default remediation text for a given error code."""

    return ERROR_REMEDIATIONS.get(code)
