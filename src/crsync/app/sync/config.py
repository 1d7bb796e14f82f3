"""Project configuration stored in ``.crsync/config.yaml``."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import yaml

from .errors import SyncConfigError

DEFAULT_CONFIG_RELATIVE = Path(".crsync") / "config.yaml"
DEFAULT_STATE_DIR = Path(".crsync") / "state"
DEFAULT_TICKET_PATTERN = r"[A-Z][A-Z0-9]+-\d+"
DEFAULT_GITLAB_TOKEN_ENV = "GITLAB_TOKEN"
DEFAULT_REVIEW_TOKEN_ENV = "CRSYNC_REVIEW_API_KEY"
DEFAULT_REVIEW_TASK_ID = "code-review"

_SECTIONS = {"ticket", "gitlab", "review"}
_TOP_LEVEL = {
    "version",
    "state_dir",
    "target_branch",
    "labels",
    "attribution",
    "require_clean_worktree",
    "require_gates",
} | _SECTIONS


@dataclass(frozen=True)
class SyncConfig:
    version: int = 1
    state_dir: Path = DEFAULT_STATE_DIR
    target_branch: Optional[str] = None
    ticket_pattern: str = DEFAULT_TICKET_PATTERN
    ticket_browse_url: Optional[str] = None
    gitlab_base_url: Optional[str] = None
    gitlab_project: Optional[str] = None
    gitlab_token_env: str = DEFAULT_GITLAB_TOKEN_ENV
    review_url: Optional[str] = None
    review_token_env: str = DEFAULT_REVIEW_TOKEN_ENV
    review_task_id: str = DEFAULT_REVIEW_TASK_ID
    review_email: Optional[str] = None
    labels: Tuple[str, ...] = field(default_factory=tuple)
    attribution: Optional[str] = None
    require_clean_worktree: bool = True
    require_gates: bool = True

    @classmethod
    def default(cls) -> "SyncConfig":
        return cls()

    @classmethod
    def load(cls, project_root: Path, config_path: Path | None = None) -> "SyncConfig":
        path = config_path or (project_root / DEFAULT_CONFIG_RELATIVE)
        if not path.exists():
            if config_path is not None:
                raise SyncConfigError(f"config file not found: {path}")
            return cls.default()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise SyncConfigError(f"{path}: invalid YAML: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SyncConfig":
        if not isinstance(data, Mapping):
            raise SyncConfigError("config root must be a mapping")
        unknown = sorted(set(data) - _TOP_LEVEL)
        if unknown:
            raise SyncConfigError(f"unknown config keys: {', '.join(unknown)}")

        version = data.get("version", 1)
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise SyncConfigError("'version' must be a positive integer")

        ticket = _section(data, "ticket")
        gitlab = _section(data, "gitlab")
        review = _section(data, "review")

        pattern = _optional_str(ticket, "ticket.pattern", "pattern") or DEFAULT_TICKET_PATTERN
        try:
            re.compile(pattern)
        except re.error as exc:
            raise SyncConfigError(f"'ticket.pattern' is not a valid regular expression: {exc}") from exc

        browse_url = _optional_str(ticket, "ticket.browse_url", "browse_url")
        if browse_url and "{ticket}" not in browse_url:
            browse_url = browse_url.rstrip("/") + "/{ticket}"

        labels = data.get("labels", [])
        if not isinstance(labels, list) or not all(isinstance(item, str) and item.strip() for item in labels):
            raise SyncConfigError("'labels' must be a list of non-empty strings")

        state_dir = _optional_str(data, "state_dir", "state_dir")
        return cls(
            version=version,
            state_dir=Path(state_dir) if state_dir else DEFAULT_STATE_DIR,
            target_branch=_optional_str(data, "target_branch", "target_branch"),
            ticket_pattern=pattern,
            ticket_browse_url=browse_url,
            gitlab_base_url=_optional_str(gitlab, "gitlab.base_url", "base_url"),
            gitlab_project=_optional_str(gitlab, "gitlab.project", "project"),
            gitlab_token_env=_optional_str(gitlab, "gitlab.token_env", "token_env") or DEFAULT_GITLAB_TOKEN_ENV,
            review_url=_optional_str(review, "review.url", "url"),
            review_token_env=_optional_str(review, "review.token_env", "token_env") or DEFAULT_REVIEW_TOKEN_ENV,
            review_task_id=_optional_str(review, "review.task_id", "task_id") or DEFAULT_REVIEW_TASK_ID,
            review_email=_optional_str(review, "review.email", "email"),
            labels=tuple(item.strip() for item in labels),
            attribution=_optional_str(data, "attribution", "attribution"),
            require_clean_worktree=_bool(data, "require_clean_worktree", True),
            require_gates=_bool(data, "require_gates", True),
        )

    def resolve_state_dir(self, project_root: Path) -> Path:
        if self.state_dir.is_absolute():
            return self.state_dir
        return (project_root / self.state_dir).resolve()

    def ticket_regex(self) -> re.Pattern[str]:
        return re.compile(self.ticket_pattern)


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise SyncConfigError(f"'{name}' must be a mapping")
    return value


def _optional_str(data: Mapping[str, Any], label: str, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise SyncConfigError(f"'{label}' must be a string")
    return value.strip() or None


def _bool(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise SyncConfigError(f"'{key}' must be true or false")
    return value
