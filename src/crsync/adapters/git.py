"""VCS adapter backed by the ``git`` command line."""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from crsync.domain.description.models import ChangedFile
from crsync.ports.vcs import VcsClient, VcsError

_SCP_REMOTE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*?)(?:\.git)?/?$")
_URL_REMOTE = re.compile(r"^(?:https?|ssh|git)://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/(?P<path>.+?)(?:\.git)?/?$")


class GitCli(VcsClient):
    def __init__(self, root: Path, *, remote: str = "origin", git: str = "git") -> None:
        self._root = root
        self._remote = remote
        self._git = git

    def current_branch(self) -> str:
        return self._run("rev-parse", "--abbrev-ref", "HEAD").strip()

    def head_commit(self) -> str:
        return self._run("rev-parse", "HEAD").strip()

    def is_clean(self) -> bool:
        return not self._run("status", "--porcelain").strip()

    def changed_files(self, target_branch: str) -> Sequence[ChangedFile]:
        output = self._run("diff", "--name-status", f"{self._remote}/{target_branch}...HEAD")
        return parse_name_status(output)

    def user_email(self) -> Optional[str]:
        try:
            value = self._run("config", "user.email").strip()
        except VcsError:
            return None
        return value or None

    def remote_url(self) -> Optional[str]:
        try:
            value = self._run("remote", "get-url", self._remote).strip()
        except VcsError:
            return None
        return value or None

    def _run(self, *args: str) -> str:
        try:
            completed = subprocess.run(
                [self._git, *args],
                cwd=self._root,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise VcsError(f"git {' '.join(args)} failed: {exc}") from exc
        if completed.returncode != 0:
            detail = completed.stderr.strip() or completed.stdout.strip()
            raise VcsError(f"git {' '.join(args)} failed: {detail}")
        return completed.stdout


def parse_name_status(output: str) -> List[ChangedFile]:
    """Parse ``git diff --name-status``; renames and copies keep the new path."""

    files: List[ChangedFile] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        status = parts[0].strip()
        if len(parts) < 2 or not status:
            continue
        path = parts[-1] if status[0] in {"R", "C"} else parts[1]
        files.append(ChangedFile(path=path.strip(), status=status[0]))
    return files


def parse_remote_url(url: str) -> Optional[Tuple[str, str]]:
    """Return ``(host, project_path)`` for an ssh, scp-style or http(s) remote."""

    text = url.strip()
    for pattern in (_URL_REMOTE, _SCP_REMOTE):
        match = pattern.match(text)
        if match:
            return match.group("host"), match.group("path")
    return None
