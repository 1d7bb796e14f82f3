"""Port for the local version control checkout."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from crsync.domain.description.constants import remediation_for
from crsync.domain.description.models import ChangedFile


class VcsClient(ABC):
    @abstractmethod
    def current_branch(self) -> str:
        ...

    @abstractmethod
    def head_commit(self) -> str:
        ...

    @abstractmethod
    def is_clean(self) -> bool:
        ...

    @abstractmethod
    def changed_files(self, target_branch: str) -> Sequence[ChangedFile]:
        """Files changed on this branch relative to ``target_branch``."""

    def user_email(self) -> Optional[str]:
        return None

    def remote_url(self) -> Optional[str]:
        return None


class VcsError(RuntimeError):
    def __init__(self, message: str, *, code: str = "VCS_FAILED") -> None:
        super().__init__(message)
        self.code = code
        self.remediation = remediation_for(code)
