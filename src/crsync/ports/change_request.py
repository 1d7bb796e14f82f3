"""Port for the code review platform hosting change requests."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from crsync.domain.description.constants import remediation_for
from crsync.domain.review import LedgerNote


@dataclass(frozen=True)
class ChangeRequest:
    iid: str
    description: str = ""
    head_commit: Optional[str] = None
    web_url: Optional[str] = None
    source_branch: Optional[str] = None
    target_branch: Optional[str] = None
    labels: Tuple[str, ...] = field(default_factory=tuple)


class ChangeRequestClient(ABC):
    """Reads and updates change requests and their note stream."""

    @abstractmethod
    def find_open(self, source_branch: str) -> Optional[ChangeRequest]:
        """Return the open change request for ``source_branch`` if any."""

    @abstractmethod
    def fetch(self, iid: str) -> ChangeRequest:
        """Return the current state of a change request."""

    @abstractmethod
    def update_description(self, iid: str, description: str, *, add_labels: Sequence[str] = ()) -> ChangeRequest:
        """Replace the description; labels are only ever added."""

    @abstractmethod
    def list_notes(self, iid: str) -> Sequence[LedgerNote]:
        """Return notes sorted by last update, newest first."""

    @abstractmethod
    def create_note(self, iid: str, body: str) -> LedgerNote:
        ...

    @abstractmethod
    def update_note(self, iid: str, note_id: str, body: str) -> LedgerNote:
        ...

    def current_user_email(self) -> Optional[str]:
        return None


class ChangeRequestClientError(RuntimeError):
    """Raised when the code review platform rejects or fails a request."""

    def __init__(self, message: str, *, code: str = "GITLAB_REQUEST_FAILED", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code
        self.status = status
        self.remediation = remediation_for(code)
