"""Port for the automated review service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from crsync.domain.description.constants import remediation_for


@dataclass(frozen=True)
class ReviewSubmission:
    change_request_url: str
    head_commit: str
    email: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class ReviewSubmitter(ABC):
    @abstractmethod
    def is_configured(self) -> bool:
        """False when credentials or endpoint are missing; review is then skipped."""

    @abstractmethod
    def submit(self, submission: ReviewSubmission) -> Dict[str, Any]:
        """Queue an automated review and return the service response."""


class ReviewSubmissionError(RuntimeError):
    def __init__(self, message: str, *, code: str = "REVIEW_SUBMISSION_FAILED") -> None:
        super().__init__(message)
        self.code = code
        self.remediation = remediation_for(code)
