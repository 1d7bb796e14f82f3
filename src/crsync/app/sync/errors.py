"""Errors raised while synchronising a change request description."""

from __future__ import annotations

from typing import Optional, Sequence

from crsync.domain.description.constants import remediation_for


class DescriptionSyncError(RuntimeError):
    """Raised when a sync cycle cannot proceed."""

    def __init__(self, message: str, *, code: str, remediation: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.remediation = remediation if remediation is not None else remediation_for(code)


class ChangeRequestNotFoundError(DescriptionSyncError):
    def __init__(self, message: str, *, code: str = "CR_NOT_FOUND") -> None:
        super().__init__(message, code=code)


class GateNotSatisfiedError(DescriptionSyncError):
    pass


class ValidationFailedError(DescriptionSyncError):
    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(
            "description is missing required sections: " + ", ".join(self.missing),
            code="VALIDATION_FAILED",
        )


class ReviewPreconditionError(DescriptionSyncError):
    def __init__(self, message: str, *, code: str = "REVIEW_UNPUSHED_COMMITS") -> None:
        super().__init__(message, code=code)


class CorruptStateError(DescriptionSyncError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="STATE_CORRUPT")


class SyncConfigError(ValueError):
    """Raised when .crsync/config.yaml is malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.code = "CONFIG_INVALID"
        self.remediation = remediation_for(self.code)
