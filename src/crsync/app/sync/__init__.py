"""Description synchronisation use cases."""

from __future__ import annotations

from .config import SyncConfig
from .errors import (
    ChangeRequestNotFoundError,
    CorruptStateError,
    DescriptionSyncError,
    GateNotSatisfiedError,
    ReviewPreconditionError,
    SyncConfigError,
    ValidationFailedError,
)
from .service import DescriptionSyncService, ReviewDecision, SyncRequest, SyncResult
from .state import StateRepository

__all__ = [
    "ChangeRequestNotFoundError",
    "CorruptStateError",
    "DescriptionSyncError",
    "DescriptionSyncService",
    "GateNotSatisfiedError",
    "ReviewDecision",
    "ReviewPreconditionError",
    "StateRepository",
    "SyncConfig",
    "SyncConfigError",
    "SyncRequest",
    "SyncResult",
    "ValidationFailedError",
]
