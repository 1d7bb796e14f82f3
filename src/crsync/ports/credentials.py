"""Port for secrets needed by remote collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class CredentialProvider(ABC):
    @abstractmethod
    def resolve(self) -> Optional[str]:
        """Return the secret, or ``None`` when it is not available."""
