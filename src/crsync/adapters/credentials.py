"""Credential providers backed by the environment or fixed values."""

from __future__ import annotations

import os
from typing import Iterable, Optional

from crsync.ports.credentials import CredentialProvider


class EnvCredentialProvider(CredentialProvider):
    def __init__(self, variable: str | None) -> None:
        self._variable = variable

    def resolve(self) -> Optional[str]:
        if not self._variable:
            return None
        value = os.environ.get(self._variable, "").strip()
        return value or None


class StaticCredentialProvider(CredentialProvider):
    def __init__(self, value: str | None) -> None:
        self._value = value

    def resolve(self) -> Optional[str]:
        return self._value or None


class ChainedCredentialProvider(CredentialProvider):
    """Returns the first secret any provider resolves; later ones are not consulted."""

    def __init__(self, providers: Iterable[CredentialProvider]) -> None:
        self._providers = tuple(providers)
        self._cached: Optional[str] = None

    def resolve(self) -> Optional[str]:
        if self._cached is not None:
            return self._cached
        for provider in self._providers:
            value = provider.resolve()
            if value:
                self._cached = value
                return value
        return None
