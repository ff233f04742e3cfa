"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy shared by the cache, gateway and refresh runtime.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Normalized failure classes for one provider call."""

    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_REJECTED = "upstream_rejected"
    NETWORK_UNAVAILABLE = "network_unavailable"


class Info2GoError(RuntimeError):
    """Base error for info2go failures."""


class ConfigurationError(Info2GoError):
    """Raised when provider or store configuration is missing or invalid."""


class ProviderRegistryError(Info2GoError):
    """Raised when provider registration/resolution fails."""


class StoreError(Info2GoError):
    """Raised when a keyed store backend cannot be resolved or written."""


class UnknownLocationError(KeyError):
    """Raised when a location id is not present in the catalog."""

    def __init__(self, location_id: str) -> None:
        super().__init__(location_id)
        self.location_id = location_id

    def __str__(self) -> str:
        return f"Unknown location '{self.location_id}'"


class ProviderError(Info2GoError):
    """
    Raised by provider adapters for one failed generation call.

    Attributes:
        kind: Normalized failure class.
        message: Human readable detail, stored verbatim in error entries.
    """

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, message={self.message!r})"
