"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Provider contracts for pluggable content-generation backends.
"""

from __future__ import annotations

from typing import Protocol

from ..types import CredentialStatus


def build_prompt(subject: str, query: str) -> str:
    """Prompt text sent upstream for one (location, topic) pair."""
    return f"{subject}: {query}"


class ContentProvider(Protocol):
    """
    Generation backend consumed by the gateway.

    `generate` returns content text or raises `ProviderError` carrying a
    normalized `ErrorKind`. `validate_credential` must be cheap (no
    generation cost) and must only report `NETWORK_ERROR` when the request
    did not reach the service.
    """

    provider_id: str
    requires_model: bool

    async def generate(
        self,
        credential: str,
        subject: str,
        query: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
    ) -> str: ...

    async def validate_credential(
        self,
        credential: str,
        *,
        base_url: str | None = None,
    ) -> CredentialStatus: ...
