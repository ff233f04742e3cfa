"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

OpenAI-compatible chat-completions adapter used as the alternate provider.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import ConfigurationError, ErrorKind, ProviderError
from ..types import CredentialStatus
from .contracts import ContentProvider, build_prompt

logger = logging.getLogger("info2go.providers.openai")


def _openai_module() -> Any:
    try:
        import openai
    except Exception as e:  # pragma: no cover - environment dependent
        raise ConfigurationError(
            "openai package is not installed. Install it with: pip install openai"
        ) from e
    return openai


def _classify(openai: Any, error: Exception) -> ProviderError:
    """Map OpenAI SDK exceptions onto the normalized error kinds."""
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ProviderError(
            ErrorKind.INVALID_CREDENTIAL,
            "Invalid API Key. Please check your configuration.",
        )
    if isinstance(error, openai.RateLimitError):
        return ProviderError(ErrorKind.RATE_LIMITED, f"Rate limit exceeded: {error}")
    if isinstance(error, openai.APIConnectionError):
        return ProviderError(
            ErrorKind.NETWORK_UNAVAILABLE,
            f"Network error contacting provider: {error}",
        )
    if isinstance(error, openai.APIStatusError):
        return ProviderError(
            ErrorKind.UPSTREAM_REJECTED,
            f"API request failed with status {error.status_code}: {error.message}",
        )
    return ProviderError(ErrorKind.UPSTREAM_REJECTED, str(error))


class OpenAICompatibleProvider(ContentProvider):
    """
    Alternate provider using `openai.AsyncOpenAI` chat completions.

    Works against OpenAI or any compatible endpoint via `base_url`. A model
    name is mandatory for this provider.

    Args:
        transport: Optional httpx transport handed to the SDK's HTTP client.
        timeout_s: SDK request timeout.
    """

    provider_id = "alternate"
    requires_model = True

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._transport = transport
        self._timeout_s = timeout_s
        self._clients: dict[tuple[str, str | None], Any] = {}

    def _build_client(self, credential: str, base_url: str | None) -> Any:
        """Construct or return a cached AsyncOpenAI client per credential/base URL."""
        key = (credential, base_url)
        existing = self._clients.get(key)
        if existing is not None:
            return existing

        openai = _openai_module()
        kwargs: dict[str, Any] = {
            "api_key": credential,
            "max_retries": 0,
            "timeout": self._timeout_s,
        }
        if base_url:
            kwargs["base_url"] = base_url
        if self._transport is not None:
            kwargs["http_client"] = httpx.AsyncClient(transport=self._transport)

        client = openai.AsyncOpenAI(**kwargs)
        self._clients[key] = client
        return client

    async def generate(
        self,
        credential: str,
        subject: str,
        query: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
    ) -> str:
        if not model:
            raise ConfigurationError("The alternate provider requires a model name")
        openai = _openai_module()
        client = self._build_client(credential, base_url)

        try:
            completion = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": build_prompt(subject, query)}],
            )
        except openai.OpenAIError as exc:
            raise _classify(openai, exc) from exc

        choices = getattr(completion, "choices", None) or []
        if choices:
            content = getattr(choices[0].message, "content", None)
            if isinstance(content, str) and content.strip():
                return content.strip()
            finish_reason = getattr(choices[0], "finish_reason", None)
            if finish_reason:
                raise ProviderError(
                    ErrorKind.UPSTREAM_REJECTED,
                    f"AI generation finished with reason: {finish_reason}. No content available.",
                )
        raise ProviderError(
            ErrorKind.UPSTREAM_REJECTED,
            "AI response did not contain usable text content.",
        )

    async def validate_credential(
        self,
        credential: str,
        *,
        base_url: str | None = None,
    ) -> CredentialStatus:
        openai = _openai_module()
        client = self._build_client(credential, base_url)
        try:
            await client.models.list()
        except openai.OpenAIError as exc:
            if isinstance(exc, openai.InternalServerError):
                return CredentialStatus.NETWORK_ERROR
            kind = _classify(openai, exc).kind
            if kind is ErrorKind.NETWORK_UNAVAILABLE:
                logger.info("Credential validation could not reach provider: %s", exc)
                return CredentialStatus.NETWORK_ERROR
            if kind is ErrorKind.RATE_LIMITED:
                return CredentialStatus.RATE_LIMITED
            return CredentialStatus.INVALID
        return CredentialStatus.VALID
