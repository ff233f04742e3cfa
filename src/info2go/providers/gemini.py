"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Gemini REST adapter used as the primary provider.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..errors import ErrorKind, ProviderError
from ..types import CredentialStatus
from .contracts import ContentProvider, build_prompt

logger = logging.getLogger("info2go.providers.gemini")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_DEFAULT_MODEL = "gemini-2.5-flash"


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _error_detail(payload: dict[str, Any], fallback: str) -> str:
    error = payload.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return fallback


def _is_key_rejection(status: int, detail: str) -> bool:
    if status in (401, 403):
        return True
    lowered = detail.lower()
    return status == 400 and ("api key not valid" in lowered or "api_key_invalid" in lowered)


def _status_error(response: httpx.Response) -> ProviderError:
    status = response.status_code
    payload = _json_or_empty(response)
    detail = _error_detail(payload, response.reason_phrase or "request failed")

    if _is_key_rejection(status, detail):
        return ProviderError(
            ErrorKind.INVALID_CREDENTIAL,
            "Invalid API Key. Please check your configuration.",
        )
    if status == 429:
        return ProviderError(ErrorKind.RATE_LIMITED, f"Rate limit exceeded: {detail}")
    return ProviderError(
        ErrorKind.UPSTREAM_REJECTED,
        f"API request failed with status {status}: {detail}",
    )


def extract_text(payload: dict[str, Any]) -> str:
    """Pull generated text out of a `generateContent` envelope."""
    candidates = payload.get("candidates")
    first: dict[str, Any] = {}
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        first = candidates[0]

    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if isinstance(parts, list):
        pieces = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        text = "".join(pieces).strip()
        if text:
            return text

    feedback = payload.get("promptFeedback")
    if isinstance(feedback, dict) and feedback.get("blockReason"):
        raise ProviderError(
            ErrorKind.UPSTREAM_REJECTED,
            f"Prompt was blocked with reason: {feedback['blockReason']}.",
        )
    finish_reason = first.get("finishReason")
    if finish_reason:
        raise ProviderError(
            ErrorKind.UPSTREAM_REJECTED,
            f"AI generation finished with reason: {finish_reason}. No content available.",
        )
    raise ProviderError(
        ErrorKind.UPSTREAM_REJECTED,
        "AI response did not contain usable text content.",
    )


class GeminiProvider(ContentProvider):
    """
    Primary provider calling the Gemini `generateContent` REST endpoint.

    Args:
        transport: Optional httpx transport (tests pass `httpx.MockTransport`).
        timeout_s: Socket-level timeout for each HTTP request.
    """

    provider_id = "primary"
    requires_model = False

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._transport = transport
        self._timeout_s = timeout_s

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout_s)

    async def generate(
        self,
        credential: str,
        subject: str,
        query: str,
        *,
        model: str | None = None,
        base_url: str | None = None,
    ) -> str:
        model_name = model or GEMINI_DEFAULT_MODEL
        url = f"{(base_url or GEMINI_BASE_URL).rstrip('/')}/models/{model_name}:generateContent"
        body = {"contents": [{"parts": [{"text": build_prompt(subject, query)}]}]}
        logger.debug("Generating content for '%s' with model %s", subject, model_name)

        try:
            async with self._client() as client:
                response = await client.post(url, params={"key": credential}, json=body)
        except httpx.TransportError as exc:
            raise ProviderError(
                ErrorKind.NETWORK_UNAVAILABLE,
                f"Network error contacting provider: {exc}",
            ) from exc

        if response.status_code >= 400:
            raise _status_error(response)
        return extract_text(_json_or_empty(response))

    async def validate_credential(
        self,
        credential: str,
        *,
        base_url: str | None = None,
    ) -> CredentialStatus:
        url = f"{(base_url or GEMINI_BASE_URL).rstrip('/')}/models"
        try:
            async with self._client() as client:
                response = await client.get(
                    url, params={"key": credential, "pageSize": 1}
                )
        except httpx.TransportError as exc:
            logger.info("Credential validation could not reach provider: %s", exc)
            return CredentialStatus.NETWORK_ERROR

        status = response.status_code
        if status < 300:
            return CredentialStatus.VALID
        if status == 429:
            return CredentialStatus.RATE_LIMITED
        if status >= 500:
            return CredentialStatus.NETWORK_ERROR
        return CredentialStatus.INVALID
