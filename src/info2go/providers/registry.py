"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Thread-safe registry for content providers.
"""

from __future__ import annotations

from threading import Lock

from ..errors import ProviderRegistryError
from .contracts import ContentProvider

_REGISTRY: dict[str, ContentProvider] = {}
_LOCK = Lock()


def register_provider(provider: ContentProvider, *, overwrite: bool = False) -> None:
    """Register one provider under its stable id."""
    provider_id = provider.provider_id.strip().lower()
    if not provider_id:
        raise ProviderRegistryError("Provider id must be non-empty")

    with _LOCK:
        if provider_id in _REGISTRY and not overwrite:
            raise ProviderRegistryError(f"Provider already registered: {provider_id}")
        _REGISTRY[provider_id] = provider


def get_provider(provider_id: str) -> ContentProvider:
    """Resolve one registered provider by id."""
    key = provider_id.strip().lower()
    with _LOCK:
        provider = _REGISTRY.get(key)
    if provider is None:
        raise ProviderRegistryError(f"Unknown content provider '{provider_id}'")
    return provider


def list_providers() -> list[str]:
    """List registered provider ids in deterministic order."""
    with _LOCK:
        return sorted(_REGISTRY.keys())


def ensure_default_providers() -> None:
    """Register the built-in primary/alternate providers once."""
    from .gemini import GeminiProvider
    from .openai import OpenAICompatibleProvider

    with _LOCK:
        _REGISTRY.setdefault(GeminiProvider.provider_id, GeminiProvider())
        _REGISTRY.setdefault(
            OpenAICompatibleProvider.provider_id, OpenAICompatibleProvider()
        )
