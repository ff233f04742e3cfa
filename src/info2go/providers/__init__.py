"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: providers/__init__.py.
"""

from .contracts import ContentProvider, build_prompt
from .gemini import GEMINI_BASE_URL, GEMINI_DEFAULT_MODEL, GeminiProvider
from .openai import OpenAICompatibleProvider
from .registry import (
    ensure_default_providers,
    get_provider,
    list_providers,
    register_provider,
)

__all__ = [
    "ContentProvider",
    "build_prompt",
    "GeminiProvider",
    "GEMINI_BASE_URL",
    "GEMINI_DEFAULT_MODEL",
    "OpenAICompatibleProvider",
    "ensure_default_providers",
    "get_provider",
    "list_providers",
    "register_provider",
]
