"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: store/base.py.
"""

from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """
    Synchronous keyed persistence used by the cache and catalog.

    Values are opaque strings. Every call is atomic per key; backends never
    expose a partially written value.
    """

    backend_id: str

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...
