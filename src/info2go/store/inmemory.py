"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: store/inmemory.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

from .base import KeyValueStore


@dataclass(slots=True)
class InMemoryStore(KeyValueStore):
    """Process-local store suitable for development/test workloads."""

    backend_id: str = "inmemory"
    _rows: dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._rows.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._rows[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._rows.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._rows if key.startswith(prefix))
