"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: store/redis.py.
"""

from __future__ import annotations

from typing import Any

from .base import KeyValueStore


class RedisStore(KeyValueStore):
    """
    Redis-backed store for deployments that share one cache across processes.

    Uses plain string keys under ``{prefix}:`` and a synchronous
    ``redis.Redis`` client, since cache reads/writes never suspend.

    Args:
        redis: A ``redis.Redis`` client instance.
        prefix: Key prefix for namespacing.
    """

    backend_id = "redis"

    def __init__(self, redis: Any, *, prefix: str = "info2go") -> None:
        self._redis = redis
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str) -> str | None:
        raw = self._redis.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def set(self, key: str, value: str) -> None:
        self._redis.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self._redis.delete(self._key(key))

    def keys(self, prefix: str = "") -> list[str]:
        offset = len(self._prefix) + 1
        found: list[str] = []
        for raw in self._redis.scan_iter(match=f"{self._key(prefix)}*"):
            name = raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)
            found.append(name[offset:])
        return sorted(found)
