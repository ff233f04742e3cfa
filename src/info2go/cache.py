"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Content cache keyed by (location, topic) plus the staleness policy.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from urllib.parse import quote, unquote

from pydantic import ValidationError

from .errors import ErrorKind
from .store.base import KeyValueStore
from .types import CacheEntry, FetchErr, FetchOk, Freshness

logger = logging.getLogger("info2go.cache")

CACHE_PREFIX = "cache:"
LEGACY_ERROR_PREFIX = "Error: "


def classify(entry: CacheEntry | None, now: float, ttl_s: float) -> Freshness:
    """
    Classify one cache slot.

    Errored entries are always eligible for refresh, whatever their age.
    Otherwise an entry is stale iff ``now - fetched_at > ttl_s``.
    """
    if entry is None:
        return Freshness.MISSING
    if entry.is_error:
        return Freshness.ERRORED
    if now - entry.fetched_at > ttl_s:
        return Freshness.STALE
    return Freshness.FRESH


def format_age(fetched_at: float | None, *, now: float | None = None) -> str:
    """Short human label for an entry age, e.g. ``"42s ago"`` or ``"3h ago"``."""
    if not fetched_at:
        return "N/A"
    current = time.time() if now is None else now
    seconds = round(current - fetched_at)
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = round(seconds / 60)
    if minutes < 120:
        return f"{minutes}m ago"
    return f"{round(minutes / 60)}h ago"


class CacheStore:
    """
    Keyed cache of fetch results on top of a `KeyValueStore`.

    Success and failure rows share one storage shape; the ``result`` tag on
    each entry tells them apart.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    # Ids are percent-quoted so ":" only ever separates the two parts.
    @staticmethod
    def _location_prefix(location_id: str) -> str:
        return f"{CACHE_PREFIX}{quote(location_id, safe='')}:"

    @classmethod
    def _key(cls, location_id: str, topic_id: str) -> str:
        return f"{cls._location_prefix(location_id)}{quote(topic_id, safe='')}"

    @staticmethod
    def _split_key(key: str) -> tuple[str, str] | None:
        body = key[len(CACHE_PREFIX):]
        location_id, sep, topic_id = body.partition(":")
        if not sep:
            return None
        return unquote(location_id), unquote(topic_id)

    def _decode(self, location_id: str, topic_id: str, raw: str) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError:
            pass
        return self._decode_legacy(location_id, topic_id, raw)

    def _decode_legacy(
        self, location_id: str, topic_id: str, raw: str
    ) -> CacheEntry | None:
        # Older rows: {"timestamp": <ms>, "data": "<content or 'Error: ...'>"}
        try:
            row = json.loads(raw)
        except ValueError:
            row = None
        data = row.get("data") if isinstance(row, dict) else None
        stamp = row.get("timestamp") if isinstance(row, dict) else None
        if not isinstance(data, str) or not isinstance(stamp, (int, float)):
            logger.warning("Dropping unreadable cache row %s/%s", location_id, topic_id)
            return None

        if data.startswith(LEGACY_ERROR_PREFIX):
            result: FetchOk | FetchErr = FetchErr(
                kind=ErrorKind.UPSTREAM_REJECTED,
                message=data[len(LEGACY_ERROR_PREFIX):].strip(),
            )
        else:
            result = FetchOk(content=data)
        return CacheEntry(
            location_id=location_id,
            topic_id=topic_id,
            result=result,
            fetched_at=float(stamp) / 1000.0,
        )

    def get(self, location_id: str, topic_id: str) -> CacheEntry | None:
        raw = self._store.get(self._key(location_id, topic_id))
        if raw is None:
            return None
        return self._decode(location_id, topic_id, raw)

    def _write(self, entry: CacheEntry) -> CacheEntry:
        self._store.set(
            self._key(entry.location_id, entry.topic_id),
            entry.model_dump_json(),
        )
        return entry

    def put(self, location_id: str, topic_id: str, content: str) -> CacheEntry:
        """Store successful content with ``fetched_at = now``."""
        entry = CacheEntry(
            location_id=location_id,
            topic_id=topic_id,
            result=FetchOk(content=content),
            fetched_at=self._clock(),
        )
        logger.debug("Cache saved for %s/%s", location_id, topic_id)
        return self._write(entry)

    def put_error(
        self,
        location_id: str,
        topic_id: str,
        kind: ErrorKind,
        message: str,
    ) -> CacheEntry:
        """Store a failed fetch through the same write path as content."""
        entry = CacheEntry(
            location_id=location_id,
            topic_id=topic_id,
            result=FetchErr(kind=kind, message=message),
            fetched_at=self._clock(),
        )
        logger.debug("Cache error saved for %s/%s (%s)", location_id, topic_id, kind.value)
        return self._write(entry)

    def freshness(self, location_id: str, topic_id: str, ttl_s: float) -> Freshness:
        return classify(self.get(location_id, topic_id), self._clock(), ttl_s)

    def invalidate(self, location_id: str, topic_id: str) -> None:
        self._store.delete(self._key(location_id, topic_id))

    def _delete_keys(self, keys: list[str]) -> int:
        delete_many = getattr(self._store, "delete_many", None)
        if callable(delete_many):
            delete_many(keys)
        else:
            for key in keys:
                self._store.delete(key)
        return len(keys)

    def invalidate_all(self, topic_id: str) -> int:
        """Remove every entry of one topic across all locations."""
        keys = [
            key
            for key in self._store.keys(CACHE_PREFIX)
            if (parts := self._split_key(key)) is not None and parts[1] == topic_id
        ]
        removed = self._delete_keys(keys)
        logger.info("Invalidated %d cache row(s) for topic %s", removed, topic_id)
        return removed

    def invalidate_location(self, location_id: str) -> int:
        """Remove every entry of one location."""
        keys = self._store.keys(self._location_prefix(location_id))
        removed = self._delete_keys(keys)
        logger.info("Invalidated %d cache row(s) for location %s", removed, location_id)
        return removed

    def clear(self) -> int:
        """Remove every cache entry."""
        removed = self._delete_keys(self._store.keys(CACHE_PREFIX))
        logger.info("Flushed all %d cache row(s)", removed)
        return removed
