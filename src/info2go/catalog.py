"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Persisted locations, topics and provider configuration.
"""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Iterable, Sequence

from pydantic import TypeAdapter

from .cache import CacheStore
from .errors import StoreError, UnknownLocationError
from .settings import ProviderConfig
from .store.base import KeyValueStore
from .types import Location, Topic

logger = logging.getLogger("info2go.catalog")

LOCATIONS_KEY = "catalog:locations"
TOPICS_KEY = "catalog:topics"
PROVIDER_KEY = "catalog:provider"

_LOCATIONS = TypeAdapter(list[Location])
_TOPICS = TypeAdapter(list[Topic])


def generate_id() -> str:
    """Short random identifier for new catalog rows."""
    return secrets.token_hex(5)


class CatalogStore:
    """
    Ordered locations and topics with cache invalidation on change.

    Saving a new topic list invalidates cached rows of topics whose query
    changed or that were removed; saving a new location list drops rows of
    removed locations.
    """

    def __init__(self, store: KeyValueStore, cache: CacheStore) -> None:
        self._store = store
        self._cache = cache

    def locations(self) -> list[Location]:
        raw = self._store.get(LOCATIONS_KEY)
        if raw is None:
            return []
        return _LOCATIONS.validate_json(raw)

    def topics(self) -> list[Topic]:
        raw = self._store.get(TOPICS_KEY)
        if raw is None:
            return []
        return _TOPICS.validate_json(raw)

    def location(self, location_id: str) -> Location:
        for location in self.locations():
            if location.id == location_id:
                return location
        raise UnknownLocationError(location_id)

    def save_locations(self, locations: Sequence[Location]) -> list[str]:
        """
        Persist the full ordered location list.

        Returns:
            Ids of locations that were not present before.
        """
        _ensure_unique(location.id for location in locations)
        previous = {location.id for location in self.locations()}
        current = [location.id for location in locations]

        self._store.set(LOCATIONS_KEY, _LOCATIONS.dump_json(list(locations)).decode("utf-8"))

        for removed in previous.difference(current):
            self._cache.invalidate_location(removed)
        added = [location_id for location_id in current if location_id not in previous]
        logger.info(
            "Locations saved (%d total, %d new, %d removed)",
            len(current),
            len(added),
            len(previous.difference(current)),
        )
        return added

    def save_topics(self, topics: Sequence[Topic]) -> list[str]:
        """
        Persist the full ordered topic list.

        Returns:
            Ids of topics whose cached rows were invalidated.
        """
        _ensure_unique(topic.id for topic in topics)
        previous = {topic.id: topic for topic in self.topics()}
        self._store.set(TOPICS_KEY, _TOPICS.dump_json(list(topics)).decode("utf-8"))

        if not topics:
            self._cache.clear()
            return sorted(previous)

        current = {topic.id: topic for topic in topics}
        invalidated: list[str] = []
        for topic_id, old in previous.items():
            new = current.get(topic_id)
            if new is None or new.query != old.query:
                self._cache.invalidate_all(topic_id)
                invalidated.append(topic_id)
        return sorted(invalidated)

    def provider_config(self) -> ProviderConfig | None:
        raw = self._store.get(PROVIDER_KEY)
        if raw is None:
            return None
        try:
            row = json.loads(raw)
        except ValueError as exc:
            raise StoreError(f"Stored provider config is not valid JSON: {exc}") from exc
        return ProviderConfig.from_dict(row)

    def save_provider_config(self, config: ProviderConfig) -> None:
        config.validate()
        self._store.set(PROVIDER_KEY, json.dumps(config.to_dict(), sort_keys=True))


def _ensure_unique(ids: Iterable[str]) -> None:
    seen: set[str] = set()
    for row_id in ids:
        if row_id in seen:
            raise ValueError(f"Duplicate catalog id '{row_id}'")
        seen.add(row_id)
