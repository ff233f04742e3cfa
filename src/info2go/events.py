"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-process event hub for refresh, connectivity and credential notifications.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from typing import Any, Union

from .types import CacheEntry

logger = logging.getLogger("info2go.events")


@dataclass(frozen=True, slots=True)
class EntryUpdated:
    """One (location, topic) row was written, successfully or as an error."""

    location_id: str
    topic_id: str
    ok: bool
    fetched_at: float

    @staticmethod
    def from_entry(entry: CacheEntry) -> "EntryUpdated":
        return EntryUpdated(
            location_id=entry.location_id,
            topic_id=entry.topic_id,
            ok=not entry.is_error,
            fetched_at=entry.fetched_at,
        )


@dataclass(frozen=True, slots=True)
class LocationRefreshStarted:
    location_id: str
    topic_ids: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class LocationRefreshFinished:
    location_id: str
    all_succeeded: bool
    credential_invalid: bool


@dataclass(frozen=True, slots=True)
class GlobalRefreshStarted:
    total_jobs: int
    total_batches: int


@dataclass(frozen=True, slots=True)
class GlobalRefreshFinished:
    succeeded: int
    failed: int
    cancelled: bool
    credential_invalid: bool


@dataclass(frozen=True, slots=True)
class BatchStarted:
    index: int
    size: int
    total_batches: int


@dataclass(frozen=True, slots=True)
class ConnectivityChanged:
    online: bool


@dataclass(frozen=True, slots=True)
class CredentialInvalid:
    """A provider call rejected the configured credential."""

    location_id: str
    topic_id: str
    message: str


Event = Union[
    EntryUpdated,
    LocationRefreshStarted,
    LocationRefreshFinished,
    GlobalRefreshStarted,
    GlobalRefreshFinished,
    BatchStarted,
    ConnectivityChanged,
    CredentialInvalid,
]

EventHandler = Callable[[Any], Union[None, Awaitable[None]]]


def event_to_dict(event: Event) -> dict[str, Any]:
    """JSON-friendly view of one event with its type name."""
    return {"type": type(event).__name__, **asdict(event)}


class EventHub:
    """
    Publish/subscribe hub replacing direct core-to-view calls.

    Handlers may be plain callables or coroutine functions and run in
    subscription order. A failing handler is logged and does not stop
    delivery to the others. Streams (``asyncio.Queue`` per consumer) are
    available for long-lived observers such as the HTTP server.

    Args:
        history_size: Number of recent events kept for status snapshots.
    """

    def __init__(self, *, history_size: int = 100) -> None:
        self._handlers: list[tuple[EventHandler, tuple[type, ...] | None]] = []
        self._streams: list[asyncio.Queue[Event]] = []
        self._history: deque[Event] = deque(maxlen=history_size)

    def subscribe(
        self,
        handler: EventHandler,
        *event_types: type,
    ) -> Callable[[], None]:
        """
        Register `handler` for the given event types (all when omitted).

        Returns:
            Callable that removes the subscription.
        """
        entry = (handler, tuple(event_types) or None)
        self._handlers.append(entry)

        def unsubscribe() -> None:
            if entry in self._handlers:
                self._handlers.remove(entry)

        return unsubscribe

    def open_stream(self) -> asyncio.Queue[Event]:
        queue: asyncio.Queue[Event] = asyncio.Queue()
        self._streams.append(queue)
        return queue

    def close_stream(self, queue: asyncio.Queue[Event]) -> None:
        if queue in self._streams:
            self._streams.remove(queue)

    def recent(self, limit: int | None = None) -> list[Event]:
        events = list(self._history)
        if limit is not None:
            return events[-limit:] if limit > 0 else []
        return events

    async def publish(self, event: Event) -> None:
        self._history.append(event)
        for queue in list(self._streams):
            queue.put_nowait(event)

        for handler, types in list(self._handlers):
            if types is not None and not isinstance(event, types):
                continue
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Event handler %r failed for %s", handler, type(event).__name__
                )
