"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Service facade wiring the cache, gateway, prober, coordinator and scheduler.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from .ambient import AmbientConditions, AmbientConditionsClient
from .cache import CacheStore, classify, format_age
from .catalog import CatalogStore
from .connectivity import ConnectivityProber, NetworkSignal, default_network_signal
from .coordinator import FetchCoordinator, LocationRefreshResult
from .events import ConnectivityChanged, CredentialInvalid, EventHub
from .gateway import ProviderGateway, ProviderLookup
from .metrics import NoOpRefreshMetrics, RefreshMetrics
from .refresh import RefreshExecutor, collect_jobs
from .runtime.timeouts import wait_or_cancelled
from .scheduler import BatchScheduler, Pacer, RefreshRunReport
from .settings import Info2GoSettings, ProviderConfig
from .store.base import KeyValueStore
from .store.factory import create_store, create_store_from_env
from .types import Freshness, Location, LocationStatus, Topic

logger = logging.getLogger("info2go.service")


@dataclass(frozen=True, slots=True)
class TopicView:
    topic_id: str
    description: str
    freshness: Freshness
    text: str | None = None
    is_error: bool = False
    fetched_at: float | None = None


@dataclass(frozen=True, slots=True)
class LocationView:
    """Snapshot of one location for display."""

    location: Location
    status: LocationStatus
    topics: tuple[TopicView, ...]
    needs_refresh: bool
    updated_at: float | None
    age_label: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location.model_dump(),
            "status": self.status,
            "needs_refresh": self.needs_refresh,
            "updated_at": self.updated_at,
            "age_label": self.age_label,
            "topics": [
                {
                    "topic_id": topic.topic_id,
                    "description": topic.description,
                    "freshness": topic.freshness.value,
                    "text": topic.text,
                    "is_error": topic.is_error,
                    "fetched_at": topic.fetched_at,
                }
                for topic in self.topics
            ],
        }


class Info2GoService:
    """
    Application facade over the refresh runtime.

    Reacts to connectivity events: coming online runs the scheduler and
    refreshes the open location; going offline cancels scheduled work. A
    rejected credential cancels scheduled work and pauses fetching until
    `configure_provider` installs new settings.

    Args:
        settings: Provider, refresh and weather settings.
        store: Keyed store instance or backend id (``file``, ``inmemory``,
            ``redis``); ``None`` means a private in-memory store.
        provider_lookup: Provider resolver override (tests).
        network_signal: OS-level reachability hint.
        pacer: Wait used between scheduler batches.
        clock: Wall clock used for cache timestamps.
    """

    def __init__(
        self,
        settings: Info2GoSettings | None = None,
        store: KeyValueStore | str | None = None,
        *,
        provider_lookup: ProviderLookup | None = None,
        network_signal: NetworkSignal = default_network_signal,
        metrics: RefreshMetrics | None = None,
        pacer: Pacer = wait_or_cancelled,
        clock: Callable[[], float] = time.time,
        weather_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or Info2GoSettings()
        refresh = self.settings.refresh
        self.store = create_store(store)
        self.metrics = metrics or NoOpRefreshMetrics()
        self.events = EventHub()
        self.cache = CacheStore(self.store, clock=clock)
        self.catalog = CatalogStore(self.store, self.cache)

        provider_config = self.catalog.provider_config() or self.settings.provider
        self.gateway = ProviderGateway(
            provider_config,
            request_timeout_s=refresh.request_timeout_s,
            provider_lookup=provider_lookup,
        )
        self.executor = RefreshExecutor(
            self.cache, self.gateway, self.events, metrics=self.metrics
        )
        self.coordinator = FetchCoordinator(
            self.catalog,
            self.cache,
            self.gateway,
            self.executor,
            self.events,
            content_ttl_s=refresh.content_ttl_s,
        )
        self.prober = ConnectivityProber(
            self.gateway,
            self.events,
            network_signal=network_signal,
            metrics=self.metrics,
        )
        self.scheduler = BatchScheduler(
            self.catalog,
            self.cache,
            self.gateway,
            self.executor,
            self.events,
            content_ttl_s=refresh.content_ttl_s,
            batch_interval_s=refresh.batch_interval_s,
            is_online=lambda: self.prober.is_online,
            metrics=self.metrics,
            pacer=pacer,
        )
        self.ambient: AmbientConditions | None = None
        if self.settings.weather_api_key:
            self.ambient = AmbientConditions(
                AmbientConditionsClient(
                    self.settings.weather_api_key, transport=weather_transport
                ),
                self.cache,
                ttl_s=refresh.ambient_ttl_s,
            )

        self._open_location_id: str | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._stop = asyncio.Event()
        self._unsubscribe: list[Callable[[], None]] = []

    @staticmethod
    def from_env(**kwargs: Any) -> "Info2GoService":
        """Build a service from `INFO2GO_*` environment variables."""
        return Info2GoService(Info2GoSettings.from_env(), create_store_from_env(), **kwargs)

    # Lifecycle

    async def start(self, *, background: bool = False) -> None:
        """
        Subscribe to runtime events and take the first connectivity probe.

        With `background`, also start the periodic refresh loop and the
        connectivity watcher.
        """
        if not self._unsubscribe:
            self._unsubscribe.append(
                self.events.subscribe(self._on_connectivity, ConnectivityChanged)
            )
            self._unsubscribe.append(
                self.events.subscribe(self._on_credential_invalid, CredentialInvalid)
            )
        self._stop = asyncio.Event()
        await self.prober.probe()

        if background:
            refresh = self.settings.refresh
            if refresh.refresh_interval_s:
                self._spawn(self._refresh_loop(refresh.refresh_interval_s))
            if refresh.connectivity_poll_s:
                self._spawn(self.prober.watch(refresh.connectivity_poll_s, self._stop))
        logger.info(
            "Service started (online=%s, store=%s)",
            self.prober.is_online,
            getattr(self.store, "backend_id", type(self.store).__name__),
        )

    async def shutdown(self) -> None:
        self._stop.set()
        self.scheduler.cancel()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()
        await self.drain()
        logger.info("Service stopped")

    async def drain(self) -> None:
        """Wait for every background task spawned by the service."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _refresh_loop(self, interval_s: float) -> None:
        while not await wait_or_cancelled(self._stop, interval_s):
            try:
                await self.scheduler.run()
            except Exception:
                logger.exception("Background refresh failed")

    async def _refresh_open_location(self, location_id: str) -> None:
        try:
            await self.coordinator.refresh_location(location_id)
        except (KeyError, RuntimeError) as exc:
            logger.info("Open location %s not refreshed: %s", location_id, exc)

    def _on_connectivity(self, event: ConnectivityChanged) -> None:
        if event.online:
            self._spawn(self.scheduler.run())
            if self._open_location_id is not None and self.gateway.can_fetch:
                self._spawn(self._refresh_open_location(self._open_location_id))
        else:
            self.scheduler.cancel()

    def _on_credential_invalid(self, event: CredentialInvalid) -> None:
        logger.warning("Credential invalid (%s); cancelling scheduled work", event.message)
        self.gateway.mark_credential_rejected()
        self.scheduler.cancel()

    # Queries

    @property
    def is_online(self) -> bool:
        return self.prober.is_online

    @property
    def is_busy(self) -> bool:
        return self.scheduler.is_running or self.coordinator.is_busy

    def location_status(self, location_id: str) -> LocationStatus:
        self.catalog.location(location_id)
        topics = self.catalog.topics()
        if not topics:
            return "no_topics"
        if self.coordinator.is_fetching(location_id) or any(
            self.executor.is_in_flight(location_id, topic.id) for topic in topics
        ):
            return "fetching"
        ttl = self.settings.refresh.content_ttl_s
        states = [self.cache.freshness(location_id, topic.id, ttl) for topic in topics]
        if Freshness.ERRORED in states:
            return "has_error"
        if any(state.needs_refresh for state in states):
            return "stale"
        return "fresh"

    def outdated_count(self) -> int:
        """Number of (location, topic) pairs that are stale, errored or missing."""
        return len(
            collect_jobs(
                self.cache,
                self.catalog.locations(),
                self.catalog.topics(),
                ttl_s=self.settings.refresh.content_ttl_s,
                provider_id=self.gateway.provider_id,
            )
        )

    def location_view(self, location_id: str) -> LocationView:
        location = self.catalog.location(location_id)
        topics = self.catalog.topics()
        now = self.cache.clock()
        ttl = self.settings.refresh.content_ttl_s
        views: list[TopicView] = []
        stamps: list[float] = []
        for topic in topics:
            entry = self.cache.get(location.id, topic.id)
            freshness = classify(entry, now, ttl)
            if entry is None:
                views.append(TopicView(topic.id, topic.description, freshness))
                continue
            stamps.append(entry.fetched_at)
            views.append(
                TopicView(
                    topic_id=topic.id,
                    description=topic.description,
                    freshness=freshness,
                    text=entry.text,
                    is_error=entry.is_error,
                    fetched_at=entry.fetched_at,
                )
            )
        updated_at = min(stamps) if stamps else None
        return LocationView(
            location=location,
            status=self.location_status(location.id),
            topics=tuple(views),
            needs_refresh=any(view.freshness.needs_refresh for view in views),
            updated_at=updated_at,
            age_label=format_age(updated_at, now=now),
        )

    def status(self) -> dict[str, Any]:
        """Snapshot used by the HTTP status API and the CLI."""
        credential_status = self.prober.credential_status
        return {
            "online": self.prober.is_online,
            "provider": self.gateway.provider_id,
            "has_credential": self.gateway.config.has_credential,
            "credential_rejected": self.gateway.credential_rejected,
            "credential_status": credential_status.value if credential_status else None,
            "busy": self.is_busy,
            "scheduler_state": self.scheduler.state.value,
            "outdated_count": self.outdated_count(),
            "fetching": self.coordinator.fetching(),
            "locations": [
                {
                    "id": location.id,
                    "description": location.description,
                    "status": self.location_status(location.id),
                }
                for location in self.catalog.locations()
            ],
        }

    # Commands

    async def open_location(self, location_id: str) -> LocationView:
        """
        Mark `location_id` as the open location and refresh outdated topics.

        Refreshing only happens when online with a usable credential;
        otherwise the cached view is returned as-is.
        """
        self.catalog.location(location_id)
        self._open_location_id = location_id
        view = self.location_view(location_id)
        if view.needs_refresh and self.prober.is_online and self.gateway.can_fetch:
            await self.coordinator.refresh_location(location_id)
            view = self.location_view(location_id)
        return view

    async def refresh_location(
        self,
        location_id: str,
        *,
        force_all: bool = False,
        topic_ids: Sequence[str] | None = None,
    ) -> LocationRefreshResult:
        return await self.coordinator.refresh_location(
            location_id, force_all=force_all, topic_ids=topic_ids
        )

    async def refresh_outdated(self, *, force_all: bool = False) -> RefreshRunReport:
        return await self.scheduler.run(force_all=force_all)

    def start_refresh(self, *, force_all: bool = False) -> bool:
        """Start a scheduler run in the background; ``False`` if one is active."""
        if self.scheduler.is_running:
            return False
        self._spawn(self.scheduler.run(force_all=force_all))
        return True

    def cancel_refresh(self) -> bool:
        return self.scheduler.cancel()

    async def configure_provider(self, config: ProviderConfig) -> bool:
        """Persist and apply provider settings, then re-probe connectivity."""
        self.catalog.save_provider_config(config)
        self.gateway.configure(config)
        return await self.prober.probe()

    async def save_locations(self, locations: Sequence[Location]) -> list[str]:
        """
        Persist the location list and fetch every topic of new locations.

        Returns:
            Ids of the newly added locations.
        """
        added = self.catalog.save_locations(locations)
        if added and self.prober.is_online and self.gateway.can_fetch:
            await asyncio.gather(
                *(
                    self.coordinator.refresh_location(location_id, force_all=True)
                    for location_id in added
                )
            )
        return added

    def save_topics(self, topics: Sequence[Topic]) -> list[str]:
        return self.catalog.save_topics(topics)

    async def ambient_conditions(self, location_id: str) -> dict[str, Any] | None:
        location = self.catalog.location(location_id)
        if self.ambient is None:
            return None
        return await self.ambient.for_location(location)
