"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Per-location fetch coordinator with single-flight semantics.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .cache import CacheStore
from .catalog import CatalogStore
from .errors import ConfigurationError
from .events import CredentialInvalid, EventHub, LocationRefreshFinished, LocationRefreshStarted
from .gateway import ProviderGateway
from .refresh import RefreshExecutor, collect_jobs, first_credential_failure
from .runtime.coalescing import RequestCoalescer
from .types import JobOutcome, Location

logger = logging.getLogger("info2go.coordinator")


@dataclass(frozen=True, slots=True)
class LocationRefreshResult:
    """Aggregated outcome of one location refresh run."""

    location_id: str
    outcomes: tuple[JobOutcome, ...] = ()

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def all_succeeded(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def credential_invalid(self) -> bool:
        return first_credential_failure(self.outcomes) is not None


class FetchCoordinator:
    """
    Refreshes the topics of one location at a time per location id.

    A second request for a location that is already fetching joins the
    running set and receives its result; it never starts duplicate calls.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        cache: CacheStore,
        gateway: ProviderGateway,
        executor: RefreshExecutor,
        events: EventHub,
        *,
        content_ttl_s: float = 3600.0,
    ) -> None:
        self._catalog = catalog
        self._cache = cache
        self._gateway = gateway
        self._executor = executor
        self._events = events
        self._content_ttl_s = content_ttl_s
        self._runs: RequestCoalescer[LocationRefreshResult] = RequestCoalescer()

    def is_fetching(self, location_id: str) -> bool:
        return self._runs.is_in_flight(location_id)

    def fetching(self) -> list[str]:
        return self._runs.in_flight()

    @property
    def is_busy(self) -> bool:
        return bool(self._runs.in_flight())

    async def refresh_location(
        self,
        location_id: str,
        *,
        force_all: bool = False,
        topic_ids: Iterable[str] | None = None,
    ) -> LocationRefreshResult:
        """
        Fetch the selected topics of `location_id` concurrently.

        Raises:
            UnknownLocationError: If the location is not in the catalog.
            ConfigurationError: If no credential is configured or the
                configured one was rejected.
        """
        location = self._catalog.location(location_id)
        if not self._gateway.config.has_credential:
            raise ConfigurationError("No API credential configured")
        if self._gateway.credential_rejected:
            raise ConfigurationError("API credential was rejected; reconfigure the provider")
        wanted = tuple(topic_ids) if topic_ids is not None else None
        if self.is_fetching(location_id):
            logger.info("Location %s already fetching; joining in-flight run", location_id)
        return await self._runs.run(
            location_id, lambda: self._run(location, force_all, wanted)
        )

    async def _run(
        self,
        location: Location,
        force_all: bool,
        topic_ids: tuple[str, ...] | None,
    ) -> LocationRefreshResult:
        jobs = collect_jobs(
            self._cache,
            [location],
            self._catalog.topics(),
            ttl_s=self._content_ttl_s,
            provider_id=self._gateway.provider_id,
            model=self._gateway.config.model,
            force_all=force_all,
            topic_ids=topic_ids,
        )
        result = LocationRefreshResult(location_id=location.id)
        await self._events.publish(
            LocationRefreshStarted(
                location_id=location.id,
                topic_ids=tuple(job.topic_id for job in jobs),
            )
        )
        try:
            if jobs:
                logger.info("Refreshing %d topic(s) for %s", len(jobs), location.id)
                outcomes = await self._executor.execute_all(jobs)
                result = LocationRefreshResult(location_id=location.id, outcomes=tuple(outcomes))
        finally:
            await self._events.publish(
                LocationRefreshFinished(
                    location_id=location.id,
                    all_succeeded=result.all_succeeded,
                    credential_invalid=result.credential_invalid,
                )
            )

        failure = first_credential_failure(result.outcomes)
        if failure is not None:
            logger.warning("Credential rejected while refreshing %s", location.id)
            await self._events.publish(
                CredentialInvalid(
                    location_id=failure.job.location_id,
                    topic_id=failure.job.topic_id,
                    message=failure.entry.text,
                )
            )
        return result
