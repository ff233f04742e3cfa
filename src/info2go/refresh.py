"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Refresh job selection and the shared per-pair executor.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from .cache import CacheStore
from .errors import ConfigurationError, ErrorKind, ProviderError
from .events import EntryUpdated, EventHub
from .gateway import ProviderGateway
from .metrics import NoOpRefreshMetrics, RefreshMetrics
from .runtime.coalescing import RequestCoalescer
from .types import JobOutcome, Location, RefreshJob, Topic, pair_key

logger = logging.getLogger("info2go.refresh")


def collect_jobs(
    cache: CacheStore,
    locations: Iterable[Location],
    topics: Sequence[Topic],
    *,
    ttl_s: float,
    provider_id: str,
    model: str | None = None,
    force_all: bool = False,
    topic_ids: Iterable[str] | None = None,
) -> list[RefreshJob]:
    """
    Build refresh jobs in location order, then topic order.

    With `topic_ids` only those topics are selected regardless of age;
    otherwise a topic is selected when its entry is stale, errored or
    missing, or unconditionally with `force_all`.
    """
    wanted = set(topic_ids) if topic_ids is not None else None
    jobs: list[RefreshJob] = []
    for location in locations:
        for topic in topics:
            if wanted is not None:
                if topic.id not in wanted:
                    continue
            elif not force_all:
                freshness = cache.freshness(location.id, topic.id, ttl_s)
                if not freshness.needs_refresh:
                    continue
            jobs.append(
                RefreshJob(
                    location_id=location.id,
                    topic_id=topic.id,
                    subject=location.location,
                    query=topic.query,
                    provider_id=provider_id,
                    model=model,
                )
            )
    logger.debug("Collected %d refresh job(s)", len(jobs))
    return jobs


def partition(jobs: Sequence[RefreshJob], size: int) -> list[list[RefreshJob]]:
    """Split `jobs` into consecutive batches of at most `size`."""
    if size <= 0:
        raise ValueError("batch size must be > 0")
    return [list(jobs[start:start + size]) for start in range(0, len(jobs), size)]


class RefreshExecutor:
    """
    Runs refresh jobs and records every outcome in the cache.

    All pair fetches share one single-flight keyed by ``location/topic``,
    so the scheduler and the coordinator never request the same pair twice
    at once. `execute` never raises for a failed fetch: failures become
    error entries.
    """

    def __init__(
        self,
        cache: CacheStore,
        gateway: ProviderGateway,
        events: EventHub,
        *,
        metrics: RefreshMetrics | None = None,
    ) -> None:
        self._cache = cache
        self._gateway = gateway
        self._events = events
        self._metrics = metrics or NoOpRefreshMetrics()
        self._pairs: RequestCoalescer[JobOutcome] = RequestCoalescer()

    def is_in_flight(self, location_id: str, topic_id: str) -> bool:
        return self._pairs.is_in_flight(pair_key(location_id, topic_id))

    def in_flight(self) -> list[str]:
        return self._pairs.in_flight()

    async def execute(self, job: RefreshJob) -> JobOutcome:
        return await self._pairs.run(job.key, lambda: self._fetch(job))

    async def execute_all(self, jobs: Sequence[RefreshJob]) -> list[JobOutcome]:
        """Run `jobs` concurrently and wait for every one to settle."""
        if not jobs:
            return []
        return list(await asyncio.gather(*(self.execute(job) for job in jobs)))

    async def _fetch(self, job: RefreshJob) -> JobOutcome:
        try:
            content = await self._gateway.generate(
                job.subject, job.query, model=job.model, provider_id=job.provider_id
            )
        except ProviderError as exc:
            logger.warning(
                "Fetch failed for %s (%s): %s", job.key, exc.kind.value, exc.message
            )
            entry = self._cache.put_error(job.location_id, job.topic_id, exc.kind, exc.message)
        except ConfigurationError as exc:
            logger.warning("Fetch skipped for %s: %s", job.key, exc)
            entry = self._cache.put_error(
                job.location_id, job.topic_id, ErrorKind.UPSTREAM_REJECTED, str(exc)
            )
        except Exception as exc:
            logger.exception("Unexpected failure fetching %s", job.key)
            entry = self._cache.put_error(
                job.location_id,
                job.topic_id,
                ErrorKind.UPSTREAM_REJECTED,
                str(exc) or type(exc).__name__,
            )
        else:
            entry = self._cache.put(job.location_id, job.topic_id, content)

        outcome = JobOutcome(job=job, entry=entry)
        kind = outcome.error_kind
        self._metrics.incr(
            "refresh_jobs_total",
            tags={"outcome": "ok" if outcome.ok else "error", "kind": kind.value if kind else "none"},
        )
        await self._events.publish(EntryUpdated.from_entry(entry))
        return outcome


def first_credential_failure(outcomes: Iterable[JobOutcome]) -> JobOutcome | None:
    for outcome in outcomes:
        if outcome.error_kind is ErrorKind.INVALID_CREDENTIAL:
            return outcome
    return None


__all__ = [
    "RefreshExecutor",
    "collect_jobs",
    "first_credential_failure",
    "partition",
]
