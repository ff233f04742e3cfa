"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Quota-paced batch scheduler for refreshing every outdated pair.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from .cache import CacheStore
from .catalog import CatalogStore
from .events import (
    BatchStarted,
    CredentialInvalid,
    EventHub,
    GlobalRefreshFinished,
    GlobalRefreshStarted,
)
from .gateway import ProviderGateway
from .metrics import NoOpRefreshMetrics, RefreshMetrics
from .refresh import RefreshExecutor, collect_jobs, first_credential_failure, partition
from .runtime.timeouts import wait_or_cancelled

logger = logging.getLogger("info2go.scheduler")

Pacer = Callable[[asyncio.Event, float], Awaitable[bool]]


class SchedulerState(str, Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    BATCH_RUNNING = "batch_running"
    BATCH_WAITING = "batch_waiting"


@dataclass(slots=True)
class RefreshRunReport:
    """
    Summary of one `BatchScheduler.run` call.

    `started` is ``False`` when the call was a no-op; `skipped_reason` then
    says why: ``already_running``, ``no_credential``, ``credential_invalid``
    (the configured credential was rejected earlier) or ``offline``.
    """

    started: bool
    skipped_reason: str | None = None
    collected: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    pacing_waits: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    credential_invalid: bool = False

    @property
    def batches(self) -> int:
        return len(self.batch_sizes)

    @property
    def result(self) -> str:
        if not self.started:
            return f"skipped_{self.skipped_reason}"
        if self.credential_invalid:
            return "credential_invalid"
        if self.cancelled:
            return "cancelled"
        return "completed"


class BatchScheduler:
    """
    Refreshes all outdated (location, topic) pairs within the request quota.

    Pairs are split into batches of ``rpm_limit``; batches run one after
    another with a pacing wait of `batch_interval_s` in between. Only one
    run is active at a time; `cancel` stops a run before its next batch
    and interrupts the pacing wait.

    Args:
        is_online: Connectivity gate checked before a run starts.
        pacer: Awaitable wait used between batches; returns ``True`` when
            woken by cancellation. Tests inject a fake.
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
        batch_interval_s: float = 60.0,
        is_online: Callable[[], bool] = lambda: True,
        metrics: RefreshMetrics | None = None,
        pacer: Pacer = wait_or_cancelled,
    ) -> None:
        self._catalog = catalog
        self._cache = cache
        self._gateway = gateway
        self._executor = executor
        self._events = events
        self._content_ttl_s = content_ttl_s
        self._batch_interval_s = batch_interval_s
        self._is_online = is_online
        self._metrics = metrics or NoOpRefreshMetrics()
        self._pacer = pacer
        self._lock = asyncio.Lock()
        self._cancel = asyncio.Event()
        self._state = SchedulerState.IDLE

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def cancel(self) -> bool:
        """Request the active run to stop. Returns whether a run was active."""
        if not self._lock.locked():
            return False
        logger.info("Cancelling refresh run (state=%s)", self._state.value)
        self._cancel.set()
        return True

    async def run(self, *, force_all: bool = False) -> RefreshRunReport:
        # No await between the check and the acquire below.
        if self._lock.locked():
            logger.info("Refresh already running; ignoring start request")
            return self._skipped("already_running")
        if not self._gateway.config.has_credential:
            logger.info("No API credential configured; refresh skipped")
            return self._skipped("no_credential")
        if self._gateway.credential_rejected:
            logger.info("API credential was rejected; refresh skipped until reconfigured")
            return self._skipped("credential_invalid")
        if not self._is_online():
            logger.info("Offline; refresh skipped")
            return self._skipped("offline")

        async with self._lock:
            self._cancel = asyncio.Event()
            report = RefreshRunReport(started=True)
            try:
                await self._run(report, force_all)
            finally:
                self._state = SchedulerState.IDLE
                self._metrics.incr("refresh_runs_total", tags={"result": report.result})
            return report

    def _skipped(self, reason: str) -> RefreshRunReport:
        report = RefreshRunReport(started=False, skipped_reason=reason)
        self._metrics.incr("refresh_runs_total", tags={"result": report.result})
        return report

    async def _run(self, report: RefreshRunReport, force_all: bool) -> None:
        self._state = SchedulerState.COLLECTING
        config = self._gateway.config
        jobs = collect_jobs(
            self._cache,
            self._catalog.locations(),
            self._catalog.topics(),
            ttl_s=self._content_ttl_s,
            provider_id=self._gateway.provider_id,
            model=config.model,
            force_all=force_all,
        )
        report.collected = len(jobs)
        if not jobs:
            logger.info("All content is fresh; nothing to refresh")
            return

        batches = partition(jobs, config.effective_rpm_limit)
        logger.info(
            "Refreshing %d pair(s) in %d batch(es) of up to %d",
            len(jobs),
            len(batches),
            config.effective_rpm_limit,
        )
        await self._events.publish(
            GlobalRefreshStarted(total_jobs=len(jobs), total_batches=len(batches))
        )
        try:
            for index, batch in enumerate(batches):
                if self._cancel.is_set():
                    report.cancelled = True
                    break

                self._state = SchedulerState.BATCH_RUNNING
                report.batch_sizes.append(len(batch))
                self._metrics.incr("refresh_batches_total")
                await self._events.publish(
                    BatchStarted(index=index, size=len(batch), total_batches=len(batches))
                )
                outcomes = await self._executor.execute_all(batch)
                for outcome in outcomes:
                    if outcome.ok:
                        report.succeeded += 1
                    else:
                        report.failed += 1

                failure = first_credential_failure(outcomes)
                if failure is not None:
                    report.credential_invalid = True
                    logger.warning(
                        "Credential rejected; skipping %d remaining batch(es)",
                        len(batches) - index - 1,
                    )
                    await self._events.publish(
                        CredentialInvalid(
                            location_id=failure.job.location_id,
                            topic_id=failure.job.topic_id,
                            message=failure.entry.text,
                        )
                    )
                    break

                if index == len(batches) - 1:
                    break
                if self._cancel.is_set():
                    report.cancelled = True
                    break
                self._state = SchedulerState.BATCH_WAITING
                report.pacing_waits += 1
                logger.debug("Waiting %.0fs before batch %d", self._batch_interval_s, index + 2)
                if await self._pacer(self._cancel, self._batch_interval_s):
                    report.cancelled = True
                    break
        finally:
            if report.cancelled:
                logger.info("Refresh run cancelled after %d batch(es)", report.batches)
            await self._events.publish(
                GlobalRefreshFinished(
                    succeeded=report.succeeded,
                    failed=report.failed,
                    cancelled=report.cancelled,
                    credential_invalid=report.credential_invalid,
                )
            )
