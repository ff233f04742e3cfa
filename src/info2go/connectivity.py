"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Connectivity prober combining the OS network signal with a credential check.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable

from .events import ConnectivityChanged, EventHub
from .gateway import ProviderGateway
from .metrics import NoOpRefreshMetrics, RefreshMetrics
from .runtime.coalescing import RequestCoalescer
from .runtime.timeouts import wait_or_cancelled
from .types import CredentialStatus

logger = logging.getLogger("info2go.connectivity")

NetworkSignal = Callable[[], bool]


def default_network_signal() -> bool:
    """
    OS-level reachability hint.

    Connecting a UDP socket sends no packets; it only fails when the host
    has no route out.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 53))
    except OSError:
        return False
    return True


class ConnectivityProber:
    """
    Tracks whether the provider is reachable.

    A negative OS signal means offline without any network call. With a
    credential configured, `validate_credential` decides: only
    ``network_error`` means offline, since ``invalid`` and ``rate_limited``
    prove the service answered. Without a credential the OS signal alone
    decides. Transitions publish `ConnectivityChanged`.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        events: EventHub,
        *,
        network_signal: NetworkSignal = default_network_signal,
        metrics: RefreshMetrics | None = None,
    ) -> None:
        self._gateway = gateway
        self._events = events
        self._network_signal = network_signal
        self._metrics = metrics or NoOpRefreshMetrics()
        self._online: bool | None = None
        self._credential_status: CredentialStatus | None = None
        self._probes: RequestCoalescer[bool] = RequestCoalescer()
        self._generation = 0

    @property
    def is_online(self) -> bool:
        """Last probed state; ``False`` until the first probe completes."""
        return bool(self._online)

    @property
    def has_probed(self) -> bool:
        return self._online is not None

    @property
    def credential_status(self) -> CredentialStatus | None:
        return self._credential_status

    async def probe(self) -> bool:
        """Re-evaluate connectivity; concurrent callers share one probe."""
        generation = self._generation
        return await self._probes.run(
            f"probe:{generation}", lambda: self._probe(generation)
        )

    async def _probe(self, generation: int) -> bool:
        if not self._network_signal():
            logger.debug("OS network signal is negative")
            online = False
        elif self._gateway.config.has_credential:
            status = await self._gateway.validate_credential()
            if generation != self._generation:
                # An offline notice arrived while validating.
                logger.debug("Discarding probe result superseded by an offline notice")
                return self.is_online
            self._credential_status = status
            online = status is not CredentialStatus.NETWORK_ERROR
        else:
            online = True
        self._metrics.incr(
            "connectivity_probes_total", tags={"online": "true" if online else "false"}
        )
        await self._set_online(online)
        return online

    async def _set_online(self, online: bool) -> None:
        previous = self._online
        self._online = online
        if previous is online:
            return
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        await self._events.publish(ConnectivityChanged(online=online))

    async def notify_network_change(self, online: bool | None = None) -> bool:
        """
        React to an OS online/offline transition.

        An explicit offline notice is applied immediately without probing
        and voids any probe still in flight.
        """
        if online is False:
            self._generation += 1
            await self._set_online(False)
            return False
        return await self.probe()

    async def notify_foreground(self) -> bool:
        return await self.probe()

    async def watch(self, interval_s: float, stop_event: asyncio.Event) -> None:
        """Probe every `interval_s` until `stop_event` is set."""
        while not stop_event.is_set():
            try:
                await self.probe()
            except Exception:
                logger.exception("Connectivity probe failed")
            if await wait_or_cancelled(stop_event, interval_s):
                return
