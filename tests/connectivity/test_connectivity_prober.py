from __future__ import annotations

import asyncio

import pytest

from info2go.connectivity import ConnectivityProber
from info2go.events import ConnectivityChanged, EventHub
from info2go.gateway import ProviderGateway
from info2go.settings import ProviderConfig
from info2go.types import CredentialStatus


def run_async(coro):
    return asyncio.run(coro)


class _ValidatingProvider:
    provider_id = "primary"
    requires_model = False

    def __init__(self, status: CredentialStatus) -> None:
        self.status = status
        self.validations = 0

    async def generate(self, credential, subject, query, *, model=None, base_url=None):
        raise AssertionError("probe must not generate content")

    async def validate_credential(self, credential, *, base_url=None):
        _ = (credential, base_url)
        self.validations += 1
        await asyncio.sleep(0)
        return self.status


def _prober(status: CredentialStatus, *, signal: bool = True, credential: str | None = "key"):
    provider = _ValidatingProvider(status)
    gateway = ProviderGateway(
        ProviderConfig(credential=credential), provider_lookup=lambda provider_id: provider
    )
    events = EventHub()
    state = {"signal": signal}
    prober = ConnectivityProber(gateway, events, network_signal=lambda: state["signal"])
    return prober, provider, events, state


def test_negative_os_signal_is_offline_without_network_call():
    async def scenario() -> None:
        prober, provider, _, _ = _prober(CredentialStatus.VALID, signal=False)
        assert await prober.probe() is False
        assert not prober.is_online
        assert provider.validations == 0

    run_async(scenario())


@pytest.mark.parametrize(
    ("status", "online"),
    [
        (CredentialStatus.VALID, True),
        (CredentialStatus.INVALID, True),
        (CredentialStatus.RATE_LIMITED, True),
        (CredentialStatus.NETWORK_ERROR, False),
    ],
)
def test_validation_result_decides_online(status, online):
    prober, provider, _, _ = _prober(status)
    assert run_async(prober.probe()) is online
    assert prober.credential_status is status
    assert provider.validations == 1


def test_without_credential_os_signal_decides():
    prober, provider, _, _ = _prober(CredentialStatus.NETWORK_ERROR, credential=None)
    assert run_async(prober.probe()) is True
    assert provider.validations == 0


def test_transitions_publish_events_once():
    async def scenario() -> None:
        prober, _, events, state = _prober(CredentialStatus.VALID)
        assert not prober.has_probed

        await prober.probe()
        await prober.probe()
        state["signal"] = False
        await prober.notify_network_change()
        await prober.notify_network_change(online=False)
        state["signal"] = True
        await prober.notify_foreground()

        changes = [event.online for event in events.recent() if isinstance(event, ConnectivityChanged)]
        assert changes == [True, False, True]

    run_async(scenario())


def test_explicit_offline_notice_skips_probe():
    async def scenario() -> None:
        prober, provider, _, _ = _prober(CredentialStatus.VALID)
        await prober.probe()
        assert await prober.notify_network_change(online=False) is False
        assert not prober.is_online
        assert provider.validations == 1

    run_async(scenario())


def test_concurrent_probes_share_one_validation():
    async def scenario() -> None:
        prober, provider, _, _ = _prober(CredentialStatus.VALID)
        results = await asyncio.gather(prober.probe(), prober.probe(), prober.probe())
        assert results == [True, True, True]
        assert provider.validations == 1

    run_async(scenario())


def test_watch_polls_until_stopped():
    async def scenario() -> None:
        prober, provider, _, _ = _prober(CredentialStatus.VALID)
        stop = asyncio.Event()
        watcher = asyncio.ensure_future(prober.watch(0.01, stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(watcher, timeout=1)
        assert provider.validations >= 2
        assert prober.is_online

    run_async(scenario())


class _GatedProvider(_ValidatingProvider):
    def __init__(self, status: CredentialStatus) -> None:
        super().__init__(status)
        self.gate = asyncio.Event()

    async def validate_credential(self, credential, *, base_url=None):
        _ = (credential, base_url)
        self.validations += 1
        await self.gate.wait()
        return self.status


def test_offline_notice_voids_validation_in_flight():
    async def scenario() -> None:
        provider = _GatedProvider(CredentialStatus.VALID)
        gateway = ProviderGateway(ProviderConfig(credential="key"), provider_lookup=lambda provider_id: provider)
        events = EventHub()
        state = {"signal": True}
        prober = ConnectivityProber(gateway, events, network_signal=lambda: state["signal"])

        pending = asyncio.ensure_future(prober.probe())
        while provider.validations == 0:
            await asyncio.sleep(0)

        state["signal"] = False
        assert await prober.notify_network_change(online=False) is False
        provider.gate.set()

        assert await pending is False
        assert not prober.is_online
        changes = [event.online for event in events.recent() if isinstance(event, ConnectivityChanged)]
        assert changes == [False]

        state["signal"] = True
        assert await prober.probe() is True
        assert provider.validations == 2

    run_async(scenario())
