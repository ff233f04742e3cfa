from __future__ import annotations

import asyncio

import httpx
import pytest

from info2go.errors import ErrorKind, ProviderError, UnknownLocationError
from info2go.events import CredentialInvalid
from info2go.runtime import wait_or_cancelled
from info2go.scheduler import SchedulerState
from info2go.service import Info2GoService
from info2go.settings import Info2GoSettings, ProviderConfig, RefreshSettings
from info2go.store import InMemoryStore
from info2go.types import CredentialStatus, Location, Topic


def run_async(coro):
    return asyncio.run(coro)


class _Clock:
    def __init__(self) -> None:
        self.now = 200_000.0

    def __call__(self) -> float:
        return self.now


class _FakeProvider:
    provider_id = "primary"
    requires_model = False

    def __init__(self, *, failures=None, gate: asyncio.Event | None = None) -> None:
        self.failures = failures or {}
        self.gate = gate
        self.calls: list[tuple[str, str]] = []

    async def generate(self, credential, subject, query, *, model=None, base_url=None):
        _ = (credential, model, base_url)
        self.calls.append((subject, query))
        if self.gate is not None:
            await self.gate.wait()
        kind = self.failures.get((subject, query))
        if kind is not None:
            raise ProviderError(kind, f"{kind.value} for {subject}")
        return f"{subject} / {query}"

    async def validate_credential(self, credential, *, base_url=None):
        _ = (credential, base_url)
        return CredentialStatus.VALID


async def _no_wait(cancel_event: asyncio.Event, delay: float) -> bool:
    _ = delay
    return cancel_event.is_set()


def _service(
    *,
    provider=None,
    online: bool = True,
    credential: str | None = "key",
    rpm: int | None = None,
    pacer=_no_wait,
    store=None,
    weather_key: str | None = None,
    weather_transport=None,
    topics: int = 3,
):
    provider = provider or _FakeProvider()
    network = {"online": online}
    settings = Info2GoSettings(
        provider=ProviderConfig(credential=credential, rpm_limit=rpm),
        refresh=RefreshSettings(refresh_interval_s=None, connectivity_poll_s=None),
        weather_api_key=weather_key,
    )
    clock = _Clock()
    service = Info2GoService(
        settings,
        store if store is not None else InMemoryStore(),
        provider_lookup=lambda provider_id: provider,
        network_signal=lambda: network["online"],
        pacer=pacer,
        clock=clock,
        weather_transport=weather_transport,
    )
    service.catalog.save_locations(
        [
            Location(id="home", description="Home", location="Austin, TX", latitude=30.2, longitude=-97.7),
            Location(id="work", description="Work", location="Dallas, TX"),
        ]
    )
    service.catalog.save_topics(
        [Topic(id=f"t{index}", description=f"Topic {index}", query=f"query {index}") for index in range(topics)]
    )
    return service, provider, network, clock


def test_start_online_refreshes_outdated_content():
    async def scenario() -> None:
        service, provider, _, _ = _service()
        assert service.outdated_count() == 6

        await service.start()
        await service.drain()

        assert service.is_online
        assert len(provider.calls) == 6
        assert service.outdated_count() == 0
        assert service.location_status("home") == "fresh"
        await service.shutdown()

    run_async(scenario())


def test_start_offline_does_not_fetch():
    async def scenario() -> None:
        service, provider, _, _ = _service(online=False)
        await service.start()
        await service.drain()
        assert not service.is_online
        assert provider.calls == []
        assert service.location_status("home") == "stale"
        await service.shutdown()

    run_async(scenario())


def test_open_location_refreshes_and_builds_view():
    async def scenario() -> None:
        service, provider, _, clock = _service()
        await service.prober.probe()

        view = await service.open_location("home")

        assert len(provider.calls) == 3
        assert view.status == "fresh"
        assert not view.needs_refresh
        assert view.updated_at == clock.now
        assert view.age_label == "0s ago"
        assert [topic.text for topic in view.topics] == [
            "Austin, TX / query 0",
            "Austin, TX / query 1",
            "Austin, TX / query 2",
        ]
        assert view.to_dict()["topics"][0]["freshness"] == "fresh"

        clock.now += 300
        again = await service.open_location("home")
        assert again.age_label == "5m ago"
        assert len(provider.calls) == 3

    run_async(scenario())


def test_open_location_offline_returns_cached_view():
    async def scenario() -> None:
        service, provider, _, _ = _service(online=False)
        await service.prober.probe()

        view = await service.open_location("home")

        assert provider.calls == []
        assert view.needs_refresh
        assert view.age_label == "N/A"
        assert all(topic.text is None for topic in view.topics)
        with pytest.raises(UnknownLocationError):
            await service.open_location("mars")

    run_async(scenario())


def test_location_status_precedence():
    async def scenario() -> None:
        gate = asyncio.Event()
        failures = {("Dallas, TX", "query 0"): ErrorKind.UPSTREAM_REJECTED}
        service, _, _, _ = _service(provider=_FakeProvider(failures=failures, gate=gate))
        await service.prober.probe()

        task = asyncio.ensure_future(service.refresh_location("work"))
        await asyncio.sleep(0)
        assert service.location_status("work") == "fetching"
        assert service.is_busy

        gate.set()
        result = await task
        assert not result.all_succeeded
        assert service.location_status("work") == "has_error"
        assert service.location_status("home") == "stale"
        assert not service.is_busy

        service.save_topics([])
        assert service.location_status("home") == "no_topics"

    run_async(scenario())


def test_going_offline_cancels_scheduled_run():
    async def scenario() -> None:
        service, provider, network, _ = _service(rpm=2, pacer=wait_or_cancelled)
        await service.start()
        await asyncio.wait_for(_until(lambda: service.scheduler.state is SchedulerState.BATCH_WAITING), 2)

        network["online"] = False
        await service.prober.notify_network_change(online=False)
        await asyncio.wait_for(service.drain(), 2)

        assert not service.scheduler.is_running
        assert len(provider.calls) == 2
        assert service.outdated_count() == 4

        refused = await service.refresh_outdated()
        assert refused.skipped_reason == "offline"
        await service.shutdown()

    run_async(scenario())


def test_credential_invalid_event_cancels_scheduled_run():
    async def scenario() -> None:
        service, provider, _, _ = _service(rpm=2, pacer=wait_or_cancelled)
        await service.start()
        await asyncio.wait_for(_until(lambda: service.scheduler.state is SchedulerState.BATCH_WAITING), 2)

        await service.events.publish(CredentialInvalid(location_id="home", topic_id="t0", message="bad key"))
        await asyncio.wait_for(service.drain(), 2)

        assert len(provider.calls) == 2
        await service.shutdown()

    run_async(scenario())


def test_save_locations_fetches_new_locations():
    async def scenario() -> None:
        service, provider, _, _ = _service()
        await service.prober.probe()
        current = service.catalog.locations()

        added = await service.save_locations(
            [*current, Location(id="lake", description="Lake", location="Lake Travis")]
        )

        assert added == ["lake"]
        assert sorted(provider.calls) == [("Lake Travis", f"query {index}") for index in range(3)]
        assert service.location_status("lake") == "fresh"

    run_async(scenario())


def test_configure_provider_persists_and_reprobes():
    async def scenario() -> None:
        store = InMemoryStore()
        service, _, _, _ = _service(store=store, credential=None)
        assert (await service.refresh_outdated()).skipped_reason == "no_credential"

        online = await service.configure_provider(
            ProviderConfig(active_provider_id="alternate", credential="sk", model="m", rpm_limit=4)
        )
        assert online
        assert service.prober.credential_status is CredentialStatus.VALID
        assert service.gateway.provider_id == "alternate"

        reopened = Info2GoService(Info2GoSettings(), store)
        assert reopened.gateway.config.credential == "sk"
        assert reopened.gateway.config.effective_rpm_limit == 4

    run_async(scenario())


def test_ambient_conditions_use_weather_key():
    async def scenario() -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            _ = request
            return httpx.Response(200, json={"current": {"temp": 90}})

        service, _, _, _ = _service(weather_key="owm", weather_transport=httpx.MockTransport(handler))
        assert await service.ambient_conditions("home") == {"temp": 90}
        assert await service.ambient_conditions("work") is None
        assert service.outdated_count() == 6

        plain, _, _, _ = _service()
        assert await plain.ambient_conditions("home") is None

    run_async(scenario())


def test_background_loops_stop_on_shutdown():
    async def scenario() -> None:
        service, _, _, _ = _service()
        service.settings = Info2GoSettings(
            provider=service.settings.provider,
            refresh=RefreshSettings(refresh_interval_s=0.01, connectivity_poll_s=0.01),
        )
        await service.start(background=True)
        await asyncio.sleep(0.05)
        await asyncio.wait_for(service.shutdown(), 2)
        assert service.outdated_count() == 0
        assert not service.is_busy

    run_async(scenario())


async def _until(predicate) -> None:
    while not predicate():
        await asyncio.sleep(0)


def test_rejected_credential_pauses_fetching_until_reconfigured():
    async def scenario() -> None:
        failures = {
            (city, f"query {index}"): ErrorKind.INVALID_CREDENTIAL
            for city in ("Austin, TX", "Dallas, TX")
            for index in range(3)
        }
        provider = _FakeProvider(failures=failures)
        service, _, _, _ = _service(provider=provider)
        await service.start()
        await service.drain()
        calls = len(provider.calls)
        assert calls > 0
        assert service.status()["credential_rejected"]

        assert (await service.refresh_outdated()).skipped_reason == "credential_invalid"
        assert (await service.refresh_outdated(force_all=True)).skipped_reason == "credential_invalid"
        view = await service.open_location("home")
        assert view.needs_refresh
        assert len(provider.calls) == calls

        provider.failures = {}
        assert await service.configure_provider(ProviderConfig(credential="new-key"))
        report = await service.refresh_outdated()
        assert report.result == "completed"
        assert service.outdated_count() == 0
        assert not service.status()["credential_rejected"]
        await service.shutdown()

    run_async(scenario())
