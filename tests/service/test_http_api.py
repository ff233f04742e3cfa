from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from info2go.server import create_app
from info2go.service import Info2GoService
from info2go.settings import Info2GoSettings, ProviderConfig, RefreshSettings
from info2go.store import InMemoryStore
from info2go.types import CredentialStatus, Location, Topic


class _FakeProvider:
    provider_id = "primary"
    requires_model = False

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def generate(self, credential, subject, query, *, model=None, base_url=None):
        _ = (credential, model, base_url)
        self.calls.append((subject, query))
        return f"{subject} / {query}"

    async def validate_credential(self, credential, *, base_url=None):
        _ = (credential, base_url)
        return CredentialStatus.RATE_LIMITED


async def _no_wait(cancel_event, delay):
    _ = delay
    return cancel_event.is_set()


def _service(*, credential: str | None = "key") -> tuple[Info2GoService, _FakeProvider]:
    provider = _FakeProvider()
    service = Info2GoService(
        Info2GoSettings(
            provider=ProviderConfig(credential=credential),
            refresh=RefreshSettings(refresh_interval_s=None, connectivity_poll_s=None),
        ),
        InMemoryStore(),
        provider_lookup=lambda provider_id: provider,
        network_signal=lambda: True,
        pacer=_no_wait,
    )
    service.catalog.save_locations([Location(id="home", description="Home", location="Austin, TX")])
    service.catalog.save_topics(
        [
            Topic(id="news", description="News", query="local news"),
            Topic(id="food", description="Food", query="best tacos"),
        ]
    )
    return service, provider


def test_health_and_status_after_lifespan_start():
    service, _ = _service()
    with TestClient(create_app(service)) as client:
        health = client.get("/health")
        assert health.status_code == 200
        assert health.json()["status"] == "ok"
        assert health.json()["online"] is True

        status = client.get("/status").json()
        assert status["provider"] == "primary"
        assert status["credential_status"] == "rate_limited"
        assert [row["id"] for row in status["locations"]] == ["home"]


def test_location_routes():
    service, provider = _service()
    with TestClient(create_app(service, manage_lifecycle=False)) as client:
        view = client.get("/locations/home")
        assert view.status_code == 200
        assert view.json()["status"] == "stale"
        assert view.json()["age_label"] == "N/A"

        refreshed = client.post("/locations/home/refresh", params={"force": "true"})
        assert refreshed.status_code == 200
        assert refreshed.json() == {
            "location_id": "home",
            "attempted": 2,
            "all_succeeded": True,
            "credential_invalid": False,
        }
        assert len(provider.calls) == 2

        view = client.get("/locations/home").json()
        assert view["status"] == "fresh"
        assert [topic["text"] for topic in view["topics"]] == [
            "Austin, TX / local news",
            "Austin, TX / best tacos",
        ]

        events = client.get("/events", params={"limit": 5}).json()
        assert events[-1]["type"] == "LocationRefreshFinished"

        assert client.get("/locations/mars").status_code == 404
        assert client.post("/locations/mars/refresh").status_code == 404


def test_refresh_control_and_probe_routes():
    service, _ = _service()
    with TestClient(create_app(service, manage_lifecycle=False)) as client:
        accepted = client.post("/refresh")
        assert accepted.status_code == 202
        assert "accepted" in accepted.json()

        assert client.post("/refresh/cancel").json() in ({"cancelled": False}, {"cancelled": True})

        probe = client.post("/connectivity/probe").json()
        assert probe == {"online": True, "credential_status": "rate_limited"}


def test_missing_credential_is_a_conflict():
    service, provider = _service(credential=None)
    with TestClient(create_app(service, manage_lifecycle=False)) as client:
        response = client.post("/locations/home/refresh")
        assert response.status_code == 409
        assert "credential" in response.json()["detail"]
        assert provider.calls == []
