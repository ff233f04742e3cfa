from __future__ import annotations

import pytest

from info2go.cli import main, parse_args
from info2go.service import Info2GoService
from info2go.settings import Info2GoSettings, ProviderConfig
from info2go.store import InMemoryStore
from info2go.types import CredentialStatus, Location, Topic


class _FakeProvider:
    provider_id = "primary"
    requires_model = False

    async def generate(self, credential, subject, query, *, model=None, base_url=None):
        _ = (credential, model, base_url)
        return f"{subject} / {query}"

    async def validate_credential(self, credential, *, base_url=None):
        _ = (credential, base_url)
        return CredentialStatus.VALID


def _factory(*, online: bool = True):
    def build() -> Info2GoService:
        service = Info2GoService(
            Info2GoSettings(provider=ProviderConfig(credential="key")),
            InMemoryStore(),
            provider_lookup=lambda provider_id: _FakeProvider(),
            network_signal=lambda: online,
        )
        service.catalog.save_locations([Location(id="home", description="Home", location="Austin, TX")])
        service.catalog.save_topics([Topic(id="news", description="News", query="local news")])
        return service

    return build


def test_parse_args_commands():
    assert parse_args(["refresh", "--force"]).force is True
    assert parse_args(["show", "home"]).location == "home"
    serve = parse_args(["serve", "--port", "9000"])
    assert (serve.host, serve.port) == ("127.0.0.1", 9000)
    with pytest.raises(SystemExit):
        parse_args([])


def test_status_command(capsys):
    assert main(["status"], service_factory=_factory()) == 0
    out = capsys.readouterr().out
    assert "online=true" in out
    assert "credential_status=valid" in out
    assert "outdated_count=1" in out
    assert "home\tstale\tHome" in out


def test_refresh_command(capsys):
    assert main(["refresh"], service_factory=_factory()) == 0
    out = capsys.readouterr().out
    assert "result=completed" in out
    assert "succeeded=1" in out


def test_refresh_command_offline(capsys):
    assert main(["refresh"], service_factory=_factory(online=False)) == 0
    assert "result=skipped_offline" in capsys.readouterr().out


def test_show_command(capsys):
    assert main(["show", "home"], service_factory=_factory()) == 0
    out = capsys.readouterr().out
    assert "Home (Austin, TX)" in out
    assert "## News" in out
    assert "Austin, TX / local news" in out


def test_show_unknown_location_fails(capsys):
    assert main(["show", "mars"], service_factory=_factory()) == 1
    assert "Unknown location 'mars'" in capsys.readouterr().err


def test_probe_command(capsys):
    assert main(["probe"], service_factory=_factory(online=False)) == 0
    out = capsys.readouterr().out
    assert "online=false" in out
    assert "credential_status=unknown" in out


def test_serve_command_runs_uvicorn(monkeypatch):
    uvicorn = pytest.importorskip("uvicorn")
    calls: list[dict] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

    assert main(["serve", "--port", "9001"], service_factory=_factory()) == 0
    assert calls == [{"host": "127.0.0.1", "port": 9001}]
