from __future__ import annotations

import pytest

from info2go.errors import ConfigurationError
from info2go.settings import DEFAULT_RPM_LIMIT, Info2GoSettings, ProviderConfig, RefreshSettings

_VARS = (
    "INFO2GO_PROVIDER",
    "INFO2GO_API_KEY",
    "INFO2GO_MODEL",
    "INFO2GO_BASE_URL",
    "INFO2GO_RPM_LIMIT",
    "INFO2GO_CONTENT_TTL_S",
    "INFO2GO_AMBIENT_TTL_S",
    "INFO2GO_BATCH_INTERVAL_S",
    "INFO2GO_REQUEST_TIMEOUT_S",
    "INFO2GO_REFRESH_INTERVAL_S",
    "INFO2GO_CONNECTIVITY_POLL_S",
    "INFO2GO_WEATHER_API_KEY",
    "OWM_API_KEY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Info2GoSettings.from_env()
    assert settings.provider.active_provider_id == "primary"
    assert not settings.provider.has_credential
    assert settings.provider.effective_rpm_limit == DEFAULT_RPM_LIMIT == 10
    assert settings.refresh == RefreshSettings()
    assert settings.weather_api_key is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("INFO2GO_PROVIDER", "alternate")
    monkeypatch.setenv("INFO2GO_API_KEY", "  sk-1 ")
    monkeypatch.setenv("INFO2GO_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("INFO2GO_RPM_LIMIT", "3")
    monkeypatch.setenv("INFO2GO_CONTENT_TTL_S", "120")
    monkeypatch.setenv("INFO2GO_REQUEST_TIMEOUT_S", "0")
    monkeypatch.setenv("OWM_API_KEY", "owm")

    settings = Info2GoSettings.from_env()

    assert settings.provider == ProviderConfig(
        active_provider_id="alternate", credential="sk-1", rpm_limit=3, model="gpt-4o-mini"
    )
    assert settings.refresh.content_ttl_s == 120.0
    assert settings.refresh.request_timeout_s is None
    assert settings.weather_api_key == "owm"


@pytest.mark.parametrize(
    "config",
    [
        ProviderConfig(active_provider_id="mystery"),
        ProviderConfig(rpm_limit=0),
        ProviderConfig(active_provider_id="alternate"),
    ],
)
def test_invalid_provider_configs(config):
    with pytest.raises(ConfigurationError):
        config.validate()


def test_provider_config_dict_roundtrip():
    config = ProviderConfig(credential="k", rpm_limit=7, base_url="https://x")
    assert ProviderConfig.from_dict(config.to_dict()) == config
    assert ProviderConfig.from_dict({}) == ProviderConfig()
