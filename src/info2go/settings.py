"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Provider and refresh settings with explicit environment loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any

from .errors import ConfigurationError

PRIMARY_PROVIDER = "primary"
ALTERNATE_PROVIDER = "alternate"
DEFAULT_RPM_LIMIT = 10


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Active provider selection, credential and request quota."""

    active_provider_id: str = PRIMARY_PROVIDER
    credential: str | None = None
    rpm_limit: int | None = None
    model: str | None = None
    base_url: str | None = None

    @property
    def has_credential(self) -> bool:
        return bool(self.credential)

    @property
    def effective_rpm_limit(self) -> int:
        """Requests-per-minute ceiling, defaulting when unset."""
        if self.rpm_limit is None:
            return DEFAULT_RPM_LIMIT
        return self.rpm_limit

    def validate(self) -> None:
        provider_id = self.active_provider_id.strip().lower()
        if provider_id not in (PRIMARY_PROVIDER, ALTERNATE_PROVIDER):
            raise ConfigurationError(
                f"Unknown provider '{self.active_provider_id}'. "
                f"Expected '{PRIMARY_PROVIDER}' or '{ALTERNATE_PROVIDER}'."
            )
        if self.rpm_limit is not None and self.rpm_limit <= 0:
            raise ConfigurationError("rpm_limit must be > 0")
        if provider_id == ALTERNATE_PROVIDER and not self.model:
            raise ConfigurationError("The alternate provider requires a model name")

    def to_dict(self) -> dict[str, Any]:
        return {
            "active_provider_id": self.active_provider_id,
            "credential": self.credential,
            "rpm_limit": self.rpm_limit,
            "model": self.model,
            "base_url": self.base_url,
        }

    @staticmethod
    def from_dict(row: dict[str, Any]) -> "ProviderConfig":
        rpm = row.get("rpm_limit")
        return ProviderConfig(
            active_provider_id=str(row.get("active_provider_id") or PRIMARY_PROVIDER),
            credential=row.get("credential") or None,
            rpm_limit=int(rpm) if rpm is not None else None,
            model=row.get("model") or None,
            base_url=row.get("base_url") or None,
        )

    @staticmethod
    def from_env() -> "ProviderConfig":
        """Load provider settings from `INFO2GO_*` environment variables."""
        rpm = _env_first("INFO2GO_RPM_LIMIT")
        return ProviderConfig(
            active_provider_id=_env_first("INFO2GO_PROVIDER", default=PRIMARY_PROVIDER)
            or PRIMARY_PROVIDER,
            credential=_env_first("INFO2GO_API_KEY"),
            rpm_limit=int(rpm) if rpm is not None else None,
            model=_env_first("INFO2GO_MODEL"),
            base_url=_env_first("INFO2GO_BASE_URL"),
        )


@dataclass(frozen=True, slots=True)
class RefreshSettings:
    """Freshness windows and pacing used by the refresh runtime."""

    content_ttl_s: float = 3600.0
    ambient_ttl_s: float = 600.0
    batch_interval_s: float = 60.0
    request_timeout_s: float | None = 30.0
    refresh_interval_s: float | None = 300.0
    connectivity_poll_s: float | None = 30.0

    @staticmethod
    def from_env() -> "RefreshSettings":
        timeout = _env_first("INFO2GO_REQUEST_TIMEOUT_S", default="30") or "30"
        interval = _env_first("INFO2GO_REFRESH_INTERVAL_S", default="300") or "300"
        poll = _env_first("INFO2GO_CONNECTIVITY_POLL_S", default="30") or "30"
        return RefreshSettings(
            content_ttl_s=float(_env_first("INFO2GO_CONTENT_TTL_S", default="3600") or "3600"),
            ambient_ttl_s=float(_env_first("INFO2GO_AMBIENT_TTL_S", default="600") or "600"),
            batch_interval_s=float(
                _env_first("INFO2GO_BATCH_INTERVAL_S", default="60") or "60"
            ),
            request_timeout_s=float(timeout) if float(timeout) > 0 else None,
            refresh_interval_s=float(interval) if float(interval) > 0 else None,
            connectivity_poll_s=float(poll) if float(poll) > 0 else None,
        )


@dataclass(frozen=True, slots=True)
class Info2GoSettings:
    """Top-level settings bundle consumed by `Info2GoService`."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    refresh: RefreshSettings = field(default_factory=RefreshSettings)
    weather_api_key: str | None = None

    @staticmethod
    def from_env() -> "Info2GoSettings":
        """Load all settings from environment variables."""
        return Info2GoSettings(
            provider=ProviderConfig.from_env(),
            refresh=RefreshSettings.from_env(),
            weather_api_key=_env_first("INFO2GO_WEATHER_API_KEY", "OWM_API_KEY"),
        )

    def with_provider(self, provider: ProviderConfig) -> "Info2GoSettings":
        return replace(self, provider=provider)
