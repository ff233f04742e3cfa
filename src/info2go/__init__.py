"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Freshness cache and quota-paced refresh runtime for per-location content.

Generated sections ("topics") for each tracked place ("location") are
cached with a timestamp, refreshed when outdated, and fetched within a
requests-per-minute quota through one of two content providers.

Quick start::

    from info2go import Info2GoService, Info2GoSettings, Location, Topic

    service = Info2GoService(Info2GoSettings.from_env())
    await service.save_locations([Location(id="home", description="Home", location="Austin, TX")])
    service.save_topics([Topic(id="news", description="News", query="local news today")])
    await service.start()
    report = await service.refresh_outdated()
"""

from .cache import CacheStore, classify, format_age
from .catalog import CatalogStore
from .connectivity import ConnectivityProber, default_network_signal
from .coordinator import FetchCoordinator, LocationRefreshResult
from .errors import (
    ConfigurationError,
    ErrorKind,
    Info2GoError,
    ProviderError,
    ProviderRegistryError,
    StoreError,
    UnknownLocationError,
)
from .events import EventHub
from .gateway import ProviderGateway
from .metrics import NoOpRefreshMetrics, PrometheusRefreshMetrics, RefreshMetrics
from .refresh import RefreshExecutor
from .scheduler import BatchScheduler, RefreshRunReport, SchedulerState
from .service import Info2GoService, LocationView, TopicView
from .settings import Info2GoSettings, ProviderConfig, RefreshSettings
from .types import (
    CacheEntry,
    CredentialStatus,
    FetchErr,
    FetchOk,
    Freshness,
    JobOutcome,
    Location,
    RefreshJob,
    Topic,
)

__all__ = [
    "BatchScheduler",
    "CacheEntry",
    "CacheStore",
    "CatalogStore",
    "ConfigurationError",
    "ConnectivityProber",
    "CredentialStatus",
    "ErrorKind",
    "EventHub",
    "FetchCoordinator",
    "FetchErr",
    "FetchOk",
    "Freshness",
    "Info2GoError",
    "Info2GoService",
    "Info2GoSettings",
    "JobOutcome",
    "Location",
    "LocationRefreshResult",
    "LocationView",
    "NoOpRefreshMetrics",
    "PrometheusRefreshMetrics",
    "ProviderConfig",
    "ProviderError",
    "ProviderGateway",
    "ProviderRegistryError",
    "RefreshExecutor",
    "RefreshJob",
    "RefreshMetrics",
    "RefreshRunReport",
    "RefreshSettings",
    "SchedulerState",
    "StoreError",
    "Topic",
    "TopicView",
    "UnknownLocationError",
    "classify",
    "default_network_signal",
    "format_age",
]
