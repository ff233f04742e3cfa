"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Core data types: catalog rows, cache entries and refresh jobs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal, Union
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorKind

AMBIENT_TOPIC_ID = "__ambient__"


def pair_key(location_id: str, topic_id: str) -> str:
    """Single-flight key for one (location, topic) pair."""
    return f"{quote(location_id, safe='')}/{quote(topic_id, safe='')}"


class Location(BaseModel):
    """One place the user tracks; `location` is the subject sent upstream."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    location: str
    latitude: float | None = None
    longitude: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Topic(BaseModel):
    """One generated section; `query` is the generating query."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    query: str


class FetchOk(BaseModel):
    """Successful fetch payload."""

    model_config = ConfigDict(frozen=True)

    status: Literal["ok"] = "ok"
    content: str


class FetchErr(BaseModel):
    """Failed fetch payload, stored in place of content."""

    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    kind: ErrorKind
    message: str


FetchResult = Annotated[Union[FetchOk, FetchErr], Field(discriminator="status")]


class CacheEntry(BaseModel):
    """One cached (location, topic) row."""

    model_config = ConfigDict(frozen=True)

    location_id: str
    topic_id: str
    result: FetchResult
    fetched_at: float

    @property
    def is_error(self) -> bool:
        return isinstance(self.result, FetchErr)

    @property
    def text(self) -> str:
        """Content for successes, error message for failures."""
        if isinstance(self.result, FetchErr):
            return self.result.message
        return self.result.content


class Freshness(str, Enum):
    """Staleness classification of one cache slot."""

    FRESH = "fresh"
    STALE = "stale"
    ERRORED = "errored"
    MISSING = "missing"

    @property
    def needs_refresh(self) -> bool:
        return self is not Freshness.FRESH


LocationStatus = Literal["fresh", "stale", "fetching", "has_error", "no_topics"]


class CredentialStatus(str, Enum):
    """Outcome of a cheap credential validation call."""

    VALID = "valid"
    INVALID = "invalid"
    RATE_LIMITED = "rate_limited"
    NETWORK_ERROR = "network_error"


@dataclass(frozen=True, slots=True)
class RefreshJob:
    """
    Ephemeral unit of refresh work for one (location, topic) pair.

    `provider_id` and `model` pin the target chosen when the job was
    collected; a job whose provider is no longer active is not sent.
    """

    location_id: str
    topic_id: str
    subject: str
    query: str
    provider_id: str
    model: str | None = None

    @property
    def key(self) -> str:
        return pair_key(self.location_id, self.topic_id)


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Settled result of one refresh job."""

    job: RefreshJob
    entry: CacheEntry

    @property
    def ok(self) -> bool:
        return not self.entry.is_error

    @property
    def error_kind(self) -> ErrorKind | None:
        result = self.entry.result
        if isinstance(result, FetchErr):
            return result.kind
        return None
