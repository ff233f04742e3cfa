"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers for selecting store backends by id or from environment variables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from ..errors import StoreError
from ..settings import _env_first
from .base import KeyValueStore
from .file import FileStore
from .inmemory import InMemoryStore

DEFAULT_STORE_PATH = Path("~/.info2go/store.json")

_ALIASES = {
    "mem": "inmemory",
    "memory": "inmemory",
    "in_memory": "inmemory",
    "inmemory": "inmemory",
    "file": "file",
    "redis": "redis",
}


def _redis_client_from_env() -> Any:
    try:
        import redis
    except ModuleNotFoundError as exc:  # pragma: no cover
        raise RuntimeError(
            "Redis store backend requires `redis` to be installed."
        ) from exc

    url = _env_first("INFO2GO_REDIS_URL")
    if not url:
        host = _env_first("INFO2GO_REDIS_HOST", default="localhost") or "localhost"
        port = _env_first("INFO2GO_REDIS_PORT", default="6379") or "6379"
        db = _env_first("INFO2GO_REDIS_DB", default="0") or "0"
        password = _env_first("INFO2GO_REDIS_PASSWORD", default="") or ""
        if password:
            url = f"redis://:{password}@{host}:{port}/{db}"
        else:
            url = f"redis://{host}:{port}/{db}"

    return redis.Redis.from_url(url)


def create_store(
    backend: str | KeyValueStore | None = None,
    *,
    path: str | Path | None = None,
    redis_client: Any | None = None,
    redis_prefix: str = "info2go",
) -> KeyValueStore:
    """
    Resolve a store from a backend id or pass an instance through.

    Every call with an id builds a new backend; ``None`` means a private
    in-memory store. `path` applies to ``file`` and defaults to
    `DEFAULT_STORE_PATH`. ``redis`` uses `redis_client` when given,
    otherwise a client built from the `INFO2GO_REDIS_*` variables.

    Raises:
        StoreError: If `backend` is not a known backend id.
    """
    if backend is None:
        return InMemoryStore()
    if not isinstance(backend, str):
        return backend

    kind = _ALIASES.get(backend.strip().lower())
    if kind == "inmemory":
        return InMemoryStore()
    if kind == "file":
        return FileStore(Path(path) if path else DEFAULT_STORE_PATH)
    if kind == "redis":
        from .redis import RedisStore

        client = redis_client if redis_client is not None else _redis_client_from_env()
        return RedisStore(client, prefix=redis_prefix)
    raise StoreError(f"Unknown store backend '{backend}'")


def create_store_from_env(*, redis_client: Any | None = None) -> KeyValueStore:
    """
    Create a store backend from `INFO2GO_STORE_*` environment variables.

    Backends:
    - `file` (default), JSON document at `INFO2GO_STORE_PATH`
    - `inmemory`
    - `redis`

    Redis resolution:
    - Uses the provided `redis_client` when supplied.
    - Otherwise builds a client from `INFO2GO_REDIS_URL`.
    - If no URL is set, falls back to host/port/db/password variables.
    """
    backend = (_env_first("INFO2GO_STORE_BACKEND", default="file") or "file").lower()
    if backend not in _ALIASES:
        raise ValueError(f"Unknown INFO2GO_STORE_BACKEND: {backend}")

    return create_store(
        backend,
        path=_env_first("INFO2GO_STORE_PATH"),
        redis_client=redis_client,
        redis_prefix=_env_first("INFO2GO_REDIS_PREFIX", default="info2go") or "info2go",
    )
