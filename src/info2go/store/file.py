"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

JSON-document store that survives process restarts.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock

from ..errors import StoreError
from .base import KeyValueStore

logger = logging.getLogger("info2go.store.file")


class FileStore(KeyValueStore):
    """
    Keyed store persisted as one JSON object on disk.

    Every write rewrites the document into a sibling temp file and swaps it
    in with ``os.replace`` so readers never observe a torn file.

    Args:
        path: Location of the JSON document. Parent directories are created.
    """

    backend_id = "file"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = Lock()
        self._rows: dict[str, str] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if self._rows is not None:
            return self._rows
        if not self._path.exists():
            self._rows = {}
            return self._rows
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Unable to read store file {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Store file {self._path} does not hold a JSON object")
        self._rows = {str(k): str(v) for k, v in data.items()}
        return self._rows

    def _flush(self, rows: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(rows, handle, ensure_ascii=False, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("Temp file %s already removed", tmp_name)
            raise StoreError(f"Unable to write store file {self._path}: {exc}") from exc

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            rows = dict(self._load())
            rows[key] = value
            self._flush(rows)
            self._rows = rows

    def delete(self, key: str) -> None:
        with self._lock:
            rows = self._load()
            if key not in rows:
                return
            rows = dict(rows)
            rows.pop(key)
            self._flush(rows)
            self._rows = rows

    def delete_many(self, keys: list[str]) -> None:
        """Remove several keys with one document rewrite."""
        with self._lock:
            rows = dict(self._load())
            removed = False
            for key in keys:
                if rows.pop(key, None) is not None:
                    removed = True
            if removed:
                self._flush(rows)
                self._rows = rows

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._load() if key.startswith(prefix))
