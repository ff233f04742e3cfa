"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Keyed string stores backing the cache and the catalog.
"""

from .base import KeyValueStore
from .factory import create_store, create_store_from_env
from .file import FileStore
from .inmemory import InMemoryStore
from .redis import RedisStore

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "FileStore",
    "RedisStore",
    "create_store",
    "create_store_from_env",
]
