"""Key-value storage backends for the cache and persisted preferences."""

from .base import KeyValueStore
from .factory import build_store
from .memory import InMemoryKeyValueStore
from .redis import RedisKeyValueStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "build_store",
]
