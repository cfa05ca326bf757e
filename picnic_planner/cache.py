"""Keyed TTL cache over a pluggable key-value store.

Entries are JSON envelopes ``{"ts": <epoch seconds>, "ttl": <seconds>, "data": ...}``
stored under a structured key. Reads never delete: an expired entry simply
reads as absent until it is overwritten or invalidated. A stored value that
cannot be decoded also reads as absent.
"""

from __future__ import annotations

import datetime as dt
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple, TypeVar, Union

from picnic_planner.errors import CacheCorruptionError
from picnic_planner.kv_store import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache")

T = TypeVar("T")

SEPARATOR = ":"


def _canonical(value: Any) -> Any:
    """Normalise one key dimension so equal queries serialise identically."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    raise TypeError(f"Unsupported cache key dimension type: {type(value).__name__}")


@dataclass(frozen=True)
class CacheKey:
    """Structured cache identity: namespace, named dimensions and a version tag.

    Dimensions are held sorted by name, so ``CacheKey.build("f", a=1, b=2)``
    and ``CacheKey.build("f", b=2, a=1)`` are the same key.
    """
    namespace: str
    dimensions: Tuple[Tuple[str, Any], ...]
    version: str

    def __post_init__(self) -> None:
        for part in (self.namespace, self.version):
            if not part or SEPARATOR in part:
                raise ValueError(f"Invalid cache key segment: {part!r}")

    @classmethod
    def build(cls, namespace: str, *, version: str, **dimensions: Any) -> "CacheKey":
        items = tuple(sorted((name, _canonical(v)) for name, v in dimensions.items()))
        return cls(namespace=namespace, dimensions=items, version=version)

    def serialize(self, prefix: str) -> str:
        body = json.dumps(dict(self.dimensions), sort_keys=True, separators=(",", ":"))
        return SEPARATOR.join((prefix, self.version, self.namespace, body))


KeyLike = Union[CacheKey, str]


class KeyedTTLCache:
    """Store/read/invalidate payloads with per-entry TTL."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        prefix: str = "wx",
        version: str = "v3",
        default_ttl: float = 6 * 60 * 60,
    ) -> None:
        if not prefix or SEPARATOR in prefix:
            raise ValueError(f"Invalid cache prefix: {prefix!r}")
        self.store = store
        self.prefix = prefix
        self.version = version
        self.default_ttl = default_ttl

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def key(self, namespace: str, **dimensions: Any) -> CacheKey:
        """Build a key under the current version tag."""
        return CacheKey.build(namespace, version=self.version, **dimensions)

    def _serialize(self, key: KeyLike) -> str:
        if isinstance(key, CacheKey):
            return key.serialize(self.prefix)
        return key

    @property
    def _root(self) -> str:
        return f"{self.prefix}{SEPARATOR}"

    @property
    def _current_root(self) -> str:
        return f"{self.prefix}{SEPARATOR}{self.version}{SEPARATOR}"

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def put(self, key: KeyLike, payload: Any, ttl: Optional[float] = None) -> None:
        """Store ``payload`` stamped with the current time, replacing any prior entry."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl < 0:
            raise ValueError("ttl must be non-negative")
        envelope = {"ts": time.time(), "ttl": ttl, "data": payload}
        skey = self._serialize(key)
        self.store.set(skey, json.dumps(envelope, separators=(",", ":")))
        logger.debug("Cache put", extra={"key": skey, "ttl": ttl})

    @staticmethod
    def _decode_envelope(raw: str) -> Mapping[str, Any]:
        try:
            envelope = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise CacheCorruptionError("entry is not valid JSON") from exc
        if not isinstance(envelope, dict) or not {"ts", "ttl", "data"} <= envelope.keys():
            raise CacheCorruptionError("entry is missing envelope fields")
        if not all(isinstance(envelope[f], (int, float)) and not isinstance(envelope[f], bool)
                   for f in ("ts", "ttl")):
            raise CacheCorruptionError("entry timestamp or ttl is not numeric")
        return envelope

    def get(self, key: KeyLike, decode: Optional[Callable[[Any], T]] = None) -> Optional[T]:
        """Return the payload if present and fresh, else None.

        ``decode`` turns the stored JSON payload into a typed value; any
        exception it raises is treated as corruption, i.e. a miss.
        """
        skey = self._serialize(key)
        raw = self.store.get(skey)
        if raw is None:
            logger.debug("Cache miss", extra={"key": skey})
            return None
        try:
            envelope = self._decode_envelope(raw)
        except CacheCorruptionError as exc:
            logger.warning("Ignoring corrupt cache entry", extra={"key": skey, "error": str(exc)})
            return None
        age = time.time() - envelope["ts"]
        if age >= envelope["ttl"]:
            logger.debug("Cache entry expired", extra={"key": skey, "age": age})
            return None
        data = envelope["data"]
        if decode is None:
            logger.debug("Cache hit", extra={"key": skey})
            return data
        try:
            value = decode(data)
        except Exception as exc:
            err = CacheCorruptionError(f"payload could not be decoded: {exc}")
            logger.warning("Ignoring undecodable cache payload", extra={"key": skey, "error": str(err)})
            return None
        logger.debug("Cache hit", extra={"key": skey})
        return value

    def invalidate(self, predicate: Union[str, Callable[[str], bool]]) -> int:
        """Delete every entry whose serialized key matches a prefix or predicate.

        Only keys under this cache's prefix are considered. Returns the number
        of entries removed.
        """
        matches = predicate if callable(predicate) else (lambda k, p=predicate: k.startswith(p))
        removed = 0
        for skey in self.store.keys(self._root):
            if matches(skey):
                self.store.delete(skey)
                removed += 1
        if removed:
            logger.info("Invalidated cache entries", extra={"count": removed})
        return removed

    def purge_stale_versions(self) -> int:
        """Drop every entry written under a different version tag."""
        current = self._current_root
        removed = self.invalidate(lambda k: not k.startswith(current))
        logger.debug("Purged stale cache versions", extra={"count": removed, "version": self.version})
        return removed

    def clear(self) -> int:
        """Drop every entry under the prefix, all versions included."""
        return self.invalidate(self._root)


def build_cache(store: KeyValueStore, settings) -> KeyedTTLCache:
    """Create the process cache and purge entries from older cache versions."""
    cache = KeyedTTLCache(
        store,
        prefix=settings.cache_prefix,
        version=settings.cache_version,
        default_ttl=settings.forecast_ttl_seconds,
    )
    cache.purge_stale_versions()
    return cache
