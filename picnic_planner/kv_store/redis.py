"""Redis-backed key-value store."""

from typing import List, Optional

from picnic_planner.kv_store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="kv_store/redis")


class RedisKeyValueStore(KeyValueStore):
    """Keys live under ``namespace`` so ``clear()`` never touches foreign data.

    Values are written without a Redis expiry; TTL handling belongs to the
    cache layer, which keeps expired envelopes until they are invalidated.
    """

    def __init__(self, client, namespace: str = "picnic:") -> None:
        """Initialize with a redis client (``redis.Redis`` or compatible)."""
        logger.debug("Initializing RedisKeyValueStore")
        self.client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    @staticmethod
    def _text(raw) -> str:
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    def get(self, key: str) -> Optional[str]:
        """Fetch a value; read failures are logged and reported as missing."""
        try:
            raw = self.client.get(self._key(key))
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to read key from Redis: %s", exc, extra={"key": key})
            return None
        if raw is None:
            return None
        try:
            return self._text(raw)
        except UnicodeDecodeError:
            logger.warning("Discarding undecodable Redis value", extra={"key": key})
            return None

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value.encode("utf-8"))
        except Exception as exc:
            logger.error("Failed to write key to Redis: %s", exc, extra={"key": key})
            raise

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to delete key from Redis: %s", exc, extra={"key": key})

    def keys(self, prefix: str = "") -> List[str]:
        strip = len(self.namespace)
        try:
            return [self._text(k)[strip:] for k in self.client.scan_iter(f"{self._key(prefix)}*")]
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to scan keys in Redis: %s", exc, extra={"prefix": prefix})
            return []

    def clear(self) -> None:
        """Best-effort clear of every key under the namespace."""
        try:
            for key in self.client.scan_iter(f"{self.namespace}*"):
                self.client.delete(key)
        except Exception as exc:  # pragma: no cover
            logger.error("Failed to clear Redis namespace: %s", exc)
