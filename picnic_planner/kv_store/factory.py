"""Backend selection for the key-value store."""

import redis

from picnic_planner.kv_store.base import KeyValueStore
from picnic_planner.kv_store.memory import InMemoryKeyValueStore
from picnic_planner.kv_store.redis import RedisKeyValueStore
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="kv_store/factory")


def build_store(settings) -> KeyValueStore:
    """Use Redis when configured and answering PING, otherwise fall back to memory."""
    redis_url = settings.cache_redis_url
    logger.debug(f"Initializing key-value store: redis_url='{mask_url(redis_url) if redis_url else 'None'}'")
    if redis_url:
        try:
            client = redis.Redis.from_url(redis_url)
            client.ping()
            logger.info("Using RedisKeyValueStore", extra={"redis_url": mask_url(redis_url)})
            return RedisKeyValueStore(client)
        except (redis.RedisError, ValueError) as exc:
            logger.warning("Falling back to InMemoryKeyValueStore (Redis unavailable)", extra={"error": str(exc)})
    return InMemoryKeyValueStore()
