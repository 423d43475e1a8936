"""Async Redis connection factory.

The client is returned even when the initial ping fails: redis-py reconnects
lazily, and /health reports the outage instead of the process refusing to boot.
"""

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


async def create_redis_client(redis_uri: str) -> aioredis.Redis:
    """Connect to Redis and return a client."""
    client: aioredis.Redis = aioredis.from_url(redis_uri, decode_responses=True)
    try:
        await client.ping()
        log.info("redis_connected", uri=redis_uri.split("@")[-1])  # mask credentials
    except RedisError as e:
        log.warning(
            "redis_connection_failed", error=str(e), error_type=type(e).__name__
        )
    return client
