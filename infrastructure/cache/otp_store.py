"""Expiring key-value store for OTP codes, counters and lock flags.

Every record carries its own TTL and is removed by Redis when it expires;
nothing here runs timers. ``incr_with_expiry`` is the one compound operation:
INCR and EXPIRE run in a single MULTI/EXEC so that concurrent requests for the
same email cannot both read the same count and under-count.
"""

from typing import Optional, Protocol

import redis.asyncio as aioredis


class ExpiringStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, *keys: str) -> None: ...

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int: ...


class RedisExpiringStore:
    def __init__(self, redis_client: aioredis.Redis) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        return await self._redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.set(key, value, ex=ttl_seconds)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._redis.delete(*keys)

    async def incr_with_expiry(self, key: str, ttl_seconds: int) -> int:
        """Increment *key* and (re)arm its TTL atomically; return the new count."""
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, ttl_seconds)
            count, _ = await pipe.execute()
        return int(count)


class OtpKeys:
    """Redis key names for the per-email OTP records."""

    @staticmethod
    def otp(email: str) -> str:
        return f"otp:{email}"

    @staticmethod
    def cooldown(email: str) -> str:
        return f"otp_cooldown:{email}"

    @staticmethod
    def request_count(email: str) -> str:
        return f"otp_request_count:{email}"

    @staticmethod
    def spam_lock(email: str) -> str:
        return f"otp_spam_lock:{email}"

    @staticmethod
    def attempts(email: str) -> str:
        return f"otp_attempts:{email}"

    @staticmethod
    def lock(email: str) -> str:
        return f"otp_lock:{email}"

    @staticmethod
    def reset_grant(email: str) -> str:
        return f"otp_reset_grant:{email}"
