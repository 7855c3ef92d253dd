"""Redis backed rate limiter, TOTP step store and session store.

Every read-modify-write runs as a Lua script so that concurrent requests
served by different processes see consistent counters and slots. Redis
errors propagate to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ..ports import ITotpStepStore
from ..rate_limiting import IRateLimiter
from ..session import ISessionStore, generate_session_id

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# RATE LIMITER
# ═══════════════════════════════════════════════════════════════

# KEYS[1] = counter, ARGV[1] = decay seconds
HIT_SCRIPT = """
local attempts = redis.call('INCR', KEYS[1])
if attempts == 1 or redis.call('TTL', KEYS[1]) < 0 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return attempts
"""


class RedisRateLimiter(IRateLimiter):
    """Attempt counters stored as expiring Redis integers.

    Example:
        ```python
        from redis.asyncio import Redis

        limiter = RedisRateLimiter(Redis.from_url("redis://localhost"))
        throttle = Throttle(limiter, challenge_key("login", email, ip))
        ```
    """

    def __init__(self, redis_client: Redis, prefix: str = "auth:throttle:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        return await self.attempts(key) >= max_attempts

    async def hit(self, key: str, decay_seconds: int = 60) -> int:
        return int(await self._redis.eval(HIT_SCRIPT, 1, self._key(key), decay_seconds))

    async def attempts(self, key: str) -> int:
        value = await self._redis.get(self._key(key))
        return int(value) if value else 0

    async def clear(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def available_in(self, key: str) -> int:
        return max(0, int(await self._redis.ttl(self._key(key))))


# ═══════════════════════════════════════════════════════════════
# TOTP STEPS
# ═══════════════════════════════════════════════════════════════

# KEYS[1] = last step, ARGV[1] = step, ARGV[2] = ttl
ADVANCE_SCRIPT = """
local current = redis.call('GET', KEYS[1])
if current and tonumber(current) >= tonumber(ARGV[1]) then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1], 'EX', ARGV[2])
return 1
"""


class RedisTotpStepStore(ITotpStepStore):
    """Last accepted TOTP step per identity, shared across processes."""

    def __init__(self, redis_client: Redis, prefix: str = "auth:totp-step:") -> None:
        self._redis = redis_client
        self._prefix = prefix

    async def advance(self, identity: str, step: int, ttl: int) -> bool:
        result = await self._redis.eval(ADVANCE_SCRIPT, 1, f"{self._prefix}{identity}", step, ttl)
        return int(result) == 1


# ═══════════════════════════════════════════════════════════════
# SESSIONS
# ═══════════════════════════════════════════════════════════════

# KEYS[1] = session hash, ARGV[1] = field
PULL_SCRIPT = """
local value = redis.call('HGET', KEYS[1], ARGV[1])
if value then
    redis.call('HDEL', KEYS[1], ARGV[1])
end
return value
"""

# KEYS[1] = old session hash, KEYS[2] = new session hash, ARGV[1] = lifetime
MIGRATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    redis.call('RENAME', KEYS[1], KEYS[2])
    if tonumber(ARGV[1]) > 0 then
        redis.call('EXPIRE', KEYS[2], ARGV[1])
    end
end
return 1
"""


class RedisSessionStore(ISessionStore):
    """Sessions stored as one Redis hash each, values encoded as JSON.

    Args:
        redis_client: ``redis.asyncio`` client.
        lifetime: Idle lifetime in seconds, refreshed on every write.
            ``None`` keeps sessions until invalidated.
        prefix: Key prefix of the session hashes.
    """

    def __init__(
        self,
        redis_client: Redis,
        lifetime: int | None = 7200,
        prefix: str = "auth:session:",
    ) -> None:
        self._redis = redis_client
        self._lifetime = lifetime
        self._prefix = prefix

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}{session_id}"

    @staticmethod
    def _decode(value: Any) -> Any | None:
        if value is None:
            return None
        return json.loads(value)

    async def get(self, session_id: str, key: str) -> Any | None:
        return self._decode(await self._redis.hget(self._key(session_id), key))

    async def put(self, session_id: str, key: str, value: Any) -> None:
        name = self._key(session_id)
        await self._redis.hset(name, key, json.dumps(value))
        if self._lifetime:
            await self._redis.expire(name, self._lifetime)

    async def forget(self, session_id: str, *keys: str) -> None:
        if keys:
            await self._redis.hdel(self._key(session_id), *keys)

    async def pull(self, session_id: str, key: str) -> Any | None:
        return self._decode(await self._redis.eval(PULL_SCRIPT, 1, self._key(session_id), key))

    async def migrate(self, session_id: str) -> str:
        new_id = generate_session_id()
        await self._redis.eval(
            MIGRATE_SCRIPT,
            2,
            self._key(session_id),
            self._key(new_id),
            self._lifetime or 0,
        )
        logger.debug("Session migrated to a new id")
        return new_id

    async def invalidate(self, session_id: str) -> None:
        await self._redis.delete(self._key(session_id))


__all__: list[str] = ["RedisRateLimiter", "RedisTotpStepStore", "RedisSessionStore"]
