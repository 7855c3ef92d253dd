"""Tests for the Redis adapters against a mocked client."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from auth_ceremonies.contrib.redis import (
    ADVANCE_SCRIPT,
    HIT_SCRIPT,
    MIGRATE_SCRIPT,
    PULL_SCRIPT,
    RedisRateLimiter,
    RedisSessionStore,
    RedisTotpStepStore,
)


@pytest.fixture
def redis_client() -> MagicMock:
    client = MagicMock()
    for name in ("eval", "get", "delete", "ttl", "hget", "hset", "hdel", "expire"):
        setattr(client, name, AsyncMock())
    return client


@pytest.mark.asyncio
class TestRedisRateLimiter:
    async def test_hit_runs_the_counter_script(self, redis_client) -> None:
        redis_client.eval.return_value = 3

        assert await RedisRateLimiter(redis_client).hit("login|jane|1.2.3.4", 60) == 3
        redis_client.eval.assert_awaited_once_with(
            HIT_SCRIPT, 1, "auth:throttle:login|jane|1.2.3.4", 60
        )

    async def test_too_many_attempts(self, redis_client) -> None:
        redis_client.get.return_value = b"5"
        limiter = RedisRateLimiter(redis_client)

        assert await limiter.too_many_attempts("k", 5)
        assert not await limiter.too_many_attempts("k", 6)

    async def test_missing_counter(self, redis_client) -> None:
        redis_client.get.return_value = None
        redis_client.ttl.return_value = -2
        limiter = RedisRateLimiter(redis_client)

        assert await limiter.attempts("k") == 0
        assert await limiter.available_in("k") == 0

    async def test_clear(self, redis_client) -> None:
        await RedisRateLimiter(redis_client, prefix="t:").clear("k")

        redis_client.delete.assert_awaited_once_with("t:k")

    async def test_redis_errors_propagate(self, redis_client) -> None:
        redis_client.eval.side_effect = ConnectionError("redis down")

        with pytest.raises(ConnectionError):
            await RedisRateLimiter(redis_client).hit("k")


@pytest.mark.asyncio
class TestRedisTotpStepStore:
    @pytest.mark.parametrize(("reply", "expected"), [(1, True), (0, False)])
    async def test_advance(self, redis_client, reply, expected) -> None:
        redis_client.eval.return_value = reply

        assert await RedisTotpStepStore(redis_client).advance("owner-1", 42, 90) is expected
        redis_client.eval.assert_awaited_once_with(
            ADVANCE_SCRIPT, 1, "auth:totp-step:owner-1", 42, 90
        )


@pytest.mark.asyncio
class TestRedisSessionStore:
    async def test_put_encodes_json_and_refreshes_the_lifetime(self, redis_client) -> None:
        await RedisSessionStore(redis_client, lifetime=600).put("s1", "codes", ["A", "B"])

        redis_client.hset.assert_awaited_once_with("auth:session:s1", "codes", '["A", "B"]')
        redis_client.expire.assert_awaited_once_with("auth:session:s1", 600)

    async def test_get_decodes_json(self, redis_client) -> None:
        redis_client.hget.return_value = json.dumps({"remember": True})

        assert await RedisSessionStore(redis_client).get("s1", "slot") == {"remember": True}

    async def test_pull_is_a_single_script(self, redis_client) -> None:
        redis_client.eval.return_value = '"options"'

        assert await RedisSessionStore(redis_client).pull("s1", "slot") == "options"
        redis_client.eval.assert_awaited_once_with(PULL_SCRIPT, 1, "auth:session:s1", "slot")

    async def test_pull_missing_slot(self, redis_client) -> None:
        redis_client.eval.return_value = None

        assert await RedisSessionStore(redis_client).pull("s1", "slot") is None

    async def test_migrate_renames_the_hash(self, redis_client) -> None:
        new_id = await RedisSessionStore(redis_client, lifetime=None).migrate("s1")

        assert new_id != "s1"
        redis_client.eval.assert_awaited_once_with(
            MIGRATE_SCRIPT, 2, "auth:session:s1", f"auth:session:{new_id}", 0
        )

    async def test_forget_without_keys_is_a_no_op(self, redis_client) -> None:
        await RedisSessionStore(redis_client).forget("s1")

        redis_client.hdel.assert_not_awaited()
