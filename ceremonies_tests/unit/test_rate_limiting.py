"""Tests for throttle keys, the in-memory limiter and Throttle."""

from __future__ import annotations

import pytest

from auth_ceremonies import CeremonyConfig, Lockout, RateLimitedError, Throttle
from auth_ceremonies.rate_limiting import (
    InMemoryRateLimiter,
    challenge_key,
    ip_key,
    normalize_identity,
    scoped_ip_key,
)


class TestKeys:
    def test_normalize_identity_transliterates_and_lowercases(self) -> None:
        assert normalize_identity("Jöhn.Doe@Example.com") == "john.doe@example.com"

    def test_challenge_key(self) -> None:
        assert challenge_key("login", "Jane@Example.com", "10.0.0.1") == (
            "login|jane@example.com|10.0.0.1"
        )

    def test_scoped_ip_key(self) -> None:
        assert scoped_ip_key("passkey-login", "10.0.0.1") == "passkey-login|10.0.0.1"

    def test_ip_key(self) -> None:
        assert ip_key("10.0.0.1") == "ip::10.0.0.1"


@pytest.mark.asyncio
class TestInMemoryRateLimiter:
    async def test_hits_accumulate_until_cleared(self, limiter: InMemoryRateLimiter) -> None:
        assert await limiter.hit("k") == 1
        assert await limiter.hit("k") == 2
        assert await limiter.attempts("k") == 2

        await limiter.clear("k")

        assert await limiter.attempts("k") == 0

    async def test_too_many_attempts(self, limiter: InMemoryRateLimiter) -> None:
        for _ in range(3):
            await limiter.hit("k")

        assert await limiter.too_many_attempts("k", 3)
        assert not await limiter.too_many_attempts("k", 4)

    async def test_window_decays(self, limiter: InMemoryRateLimiter, clock) -> None:
        await limiter.hit("k", decay_seconds=60)
        clock.advance(20)

        assert await limiter.available_in("k") == 40

        clock.advance(41)

        assert await limiter.attempts("k") == 0
        assert await limiter.available_in("k") == 0


@pytest.mark.asyncio
class TestThrottle:
    async def test_configured_uses_the_ceremony_limits(self, limiter) -> None:
        config = CeremonyConfig(max_attempts=3, decay_seconds=30, rate_limiting=False)

        throttle = Throttle.configured(limiter, "k", config)

        assert (throttle.max_attempts, throttle.decay_seconds, throttle.enabled) == (3, 30, False)

    async def test_locked_out_throttle_emits_lockout_and_raises(
        self, limiter, dispatcher, events, request_context
    ) -> None:
        throttle = Throttle(limiter, "login|jane|10.0.0.1", max_attempts=2)
        await throttle.hit()
        await throttle.hit()

        with pytest.raises(RateLimitedError) as exc_info:
            await throttle.ensure_not_limited(request_context(), dispatcher)

        assert exc_info.value.available_in == 60
        assert exc_info.value.scope == "login|jane|10.0.0.1"
        assert [type(e) for e in events] == [Lockout]
        assert events[0].scope == "login|jane|10.0.0.1"

    async def test_disabled_throttle_never_counts(self, limiter, dispatcher, request_context):
        throttle = Throttle(limiter, "k", max_attempts=1, enabled=False)

        await throttle.hit()
        await throttle.hit()
        await throttle.ensure_not_limited(request_context(), dispatcher)

        assert await limiter.attempts("k") == 0
