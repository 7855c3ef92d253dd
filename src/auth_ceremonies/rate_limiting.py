"""Attempt counting and throttling.

Throttle keys are part of the public contract:

- challenge keys combine a scope, a normalized identity and the client IP:
  ``<scope>|<identity>|<ip>``
- request-volume keys only use the client IP: ``ip::<ip>``, so that cycling
  identities cannot be used to bypass IP-based throttling.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import unicodedata
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .events import Lockout
from .exceptions import RateLimitedError

if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import CeremonyConfig
    from .dispatcher import EventDispatcher
    from .request import CeremonyRequest

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# KEY CONSTRUCTION
# ═══════════════════════════════════════════════════════════════


def normalize_identity(identity: str) -> str:
    """Lower-case and transliterate an identity to ASCII.

    Example:
        ```python
        normalize_identity("Jöhn.Doe@Example.com")  # "john.doe@example.com"
        ```
    """
    decomposed = unicodedata.normalize("NFKD", identity)
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    return ascii_only.lower()


def challenge_key(scope: str, identity: str, ip_address: str) -> str:
    return f"{scope}|{normalize_identity(identity)}|{ip_address}"


def scoped_ip_key(scope: str, ip_address: str) -> str:
    return f"{scope}|{ip_address}"


def ip_key(ip_address: str) -> str:
    return f"ip::{ip_address}"


# ═══════════════════════════════════════════════════════════════
# LIMITER PORT
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IRateLimiter(Protocol):
    """Protocol for attempt counters with a decay window."""

    async def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        """Whether ``key`` reached ``max_attempts`` within its window."""
        ...

    async def hit(self, key: str, decay_seconds: int = 60) -> int:
        """Increment the counter, starting a window if none is open.

        Returns:
            The new attempt count.
        """
        ...

    async def attempts(self, key: str) -> int:
        """Current attempt count."""
        ...

    async def clear(self, key: str) -> None:
        """Reset the counter."""
        ...

    async def available_in(self, key: str) -> int:
        """Seconds until the window of ``key`` closes."""
        ...


class InMemoryRateLimiter(IRateLimiter):
    """In-memory rate limiter for development and testing only.

    ⚠️ WARNING: counters live in this process only; use
    ``auth_ceremonies.contrib.redis.RedisRateLimiter`` with multiple workers.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _current(self, key: str) -> tuple[int, float] | None:
        entry = self._counters.get(key)
        if entry is not None and entry[1] <= self._clock():
            del self._counters[key]
            return None
        return entry

    async def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        async with self._lock:
            entry = self._current(key)
            return entry is not None and entry[0] >= max_attempts

    async def hit(self, key: str, decay_seconds: int = 60) -> int:
        async with self._lock:
            entry = self._current(key)
            if entry is None:
                entry = (0, self._clock() + decay_seconds)
            count = entry[0] + 1
            self._counters[key] = (count, entry[1])
            return count

    async def attempts(self, key: str) -> int:
        async with self._lock:
            entry = self._current(key)
            return entry[0] if entry else 0

    async def clear(self, key: str) -> None:
        async with self._lock:
            self._counters.pop(key, None)

    async def available_in(self, key: str) -> int:
        async with self._lock:
            entry = self._current(key)
            if entry is None:
                return 0
            return max(0, math.ceil(entry[1] - self._clock()))


# ═══════════════════════════════════════════════════════════════
# THROTTLE
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Throttle:
    """One throttle key bound to its limits.

    Every challenge handler uses exactly one throttle, in this order::

        await throttle.ensure_not_limited(request, dispatcher)
        if not verified:
            await throttle.hit()
            raise ChallengeFailedError()
        await throttle.clear()

    A disabled throttle (``enabled=False``) never limits and never counts.
    """

    limiter: IRateLimiter
    key: str
    max_attempts: int = 5
    decay_seconds: int = 60
    enabled: bool = True

    @classmethod
    def configured(cls, limiter: IRateLimiter, key: str, config: CeremonyConfig) -> Throttle:
        """Build a throttle from the ceremony configuration."""
        return cls(
            limiter,
            key,
            max_attempts=config.max_attempts,
            decay_seconds=config.decay_seconds,
            enabled=config.rate_limiting,
        )

    async def too_many_attempts(self) -> bool:
        if not self.enabled:
            return False
        return await self.limiter.too_many_attempts(self.key, self.max_attempts)

    async def ensure_not_limited(
        self, request: CeremonyRequest, dispatcher: EventDispatcher
    ) -> None:
        """Emit a Lockout and raise when the key is over its limit.

        Raises:
            RateLimitedError: With the seconds until the window closes.
        """
        if not await self.too_many_attempts():
            return
        available_in = await self.limiter.available_in(self.key)
        logger.warning("Throttle %s locked out for %ss", self.key, available_in)
        await dispatcher.emit(Lockout.for_request(request, scope=self.key))
        raise RateLimitedError(
            f"Too many attempts. Please try again in {available_in} seconds.",
            available_in=available_in,
            scope=self.key,
        )

    async def hit(self) -> None:
        if self.enabled:
            await self.limiter.hit(self.key, self.decay_seconds)

    async def clear(self) -> None:
        if self.enabled:
            await self.limiter.clear(self.key)


__all__: list[str] = [
    "normalize_identity",
    "challenge_key",
    "scoped_ip_key",
    "ip_key",
    "IRateLimiter",
    "InMemoryRateLimiter",
    "Throttle",
]
