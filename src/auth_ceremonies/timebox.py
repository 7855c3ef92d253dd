"""Timeboxed execution.

Normalizes the visible duration of a unit of work so that success and
failure paths cannot be told apart by response time.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


class TimeboxScope:
    """Handle passed to timeboxed work to skip the padding."""

    def __init__(self) -> None:
        self.early_return = False

    def return_early(self) -> None:
        """Respond as soon as the work completes."""
        self.early_return = True


class Timebox:
    """Pads the completion of async work to a minimum duration.

    Only the awaiting coroutine is suspended while padding; other tasks on
    the event loop keep running. Exceptions raised by the work are padded as
    well before they propagate.

    Example:
        ```python
        timebox = Timebox()

        async def verify(scope: TimeboxScope) -> bool:
            if await check_code():
                scope.return_early()
                return True
            return False

        ok = await timebox.call(verify, 300 * 1000)
        ```
    """

    def __init__(
        self,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        """Initialize the timebox.

        Args:
            sleep: Awaitable sleep, replaceable in tests.
            clock: Monotonic clock in seconds.
        """
        self._sleep = sleep
        self._clock = clock

    async def call(
        self,
        work: Callable[[TimeboxScope], Awaitable[T]],
        microseconds: int,
    ) -> T:
        """Run ``work`` and return its result no sooner than ``microseconds``.

        Args:
            work: Coroutine function receiving the scope.
            microseconds: Minimum visible duration.

        Returns:
            Whatever ``work`` returned.
        """
        scope = TimeboxScope()
        started = self._clock()
        try:
            return await work(scope)
        finally:
            remainder = microseconds / 1_000_000 - (self._clock() - started)
            if not scope.early_return and remainder > 0:
                await self._sleep(remainder)


__all__: list[str] = ["Timebox", "TimeboxScope"]
