"""Per-key asyncio locks for single-process serialization."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@dataclass
class _LockState:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    ref_count: int = 0


class KeyedLocks:
    """One lock per key, dropped once nobody holds or waits for it.

    Example:
        ```python
        locks = KeyedLocks()
        async with locks.hold("owner-1"):
            ...
        ```
    """

    def __init__(self) -> None:
        self._locks: dict[str, _LockState] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        state = self._locks.get(key)
        if state is None:
            state = self._locks[key] = _LockState()
        state.ref_count += 1
        try:
            async with state.lock:
                yield
        finally:
            state.ref_count -= 1
            if state.ref_count <= 0:
                self._locks.pop(key, None)

    def __len__(self) -> int:
        return len(self._locks)


__all__: list[str] = ["KeyedLocks"]
