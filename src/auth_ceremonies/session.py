"""Ephemeral per-session storage for ceremony state.

WARNING: ``InMemorySessionStore`` is NOT suitable for production use.
It stores data in memory and will NOT work with multiple workers.

Use ``auth_ceremonies.contrib.redis.RedisSessionStore`` in production.
"""

from __future__ import annotations

import secrets
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .locking import KeyedLocks

if TYPE_CHECKING:
    from collections.abc import Callable


def generate_session_id() -> str:
    return secrets.token_urlsafe(32)


@runtime_checkable
class ISessionStore(Protocol):
    """Protocol for session-scoped key/value storage.

    Values must be JSON serializable. Implementations must be safe for
    concurrent requests of the same session (double submits) and must make
    ``pull`` an atomic read-and-delete.
    """

    async def get(self, session_id: str, key: str) -> Any | None:
        """Read a slot, None if absent."""
        ...

    async def put(self, session_id: str, key: str, value: Any) -> None:
        """Write a slot."""
        ...

    async def forget(self, session_id: str, *keys: str) -> None:
        """Remove slots."""
        ...

    async def pull(self, session_id: str, key: str) -> Any | None:
        """Atomically read and remove a slot."""
        ...

    async def migrate(self, session_id: str) -> str:
        """Move all slots to a fresh session id and discard the old one.

        Returns:
            The new session id.
        """
        ...

    async def invalidate(self, session_id: str) -> None:
        """Discard the whole session."""
        ...


class InMemorySessionStore(ISessionStore):
    """In-memory session store for development and testing only.

    ⚠️ WARNING: This implementation stores data in a local dictionary.
    It will NOT work in multi-worker environments.

    Example:
        ```python
        store = InMemorySessionStore(lifetime=7200)

        await store.put("sess-1", "mfa.pendingTotpSecret", "JBSWY3DPEHPK3PXP")
        secret = await store.pull("sess-1", "mfa.pendingTotpSecret")
        ```
    """

    def __init__(
        self,
        lifetime: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory session store.

        Args:
            lifetime: Idle lifetime of a session in seconds (None = forever).
            clock: Time source, injectable for tests.
        """
        self._sessions: dict[str, dict[str, Any]] = {}
        self._touched: dict[str, float] = {}
        self._locks = KeyedLocks()
        self._lifetime = lifetime
        self._clock = clock

    def _data(self, session_id: str) -> dict[str, Any]:
        now = self._clock()
        touched = self._touched.get(session_id)
        if (
            self._lifetime is not None
            and touched is not None
            and now - touched > self._lifetime
        ):
            self._sessions.pop(session_id, None)
        self._touched[session_id] = now
        return self._sessions.setdefault(session_id, {})

    async def get(self, session_id: str, key: str) -> Any | None:
        async with self._locks.hold(session_id):
            return self._data(session_id).get(key)

    async def put(self, session_id: str, key: str, value: Any) -> None:
        async with self._locks.hold(session_id):
            self._data(session_id)[key] = value

    async def forget(self, session_id: str, *keys: str) -> None:
        async with self._locks.hold(session_id):
            data = self._data(session_id)
            for key in keys:
                data.pop(key, None)

    async def pull(self, session_id: str, key: str) -> Any | None:
        async with self._locks.hold(session_id):
            return self._data(session_id).pop(key, None)

    async def migrate(self, session_id: str) -> str:
        new_id = generate_session_id()
        async with self._locks.hold(session_id):
            data = self._data(session_id)
            self._sessions[new_id] = data
            self._touched[new_id] = self._clock()
            self._sessions.pop(session_id, None)
            self._touched.pop(session_id, None)
        return new_id

    async def invalidate(self, session_id: str) -> None:
        async with self._locks.hold(session_id):
            self._sessions.pop(session_id, None)
            self._touched.pop(session_id, None)

    def snapshot(self, session_id: str) -> dict[str, Any]:
        """Return a copy of a session's slots (testing utility)."""
        return dict(self._sessions.get(session_id, {}))

    def clear_all(self) -> None:
        """Clear all session data.

        Useful for testing cleanup.
        """
        self._sessions.clear()
        self._touched.clear()


__all__: list[str] = ["ISessionStore", "InMemorySessionStore", "generate_session_id"]
