"""EventDispatcher: delivers ceremony events to registered handlers."""

from __future__ import annotations

import asyncio
import logging
from inspect import isawaitable
from typing import TYPE_CHECKING, Any, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .events import CeremonyEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class IEventHandler(Protocol):
    """Object-style event handler."""

    def handle(self, event: CeremonyEvent) -> Any: ...


EventHandler = Union[IEventHandler, "Callable[[CeremonyEvent], Any]"]


class EventDispatcher:
    """Local execution engine for ceremony events.

    Handlers are registered per event type and run concurrently within a
    semaphore. Dispatch is awaited by the orchestrators, so handlers have
    completed before the ceremony response is produced.

    Example:
        ```python
        dispatcher = EventDispatcher()
        dispatcher.register(Lockout, alert_security_team)
        await dispatcher.dispatch([Lockout(scope="login|alice|10.0.0.1")])
        ```
    """

    def __init__(self, max_concurrency: int = 10) -> None:
        self._handlers: dict[type[CeremonyEvent], list[EventHandler]] = {}
        self._semaphore = asyncio.Semaphore(max_concurrency)

    # ── Registration ─────────────────────────────────────────────

    def register(self, event_type: type[CeremonyEvent], handler: EventHandler) -> None:
        """Register a handler for a specific event type."""
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def register_all(
        self, event_types: Iterable[type[CeremonyEvent]], handler: EventHandler
    ) -> None:
        for event_type in event_types:
            self.register(event_type, handler)

    # ── Dispatching ──────────────────────────────────────────────

    async def dispatch(self, events: list[CeremonyEvent]) -> None:
        """Dispatch events to all registered handlers concurrently."""
        for event in events:
            handlers = self._handlers.get(type(event), [])
            if not handlers:
                continue
            await asyncio.gather(*(self._invoke(h, event) for h in handlers))

    async def emit(self, event: CeremonyEvent) -> None:
        await self.dispatch([event])

    async def _invoke(self, handler: EventHandler, event: CeremonyEvent) -> None:
        """Invoke a single handler within the concurrency limit."""
        async with self._semaphore:
            try:
                if isinstance(handler, IEventHandler):
                    result = handler.handle(event)
                elif callable(handler):
                    result = handler(event)
                else:
                    raise TypeError("Handler must be a callable or have a handle() method")

                if isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Error executing handler %s for event %s",
                    type(handler).__name__,
                    type(event).__name__,
                )
                raise

    # ── Introspection ────────────────────────────────────────────

    def get_registered_handlers(self) -> dict[type[CeremonyEvent], list[EventHandler]]:
        """Return all registered handlers (debugging utility)."""
        return {k: list(v) for k, v in self._handlers.items()}

    def clear(self) -> None:
        """Remove all handler registrations (testing utility)."""
        self._handlers.clear()


__all__: list[str] = ["EventDispatcher", "EventHandler", "IEventHandler"]
