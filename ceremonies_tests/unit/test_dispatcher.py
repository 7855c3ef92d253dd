"""Tests for EventDispatcher."""

from __future__ import annotations

import pytest

from auth_ceremonies import EventDispatcher, Lockout, SudoModeEnabled


@pytest.mark.asyncio
class TestEventDispatcher:
    async def test_handlers_receive_their_event_type(self) -> None:
        dispatcher = EventDispatcher()
        lockouts, enabled = [], []

        async def on_lockout(event) -> None:
            lockouts.append(event)

        dispatcher.register(Lockout, on_lockout)
        dispatcher.register(SudoModeEnabled, enabled.append)

        event = Lockout(scope="k")
        await dispatcher.emit(event)

        assert lockouts == [event]
        assert enabled == []

    async def test_object_handlers(self) -> None:
        class Collector:
            def __init__(self) -> None:
                self.seen = []

            async def handle(self, event) -> None:
                self.seen.append(event)

        dispatcher = EventDispatcher()
        collector = Collector()
        dispatcher.register(Lockout, collector)

        await dispatcher.emit(Lockout(scope="k"))

        assert len(collector.seen) == 1

    async def test_duplicate_registration_is_ignored(self) -> None:
        dispatcher = EventDispatcher()
        seen = []
        dispatcher.register(Lockout, seen.append)
        dispatcher.register(Lockout, seen.append)

        await dispatcher.emit(Lockout(scope="k"))

        assert len(seen) == 1

    async def test_handler_errors_propagate(self) -> None:
        dispatcher = EventDispatcher()

        def failing(event) -> None:
            raise RuntimeError("boom")

        dispatcher.register(Lockout, failing)

        with pytest.raises(RuntimeError, match="boom"):
            await dispatcher.emit(Lockout(scope="k"))

    async def test_clear(self) -> None:
        dispatcher = EventDispatcher()
        dispatcher.register(Lockout, print)

        dispatcher.clear()

        assert dispatcher.get_registered_handlers() == {}
