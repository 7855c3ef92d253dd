"""Tests for the session store and the typed ceremony slots."""

from __future__ import annotations

import asyncio

import pytest

from auth_ceremonies import CredentialType, InMemorySessionStore
from auth_ceremonies.state import CeremonyState, MultiFactorDetails, SessionKeys


def details(owner_id: str = "owner-1") -> MultiFactorDetails:
    return MultiFactorDetails(
        preferred_method=CredentialType.TOTP,
        intended_redirect="/dashboard",
        remember=True,
        partially_authenticated_user_id=owner_id,
    )


@pytest.mark.asyncio
class TestInMemorySessionStore:
    async def test_pull_takes_a_value_once(self, sessions: InMemorySessionStore) -> None:
        await sessions.put("s1", "slot", "value")

        first, second = await asyncio.gather(
            sessions.pull("s1", "slot"), sessions.pull("s1", "slot")
        )

        assert sorted([first, second], key=str) == [None, "value"]

    async def test_migrate_moves_every_slot(self, sessions: InMemorySessionStore) -> None:
        await sessions.put("s1", "a", 1)
        await sessions.put("s1", "b", [1, 2])

        new_id = await sessions.migrate("s1")

        assert new_id != "s1"
        assert sessions.snapshot(new_id) == {"a": 1, "b": [1, 2]}
        assert sessions.snapshot("s1") == {}

    async def test_idle_sessions_expire(self, clock) -> None:
        store = InMemorySessionStore(lifetime=60, clock=clock)
        await store.put("s1", "slot", "value")

        clock.advance(61)

        assert await store.get("s1", "slot") is None

    async def test_forget_and_invalidate(self, sessions: InMemorySessionStore) -> None:
        await sessions.put("s1", "a", 1)
        await sessions.put("s1", "b", 2)

        await sessions.forget("s1", "a")
        assert sessions.snapshot("s1") == {"b": 2}

        await sessions.invalidate("s1")
        assert sessions.snapshot("s1") == {}


@pytest.mark.asyncio
class TestCeremonyState:
    async def test_multi_factor_details_round_trip(self, sessions) -> None:
        state = CeremonyState(sessions, "s1")

        await state.begin_multi_factor(details())

        assert await state.multi_factor() == details()
        assert sessions.snapshot("s1")[SessionKeys.MULTI_FACTOR]["preferred_method"] == "totp"

    async def test_begin_multi_factor_purges_stale_challenge_options(self, sessions) -> None:
        state = CeremonyState(sessions, "s1")
        for slot in SessionKeys.CHALLENGE_OPTIONS:
            await state.put_options(slot, "{}")
        await state.put_options(SessionKeys.REGISTER_PASSKEY_OPTIONS, "{}")

        await state.begin_multi_factor(details())

        assert set(sessions.snapshot("s1")) == {
            SessionKeys.MULTI_FACTOR,
            SessionKeys.REGISTER_PASSKEY_OPTIONS,
        }

    async def test_missing_partial_authentication(self, sessions) -> None:
        state = CeremonyState(sessions, "s1")
        await sessions.put("s1", SessionKeys.MULTI_FACTOR, {"partially_authenticated_user_id": ""})

        assert await state.multi_factor() is None

    async def test_sudo_slots_are_exclusive(self, sessions) -> None:
        state = CeremonyState(sessions, "s1")

        await state.require_sudo(10.0)
        await state.confirm_sudo(20.0)

        assert await state.sudo_confirmed_at() == 20.0
        assert await state.sudo_required_at() is None

        await state.require_sudo(30.0)

        assert await state.sudo_confirmed_at() is None
        assert await state.sudo_required_at() == 30.0
