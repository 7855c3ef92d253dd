"""Tests for sudo mode."""

from __future__ import annotations

import pytest

from auth_ceremonies import (
    ChallengeFailedError,
    CredentialType,
    PreconditionFailedError,
    SudoModeChallenged,
    SudoModeEnabled,
    SudoModeRequiredError,
)
from auth_ceremonies.state import SessionKeys

from ..helpers import PASSWORD, answer


@pytest.mark.asyncio
class TestSudoModeGuard:
    async def test_unconfirmed_session_is_challenged(
        self, sudo_guard, request_context, sessions, events
    ) -> None:
        request = request_context(user_id="owner-1")

        with pytest.raises(SudoModeRequiredError) as exc_info:
            await sudo_guard.ensure(request)

        assert exc_info.value.expects_json is False
        assert await sudo_guard.is_required(request.session_id)
        assert isinstance(events[-1], SudoModeChallenged)
        assert events[-1].user_id == "owner-1"

    async def test_json_callers_get_a_structured_error(self, sudo_guard, request_context):
        with pytest.raises(SudoModeRequiredError) as exc_info:
            await sudo_guard.ensure(request_context(user_id="owner-1", expects_json=True))

        assert exc_info.value.expects_json is True
        assert exc_info.value.to_dict() == {"message": "Sudo-mode required."}

    async def test_window_slides_with_activity(
        self, sudo_guard, request_context, clock, sessions, events
    ) -> None:
        request = request_context(user_id="owner-1")
        await sudo_guard.enable(request.session_id)
        await sessions.put(request.session_id, SessionKeys.SUDO_REQUIRED_AT, clock.now)

        for _ in range(3):
            clock.advance(800)
            await sudo_guard.ensure(request)

            snapshot = sessions.snapshot(request.session_id)
            assert snapshot[SessionKeys.SUDO_CONFIRMED_AT] == clock.now
            assert SessionKeys.SUDO_REQUIRED_AT not in snapshot

        assert not await sudo_guard.is_required(request.session_id)
        assert events == []

    async def test_confirmation_expires(self, sudo_guard, request_context, clock, sessions):
        request = request_context(user_id="owner-1")
        await sudo_guard.enable(request.session_id)
        clock.advance(900)

        with pytest.raises(SudoModeRequiredError):
            await sudo_guard.ensure(request)

        snapshot = sessions.snapshot(request.session_id)
        assert SessionKeys.SUDO_CONFIRMED_AT not in snapshot
        assert snapshot[SessionKeys.SUDO_REQUIRED_AT] == clock.now


@pytest.mark.asyncio
class TestSudoModeChallenge:
    async def test_page_requires_a_pending_confirmation(
        self, sudo_challenge, password_owner, request_context
    ) -> None:
        with pytest.raises(PreconditionFailedError):
            await sudo_challenge.page(request_context(user_id=password_owner.id))

    async def test_password_confirmation(
        self, sudo_challenge, sudo_guard, password_owner, request_context, events
    ) -> None:
        request = request_context(user_id=password_owner.id)
        with pytest.raises(SudoModeRequiredError):
            await sudo_guard.ensure(request)

        page = await sudo_challenge.page(request)
        await sudo_challenge.confirm(request, {"password": PASSWORD})

        assert page.method == "password"
        assert isinstance(events[-1], SudoModeEnabled)
        assert not await sudo_guard.is_required(request.session_id)
        await sudo_guard.ensure(request)

    async def test_wrong_password(
        self, sudo_challenge, sudo_guard, password_owner, request_context, limiter
    ) -> None:
        request = request_context(user_id=password_owner.id)
        with pytest.raises(SudoModeRequiredError):
            await sudo_guard.ensure(request)

        with pytest.raises(ChallengeFailedError):
            await sudo_challenge.confirm(request, {"password": "nope"})

        assert await limiter.attempts("sudo-mode|owner-1|203.0.113.7") == 1
        assert await sudo_guard.is_required(request.session_id)

    async def test_passkey_confirmation(
        self, sudo_challenge, sudo_guard, passkey_owner, passkey, request_context
    ) -> None:
        request = request_context(user_id=passkey_owner.id)
        with pytest.raises(SudoModeRequiredError):
            await sudo_guard.ensure(request)

        page = await sudo_challenge.page(request)
        await sudo_challenge.confirm(request, {"credential": answer(page.options, b"passkey-1")})

        assert page.method == "public-key"
        assert page.available_methods == [CredentialType.PUBLIC_KEY]
        await sudo_guard.ensure(request)
