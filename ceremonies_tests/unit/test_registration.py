"""Tests for RegistrationOrchestrator."""

from __future__ import annotations

import pytest

from auth_ceremonies import (
    AuthenticatedOutcome,
    ChallengeFailedError,
    CredentialType,
    ForbiddenError,
    PreconditionFailedError,
    Registered,
    ValidationError,
)
from auth_ceremonies.credentials import public_key_credential_id
from auth_ceremonies.registration import PASSKEY_NAME
from auth_ceremonies.state import SessionKeys

from ..helpers import answer

PASSKEY_PAYLOAD = {"name": "Ann Lee", "email": "ann@example.com"}


@pytest.mark.asyncio
class TestPasskeyRegistration:
    async def test_initialize_claims_a_passwordless_owner(
        self, registration, request_context, owners
    ) -> None:
        started = await registration.initialize_passkey(request_context(), PASSKEY_PAYLOAD)

        owner = await owners.get(started.user_id)
        assert owner.email == "ann@example.com"
        assert owner.has_password is False
        assert registration.claimed_owner_id(started.options) == started.user_id

    async def test_confirm_stores_the_passkey_and_authenticates(
        self, registration, request_context, credentials, notifier, guard, events
    ) -> None:
        request = request_context()
        started = await registration.initialize_passkey(request, PASSKEY_PAYLOAD)

        outcome = await registration.confirm_passkey(
            request, {"credential": answer(started.options, b"new-passkey")}
        )

        assert isinstance(outcome, AuthenticatedOutcome)
        assert guard.sessions[outcome.session_id] == started.user_id
        stored = await credentials.find(public_key_credential_id(b"new-passkey"))
        assert stored.name == PASSKEY_NAME
        assert stored.type is CredentialType.PUBLIC_KEY
        assert stored.owner_id == started.user_id
        assert notifier.verification_emails == ["ann@example.com"]
        assert [type(e).__name__ for e in events] == ["Registered", "Authenticated"]
        assert isinstance(events[0], Registered)

    async def test_rejected_attestation_can_be_cancelled(
        self, registration, request_context, owners
    ) -> None:
        request = request_context()
        started = await registration.initialize_passkey(request, PASSKEY_PAYLOAD)

        with pytest.raises(ChallengeFailedError):
            await registration.confirm_passkey(
                request, {"credential": answer(started.options, b"k", fail="unexpected_action")}
            )

        assert await owners.get(started.user_id) is not None

        await registration.cancel_passkey(request)

        assert await owners.get(started.user_id) is None
        retried = await registration.initialize_passkey(request_context(), PASSKEY_PAYLOAD)
        assert retried.user_id != started.user_id

    async def test_rejected_attestation_can_be_retried(
        self, registration, request_context, credentials, sessions
    ) -> None:
        request = request_context()
        started = await registration.initialize_passkey(request, PASSKEY_PAYLOAD)
        with pytest.raises(ChallengeFailedError):
            await registration.confirm_passkey(
                request, {"credential": answer(started.options, b"k", fail="unexpected_action")}
            )

        outcome = await registration.confirm_passkey(
            request, {"credential": answer(started.options, b"k")}
        )

        assert outcome.user_id == started.user_id
        assert await credentials.find(public_key_credential_id(b"k")) is not None
        assert SessionKeys.REGISTER_PASSKEY_OPTIONS not in sessions.snapshot(outcome.session_id)

    async def test_taken_email(self, registration, request_context, password_owner) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await registration.initialize_passkey(
                request_context(), {"name": "Jane", "email": "JANE@example.com"}
            )

        assert "email" in exc_info.value.errors

    async def test_cancel_deletes_the_claimed_owner(
        self, registration, request_context, owners, sessions
    ) -> None:
        request = request_context()
        started = await registration.initialize_passkey(request, PASSKEY_PAYLOAD)

        await registration.cancel_passkey(request)

        assert await owners.get(started.user_id) is None
        assert sessions.snapshot(request.session_id) == {}

    async def test_cancel_without_a_pending_registration(
        self, registration, request_context, owners, passkey_owner
    ) -> None:
        with pytest.raises(PreconditionFailedError):
            await registration.cancel_passkey(request_context())

        assert owners.all() == [passkey_owner]

    async def test_cancel_by_the_authenticated_owner_is_forbidden(
        self, registration, request_context, owners
    ) -> None:
        request = request_context()
        started = await registration.initialize_passkey(request, PASSKEY_PAYLOAD)

        with pytest.raises(ForbiddenError):
            await registration.cancel_passkey(
                request_context(session_id=request.session_id, user_id=started.user_id)
            )

        assert await owners.get(started.user_id) is not None


@pytest.mark.asyncio
class TestPasswordRegistration:
    async def test_register_and_authenticate(
        self, registration, request_context, owners, hasher, guard
    ) -> None:
        outcome = await registration.register_password(
            request_context(),
            {
                "name": "Ann Lee",
                "email": "ann@example.com",
                "password": "a-long-password",
                "password_confirmation": "a-long-password",
            },
        )

        owner = await owners.get(outcome.user_id)
        assert owner.has_password
        assert hasher.verify(owner.password_hash, "a-long-password")
        assert guard.sessions[outcome.session_id] == owner.id

    @pytest.mark.parametrize(
        ("password", "confirmation"),
        [
            ("short", "short"),
            ("a-long-password", "another-password"),
            ("x" * 80, "x" * 80),
        ],
    )
    async def test_invalid_password(
        self, registration, request_context, password, confirmation
    ) -> None:
        with pytest.raises(ValidationError):
            await registration.register_password(
                request_context(),
                {
                    "name": "Ann Lee",
                    "email": "ann@example.com",
                    "password": password,
                    "password_confirmation": confirmation,
                },
            )
