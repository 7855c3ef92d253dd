"""Test configuration and fixtures.

Every ceremony is wired against the in-memory adapters, a scripted WebAuthn
verifier and the real pyotp/bcrypt adapters running on a fixed clock.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from auth_ceremonies import (
    ALL_EVENTS,
    AccountRecovery,
    CeremonyConfig,
    CeremonyEvent,
    CeremonyRequest,
    EventDispatcher,
    InMemoryRateLimiter,
    InMemorySessionStore,
    LoginOrchestrator,
    MultiFactorCredential,
    MultiFactorOrchestrator,
    Owner,
    RegistrationOrchestrator,
    SessionAuthenticator,
    SudoModeChallenge,
    SudoModeGuard,
    Timebox,
)
from auth_ceremonies.adapters import InMemoryTotpStepStore, PasswordHasher, PyOtpAuthenticator
from auth_ceremonies.challenges import (
    PasswordChallenge,
    PublicKeyChallenge,
    RecoveryChallenge,
    TotpChallenge,
)
from auth_ceremonies.memory import (
    InMemoryAuthGuard,
    InMemoryCredentialRepository,
    InMemoryNotifier,
    InMemoryOwnerRepository,
    InMemoryRecoveryTokenBroker,
)
from auth_ceremonies.session import generate_session_id
from auth_ceremonies.settings import (
    ChangePassword,
    CredentialManager,
    PublicKeyCredentialRegistration,
    RecoveryCodesGeneration,
    TotpRegistration,
)

from .helpers import PASSWORD, FakeClock, ScriptedWebAuthnVerifier, key_attributes


# ═══════════════════════════════════════════════════════════════
# INFRASTRUCTURE
# ═══════════════════════════════════════════════════════════════


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> CeremonyConfig:
    return CeremonyConfig(verifier_timeout=0.5)


@pytest.fixture
def sessions(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def owners() -> InMemoryOwnerRepository:
    return InMemoryOwnerRepository()


@pytest.fixture
def credentials() -> InMemoryCredentialRepository:
    return InMemoryCredentialRepository()


@pytest.fixture
def guard() -> InMemoryAuthGuard:
    return InMemoryAuthGuard()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def tokens(clock: FakeClock, config: CeremonyConfig) -> InMemoryRecoveryTokenBroker:
    return InMemoryRecoveryTokenBroker(
        expires=config.recovery_link_expiry,
        throttle=config.recovery_link_throttle,
        clock=clock,
    )


@pytest.fixture
def limiter(clock: FakeClock) -> InMemoryRateLimiter:
    return InMemoryRateLimiter(clock=clock)


@pytest.fixture
def events() -> list[CeremonyEvent]:
    return []


@pytest.fixture
def dispatcher(events: list[CeremonyEvent]) -> EventDispatcher:
    dispatcher = EventDispatcher()
    dispatcher.register_all(ALL_EVENTS, events.append)
    return dispatcher


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def timebox(sleep: AsyncMock) -> Timebox:
    return Timebox(sleep=sleep)


@pytest.fixture
def verifier() -> ScriptedWebAuthnVerifier:
    return ScriptedWebAuthnVerifier()


@pytest.fixture
def totp_authenticator(clock: FakeClock) -> PyOtpAuthenticator:
    return PyOtpAuthenticator(InMemoryTotpStepStore(clock=clock), issuer="Tests", clock=clock)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def request_context():
    """Factory of request contexts bound to a fresh session."""

    def make(session_id: str | None = None, **kwargs: Any) -> CeremonyRequest:
        return CeremonyRequest(
            session_id=session_id or generate_session_id(),
            ip_address=kwargs.pop("ip_address", "203.0.113.7"),
            **kwargs,
        )

    return make


# ═══════════════════════════════════════════════════════════════
# CHALLENGES
# ═══════════════════════════════════════════════════════════════


@pytest.fixture
def password_challenge(hasher, dispatcher, owners) -> PasswordChallenge:
    return PasswordChallenge(hasher, dispatcher, owners)


@pytest.fixture
def public_key_challenge(verifier, credentials, dispatcher, config) -> PublicKeyChallenge:
    return PublicKeyChallenge(verifier, credentials, dispatcher, config)


@pytest.fixture
def totp_challenge(totp_authenticator, credentials, dispatcher, timebox, config):
    return TotpChallenge(totp_authenticator, credentials, dispatcher, timebox, config)


@pytest.fixture
def recovery_challenge(owners, dispatcher, timebox, config) -> RecoveryChallenge:
    return RecoveryChallenge(owners, dispatcher, timebox, config)


# ═══════════════════════════════════════════════════════════════
# ORCHESTRATORS
# ═══════════════════════════════════════════════════════════════


@pytest.fixture
def sudo_guard(sessions, dispatcher, config, clock) -> SudoModeGuard:
    return SudoModeGuard(sessions, dispatcher, config, clock=clock)


@pytest.fixture
def sudo_challenge(
    sudo_guard, owners, credentials, password_challenge, public_key_challenge, limiter, timebox, config
) -> SudoModeChallenge:
    return SudoModeChallenge(
        sudo_guard,
        owners,
        credentials,
        password_challenge,
        public_key_challenge,
        limiter,
        timebox,
        config,
    )


@pytest.fixture
def authenticator(guard, sessions, sudo_guard, dispatcher) -> SessionAuthenticator:
    return SessionAuthenticator(guard, sessions, sudo_guard, dispatcher)


@pytest.fixture
def multi_factor(
    sessions,
    owners,
    credentials,
    public_key_challenge,
    totp_challenge,
    recovery_challenge,
    authenticator,
    limiter,
    dispatcher,
    config,
) -> MultiFactorOrchestrator:
    return MultiFactorOrchestrator(
        sessions,
        owners,
        credentials,
        public_key_challenge,
        totp_challenge,
        recovery_challenge,
        authenticator,
        limiter,
        dispatcher,
        config,
    )


@pytest.fixture
def login(
    sessions,
    owners,
    password_challenge,
    public_key_challenge,
    multi_factor,
    authenticator,
    limiter,
    dispatcher,
    timebox,
    config,
) -> LoginOrchestrator:
    return LoginOrchestrator(
        sessions,
        owners,
        password_challenge,
        public_key_challenge,
        multi_factor,
        authenticator,
        limiter,
        dispatcher,
        timebox,
        config,
    )


@pytest.fixture
def registration(
    sessions, owners, credentials, public_key_challenge, hasher, notifier, authenticator, dispatcher, config
) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        sessions,
        owners,
        credentials,
        public_key_challenge,
        hasher,
        notifier,
        authenticator,
        dispatcher,
        config,
    )


@pytest.fixture
def account_recovery(
    owners, tokens, notifier, recovery_challenge, authenticator, limiter, dispatcher, timebox, config
) -> AccountRecovery:
    return AccountRecovery(
        owners,
        tokens,
        notifier,
        recovery_challenge,
        authenticator,
        limiter,
        dispatcher,
        timebox,
        config,
    )


@pytest.fixture
def totp_registration(
    sessions, owners, credentials, totp_authenticator, sudo_guard, dispatcher, config
) -> TotpRegistration:
    return TotpRegistration(
        sessions, owners, credentials, totp_authenticator, sudo_guard, dispatcher, config
    )


@pytest.fixture
def key_registration(
    sessions, owners, credentials, public_key_challenge, sudo_guard, dispatcher, config
) -> PublicKeyCredentialRegistration:
    return PublicKeyCredentialRegistration(
        sessions, owners, credentials, public_key_challenge, sudo_guard, dispatcher, config
    )


@pytest.fixture
def codes_generation(sessions, owners, sudo_guard, dispatcher) -> RecoveryCodesGeneration:
    return RecoveryCodesGeneration(sessions, owners, sudo_guard, dispatcher)


@pytest.fixture
def credential_manager(sessions, owners, credentials, sudo_guard, dispatcher):
    return CredentialManager(sessions, owners, credentials, sudo_guard, dispatcher)


@pytest.fixture
def change_password(sessions, owners, hasher, sudo_guard, dispatcher, config) -> ChangePassword:
    return ChangePassword(sessions, owners, hasher, sudo_guard, dispatcher, config)


# ═══════════════════════════════════════════════════════════════
# OWNERS
# ═══════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def password_owner(owners, hasher) -> Owner:
    return await owners.create(
        Owner(
            id="owner-1",
            email="jane@example.com",
            username="jane",
            name="Jane Doe",
            password_hash=hasher.hash(PASSWORD),
        )
    )


@pytest_asyncio.fixture
async def passkey_owner(owners) -> Owner:
    return await owners.create(
        Owner(
            id="owner-2",
            email="sam@example.com",
            username="sam",
            name="Sam Roe",
            has_password=False,
        )
    )


@pytest_asyncio.fixture
async def owner_key(credentials, password_owner) -> MultiFactorCredential:
    return await credentials.create(
        MultiFactorCredential.public_key(
            password_owner.id, "Security key", key_attributes(password_owner.id)
        )
    )


@pytest_asyncio.fixture
async def owner_totp(credentials, password_owner, totp_authenticator) -> MultiFactorCredential:
    return await credentials.create(
        MultiFactorCredential.totp(
            password_owner.id, "Phone", totp_authenticator.generate_secret()
        )
    )


@pytest_asyncio.fixture
async def passkey(credentials, passkey_owner) -> MultiFactorCredential:
    return await credentials.create(
        MultiFactorCredential.public_key(
            passkey_owner.id, "User Passkey", key_attributes(passkey_owner.id, b"passkey-1")
        )
    )
