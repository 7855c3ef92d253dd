"""Ceremony domain events.

Events are emitted on every ceremony outcome and consumed by observability
and notification collaborators through the ``EventDispatcher``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .credentials import CredentialType

if TYPE_CHECKING:
    from .request import CeremonyRequest

E = TypeVar("E", bound="CeremonyEvent")


class CeremonyEvent(BaseModel):
    """Base class for all ceremony events.

    Events are immutable and carry the request metadata they were raised for.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ip_address: str | None = None
    user_agent: str | None = None
    metadata: dict[str, object] = Field(default_factory=dict)

    @classmethod
    def for_request(cls: type[E], request: CeremonyRequest, **fields: object) -> E:
        return cls(
            ip_address=request.ip_address,
            user_agent=request.user_agent,
            **fields,  # type: ignore[arg-type]
        )


# ═══════════════════════════════════════════════════════════════
# AUTHENTICATION
# ═══════════════════════════════════════════════════════════════


class Authenticated(CeremonyEvent):
    """An owner became fully authenticated."""

    user_id: str
    method: str = "password"


class AuthenticationFailed(CeremonyEvent):
    """A primary (password or passkey) attempt failed."""

    identity: str | None = None


class Lockout(CeremonyEvent):
    """A throttle key exceeded its attempts."""

    scope: str


class MultiFactorChallenged(CeremonyEvent):
    """Password succeeded and a second factor is owed."""

    user_id: str
    preferred_method: CredentialType


class MultiFactorChallengeFailed(CeremonyEvent):
    """A second factor attempt failed.

    ``credential_type`` is "totp", "public-key" or "recovery-code".
    """

    user_id: str
    credential_type: str


class Registered(CeremonyEvent):
    """A new account was created."""

    user_id: str


# ═══════════════════════════════════════════════════════════════
# SUDO MODE
# ═══════════════════════════════════════════════════════════════


class SudoModeChallenged(CeremonyEvent):
    """A sensitive action required re-confirmation."""

    user_id: str


class SudoModeEnabled(CeremonyEvent):
    """Sudo mode was confirmed by the owner."""

    user_id: str


# ═══════════════════════════════════════════════════════════════
# RECOVERY & SETTINGS
# ═══════════════════════════════════════════════════════════════


class RecoveryCodesGenerated(CeremonyEvent):
    """A new recovery code set was confirmed."""

    user_id: str


class AccountRecoveryRequested(CeremonyEvent):
    """A recovery link was issued."""

    user_id: str


class AccountRecovered(CeremonyEvent):
    """An owner regained access through account recovery."""

    user_id: str


class AccountRecoveryFailed(CeremonyEvent):
    """A recovery code was rejected."""

    user_id: str


class PasswordChanged(CeremonyEvent):
    """An owner changed their password."""

    user_id: str


class CredentialRemoved(CeremonyEvent):
    """A multi-factor credential was deleted."""

    user_id: str
    credential_id: str
    credential_type: CredentialType


ALL_EVENTS: tuple[type[CeremonyEvent], ...] = (
    Authenticated,
    AuthenticationFailed,
    Lockout,
    MultiFactorChallenged,
    MultiFactorChallengeFailed,
    Registered,
    SudoModeChallenged,
    SudoModeEnabled,
    RecoveryCodesGenerated,
    AccountRecoveryRequested,
    AccountRecovered,
    AccountRecoveryFailed,
    PasswordChanged,
    CredentialRemoved,
)


__all__: list[str] = [
    "CeremonyEvent",
    "Authenticated",
    "AuthenticationFailed",
    "Lockout",
    "MultiFactorChallenged",
    "MultiFactorChallengeFailed",
    "Registered",
    "SudoModeChallenged",
    "SudoModeEnabled",
    "RecoveryCodesGenerated",
    "AccountRecoveryRequested",
    "AccountRecovered",
    "AccountRecoveryFailed",
    "PasswordChanged",
    "CredentialRemoved",
    "ALL_EVENTS",
]
