"""Successful ceremony results returned to the HTTP collaborator.

Failures are raised as :mod:`auth_ceremonies.exceptions` instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .credentials import CredentialType, MultiFactorCredential


@dataclass(frozen=True)
class AuthenticatedOutcome:
    """The session is now fully authenticated.

    Attributes:
        user_id: Authenticated owner.
        session_id: Rotated session id the caller must issue to the client.
        redirect_to: Where the client should go next.
    """

    user_id: str
    session_id: str
    redirect_to: str = "/"


@dataclass(frozen=True)
class MultiFactorRequired:
    """Primary authentication succeeded; a second factor is owed.

    Attributes:
        user_id: Partially authenticated owner.
        preferred_method: Method to present first.
        available_methods: Every method the owner can use.
        options: Public key request options (JSON) or None.
    """

    user_id: str
    preferred_method: CredentialType
    available_methods: list[CredentialType]
    options: str | None = None


@dataclass(frozen=True)
class ChallengePage:
    """Data needed to render a challenge page.

    Attributes:
        available_methods: Methods the page should offer.
        options: Public key request options (JSON) or None.
        method: Primary method of a sudo-mode page ("password" or "public-key").
    """

    available_methods: list[CredentialType] = field(default_factory=list)
    options: str | None = None
    method: str | None = None


@dataclass(frozen=True)
class PasskeyRegistrationStarted:
    """Passkey registration claimed an owner and issued creation options."""

    user_id: str
    options: str


@dataclass(frozen=True)
class TotpRegistrationStarted:
    """A TOTP secret is pending confirmation."""

    secret: str
    provisioning_uri: str


@dataclass(frozen=True)
class CredentialRegistered:
    """A new multi-factor credential was persisted."""

    credential: MultiFactorCredential

    def to_dict(self) -> dict[str, Any]:
        return self.credential.to_dict()


__all__: list[str] = [
    "AuthenticatedOutcome",
    "MultiFactorRequired",
    "ChallengePage",
    "PasskeyRegistrationStarted",
    "TotpRegistrationStarted",
    "CredentialRegistered",
]
