"""Ports (protocols) for the authentication ceremonies.

Everything an orchestrator needs from the outside world is expressed as a
protocol here: persistence of owners and credentials, the session guard,
password hashing, notification delivery and the external WebAuthn/TOTP
verifiers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .credentials import CredentialAttributes, CredentialType, MultiFactorCredential


# ═══════════════════════════════════════════════════════════════
# OWNERS
# ═══════════════════════════════════════════════════════════════


@dataclass
class Owner:
    """Account the ceremonies authenticate.

    Attributes:
        id: Unique owner identifier.
        email: Email address.
        username: Username (used when identity_field is "username").
        name: Display name.
        password_hash: Stored password hash, None for passkey accounts.
        has_password: Whether the account signs in with a password.
        recovery_codes: Persisted recovery codes, None when never generated.
        email_verified_at: When the email address was verified.
    """

    id: str
    email: str
    name: str
    username: str | None = None
    password_hash: str | None = None
    has_password: bool = True
    recovery_codes: tuple[str, ...] | None = None
    email_verified_at: datetime | None = None

    def identity(self, field_name: str) -> str:
        value = getattr(self, field_name)
        return str(value or "")


@runtime_checkable
class IOwnerRepository(Protocol):
    """Persistence of ceremony owners."""

    async def get(self, owner_id: str) -> Owner | None:
        """Get an owner by id."""
        ...

    async def find_by_identity(
        self, field_name: str, value: str, *, has_password: bool | None = None
    ) -> Owner | None:
        """Find an owner by email or username.

        Args:
            field_name: "email" or "username".
            value: Identity value as submitted.
            has_password: Restrict to password (True) or passkey (False) owners.
        """
        ...

    async def create(self, owner: Owner) -> Owner:
        """Persist a new owner."""
        ...

    async def save(self, owner: Owner) -> None:
        """Persist changes to an existing owner."""
        ...

    async def delete(self, owner_id: str) -> None:
        """Delete an owner."""
        ...


# ═══════════════════════════════════════════════════════════════
# CREDENTIALS
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class ICredentialRepository(Protocol):
    """Persistence of multi-factor credentials."""

    async def find(self, credential_id: str) -> MultiFactorCredential | None:
        """Find a credential by its type-prefixed id."""
        ...

    async def find_all_by_owner_and_type(
        self, owner_id: str, credential_type: CredentialType | None = None
    ) -> list[MultiFactorCredential]:
        """List credentials of an owner, optionally filtered by type.

        Results are ordered by creation time.
        """
        ...

    async def create(self, credential: MultiFactorCredential) -> MultiFactorCredential:
        """Persist a new credential."""
        ...

    async def update_secret(self, credential_id: str, secret: str) -> None:
        """Overwrite the secret blob of a credential."""
        ...

    async def update_sign_count(self, credential_id: str, sign_count: int) -> bool:
        """Atomically advance a public key credential's signature counter.

        Must be a single compare-and-set: the update happens only if the
        stored counter is strictly lower than ``sign_count``.

        Returns:
            True if the counter was advanced.
        """
        ...

    async def delete(self, credential_id: str) -> None:
        """Delete a credential."""
        ...


# ═══════════════════════════════════════════════════════════════
# SESSION GUARD & PASSWORDS
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class IAuthGuard(Protocol):
    """Host framework hook that establishes the authenticated session."""

    async def login(self, session_id: str, owner: Owner, remember: bool = False) -> None:
        """Mark the session as fully authenticated as ``owner``."""
        ...

    async def logout(self, session_id: str) -> None:
        """Drop the authenticated identity from the session."""
        ...

    async def user_id(self, session_id: str) -> str | None:
        """Return the authenticated owner id of the session, if any."""
        ...


@runtime_checkable
class IPasswordHasher(Protocol):
    """Password hashing collaborator."""

    def hash(self, password: str) -> str: ...

    def verify(self, hashed_password: str, password: str) -> bool: ...


# ═══════════════════════════════════════════════════════════════
# NOTIFICATIONS & RECOVERY TOKENS
# ═══════════════════════════════════════════════════════════════


@runtime_checkable
class INotifier(Protocol):
    """Notification delivery hook (the app provides the transport)."""

    async def send_verification_email(self, owner: Owner) -> None:
        """Ask the owner to verify their email address."""
        ...

    async def send_account_recovery(self, owner: Owner, token: str) -> None:
        """Deliver an account recovery link."""
        ...


@runtime_checkable
class IRecoveryTokenBroker(Protocol):
    """Issues and validates account recovery tokens."""

    async def create(self, owner: Owner) -> str:
        """Create (or replace) the recovery token of an owner."""
        ...

    async def exists(self, owner: Owner, token: str) -> bool:
        """Check that ``token`` is the current, unexpired token of the owner."""
        ...

    async def recently_created(self, owner: Owner) -> bool:
        """Whether a token was issued within the throttle window."""
        ...

    async def delete(self, owner: Owner) -> None:
        """Invalidate the owner's token."""
        ...


# ═══════════════════════════════════════════════════════════════
# EXTERNAL VERIFIERS
# ═══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class UserEntity:
    """WebAuthn user entity (id, name, display name)."""

    id: str
    name: str
    display_name: str

    @classmethod
    def from_owner(cls, owner: Owner, identity_field: str = "email") -> UserEntity:
        return cls(id=owner.id, name=owner.identity(identity_field), display_name=owner.name)


class VerificationFailure(str, Enum):
    """Why the external verifier rejected a credential."""

    MALFORMED = "malformed"
    UNEXPECTED_ACTION = "unexpected_action"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a WebAuthn verification.

    Exactly one of ``attributes`` and ``failure`` is set.
    """

    attributes: CredentialAttributes | None = None
    failure: VerificationFailure | None = None
    detail: str = field(default="", compare=False)

    @classmethod
    def verified(cls, attributes: CredentialAttributes) -> VerificationResult:
        return cls(attributes=attributes)

    @classmethod
    def failed(cls, failure: VerificationFailure, detail: str = "") -> VerificationResult:
        return cls(failure=failure, detail=detail)

    @property
    def ok(self) -> bool:
        return self.attributes is not None


@runtime_checkable
class IWebAuthnVerifier(Protocol):
    """External WebAuthn verifier.

    Options are exchanged as JSON text so they can be stored in the session
    and replayed byte-identical on confirmation.
    """

    def generate_creation_options(
        self,
        user: UserEntity,
        exclude: Sequence[CredentialAttributes] = (),
        *,
        passkey: bool = False,
    ) -> str:
        """Build attestation (registration) options."""
        ...

    def generate_request_options(
        self, allow: Sequence[CredentialAttributes] | None = None
    ) -> str:
        """Build assertion options. ``None`` means discoverable (passkey)."""
        ...

    def credential_id(self, raw: str | Mapping[str, Any]) -> bytes | None:
        """Extract the raw credential id from a response, None if malformed."""
        ...

    async def verify_attestation(
        self, raw: str | Mapping[str, Any], options: str
    ) -> VerificationResult:
        """Verify a registration response against stored creation options."""
        ...

    async def verify_assertion(
        self,
        raw: str | Mapping[str, Any],
        options: str,
        credential: CredentialAttributes,
        user: UserEntity | None = None,
    ) -> VerificationResult:
        """Verify an authentication response against stored request options."""
        ...


@runtime_checkable
class ITotpAuthenticator(Protocol):
    """External TOTP verifier."""

    def generate_secret(self) -> str: ...

    def provisioning_uri(self, secret: str, holder: str) -> str: ...

    async def verify(self, identity: str, secret: str, code: str) -> bool:
        """Verify a code, rejecting codes at or before the last accepted step."""
        ...


@runtime_checkable
class ITotpStepStore(Protocol):
    """Remembers the last accepted TOTP time-step per identity."""

    async def advance(self, identity: str, step: int, ttl: int) -> bool:
        """Atomically record ``step`` if it is newer than the stored step.

        Returns:
            True if the step was recorded (the code may be accepted).
        """
        ...


__all__: list[str] = [
    "Owner",
    "IOwnerRepository",
    "ICredentialRepository",
    "IAuthGuard",
    "IPasswordHasher",
    "INotifier",
    "IRecoveryTokenBroker",
    "UserEntity",
    "VerificationFailure",
    "VerificationResult",
    "IWebAuthnVerifier",
    "ITotpAuthenticator",
    "ITotpStepStore",
]
