"""Multi-factor credential records."""

from __future__ import annotations

import base64
import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .exceptions import SignCountRegressionError


class CredentialType(str, Enum):
    """Kinds of multi-factor credentials."""

    TOTP = "totp"
    PUBLIC_KEY = "public-key"


def base64url_encode(data: bytes) -> str:
    """Encode bytes as unpadded base64url."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(data: str) -> bytes:
    """Decode unpadded base64url."""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def public_key_credential_id(raw_id: bytes) -> str:
    """Derive the stored id of a public key credential from its raw id.

    Example:
        ```python
        public_key_credential_id(b"\\x01\\x02")  # "public-key-AQI"
        ```
    """
    return f"{CredentialType.PUBLIC_KEY.value}-{base64url_encode(raw_id)}"


def totp_credential_id() -> str:
    return f"{CredentialType.TOTP.value}-{uuid.uuid4()}"


@dataclass(frozen=True)
class CredentialAttributes:
    """Verified public key credential data.

    This is what the WebAuthn verifier returns after attestation or
    assertion, and what is stored (as JSON) in the credential secret.

    Attributes:
        id: Raw credential id.
        public_key: COSE encoded public key.
        sign_count: Last seen signature counter.
        user_handle: Owner id the credential was created for.
        transports: Transport hints reported by the authenticator.
    """

    id: bytes
    public_key: bytes
    sign_count: int
    user_handle: str
    transports: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, data: str) -> CredentialAttributes:
        payload = json.loads(data)
        return cls(
            id=base64.b64decode(payload["id"]),
            public_key=base64.b64decode(payload["publicKey"]),
            sign_count=int(payload["signCount"]),
            user_handle=str(payload["userHandle"]),
            transports=tuple(payload.get("transports", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": base64.b64encode(self.id).decode("ascii"),
            "publicKey": base64.b64encode(self.public_key).decode("ascii"),
            "signCount": self.sign_count,
            "userHandle": self.user_handle,
            "transports": list(self.transports),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def with_sign_count(self, count: int) -> CredentialAttributes:
        """Return a copy with an advanced signature counter.

        Raises:
            SignCountRegressionError: If ``count`` is not greater than the
                stored counter.
        """
        if self.sign_count >= count:
            raise SignCountRegressionError(
                f"Signature count mismatch for credential [{self.credential_id}]."
            )
        return replace(self, sign_count=count)

    @property
    def credential_id(self) -> str:
        return public_key_credential_id(self.id)


@dataclass(frozen=True)
class MultiFactorCredential:
    """Persisted multi-factor credential.

    Attributes:
        id: Type-prefixed unique id.
        type: Credential kind.
        owner_id: Identifier of the owning account.
        name: Display label chosen by the owner.
        secret: TOTP shared key, or CredentialAttributes JSON for public keys.
        created_at: Creation timestamp.
    """

    id: str
    type: CredentialType
    owner_id: str
    name: str
    secret: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def totp(cls, owner_id: str, name: str, secret: str) -> MultiFactorCredential:
        return cls(
            id=totp_credential_id(),
            type=CredentialType.TOTP,
            owner_id=owner_id,
            name=name,
            secret=secret,
        )

    @classmethod
    def public_key(
        cls, owner_id: str, name: str, attributes: CredentialAttributes
    ) -> MultiFactorCredential:
        return cls(
            id=attributes.credential_id,
            type=CredentialType.PUBLIC_KEY,
            owner_id=owner_id,
            name=name,
            secret=attributes.to_json(),
        )

    @property
    def attributes(self) -> CredentialAttributes:
        """Decode the public key attributes stored in the secret.

        Raises:
            TypeError: For TOTP credentials.
        """
        if self.type is not CredentialType.PUBLIC_KEY:
            raise TypeError(f"Credential {self.id} is not a public key credential")
        return CredentialAttributes.from_json(self.secret)

    def to_dict(self) -> dict[str, Any]:
        """Public representation (without the secret)."""
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
        }


__all__: list[str] = [
    "CredentialType",
    "CredentialAttributes",
    "MultiFactorCredential",
    "base64url_encode",
    "base64url_decode",
    "public_key_credential_id",
    "totp_credential_id",
]
