"""In-memory adapters for testing and development.

Provides simple implementations of the persistence and delivery ports.
Data is stored in memory and will be lost on restart; none of these are
suitable for production use.
"""

from __future__ import annotations

import asyncio
import secrets
import time
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING

from .credentials import CredentialAttributes, CredentialType, MultiFactorCredential
from .exceptions import SignCountRegressionError
from .ports import (
    IAuthGuard,
    ICredentialRepository,
    INotifier,
    IOwnerRepository,
    IRecoveryTokenBroker,
    Owner,
)

if TYPE_CHECKING:
    from collections.abc import Callable


class InMemoryOwnerRepository(IOwnerRepository):
    """In-memory owner repository.

    Example:
        ```python
        owners = InMemoryOwnerRepository()
        await owners.create(Owner(id="1", email="a@example.com", name="A"))
        owner = await owners.find_by_identity("email", "A@example.com")
        ```
    """

    def __init__(self) -> None:
        self._owners: dict[str, Owner] = {}

    async def get(self, owner_id: str) -> Owner | None:
        owner = self._owners.get(owner_id)
        return replace(owner) if owner else None

    async def find_by_identity(
        self, field_name: str, value: str, *, has_password: bool | None = None
    ) -> Owner | None:
        wanted = value.lower()
        for owner in self._owners.values():
            if owner.identity(field_name).lower() != wanted:
                continue
            if has_password is not None and owner.has_password != has_password:
                continue
            return replace(owner)
        return None

    async def create(self, owner: Owner) -> Owner:
        if not owner.id:
            owner = replace(owner, id=str(uuid.uuid4()))
        self._owners[owner.id] = replace(owner)
        return owner

    async def save(self, owner: Owner) -> None:
        self._owners[owner.id] = replace(owner)

    async def delete(self, owner_id: str) -> None:
        self._owners.pop(owner_id, None)

    def all(self) -> list[Owner]:
        """Return every stored owner (testing utility)."""
        return list(self._owners.values())


class InMemoryCredentialRepository(ICredentialRepository):
    """In-memory multi-factor credential repository.

    ``update_sign_count`` holds a lock across the read and the write, which
    makes it the single compare-and-set the port requires.
    """

    def __init__(self) -> None:
        self._credentials: dict[str, MultiFactorCredential] = {}
        self._lock = asyncio.Lock()

    async def find(self, credential_id: str) -> MultiFactorCredential | None:
        return self._credentials.get(credential_id)

    async def find_all_by_owner_and_type(
        self, owner_id: str, credential_type: CredentialType | None = None
    ) -> list[MultiFactorCredential]:
        found = [
            credential
            for credential in self._credentials.values()
            if credential.owner_id == owner_id
            and (credential_type is None or credential.type is credential_type)
        ]
        return sorted(found, key=lambda credential: credential.created_at)

    async def create(self, credential: MultiFactorCredential) -> MultiFactorCredential:
        async with self._lock:
            if credential.id in self._credentials:
                raise ValueError(f"Credential {credential.id} already exists")
            self._credentials[credential.id] = credential
        return credential

    async def update_secret(self, credential_id: str, secret: str) -> None:
        async with self._lock:
            credential = self._credentials[credential_id]
            self._credentials[credential_id] = replace(credential, secret=secret)

    async def update_sign_count(self, credential_id: str, sign_count: int) -> bool:
        async with self._lock:
            credential = self._credentials.get(credential_id)
            if credential is None or credential.type is not CredentialType.PUBLIC_KEY:
                return False
            attributes = CredentialAttributes.from_json(credential.secret)
            try:
                advanced = attributes.with_sign_count(sign_count)
            except SignCountRegressionError:
                return False
            self._credentials[credential_id] = replace(credential, secret=advanced.to_json())
            return True

    async def delete(self, credential_id: str) -> None:
        async with self._lock:
            self._credentials.pop(credential_id, None)


class InMemoryAuthGuard(IAuthGuard):
    """Records which owner each session is authenticated as."""

    def __init__(self) -> None:
        self.sessions: dict[str, str] = {}
        self.remembered: set[str] = set()

    async def login(self, session_id: str, owner: Owner, remember: bool = False) -> None:
        self.sessions[session_id] = owner.id
        if remember:
            self.remembered.add(session_id)

    async def logout(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)
        self.remembered.discard(session_id)

    async def user_id(self, session_id: str) -> str | None:
        return self.sessions.get(session_id)


class InMemoryNotifier(INotifier):
    """Collects notifications instead of delivering them."""

    def __init__(self) -> None:
        self.verification_emails: list[str] = []
        self.recovery_links: list[tuple[str, str]] = []

    async def send_verification_email(self, owner: Owner) -> None:
        self.verification_emails.append(owner.email)

    async def send_account_recovery(self, owner: Owner, token: str) -> None:
        self.recovery_links.append((owner.email, token))


class InMemoryRecoveryTokenBroker(IRecoveryTokenBroker):
    """Recovery tokens kept in memory, one per owner.

    Args:
        expires: Seconds a token stays valid.
        throttle: Seconds during which a new token is refused.
        clock: Time source, injectable for tests.
    """

    def __init__(
        self,
        expires: int = 3600,
        throttle: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tokens: dict[str, tuple[str, float]] = {}
        self._expires = expires
        self._throttle = throttle
        self._clock = clock

    async def create(self, owner: Owner) -> str:
        token = secrets.token_urlsafe(32)
        self._tokens[owner.id] = (token, self._clock())
        return token

    async def exists(self, owner: Owner, token: str) -> bool:
        entry = self._tokens.get(owner.id)
        if entry is None or self._clock() - entry[1] > self._expires:
            return False
        return secrets.compare_digest(entry[0].encode(), token.encode())

    async def recently_created(self, owner: Owner) -> bool:
        entry = self._tokens.get(owner.id)
        return entry is not None and self._clock() - entry[1] < self._throttle

    async def delete(self, owner: Owner) -> None:
        self._tokens.pop(owner.id, None)


__all__: list[str] = [
    "InMemoryOwnerRepository",
    "InMemoryCredentialRepository",
    "InMemoryAuthGuard",
    "InMemoryNotifier",
    "InMemoryRecoveryTokenBroker",
]
