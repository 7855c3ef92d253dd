"""Account registration.

Passkey registration is a two-phase claim: ``initialize_passkey`` persists
a password-less owner (CLAIMED) and issues creation options; the owner is
CONFIRMED once an attested credential is stored, or CANCELLED (deleted).
Password registration creates and authenticates the owner in one step.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from .credentials import MultiFactorCredential, base64url_decode
from .events import Registered
from .exceptions import ForbiddenError, PreconditionFailedError, ValidationError
from .inputs import (
    CredentialInput,
    PasskeyRegistrationInput,
    PasswordRegistrationInput,
    validate_input,
)
from .outcomes import PasskeyRegistrationStarted
from .ports import Owner, UserEntity
from .state import CeremonyState, SessionKeys

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .authentication import SessionAuthenticator
    from .challenges import PublicKeyChallenge
    from .config import CeremonyConfig
    from .dispatcher import EventDispatcher
    from .outcomes import AuthenticatedOutcome
    from .ports import ICredentialRepository, INotifier, IOwnerRepository, IPasswordHasher
    from .request import CeremonyRequest
    from .session import ISessionStore

logger = logging.getLogger(__name__)

PASSKEY_NAME = "User Passkey"


class RegistrationOrchestrator:
    """Passkey and password registration."""

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        credentials: ICredentialRepository,
        public_keys: PublicKeyChallenge,
        hasher: IPasswordHasher,
        notifier: INotifier,
        authenticator: SessionAuthenticator,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
    ) -> None:
        self.sessions = sessions
        self.owners = owners
        self.credentials = credentials
        self.public_keys = public_keys
        self.hasher = hasher
        self.notifier = notifier
        self.authenticator = authenticator
        self.dispatcher = dispatcher
        self.config = config

    # ── Passkey ──────────────────────────────────────────────────

    async def initialize_passkey(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> PasskeyRegistrationStarted:
        """Claim an owner row and issue passkey creation options.

        Raises:
            ValidationError: When the payload is malformed or the identity
                is taken.
        """
        data = validate_input(PasskeyRegistrationInput, payload)
        await self._ensure_unique(data)

        owner = await self.owners.create(
            Owner(
                id=str(uuid.uuid4()),
                email=data.email,
                username=data.username,
                name=data.name,
                has_password=False,
            )
        )
        options = await self.public_keys.issue_creation_options(
            CeremonyState(self.sessions, request.session_id),
            SessionKeys.REGISTER_PASSKEY_OPTIONS,
            UserEntity.from_owner(owner, self.config.identity_field),
            passkey=True,
        )
        logger.info("Claimed passkey owner %s", owner.id)
        return PasskeyRegistrationStarted(user_id=owner.id, options=options)

    async def confirm_passkey(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> AuthenticatedOutcome:
        """Verify the attested passkey and finish the registration.

        Raises:
            ValidationError: When the payload is malformed.
            PreconditionFailedError: When no creation options are pending.
            ChallengeFailedError: When the attestation does not verify.
        """
        data = validate_input(CredentialInput, payload)
        state = CeremonyState(self.sessions, request.session_id)
        attributes = await self.public_keys.attest(
            state, SessionKeys.REGISTER_PASSKEY_OPTIONS, data.credential, consume=False
        )

        owner = await self.owners.get(attributes.user_handle)
        if owner is None or owner.has_password:
            raise PreconditionFailedError()

        await self.credentials.create(
            MultiFactorCredential.public_key(owner.id, PASSKEY_NAME, attributes)
        )
        await state.forget(SessionKeys.REGISTER_PASSKEY_OPTIONS)
        return await self._registered(request, owner, method="passkey")

    async def cancel_passkey(self, request: CeremonyRequest) -> None:
        """Abandon a passkey registration and delete the claimed owner.

        Raises:
            PreconditionFailedError: When no creation options are pending.
            ForbiddenError: When the session is already authenticated as the
                claimed owner.
        """
        state = CeremonyState(self.sessions, request.session_id)
        options = await state.peek_options(SessionKeys.REGISTER_PASSKEY_OPTIONS)
        if options is None:
            raise PreconditionFailedError()

        owner_id = self.claimed_owner_id(options)
        if owner_id is not None and owner_id == request.user_id:
            raise ForbiddenError("The registration has already been confirmed.")

        await state.forget(SessionKeys.REGISTER_PASSKEY_OPTIONS)
        if owner_id is not None:
            owner = await self.owners.get(owner_id)
            if owner is not None and not owner.has_password:
                await self.owners.delete(owner_id)
                logger.info("Cancelled passkey registration of %s", owner_id)

    @staticmethod
    def claimed_owner_id(options: str) -> str | None:
        """Read the claimed owner id out of stored creation options."""
        try:
            user_id = json.loads(options)["user"]["id"]
            return base64url_decode(user_id).decode("utf-8")
        except (ValueError, KeyError, TypeError):
            return None

    # ── Password ─────────────────────────────────────────────────

    async def register_password(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> AuthenticatedOutcome:
        """Create a password account and authenticate it.

        Raises:
            ValidationError: When the payload is malformed or the identity
                is taken.
        """
        data = validate_input(
            PasswordRegistrationInput,
            payload,
            context={"password_min_length": self.config.password_min_length},
        )
        await self._ensure_unique(data)

        owner = await self.owners.create(
            Owner(
                id=str(uuid.uuid4()),
                email=data.email,
                username=data.username,
                name=data.name,
                password_hash=self.hasher.hash(data.password),
                has_password=True,
            )
        )
        return await self._registered(request, owner, method="password")

    # ── Shared ───────────────────────────────────────────────────

    async def _ensure_unique(self, data: PasskeyRegistrationInput) -> None:
        errors: dict[str, list[str]] = {}
        if await self.owners.find_by_identity("email", data.email):
            errors["email"] = ["The email has already been taken."]
        if self.config.identity_field == "username":
            if not data.username:
                errors["username"] = ["The username field is required."]
            elif await self.owners.find_by_identity("username", data.username):
                errors["username"] = ["The username has already been taken."]
        if errors:
            raise ValidationError(errors)

    async def _registered(
        self, request: CeremonyRequest, owner: Owner, *, method: str
    ) -> AuthenticatedOutcome:
        await self.dispatcher.emit(Registered.for_request(request, user_id=owner.id))
        if self.config.send_verification_email:
            await self.notifier.send_verification_email(owner)
        logger.info("Registered owner %s with %s", owner.id, method)
        return await self.authenticator.complete(request, owner, method=method)


__all__: list[str] = ["RegistrationOrchestrator", "PASSKEY_NAME"]
