"""Security key (public key credential) registration from the account settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..credentials import CredentialType, MultiFactorCredential
from ..exceptions import ChallengeFailedError
from ..inputs import PublicKeyRegistrationInput, validate_input
from ..outcomes import CredentialRegistered
from ..ports import UserEntity
from ..state import SessionKeys
from .base import SettingsCeremony

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..challenges import PublicKeyChallenge
    from ..config import CeremonyConfig
    from ..dispatcher import EventDispatcher
    from ..ports import ICredentialRepository, IOwnerRepository
    from ..request import CeremonyRequest
    from ..session import ISessionStore
    from ..sudo import SudoModeGuard

logger = logging.getLogger(__name__)


class PublicKeyCredentialRegistration(SettingsCeremony):
    """Registers an additional public key credential for the signed-in owner.

    Keys the owner already holds are excluded from the creation options, so
    an authenticator cannot be registered twice.
    """

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        credentials: ICredentialRepository,
        public_keys: PublicKeyChallenge,
        sudo: SudoModeGuard,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
    ) -> None:
        super().__init__(sessions, owners, sudo, dispatcher)
        self.credentials = credentials
        self.public_keys = public_keys
        self.config = config

    async def initialize(self, request: CeremonyRequest) -> str:
        """Issue creation options and return them.

        Raises:
            SudoModeRequiredError: When sudo mode is not active.
        """
        owner = await self.sensitive_owner(request)
        existing = await self.credentials.find_all_by_owner_and_type(
            owner.id, CredentialType.PUBLIC_KEY
        )
        return await self.public_keys.issue_creation_options(
            self.state(request),
            SessionKeys.SETTINGS_PUBLIC_KEY_OPTIONS,
            UserEntity.from_owner(owner, self.config.identity_field),
            [credential.attributes for credential in existing],
        )

    async def confirm(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> CredentialRegistered:
        """Verify the attestation and persist the credential.

        Raises:
            ValidationError: When the name or credential is missing.
            PreconditionFailedError: When no creation options are pending.
            ChallengeFailedError: When the attestation does not verify or
                was made for another owner.
        """
        owner = await self.sensitive_owner(request)
        data = validate_input(PublicKeyRegistrationInput, payload)
        attributes = await self.public_keys.attest(
            self.state(request), SessionKeys.SETTINGS_PUBLIC_KEY_OPTIONS, data.credential
        )
        if attributes.user_handle != owner.id:
            raise ChallengeFailedError(credential_type=CredentialType.PUBLIC_KEY.value)

        credential = await self.credentials.create(
            MultiFactorCredential.public_key(owner.id, data.name, attributes)
        )
        logger.info("Registered public key credential %s for %s", credential.id, owner.id)
        return CredentialRegistered(credential)


__all__: list[str] = ["PublicKeyCredentialRegistration"]
