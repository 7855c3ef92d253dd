"""Time-based one-time password registration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..credentials import CredentialType, MultiFactorCredential
from ..exceptions import ChallengeFailedError, PreconditionFailedError
from ..inputs import TotpConfirmationInput, validate_input
from ..outcomes import CredentialRegistered, TotpRegistrationStarted
from .base import SettingsCeremony

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..config import CeremonyConfig
    from ..dispatcher import EventDispatcher
    from ..ports import ICredentialRepository, IOwnerRepository, ITotpAuthenticator
    from ..request import CeremonyRequest
    from ..session import ISessionStore
    from ..sudo import SudoModeGuard

logger = logging.getLogger(__name__)


class TotpRegistration(SettingsCeremony):
    """Adds an authenticator app to a password account.

    The secret only becomes a credential once the owner proves their app
    produces codes for it.

    Example:
        ```python
        started = await registration.initialize(request)
        show_qr_code(started.provisioning_uri)

        registered = await registration.confirm(
            request, {"name": "Phone", "code": "123456"}
        )
        ```
    """

    password_only = True

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        credentials: ICredentialRepository,
        authenticator: ITotpAuthenticator,
        sudo: SudoModeGuard,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
    ) -> None:
        super().__init__(sessions, owners, sudo, dispatcher)
        self.credentials = credentials
        self.authenticator = authenticator
        self.config = config

    async def initialize(self, request: CeremonyRequest) -> TotpRegistrationStarted:
        """Generate a pending secret, replacing any previous one."""
        owner = await self.sensitive_owner(request)
        secret = self.authenticator.generate_secret()
        await self.state(request).set_pending_totp_secret(secret)
        return TotpRegistrationStarted(
            secret=secret,
            provisioning_uri=self.authenticator.provisioning_uri(
                secret, owner.identity(self.config.identity_field)
            ),
        )

    async def pending(self, request: CeremonyRequest) -> TotpRegistrationStarted:
        """Describe the pending registration for the confirmation page.

        Raises:
            PreconditionFailedError: When no secret is pending.
        """
        owner = await self.owner(request)
        secret = await self.state(request).pending_totp_secret()
        if not secret:
            raise PreconditionFailedError()
        return TotpRegistrationStarted(
            secret=secret,
            provisioning_uri=self.authenticator.provisioning_uri(
                secret, owner.identity(self.config.identity_field)
            ),
        )

    async def confirm(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> CredentialRegistered:
        """Persist the pending secret once a code it produced is echoed back.

        Raises:
            ValidationError: When the name or code is malformed.
            PreconditionFailedError: When no secret is pending.
            ChallengeFailedError: When the code does not verify.
        """
        owner = await self.sensitive_owner(request)
        data = validate_input(TotpConfirmationInput, payload)
        state = self.state(request)
        secret = await state.pending_totp_secret()
        if not secret:
            raise PreconditionFailedError()

        if not await self.authenticator.verify(owner.id, secret, data.code):
            raise ChallengeFailedError(credential_type=CredentialType.TOTP.value)

        credential = await self.credentials.create(
            MultiFactorCredential.totp(owner.id, data.name, secret)
        )
        await state.clear_pending_totp_secret()
        logger.info("Registered TOTP credential %s for %s", credential.id, owner.id)
        return CredentialRegistered(credential)

    async def cancel(self, request: CeremonyRequest) -> None:
        await self.state(request).clear_pending_totp_secret()


__all__: list[str] = ["TotpRegistration"]
