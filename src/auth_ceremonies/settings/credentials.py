"""Overview and removal of multi-factor credentials."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..events import CredentialRemoved
from ..exceptions import NotFoundError
from .base import SettingsCeremony

if TYPE_CHECKING:
    from ..credentials import MultiFactorCredential
    from ..dispatcher import EventDispatcher
    from ..ports import ICredentialRepository, IOwnerRepository
    from ..request import CeremonyRequest
    from ..session import ISessionStore
    from ..sudo import SudoModeGuard

logger = logging.getLogger(__name__)


class CredentialManager(SettingsCeremony):
    """Lists and deletes the signed-in owner's credentials.

    A credential that does not exist and one that belongs to another owner
    are indistinguishable to the caller.
    """

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        credentials: ICredentialRepository,
        sudo: SudoModeGuard,
        dispatcher: EventDispatcher,
    ) -> None:
        super().__init__(sessions, owners, sudo, dispatcher)
        self.credentials = credentials

    async def overview(self, request: CeremonyRequest) -> list[MultiFactorCredential]:
        owner = await self.owner(request)
        return await self.credentials.find_all_by_owner_and_type(owner.id)

    async def delete(self, request: CeremonyRequest, credential_id: str) -> None:
        """Delete one of the owner's credentials.

        Raises:
            SudoModeRequiredError: When sudo mode is not active.
            NotFoundError: When the credential is unknown or foreign.
        """
        owner = await self.sensitive_owner(request)
        credential = await self.credentials.find(credential_id)
        if credential is None or credential.owner_id != owner.id:
            raise NotFoundError(f"Credential {credential_id} not found.")

        await self.credentials.delete(credential.id)
        await self.dispatcher.emit(
            CredentialRemoved.for_request(
                request,
                user_id=owner.id,
                credential_id=credential.id,
                credential_type=credential.type,
            )
        )
        logger.info("Removed credential %s of %s", credential.id, owner.id)


__all__: list[str] = ["CredentialManager"]
