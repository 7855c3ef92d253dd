"""Shared plumbing of the account settings ceremonies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import ForbiddenError, PasswordRequiredError
from ..state import CeremonyState

if TYPE_CHECKING:
    from ..dispatcher import EventDispatcher
    from ..ports import IOwnerRepository, Owner
    from ..request import CeremonyRequest
    from ..session import ISessionStore
    from ..sudo import SudoModeGuard


class SettingsCeremony:
    """Base class for actions taken by an authenticated owner.

    Args:
        sessions: Session store holding the pending settings slots.
        owners: Owner repository.
        sudo: Sudo mode gate for sensitive steps.
        dispatcher: Event dispatcher.
    """

    #: Whether only password accounts may use this ceremony.
    password_only: bool = False

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        sudo: SudoModeGuard,
        dispatcher: EventDispatcher,
    ) -> None:
        self.sessions = sessions
        self.owners = owners
        self.sudo = sudo
        self.dispatcher = dispatcher

    def state(self, request: CeremonyRequest) -> CeremonyState:
        return CeremonyState(self.sessions, request.session_id)

    async def owner(self, request: CeremonyRequest) -> Owner:
        """Resolve the authenticated owner of the request.

        Raises:
            ForbiddenError: When the request is not authenticated.
            PasswordRequiredError: When the ceremony is password only and
                the owner signs in with a passkey.
        """
        owner = await self.owners.get(request.user_id) if request.user_id else None
        if owner is None:
            raise ForbiddenError("Unauthenticated.")
        if self.password_only and not owner.has_password:
            raise PasswordRequiredError("This action requires a password based account.")
        return owner

    async def sensitive_owner(self, request: CeremonyRequest) -> Owner:
        """Resolve the owner and require an active sudo mode.

        Raises:
            ForbiddenError: As :meth:`owner`.
            SudoModeRequiredError: When sudo mode is not active.
        """
        owner = await self.owner(request)
        await self.sudo.ensure(request)
        return owner


__all__: list[str] = ["SettingsCeremony"]
