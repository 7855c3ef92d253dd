"""Completion of a successful ceremony."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .events import Authenticated
from .outcomes import AuthenticatedOutcome
from .state import CeremonyState

if TYPE_CHECKING:
    from .dispatcher import EventDispatcher
    from .ports import IAuthGuard, Owner
    from .request import CeremonyRequest
    from .session import ISessionStore
    from .sudo import SudoModeGuard

logger = logging.getLogger(__name__)


class SessionAuthenticator:
    """Turns a verified owner into a fully authenticated session.

    Every flow that ends in authentication (password login, passkey login,
    multi-factor challenge, registration, account recovery) goes through
    :meth:`complete`, which:

    1. drops any partial-authentication and challenge slots,
    2. rotates the session id,
    3. logs the owner in through the host guard,
    4. enables sudo mode,
    5. emits ``Authenticated``.
    """

    def __init__(
        self,
        guard: IAuthGuard,
        sessions: ISessionStore,
        sudo: SudoModeGuard,
        dispatcher: EventDispatcher,
    ) -> None:
        self.guard = guard
        self.sessions = sessions
        self.sudo = sudo
        self.dispatcher = dispatcher

    async def complete(
        self,
        request: CeremonyRequest,
        owner: Owner,
        *,
        remember: bool = False,
        redirect_to: str | None = None,
        method: str = "password",
    ) -> AuthenticatedOutcome:
        state = CeremonyState(self.sessions, request.session_id)
        await state.clear_multi_factor()
        await state.purge_challenge_options()

        session_id = await self.sessions.migrate(request.session_id)
        await self.guard.login(session_id, owner, remember)
        await self.sudo.enable(session_id)

        await self.dispatcher.emit(
            Authenticated.for_request(request, user_id=owner.id, method=method)
        )
        logger.info("Owner %s authenticated with %s", owner.id, method)
        return AuthenticatedOutcome(
            user_id=owner.id,
            session_id=session_id,
            redirect_to=redirect_to or request.intended_url,
        )

    async def logout(self, request: CeremonyRequest) -> None:
        """Log out and discard every ceremony slot of the session."""
        await self.guard.logout(request.session_id)
        await self.sessions.invalidate(request.session_id)
        logger.info("Session of %s logged out", request.user_id)


__all__: list[str] = ["SessionAuthenticator"]
