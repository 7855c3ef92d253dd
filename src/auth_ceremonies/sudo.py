"""Sudo mode.

A time-windowed re-confirmation gate for sensitive actions. The session is
either CONFIRMED (``sudo.confirmedAt`` set) or UNCONFIRMED; an expired
confirmation records ``sudo.requiredAt`` so the confirmation page knows a
challenge is owed. The two slots are never set together.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from .credentials import CredentialType
from .events import SudoModeChallenged, SudoModeEnabled
from .exceptions import PreconditionFailedError, SudoModeRequiredError
from .inputs import CredentialInput, PasswordConfirmationInput, validate_input
from .outcomes import ChallengePage
from .ports import UserEntity
from .rate_limiting import Throttle, challenge_key
from .state import CeremonyState, SessionKeys

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .challenges import PasswordChallenge, PublicKeyChallenge
    from .config import CeremonyConfig
    from .dispatcher import EventDispatcher
    from .ports import ICredentialRepository, IOwnerRepository, Owner
    from .rate_limiting import IRateLimiter
    from .request import CeremonyRequest
    from .session import ISessionStore
    from .timebox import Timebox, TimeboxScope

logger = logging.getLogger(__name__)


class SudoModeGuard:
    """Gate for sensitive actions.

    Example:
        ```python
        guard = SudoModeGuard(sessions, dispatcher, config)

        await guard.ensure(request)  # raises SudoModeRequiredError
        await change_password(...)
        ```
    """

    def __init__(
        self,
        sessions: ISessionStore,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.config = config
        self.clock = clock

    async def ensure(self, request: CeremonyRequest) -> None:
        """Allow the request if sudo mode is active, sliding the window.

        Raises:
            SudoModeRequiredError: When the confirmation expired or never
                happened. ``expects_json`` mirrors the request.
        """
        state = CeremonyState(self.sessions, request.session_id)
        now = self.clock()
        confirmed_at = await state.sudo_confirmed_at()

        if confirmed_at is not None and now - confirmed_at < self.config.sudo_mode_duration:
            await state.confirm_sudo(now)
            return

        await state.require_sudo(now)
        await self.dispatcher.emit(
            SudoModeChallenged.for_request(request, user_id=request.user_id or "")
        )
        logger.info("Sudo mode required for session of %s", request.user_id)
        raise SudoModeRequiredError(expects_json=request.expects_json)

    async def enable(self, session_id: str) -> None:
        """Confirm sudo mode now and clear any pending requirement."""
        await CeremonyState(self.sessions, session_id).confirm_sudo(self.clock())

    async def is_required(self, session_id: str) -> bool:
        return await CeremonyState(self.sessions, session_id).sudo_required_at() is not None


class SudoModeChallenge:
    """Confirmation page and submission for sudo mode.

    Password accounts confirm with their password; passkey accounts confirm
    with one of their public key credentials.
    """

    SCOPE = "sudo-mode"

    def __init__(
        self,
        guard: SudoModeGuard,
        owners: IOwnerRepository,
        credentials: ICredentialRepository,
        passwords: PasswordChallenge,
        public_keys: PublicKeyChallenge,
        limiter: IRateLimiter,
        timebox: Timebox,
        config: CeremonyConfig,
    ) -> None:
        self.guard = guard
        self.owners = owners
        self.credentials = credentials
        self.passwords = passwords
        self.public_keys = public_keys
        self.limiter = limiter
        self.timebox = timebox
        self.config = config

    def throttle(self, request: CeremonyRequest) -> Throttle:
        return Throttle.configured(
            self.limiter,
            challenge_key(self.SCOPE, request.user_id or "", request.ip_address),
            self.config,
        )

    async def _owner(self, request: CeremonyRequest) -> Owner:
        if not await self.guard.is_required(request.session_id):
            raise PreconditionFailedError("Sudo-mode confirmation is not required.")
        owner = await self.owners.get(request.user_id) if request.user_id else None
        if owner is None:
            raise PreconditionFailedError()
        return owner

    async def page(self, request: CeremonyRequest) -> ChallengePage:
        """Describe the confirmation page.

        Raises:
            PreconditionFailedError: When no confirmation is required.
        """
        owner = await self._owner(request)
        if owner.has_password:
            return ChallengePage(method="password")

        keys = await self.credentials.find_all_by_owner_and_type(
            owner.id, CredentialType.PUBLIC_KEY
        )
        options = await self.public_keys.issue_request_options(
            CeremonyState(self.guard.sessions, request.session_id),
            SessionKeys.SUDO_PUBLIC_KEY_OPTIONS,
            [key.attributes for key in keys],
        )
        return ChallengePage(
            available_methods=[CredentialType.PUBLIC_KEY] if options else [],
            options=options,
            method=CredentialType.PUBLIC_KEY.value,
        )

    async def confirm(self, request: CeremonyRequest, payload: Mapping[str, Any]) -> None:
        """Confirm sudo mode with a password or a public key credential.

        Raises:
            PreconditionFailedError: When no confirmation is required.
            ValidationError: When the payload is malformed.
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When the confirmation does not verify.
        """
        owner = await self._owner(request)
        throttle = self.throttle(request)

        if owner.has_password:
            data = validate_input(PasswordConfirmationInput, payload)

            async def work(scope: TimeboxScope) -> None:
                await self.passwords.attempt(request, throttle, owner, data.password)

            await self.timebox.call(work, self.config.timebox_microseconds)
        else:
            credential = validate_input(CredentialInput, payload).credential
            await self.public_keys.confirm(
                request,
                CeremonyState(self.guard.sessions, request.session_id),
                SessionKeys.SUDO_PUBLIC_KEY_OPTIONS,
                throttle,
                credential,
                user=UserEntity.from_owner(owner, self.config.identity_field),
            )

        await self.guard.enable(request.session_id)
        await self.guard.dispatcher.emit(SudoModeEnabled.for_request(request, user_id=owner.id))
        logger.info("Sudo mode enabled for %s", owner.id)


__all__: list[str] = ["SudoModeGuard", "SudoModeChallenge"]
