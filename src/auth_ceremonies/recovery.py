"""Account recovery.

An owner who lost every factor requests a recovery link by email. Following
the link, they answer with one of their recovery codes (if they have any)
and are signed in with sudo mode enabled, so they can repair their
credentials straight away.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .events import AccountRecovered, AccountRecoveryFailed, AccountRecoveryRequested
from .exceptions import ChallengeFailedError, PreconditionFailedError
from .inputs import AccountRecoveryInput, RecoveryRequestInput, validate_input
from .rate_limiting import Throttle, challenge_key, ip_key

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .authentication import SessionAuthenticator
    from .challenges import RecoveryChallenge
    from .config import CeremonyConfig
    from .dispatcher import EventDispatcher
    from .outcomes import AuthenticatedOutcome
    from .ports import INotifier, IOwnerRepository, IRecoveryTokenBroker, Owner
    from .rate_limiting import IRateLimiter
    from .request import CeremonyRequest
    from .timebox import Timebox, TimeboxScope

logger = logging.getLogger(__name__)


class AccountRecovery:
    """Recovery link requests and the recovery challenge.

    Example:
        ```python
        await recovery.request_link(request, {"email": "jane@example.com"})

        # later, from the emailed link
        outcome = await recovery.challenge(
            request, {"email": "jane@example.com", "token": token, "code": "PIPIM-7LTUT"}
        )
        ```
    """

    SCOPE = "account-recovery"

    def __init__(
        self,
        owners: IOwnerRepository,
        tokens: IRecoveryTokenBroker,
        notifier: INotifier,
        codes: RecoveryChallenge,
        authenticator: SessionAuthenticator,
        limiter: IRateLimiter,
        dispatcher: EventDispatcher,
        timebox: Timebox,
        config: CeremonyConfig,
    ) -> None:
        self.owners = owners
        self.tokens = tokens
        self.notifier = notifier
        self.codes = codes
        self.authenticator = authenticator
        self.limiter = limiter
        self.dispatcher = dispatcher
        self.timebox = timebox
        self.config = config

    # ── Recovery link ────────────────────────────────────────────

    async def request_link(self, request: CeremonyRequest, payload: Mapping[str, Any]) -> None:
        """Email a recovery link.

        Every request counts against the ``ip::<ip>`` throttle, and the
        answer is the same whether or not the email belongs to an account.

        Raises:
            RateLimitedError: When the throttle is exhausted.
            ValidationError: When the payload is malformed.
        """
        throttle = Throttle.configured(self.limiter, ip_key(request.ip_address), self.config)
        await throttle.ensure_not_limited(request, self.dispatcher)
        await throttle.hit()

        async def work(scope: TimeboxScope) -> None:
            data = validate_input(RecoveryRequestInput, payload)
            owner = await self.owners.find_by_identity("email", data.email)
            if owner is None:
                logger.info("Recovery requested for an unknown email")
                return
            if await self.tokens.recently_created(owner):
                logger.info("Recovery recently requested for %s", owner.id)
                return

            token = await self.tokens.create(owner)
            await self.notifier.send_account_recovery(owner, token)
            await self.dispatcher.emit(
                AccountRecoveryRequested.for_request(request, user_id=owner.id)
            )
            logger.info("Recovery link sent to %s", owner.id)

        await self.timebox.call(work, self.config.timebox_microseconds)

    # ── Challenge ────────────────────────────────────────────────

    async def page(
        self, request: CeremonyRequest, email: str, token: str
    ) -> AuthenticatedOutcome | None:
        """Resolve a followed recovery link.

        Returns:
            None when a recovery code must be entered, or the outcome of
            recovering an owner that has no recovery codes.

        Raises:
            PreconditionFailedError: When the link is invalid or expired.
        """
        owner = await self._linked_owner(email, token)
        if owner is None:
            raise PreconditionFailedError("The recovery link is invalid or expired.")
        if owner.recovery_codes:
            return None
        return await self._recovered(request, owner)

    async def challenge(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> AuthenticatedOutcome:
        """Recover an account with the emailed token and a recovery code.

        Raises:
            ValidationError: When the payload is malformed.
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When the link or the recovery code is
                invalid.
        """
        data = validate_input(AccountRecoveryInput, payload)
        throttle = Throttle.configured(
            self.limiter,
            challenge_key(self.SCOPE, data.email, request.ip_address),
            self.config,
        )

        async def work(scope: TimeboxScope) -> Owner:
            await throttle.ensure_not_limited(request, self.dispatcher)

            owner = await self._linked_owner(data.email, data.token)
            if owner is None:
                await throttle.hit()
                raise ChallengeFailedError("The recovery link is invalid or expired.")

            if owner.recovery_codes:
                try:
                    owner = await self.codes.spend(throttle, owner.id, data.code or "")
                except ChallengeFailedError:
                    await self.dispatcher.emit(
                        AccountRecoveryFailed.for_request(request, user_id=owner.id)
                    )
                    raise
            else:
                await throttle.clear()

            scope.return_early()
            return owner

        owner = await self.timebox.call(work, self.config.timebox_microseconds)
        return await self._recovered(request, owner)

    async def _linked_owner(self, email: str, token: str) -> Owner | None:
        owner = await self.owners.find_by_identity("email", email)
        if owner is None or not await self.tokens.exists(owner, token):
            return None
        return owner

    async def _recovered(self, request: CeremonyRequest, owner: Owner) -> AuthenticatedOutcome:
        await self.tokens.delete(owner)
        outcome = await self.authenticator.complete(request, owner, method="recovery")
        await self.dispatcher.emit(AccountRecovered.for_request(request, user_id=owner.id))
        logger.info("Account %s recovered", owner.id)
        return outcome


__all__: list[str] = ["AccountRecovery"]
