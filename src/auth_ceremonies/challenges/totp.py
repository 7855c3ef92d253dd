"""TOTP challenge."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..credentials import CredentialType
from ..exceptions import ChallengeFailedError

if TYPE_CHECKING:
    from ..config import CeremonyConfig
    from ..dispatcher import EventDispatcher
    from ..ports import ICredentialRepository, ITotpAuthenticator
    from ..rate_limiting import Throttle
    from ..request import CeremonyRequest
    from ..timebox import Timebox, TimeboxScope

logger = logging.getLogger(__name__)


class TotpChallenge:
    """Verifies a TOTP code against every TOTP credential of an owner.

    The whole scan counts as one attempt: a wrong code increments the
    throttle once, however many secrets were tried. The attempt is
    timeboxed; a successful attempt returns early.
    """

    CREDENTIAL_TYPE = CredentialType.TOTP.value

    def __init__(
        self,
        authenticator: ITotpAuthenticator,
        credentials: ICredentialRepository,
        dispatcher: EventDispatcher,
        timebox: Timebox,
        config: CeremonyConfig,
    ) -> None:
        self.authenticator = authenticator
        self.credentials = credentials
        self.dispatcher = dispatcher
        self.timebox = timebox
        self.config = config

    async def attempt(
        self,
        request: CeremonyRequest,
        throttle: Throttle,
        owner_id: str,
        code: str,
    ) -> None:
        """Verify ``code`` for ``owner_id``.

        Raises:
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When no secret accepts the code, including
                codes already accepted in the current or an earlier step.
        """

        async def work(scope: TimeboxScope) -> None:
            await throttle.ensure_not_limited(request, self.dispatcher)
            if not await self.has_valid_code(owner_id, code):
                await throttle.hit()
                raise ChallengeFailedError(credential_type=self.CREDENTIAL_TYPE)
            await throttle.clear()
            scope.return_early()

        await self.timebox.call(work, self.config.timebox_microseconds)

    async def has_valid_code(self, owner_id: str, code: str) -> bool:
        credentials = await self.credentials.find_all_by_owner_and_type(
            owner_id, CredentialType.TOTP
        )
        for credential in credentials:
            if await self.authenticator.verify(owner_id, credential.secret, code):
                logger.debug("TOTP code accepted by credential %s", credential.id)
                return True
        return False


__all__: list[str] = ["TotpChallenge"]
