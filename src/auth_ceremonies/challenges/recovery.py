"""Recovery code challenge."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..exceptions import ChallengeFailedError
from ..locking import KeyedLocks
from ..recovery_codes import RecoveryCodeManager

if TYPE_CHECKING:
    from ..config import CeremonyConfig
    from ..dispatcher import EventDispatcher
    from ..ports import IOwnerRepository, Owner
    from ..rate_limiting import Throttle
    from ..request import CeremonyRequest
    from ..timebox import Timebox, TimeboxScope


class RecoveryChallenge:
    """Consumes one of an owner's recovery codes.

    On success exactly the matched code is removed and the reduced set is
    persisted before returning. Concurrent attempts for the same owner are
    serialized within this process so a code cannot be spent twice.
    """

    CREDENTIAL_TYPE = "recovery-code"

    def __init__(
        self,
        owners: IOwnerRepository,
        dispatcher: EventDispatcher,
        timebox: Timebox,
        config: CeremonyConfig,
    ) -> None:
        self.owners = owners
        self.dispatcher = dispatcher
        self.timebox = timebox
        self.config = config
        self._locks = KeyedLocks()

    async def attempt(
        self,
        request: CeremonyRequest,
        throttle: Throttle,
        owner_id: str,
        code: str,
    ) -> Owner:
        """Spend ``code`` from the owner's recovery codes.

        Returns:
            The owner with the reduced code set.

        Raises:
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When the code is not in the set.
        """

        async def work(scope: TimeboxScope) -> Owner:
            await throttle.ensure_not_limited(request, self.dispatcher)
            return await self.spend(throttle, owner_id, code)

        return await self.timebox.call(work, self.config.timebox_microseconds)

    async def spend(self, throttle: Throttle, owner_id: str, code: str) -> Owner:
        """Remove ``code`` from the owner's set; the caller checks the throttle.

        Raises:
            ChallengeFailedError: When the code is not in the set.
        """
        async with self._locks.hold(owner_id):
            owner = await self.owners.get(owner_id)
            codes = RecoveryCodeManager.from_list(
                (owner.recovery_codes or ()) if owner else ()
            )
            if owner is None or not codes.contains(code):
                await throttle.hit()
                raise ChallengeFailedError(credential_type=self.CREDENTIAL_TYPE)

            await throttle.clear()
            owner.recovery_codes = tuple(codes.remove(code).to_list())
            await self.owners.save(owner)
            return owner


__all__: list[str] = ["RecoveryChallenge"]
