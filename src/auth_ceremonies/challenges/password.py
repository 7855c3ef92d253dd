"""Password challenge."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import ChallengeFailedError

if TYPE_CHECKING:
    from ..dispatcher import EventDispatcher
    from ..ports import IOwnerRepository, IPasswordHasher, Owner
    from ..rate_limiting import Throttle
    from ..request import CeremonyRequest

logger = logging.getLogger(__name__)


class PasswordChallenge:
    """Verifies an owner's password behind a throttle.

    The caller is responsible for timeboxing; this class only enforces the
    check, verify, hit/clear order.
    """

    CREDENTIAL_TYPE = "password"

    def __init__(
        self,
        hasher: IPasswordHasher,
        dispatcher: EventDispatcher,
        owners: IOwnerRepository | None = None,
    ) -> None:
        """Initialize the challenge.

        Args:
            hasher: Password hasher used for verification.
            dispatcher: Receives Lockout events.
            owners: When given, outdated hashes are upgraded on success.
        """
        self.hasher = hasher
        self.dispatcher = dispatcher
        self.owners = owners

    async def attempt(
        self,
        request: CeremonyRequest,
        throttle: Throttle,
        owner: Owner | None,
        password: str,
    ) -> Owner:
        """Verify ``password`` for ``owner``.

        ``owner`` may be None (unknown identity); that fails exactly like a
        wrong password.

        Raises:
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When the password does not match.
        """
        await throttle.ensure_not_limited(request, self.dispatcher)

        if owner is None or not self._matches(owner, password):
            await throttle.hit()
            raise ChallengeFailedError(credential_type=self.CREDENTIAL_TYPE)

        await throttle.clear()
        await self._rehash_if_needed(owner, password)
        return owner

    def _matches(self, owner: Owner, password: str) -> bool:
        if not owner.has_password or not owner.password_hash:
            return False
        return self.hasher.verify(owner.password_hash, password)

    async def _rehash_if_needed(self, owner: Owner, password: str) -> None:
        needs_rehash = getattr(self.hasher, "needs_rehash", None)
        if self.owners is None or needs_rehash is None or owner.password_hash is None:
            return
        if needs_rehash(owner.password_hash):
            owner.password_hash = self.hasher.hash(password)
            await self.owners.save(owner)
            logger.info("Upgraded password hash for owner %s", owner.id)


__all__: list[str] = ["PasswordChallenge"]
