"""Primary authentication: password and passkey logins."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .events import AuthenticationFailed
from .exceptions import ChallengeFailedError
from .inputs import PasskeyLoginInput, PasswordLoginInput, validate_input
from .rate_limiting import Throttle, challenge_key, scoped_ip_key
from .state import CeremonyState, SessionKeys

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .authentication import SessionAuthenticator
    from .challenges import PasswordChallenge, PublicKeyChallenge
    from .config import CeremonyConfig
    from .dispatcher import EventDispatcher
    from .multifactor import MultiFactorOrchestrator
    from .outcomes import AuthenticatedOutcome, MultiFactorRequired
    from .ports import IOwnerRepository, Owner
    from .rate_limiting import IRateLimiter
    from .request import CeremonyRequest
    from .session import ISessionStore
    from .timebox import Timebox, TimeboxScope

logger = logging.getLogger(__name__)


class LoginOrchestrator:
    """Password and passkey logins.

    A password login is timeboxed as a whole, so a correct password that
    leads to a second factor answers no faster than a wrong one.
    """

    PASSWORD_SCOPE = "login"
    PASSKEY_SCOPE = "passkey-login"

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        passwords: PasswordChallenge,
        public_keys: PublicKeyChallenge,
        multi_factor: MultiFactorOrchestrator,
        authenticator: SessionAuthenticator,
        limiter: IRateLimiter,
        dispatcher: EventDispatcher,
        timebox: Timebox,
        config: CeremonyConfig,
    ) -> None:
        self.sessions = sessions
        self.owners = owners
        self.passwords = passwords
        self.public_keys = public_keys
        self.multi_factor = multi_factor
        self.authenticator = authenticator
        self.limiter = limiter
        self.dispatcher = dispatcher
        self.timebox = timebox
        self.config = config

    # ── Password ─────────────────────────────────────────────────

    async def password(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> AuthenticatedOutcome | MultiFactorRequired:
        """Authenticate with an identity and a password.

        Returns:
            ``AuthenticatedOutcome`` when no second factor is owed, else
            ``MultiFactorRequired``.

        Raises:
            ValidationError: When the payload is malformed.
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When the identity or password is wrong.
        """
        data = validate_input(PasswordLoginInput, payload)
        throttle = Throttle.configured(
            self.limiter,
            challenge_key(self.PASSWORD_SCOPE, data.identity, request.ip_address),
            self.config,
        )

        async def work(scope: TimeboxScope) -> AuthenticatedOutcome | MultiFactorRequired:
            owner = await self.owners.find_by_identity(
                self.config.identity_field, data.identity, has_password=True
            )
            try:
                owner = await self.passwords.attempt(request, throttle, owner, data.password)
            except ChallengeFailedError:
                await self.dispatcher.emit(
                    AuthenticationFailed.for_request(request, identity=data.identity)
                )
                raise

            await CeremonyState(self.sessions, request.session_id).purge_challenge_options()
            required = await self.multi_factor.initiate(request, owner, remember=data.remember)
            if required is not None:
                return required
            return await self.authenticator.complete(request, owner, remember=data.remember)

        return await self.timebox.call(work, self.config.timebox_microseconds)

    # ── Passkey ──────────────────────────────────────────────────

    async def passkey_options(self, request: CeremonyRequest) -> str:
        """Issue discoverable assertion options for a passkey login."""
        return await self.public_keys.issue_discoverable_options(
            CeremonyState(self.sessions, request.session_id),
            SessionKeys.LOGIN_PASSKEY_OPTIONS,
        )

    async def passkey(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> AuthenticatedOutcome:
        """Authenticate with a passkey assertion.

        The owner is resolved from the credential among passkey (password
        less) owners.

        Raises:
            ValidationError: When the payload is malformed.
            RateLimitedError: When the throttle is exhausted.
            PreconditionFailedError: When no passkey options are pending.
            ChallengeFailedError: When the assertion does not verify.
        """
        data = validate_input(PasskeyLoginInput, payload)
        throttle = Throttle.configured(
            self.limiter, scoped_ip_key(self.PASSKEY_SCOPE, request.ip_address), self.config
        )
        state = CeremonyState(self.sessions, request.session_id)

        try:
            credential = await self.public_keys.confirm(
                request, state, SessionKeys.LOGIN_PASSKEY_OPTIONS, throttle, data.credential
            )
            owner = await self._passkey_owner(credential.owner_id, throttle)
        except ChallengeFailedError:
            await self.dispatcher.emit(AuthenticationFailed.for_request(request))
            raise

        return await self.authenticator.complete(
            request, owner, remember=data.remember, method="passkey"
        )

    async def _passkey_owner(self, owner_id: str, throttle: Throttle) -> Owner:
        owner = await self.owners.get(owner_id)
        if owner is None or owner.has_password:
            await throttle.hit()
            raise ChallengeFailedError(credential_type="public-key")
        return owner

    # ── Logout ───────────────────────────────────────────────────

    async def logout(self, request: CeremonyRequest) -> None:
        await self.authenticator.logout(request)


__all__: list[str] = ["LoginOrchestrator"]
