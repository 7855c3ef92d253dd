"""Multi-factor orchestration.

After a password succeeds, decides whether a second factor is owed and
drives the challenge to completion. The partially authenticated owner is
remembered in the ``login.multifactor`` slot only; nothing else in the
session marks a partial authentication.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .credentials import CredentialType
from .events import MultiFactorChallenged, MultiFactorChallengeFailed
from .exceptions import ChallengeFailedError, PreconditionFailedError
from .inputs import MultiFactorInput, validate_input
from .outcomes import ChallengePage, MultiFactorRequired
from .ports import UserEntity
from .rate_limiting import Throttle, challenge_key
from .recovery_codes import looks_like_recovery_code
from .state import CeremonyState, MultiFactorDetails, SessionKeys

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .authentication import SessionAuthenticator
    from .challenges import PublicKeyChallenge, RecoveryChallenge, TotpChallenge
    from .config import CeremonyConfig
    from .credentials import MultiFactorCredential
    from .dispatcher import EventDispatcher
    from .outcomes import AuthenticatedOutcome
    from .ports import ICredentialRepository, IOwnerRepository, Owner
    from .rate_limiting import IRateLimiter
    from .request import CeremonyRequest
    from .session import ISessionStore

logger = logging.getLogger(__name__)

# Order in which methods are offered.
METHOD_ORDER = (CredentialType.PUBLIC_KEY, CredentialType.TOTP)


def available_methods(credentials: list[MultiFactorCredential]) -> list[CredentialType]:
    present = {credential.type for credential in credentials}
    return [method for method in METHOD_ORDER if method in present]


def preferred_method(credentials: list[MultiFactorCredential]) -> CredentialType:
    if any(c.type is CredentialType.PUBLIC_KEY for c in credentials):
        return CredentialType.PUBLIC_KEY
    return CredentialType.TOTP


class MultiFactorOrchestrator:
    """Second factor ceremony.

    Example:
        ```python
        required = await orchestrator.initiate(request, owner, remember=False)
        if required is None:
            return await authenticator.complete(request, owner)

        # ...later, when the user submits the challenge form
        outcome = await orchestrator.challenge(request, {"code": "123456"})
        ```
    """

    SCOPE = "multi-factor"

    def __init__(
        self,
        sessions: ISessionStore,
        owners: IOwnerRepository,
        credentials: ICredentialRepository,
        public_keys: PublicKeyChallenge,
        totp: TotpChallenge,
        recovery: RecoveryChallenge,
        authenticator: SessionAuthenticator,
        limiter: IRateLimiter,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
    ) -> None:
        self.sessions = sessions
        self.owners = owners
        self.credentials = credentials
        self.public_keys = public_keys
        self.totp = totp
        self.recovery = recovery
        self.authenticator = authenticator
        self.limiter = limiter
        self.dispatcher = dispatcher
        self.config = config

    # ── Initiation ───────────────────────────────────────────────

    async def initiate(
        self,
        request: CeremonyRequest,
        owner: Owner,
        *,
        remember: bool = False,
    ) -> MultiFactorRequired | None:
        """Start the second factor for an owner whose password verified.

        Returns:
            None when the owner has no multi-factor credentials (the caller
            authenticates directly), otherwise the methods and options to
            present.
        """
        credentials = await self.credentials.find_all_by_owner_and_type(owner.id)
        if not credentials:
            return None

        state = CeremonyState(self.sessions, request.session_id)
        preferred = preferred_method(credentials)
        await state.begin_multi_factor(
            MultiFactorDetails(
                preferred_method=preferred,
                intended_redirect=request.intended_url,
                remember=remember,
                partially_authenticated_user_id=owner.id,
            )
        )
        options = await self._issue_options(state, credentials)

        await self.dispatcher.emit(
            MultiFactorChallenged.for_request(
                request, user_id=owner.id, preferred_method=preferred
            )
        )
        logger.info("Owner %s challenged for a second factor", owner.id)
        return MultiFactorRequired(
            user_id=owner.id,
            preferred_method=preferred,
            available_methods=available_methods(credentials),
            options=options,
        )

    async def challenge_page(
        self, request: CeremonyRequest
    ) -> ChallengePage | AuthenticatedOutcome:
        """Re-issue the challenge for the partially authenticated owner.

        When the owner no longer has any multi-factor credentials the
        challenge is skipped and the owner is authenticated.

        Raises:
            PreconditionFailedError: Without a partial authentication.
        """
        state = CeremonyState(self.sessions, request.session_id)
        details, owner = await self._partial(state)

        credentials = await self.credentials.find_all_by_owner_and_type(owner.id)
        if not credentials:
            return await self.authenticator.complete(
                request,
                owner,
                remember=details.remember,
                redirect_to=details.intended_redirect,
            )

        options = await self._issue_options(state, credentials)
        return ChallengePage(available_methods=available_methods(credentials), options=options)

    async def _issue_options(
        self, state: CeremonyState, credentials: list[MultiFactorCredential]
    ) -> str | None:
        keys = [c.attributes for c in credentials if c.type is CredentialType.PUBLIC_KEY]
        return await self.public_keys.issue_request_options(
            state, SessionKeys.MFA_PUBLIC_KEY_OPTIONS, keys
        )

    # ── Challenge ────────────────────────────────────────────────

    async def challenge(
        self, request: CeremonyRequest, payload: Mapping[str, Any]
    ) -> AuthenticatedOutcome:
        """Verify the submitted second factor.

        A ``credential`` payload is a public key assertion; a ``code`` is a
        recovery code when it has the recovery code format and a TOTP code
        otherwise.

        Raises:
            PreconditionFailedError: Without a partial authentication.
            ValidationError: When the payload has neither field.
            RateLimitedError: When the throttle is exhausted.
            ChallengeFailedError: When the factor does not verify. The
                partial authentication is left as is so the page can be
                rendered again.
        """
        state = CeremonyState(self.sessions, request.session_id)
        details, owner = await self._partial(state)
        data = validate_input(MultiFactorInput, payload)
        throttle = Throttle.configured(
            self.limiter, challenge_key(self.SCOPE, owner.id, request.ip_address), self.config
        )

        try:
            if data.credential is not None:
                await self.public_keys.confirm(
                    request,
                    state,
                    SessionKeys.MFA_PUBLIC_KEY_OPTIONS,
                    throttle,
                    data.credential,
                    user=UserEntity.from_owner(owner, self.config.identity_field),
                )
                method = CredentialType.PUBLIC_KEY.value
            elif looks_like_recovery_code(data.code or ""):
                await self.recovery.attempt(request, throttle, owner.id, data.code or "")
                method = self.recovery.CREDENTIAL_TYPE
            else:
                await self.totp.attempt(request, throttle, owner.id, data.code or "")
                method = CredentialType.TOTP.value
        except ChallengeFailedError as exc:
            await self.dispatcher.emit(
                MultiFactorChallengeFailed.for_request(
                    request,
                    user_id=owner.id,
                    credential_type=exc.credential_type or "unknown",
                )
            )
            logger.info("Second factor (%s) failed for %s", exc.credential_type, owner.id)
            raise

        return await self.authenticator.complete(
            request,
            owner,
            remember=details.remember,
            redirect_to=details.intended_redirect,
            method=method,
        )

    async def _partial(self, state: CeremonyState) -> tuple[MultiFactorDetails, Owner]:
        details = await state.multi_factor()
        if details is None:
            raise PreconditionFailedError()
        owner = await self.owners.get(details.partially_authenticated_user_id)
        if owner is None:
            await state.clear_multi_factor()
            raise PreconditionFailedError()
        return details, owner


__all__: list[str] = [
    "MultiFactorOrchestrator",
    "available_methods",
    "preferred_method",
]
