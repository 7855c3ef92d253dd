"""Public key (WebAuthn) challenge.

Issues and confirms assertion ceremonies for multi-factor keys, passkey
logins and sudo-mode confirmations, and attestation ceremonies for
registrations. Options are stored verbatim in a session slot and taken out
of it before verification, so each options value resolves at most once.
Passkey registration keeps its creation options until the credential is
stored, so a rejected attestation can be retried or cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, NoReturn

from ..credentials import CredentialType, public_key_credential_id
from ..exceptions import ChallengeFailedError, PreconditionFailedError
from ..ports import VerificationFailure, VerificationResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Mapping, Sequence

    from ..config import CeremonyConfig
    from ..credentials import CredentialAttributes, MultiFactorCredential
    from ..dispatcher import EventDispatcher
    from ..ports import ICredentialRepository, IWebAuthnVerifier, UserEntity
    from ..rate_limiting import Throttle
    from ..request import CeremonyRequest
    from ..state import CeremonyState

logger = logging.getLogger(__name__)


async def verify_within(
    verification: Awaitable[VerificationResult], timeout: float
) -> VerificationResult:
    """Await a verifier call, turning a timeout into a failed result."""
    try:
        return await asyncio.wait_for(verification, timeout)
    except asyncio.TimeoutError:
        return VerificationResult.failed(VerificationFailure.TIMEOUT, "verifier timed out")


class PublicKeyChallenge:
    """WebAuthn assertion and attestation handling.

    Example:
        ```python
        options = await challenge.issue_request_options(
            state, SessionKeys.MFA_PUBLIC_KEY_OPTIONS, allowed
        )
        ...
        credential = await challenge.confirm(
            request, state, SessionKeys.MFA_PUBLIC_KEY_OPTIONS, throttle, raw,
            user=UserEntity.from_owner(owner),
        )
        ```
    """

    CREDENTIAL_TYPE = CredentialType.PUBLIC_KEY.value

    def __init__(
        self,
        verifier: IWebAuthnVerifier,
        credentials: ICredentialRepository,
        dispatcher: EventDispatcher,
        config: CeremonyConfig,
    ) -> None:
        self.verifier = verifier
        self.credentials = credentials
        self.dispatcher = dispatcher
        self.config = config

    # ── Options ──────────────────────────────────────────────────

    async def issue_request_options(
        self,
        state: CeremonyState,
        slot: str,
        allowed: Sequence[CredentialAttributes] | None,
    ) -> str | None:
        """Generate and store assertion options.

        Args:
            state: Session slots.
            slot: Slot receiving the options.
            allowed: Keys allowed to answer, or None for a discoverable
                (passkey) ceremony.

        Returns:
            The options JSON, or None when ``allowed`` is empty (no public
            key challenge is available).
        """
        if allowed is not None and len(allowed) == 0:
            await state.forget(slot)
            return None
        options = self.verifier.generate_request_options(allowed)
        await state.put_options(slot, options)
        return options

    async def issue_discoverable_options(self, state: CeremonyState, slot: str) -> str:
        """Generate and store options any passkey of this relying party can answer."""
        options = self.verifier.generate_request_options(None)
        await state.put_options(slot, options)
        return options

    async def issue_creation_options(
        self,
        state: CeremonyState,
        slot: str,
        user: UserEntity,
        exclude: Sequence[CredentialAttributes] = (),
        *,
        passkey: bool = False,
    ) -> str:
        """Generate and store attestation options for ``user``."""
        options = self.verifier.generate_creation_options(user, exclude, passkey=passkey)
        await state.put_options(slot, options)
        return options

    async def take_options(self, state: CeremonyState, slot: str) -> str:
        """Remove the stored options from the session.

        Raises:
            PreconditionFailedError: If no options are pending.
        """
        options = await state.pull_options(slot)
        if options is None:
            raise PreconditionFailedError()
        return options

    # ── Assertion ────────────────────────────────────────────────

    async def confirm(
        self,
        request: CeremonyRequest,
        state: CeremonyState,
        slot: str,
        throttle: Throttle,
        raw: str | Mapping[str, Any],
        *,
        user: UserEntity | None = None,
    ) -> MultiFactorCredential:
        """Verify an assertion against the stored options.

        Args:
            request: Current request.
            state: Session slots.
            slot: Slot holding the request options.
            throttle: Throttle of this ceremony.
            raw: Browser response, passed through to the verifier.
            user: Expected owner. None for passkey logins, where the owner
                is resolved from the credential.

        Returns:
            The stored credential that answered the challenge.

        Raises:
            RateLimitedError: When the throttle is exhausted.
            PreconditionFailedError: When no options are pending.
            ChallengeFailedError: For every verification failure.
        """
        await throttle.ensure_not_limited(request, self.dispatcher)
        options = await self.take_options(state, slot)

        credential = await self._stored_credential(raw, user)
        if credential is None:
            await self._fail(throttle, VerificationFailure.UNEXPECTED_ACTION)

        stored = credential.attributes
        result = await verify_within(
            self.verifier.verify_assertion(raw, options, stored, user),
            self.config.verifier_timeout,
        )
        if not result.ok or result.attributes is None:
            await self._fail(throttle, result.failure, result.detail)

        if not await self._advance_sign_count(credential, stored, result.attributes):
            logger.warning("Signature counter did not advance for %s", credential.id)
            await self._fail(throttle, VerificationFailure.UNEXPECTED_ACTION)

        await throttle.clear()
        return credential

    async def _stored_credential(
        self, raw: str | Mapping[str, Any], user: UserEntity | None
    ) -> MultiFactorCredential | None:
        raw_id = self.verifier.credential_id(raw)
        if raw_id is None:
            return None
        credential = await self.credentials.find(public_key_credential_id(raw_id))
        if credential is None or credential.type is not CredentialType.PUBLIC_KEY:
            return None
        if user is not None and credential.owner_id != user.id:
            return None
        return credential

    async def _advance_sign_count(
        self,
        credential: MultiFactorCredential,
        stored: CredentialAttributes,
        verified: CredentialAttributes,
    ) -> bool:
        if (
            self.config.webauthn.allow_counterless
            and stored.sign_count == 0
            and verified.sign_count == 0
        ):
            return True
        return await self.credentials.update_sign_count(credential.id, verified.sign_count)

    async def _fail(
        self,
        throttle: Throttle,
        failure: VerificationFailure | None,
        detail: str = "",
    ) -> NoReturn:
        await throttle.hit()
        logger.info(
            "Public key challenge failed (%s) %s",
            failure.value if failure else "unknown",
            detail,
        )
        raise ChallengeFailedError(credential_type=self.CREDENTIAL_TYPE)

    # ── Attestation ──────────────────────────────────────────────

    async def attest(
        self,
        state: CeremonyState,
        slot: str,
        raw: str | Mapping[str, Any],
        *,
        consume: bool = True,
    ) -> CredentialAttributes:
        """Verify a registration response against the stored creation options.

        With ``consume=False`` the options stay in the session, so a rejected
        response can be retried and the caller clears the slot once the
        credential is stored.

        Raises:
            PreconditionFailedError: When no options are pending.
            ChallengeFailedError: When the attestation does not verify.
        """
        if consume:
            options = await self.take_options(state, slot)
        else:
            peeked = await state.peek_options(slot)
            if peeked is None:
                raise PreconditionFailedError()
            options = peeked
        result = await verify_within(
            self.verifier.verify_attestation(raw, options),
            self.config.verifier_timeout,
        )
        if not result.ok or result.attributes is None:
            logger.info(
                "Public key registration rejected (%s)",
                result.failure.value if result.failure else "unknown",
            )
            raise ChallengeFailedError(credential_type=self.CREDENTIAL_TYPE)
        return result.attributes


__all__: list[str] = ["PublicKeyChallenge", "verify_within"]
