"""WebAuthn adapter built on py_webauthn.

Options are produced with ``webauthn.options_to_json`` and stored by the
ceremonies verbatim; verification reads the challenge (and the user
verification requirement) back out of that exact JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ..credentials import CredentialAttributes
from ..ports import IWebAuthnVerifier, VerificationFailure, VerificationResult

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from ..config import WebAuthnConfig
    from ..ports import UserEntity

logger = logging.getLogger(__name__)


def _get_webauthn() -> Any:
    """Lazy import py_webauthn."""
    try:
        import webauthn

        return webauthn
    except ImportError as e:
        raise ImportError(
            "webauthn is required for public key credentials. "
            "Install with: pip install webauthn"
        ) from e


class PyWebAuthnVerifier(IWebAuthnVerifier):
    """Generates and verifies WebAuthn ceremonies for one relying party.

    Verification runs in a worker thread, so the ceremony's timeout can
    abandon it without blocking the event loop.

    Example:
        ```python
        verifier = PyWebAuthnVerifier(
            WebAuthnConfig(RelyingParty("example.com", "Example", "https://example.com"))
        )
        options = verifier.generate_request_options()
        ```
    """

    def __init__(self, config: WebAuthnConfig) -> None:
        self.config = config

    # ── Options ──────────────────────────────────────────────────

    def _descriptors(self, credentials: Sequence[CredentialAttributes]) -> list[Any]:
        from webauthn.helpers.structs import AuthenticatorTransport, PublicKeyCredentialDescriptor

        known = {transport.value for transport in AuthenticatorTransport}
        return [
            PublicKeyCredentialDescriptor(
                id=credential.id,
                transports=[
                    AuthenticatorTransport(transport)
                    for transport in credential.transports
                    if transport in known
                ],
            )
            for credential in credentials
        ]

    def generate_creation_options(
        self,
        user: UserEntity,
        exclude: Sequence[CredentialAttributes] = (),
        *,
        passkey: bool = False,
    ) -> str:
        """Build attestation options.

        Passkeys must be discoverable (resident) and user-verifying, since
        they replace the password entirely.
        """
        webauthn = _get_webauthn()
        from webauthn.helpers.cose import COSEAlgorithmIdentifier
        from webauthn.helpers.structs import (
            AttestationConveyancePreference,
            AuthenticatorSelectionCriteria,
            ResidentKeyRequirement,
            UserVerificationRequirement,
        )

        selection = AuthenticatorSelectionCriteria(
            resident_key=(
                ResidentKeyRequirement.REQUIRED if passkey else ResidentKeyRequirement.DISCOURAGED
            ),
            user_verification=(
                UserVerificationRequirement.REQUIRED
                if passkey
                else UserVerificationRequirement(self.config.user_verification)
            ),
        )
        options = webauthn.generate_registration_options(
            rp_id=self.config.relying_party.id,
            rp_name=self.config.relying_party.name,
            user_id=user.id.encode("utf-8"),
            user_name=user.name,
            user_display_name=user.display_name,
            timeout=self.config.timeout,
            attestation=AttestationConveyancePreference(self.config.attestation),
            authenticator_selection=selection,
            exclude_credentials=self._descriptors(exclude),
            supported_pub_key_algs=[
                COSEAlgorithmIdentifier(algorithm) for algorithm in self.config.algorithms
            ],
        )
        return str(webauthn.options_to_json(options))

    def generate_request_options(
        self, allow: Sequence[CredentialAttributes] | None = None
    ) -> str:
        webauthn = _get_webauthn()
        from webauthn.helpers.structs import UserVerificationRequirement

        options = webauthn.generate_authentication_options(
            rp_id=self.config.relying_party.id,
            timeout=self.config.timeout,
            allow_credentials=self._descriptors(allow or ()),
            user_verification=(
                UserVerificationRequirement.REQUIRED
                if allow is None
                else UserVerificationRequirement(self.config.user_verification)
            ),
        )
        return str(webauthn.options_to_json(options))

    # ── Responses ────────────────────────────────────────────────

    def credential_id(self, raw: str | Mapping[str, Any]) -> bytes | None:
        from webauthn.helpers import base64url_to_bytes

        try:
            payload = json.loads(raw) if isinstance(raw, str) else raw
            raw_id = payload.get("rawId") or payload.get("id")
            if not isinstance(raw_id, str) or not raw_id:
                return None
            return bytes(base64url_to_bytes(raw_id))
        except (ValueError, TypeError, AttributeError):
            return None

    @staticmethod
    def _as_json(raw: str | Mapping[str, Any]) -> str:
        return raw if isinstance(raw, str) else json.dumps(dict(raw))

    @staticmethod
    def _failure(exc: Exception) -> VerificationResult:
        from webauthn.helpers.exceptions import InvalidCBORData, InvalidJSONStructure

        if isinstance(exc, (InvalidJSONStructure, InvalidCBORData, ValueError, KeyError, TypeError)):
            return VerificationResult.failed(VerificationFailure.MALFORMED, str(exc))
        return VerificationResult.failed(VerificationFailure.UNEXPECTED_ACTION, str(exc))

    async def verify_attestation(
        self, raw: str | Mapping[str, Any], options: str
    ) -> VerificationResult:
        webauthn = _get_webauthn()
        from webauthn.helpers import base64url_to_bytes, parse_registration_credential_json
        from webauthn.helpers.exceptions import WebAuthnException

        try:
            stored = json.loads(options)
            credential = parse_registration_credential_json(self._as_json(raw))
            verification = await asyncio.to_thread(
                webauthn.verify_registration_response,
                credential=credential,
                expected_challenge=base64url_to_bytes(stored["challenge"]),
                expected_rp_id=self.config.relying_party.id,
                expected_origin=self.config.relying_party.origin,
                require_user_verification=(
                    stored.get("authenticatorSelection", {}).get("userVerification")
                    == "required"
                ),
            )
            user_handle = base64url_to_bytes(stored["user"]["id"]).decode("utf-8")
        except (WebAuthnException, ValueError, KeyError, TypeError) as exc:
            logger.debug("Attestation rejected: %s", exc)
            return self._failure(exc)

        transports = tuple(
            getattr(transport, "value", transport)
            for transport in (credential.response.transports or ())
        )
        return VerificationResult.verified(
            CredentialAttributes(
                id=bytes(verification.credential_id),
                public_key=bytes(verification.credential_public_key),
                sign_count=int(verification.sign_count),
                user_handle=user_handle,
                transports=transports,
            )
        )

    async def verify_assertion(
        self,
        raw: str | Mapping[str, Any],
        options: str,
        credential: CredentialAttributes,
        user: UserEntity | None = None,
    ) -> VerificationResult:
        """Verify an assertion made with ``credential``.

        The user handle returned by the authenticator, when present, must
        name the credential's owner (and ``user`` when one is expected).
        """
        webauthn = _get_webauthn()
        from webauthn.helpers import base64url_to_bytes, parse_authentication_credential_json
        from webauthn.helpers.exceptions import WebAuthnException

        try:
            stored = json.loads(options)
            response = parse_authentication_credential_json(self._as_json(raw))
            if bytes(response.raw_id) != credential.id:
                return VerificationResult.failed(
                    VerificationFailure.UNEXPECTED_ACTION, "credential id mismatch"
                )

            handle = response.response.user_handle
            expected = user.id if user is not None else credential.user_handle
            if handle is not None and bytes(handle).decode("utf-8") != expected:
                return VerificationResult.failed(
                    VerificationFailure.UNEXPECTED_ACTION, "user handle mismatch"
                )
            if handle is None and user is None:
                return VerificationResult.failed(
                    VerificationFailure.UNEXPECTED_ACTION, "passkey without user handle"
                )

            verification = await asyncio.to_thread(
                webauthn.verify_authentication_response,
                credential=response,
                expected_challenge=base64url_to_bytes(stored["challenge"]),
                expected_rp_id=self.config.relying_party.id,
                expected_origin=self.config.relying_party.origin,
                credential_public_key=credential.public_key,
                credential_current_sign_count=credential.sign_count,
                require_user_verification=stored.get("userVerification") == "required",
            )
        except (WebAuthnException, UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            logger.debug("Assertion rejected: %s", exc)
            return self._failure(exc)

        return VerificationResult.verified(
            replace(credential, sign_count=int(verification.new_sign_count))
        )


__all__: list[str] = ["PyWebAuthnVerifier"]
