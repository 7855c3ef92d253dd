"""Shared test doubles for the ceremony tests."""

from __future__ import annotations

import asyncio
import json
import secrets
from typing import Any

from auth_ceremonies import CredentialAttributes, VerificationFailure, VerificationResult
from auth_ceremonies.credentials import base64url_decode, base64url_encode

PASSWORD = "correct-horse-battery"
NOW = 1_700_000_000.0


class FakeClock:
    """Mutable wall clock."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedWebAuthnVerifier:
    """WebAuthn verifier speaking a simplified JSON dialect.

    Options carry a random challenge; a response is valid when it echoes
    that challenge. Responses may ask for a failure kind or a delay to
    exercise the error paths.
    """

    def __init__(self) -> None:
        self.attestations = 0
        self.assertions = 0

    @staticmethod
    def _challenge() -> str:
        return base64url_encode(secrets.token_bytes(16))

    def generate_creation_options(self, user, exclude=(), *, passkey=False) -> str:
        return json.dumps(
            {
                "challenge": self._challenge(),
                "user": {
                    "id": base64url_encode(user.id.encode()),
                    "name": user.name,
                    "displayName": user.display_name,
                },
                "excludeCredentials": [base64url_encode(c.id) for c in exclude],
                "residentKey": "required" if passkey else "discouraged",
            }
        )

    def generate_request_options(self, allow=None) -> str:
        return json.dumps(
            {
                "challenge": self._challenge(),
                "allowCredentials": (
                    None if allow is None else [base64url_encode(c.id) for c in allow]
                ),
            }
        )

    def credential_id(self, raw) -> bytes | None:
        payload = json.loads(raw) if isinstance(raw, str) else raw
        raw_id = payload.get("rawId")
        return base64url_decode(raw_id) if raw_id else None

    async def _script(self, payload: dict[str, Any], options: str) -> VerificationResult | None:
        if payload.get("delay"):
            await asyncio.sleep(payload["delay"])
        if payload.get("fail"):
            return VerificationResult.failed(VerificationFailure(payload["fail"]))
        if payload.get("challenge") != json.loads(options)["challenge"]:
            return VerificationResult.failed(VerificationFailure.UNEXPECTED_ACTION)
        return None

    async def verify_attestation(self, raw, options: str) -> VerificationResult:
        self.attestations += 1
        payload = json.loads(raw) if isinstance(raw, str) else dict(raw)
        failure = await self._script(payload, options)
        if failure is not None:
            return failure
        user_id = base64url_decode(json.loads(options)["user"]["id"]).decode()
        return VerificationResult.verified(
            CredentialAttributes(
                id=base64url_decode(payload["rawId"]),
                public_key=b"cose-public-key",
                sign_count=payload.get("signCount", 0),
                user_handle=user_id,
                transports=("usb",),
            )
        )

    async def verify_assertion(self, raw, options: str, credential, user=None):
        self.assertions += 1
        payload = json.loads(raw) if isinstance(raw, str) else dict(raw)
        failure = await self._script(payload, options)
        if failure is not None:
            return failure
        return VerificationResult.verified(
            CredentialAttributes(
                id=credential.id,
                public_key=credential.public_key,
                sign_count=payload.get("signCount", credential.sign_count + 1),
                user_handle=credential.user_handle,
                transports=credential.transports,
            )
        )


def answer(options: str, raw_id: bytes, **extra: Any) -> dict[str, Any]:
    """Browser response answering ``options`` with credential ``raw_id``."""
    return {
        "rawId": base64url_encode(raw_id),
        "challenge": json.loads(options)["challenge"],
        **extra,
    }


def key_attributes(owner_id: str, raw_id: bytes = b"key-1", sign_count: int = 1):
    return CredentialAttributes(
        id=raw_id,
        public_key=b"cose-public-key",
        sign_count=sign_count,
        user_handle=owner_id,
        transports=("usb",),
    )


__all__: list[str] = [
    "PASSWORD",
    "NOW",
    "FakeClock",
    "ScriptedWebAuthnVerifier",
    "answer",
    "key_attributes",
]
