"""Ceremony configuration.

Plain frozen dataclasses passed to orchestrators through their constructors;
there is no global settings registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class RelyingParty:
    """WebAuthn relying party.

    Attributes:
        id: Effective domain (e.g. ``example.com``).
        name: Human readable name shown by authenticators.
        origin: Expected origin of client data (e.g. ``https://example.com``).
    """

    id: str = "localhost"
    name: str = "Auth Ceremonies"
    origin: str = "http://localhost"


@dataclass(frozen=True)
class WebAuthnConfig:
    """WebAuthn ceremony options.

    Attributes:
        relying_party: Relying party identity.
        timeout: Ceremony timeout in milliseconds.
        attestation: Attestation conveyance preference.
        algorithms: Supported COSE algorithm identifiers (ES256, RS256).
        user_verification: User verification requirement for MFA keys.
        allow_counterless: Accept assertions from authenticators that never
            implement a signature counter (stored and reported counts both 0).
    """

    relying_party: RelyingParty = field(default_factory=RelyingParty)
    timeout: int = 30000
    attestation: Literal["none", "indirect", "direct", "enterprise"] = "none"
    algorithms: tuple[int, ...] = (-7, -257)
    user_verification: Literal["required", "preferred", "discouraged"] = "preferred"
    allow_counterless: bool = False


@dataclass(frozen=True)
class CeremonyConfig:
    """Behavioural switches shared by all orchestrators.

    Attributes:
        sudo_mode_duration: Seconds a sudo-mode confirmation stays valid.
        max_attempts: Failed attempts allowed per throttle key.
        decay_seconds: Window after which a throttle counter resets.
        timebox_microseconds: Minimum visible duration of timeboxed challenges.
        verifier_timeout: Seconds to wait for the external verifier.
        identity_field: Which owner attribute identifies an account.
        rate_limiting: Disable to turn every throttle into a no-op.
        send_verification_email: Notify new owners to verify their email.
        recovery_link_throttle: Seconds before another recovery link is sent.
        recovery_link_expiry: Seconds a recovery link remains valid.
        password_min_length: Minimum length of new passwords.
    """

    sudo_mode_duration: int = 900
    max_attempts: int = 5
    decay_seconds: int = 60
    timebox_microseconds: int = 300 * 1000
    verifier_timeout: float = 10.0
    identity_field: Literal["email", "username"] = "email"
    rate_limiting: bool = True
    send_verification_email: bool = True
    recovery_link_throttle: int = 60
    recovery_link_expiry: int = 3600
    password_min_length: int = 8
    webauthn: WebAuthnConfig = field(default_factory=WebAuthnConfig)


__all__: list[str] = [
    "RelyingParty",
    "WebAuthnConfig",
    "CeremonyConfig",
]
