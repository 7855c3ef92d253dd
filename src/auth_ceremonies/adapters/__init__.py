"""Adapters binding the ceremony ports to third-party libraries.

Each adapter imports its library lazily, so only the adapters in use need
their extra installed.
"""

from __future__ import annotations

from .hasher import PasswordHasher
from .totp import InMemoryTotpStepStore, PyOtpAuthenticator
from .webauthn import PyWebAuthnVerifier

__all__: list[str] = [
    "PasswordHasher",
    "PyOtpAuthenticator",
    "InMemoryTotpStepStore",
    "PyWebAuthnVerifier",
]
