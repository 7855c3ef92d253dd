"""Credential verification strategies shared by the orchestrators."""

from __future__ import annotations

from .password import PasswordChallenge
from .public_key import PublicKeyChallenge, verify_within
from .recovery import RecoveryChallenge
from .totp import TotpChallenge

__all__: list[str] = [
    "PasswordChallenge",
    "PublicKeyChallenge",
    "RecoveryChallenge",
    "TotpChallenge",
    "verify_within",
]
