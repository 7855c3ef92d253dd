"""Account settings ceremonies: credentials, recovery codes and password."""

from __future__ import annotations

from .base import SettingsCeremony
from .credentials import CredentialManager
from .password import ChangePassword
from .public_key import PublicKeyCredentialRegistration
from .recovery_codes import RecoveryCodesGeneration
from .totp import TotpRegistration

__all__: list[str] = [
    "SettingsCeremony",
    "CredentialManager",
    "ChangePassword",
    "PublicKeyCredentialRegistration",
    "RecoveryCodesGeneration",
    "TotpRegistration",
]
