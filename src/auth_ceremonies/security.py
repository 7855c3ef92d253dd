"""Account security indicator shown on the settings page."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .ports import ICredentialRepository, Owner


class AccountSecurityIndicator(Enum):
    """How well an account is protected against takeover and lockout.

    Example:
        ```python
        indicator = await AccountSecurityIndicator.for_owner(owner, credentials)
        if indicator.has_issues:
            show_banner(indicator.message)
        ```
    """

    NO_MFA_NO_RECOVERY_CODES = (
        "RED",
        "Your account is vulnerable. Please enable multi-factor authentication "
        "and set up account recovery codes.",
    )
    NO_MFA_HAS_RECOVERY_CODES = (
        "RED",
        "Your account is vulnerable without multi-factor authentication. "
        "Please enable it to secure your account.",
    )
    HAS_MFA_NO_RECOVERY_CODES = (
        "ORANGE",
        "Your account could be compromised if someone gains access to your email "
        "account. Protect yourself by setting up account recovery codes.",
    )
    HAS_MFA_HAS_RECOVERY_CODES = ("GREEN", "Your account is well-protected.")

    @property
    def color(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]

    @property
    def has_issues(self) -> bool:
        return self.color != "GREEN"

    @classmethod
    def evaluate(cls, has_mfa: bool, has_recovery_codes: bool) -> AccountSecurityIndicator:
        if has_mfa:
            if has_recovery_codes:
                return cls.HAS_MFA_HAS_RECOVERY_CODES
            return cls.HAS_MFA_NO_RECOVERY_CODES
        if has_recovery_codes:
            return cls.NO_MFA_HAS_RECOVERY_CODES
        return cls.NO_MFA_NO_RECOVERY_CODES

    @classmethod
    async def for_owner(
        cls, owner: Owner, credentials: ICredentialRepository
    ) -> AccountSecurityIndicator:
        """Evaluate the indicator from the owner's stored credentials and codes."""
        has_mfa = bool(await credentials.find_all_by_owner_and_type(owner.id))
        return cls.evaluate(has_mfa, bool(owner.recovery_codes))

    def to_dict(self) -> dict[str, Any]:
        return {"color": self.color, "has_issues": self.has_issues, "message": self.message}


__all__: list[str] = ["AccountSecurityIndicator"]
