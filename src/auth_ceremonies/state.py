"""Typed view over the ceremony slots of one session.

Slot names are shared with any other process reading the same session
store, so they must not change.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from .credentials import CredentialType

if TYPE_CHECKING:
    from .session import ISessionStore


class SessionKeys:
    """Session slot names."""

    MULTI_FACTOR = "login.multifactor"
    LOGIN_PASSKEY_OPTIONS = "login.passkeyOptions"
    MFA_PUBLIC_KEY_OPTIONS = "mfa.publicKeyChallengeOptions"
    REGISTER_PASSKEY_OPTIONS = "register.passkeyCreationOptions"
    PENDING_TOTP_SECRET = "mfa.pendingTotpSecret"
    PENDING_RECOVERY_CODES = "mfa.pendingRecoveryCodes"
    SUDO_CONFIRMED_AT = "sudo.confirmedAt"
    SUDO_REQUIRED_AT = "sudo.requiredAt"
    SUDO_PUBLIC_KEY_OPTIONS = "sudo.publicKeyChallengeOptions"
    SETTINGS_PUBLIC_KEY_OPTIONS = "settings.publicKeyCreationOptions"

    # WebAuthn challenge slots that must never outlive a login attempt.
    CHALLENGE_OPTIONS = (
        LOGIN_PASSKEY_OPTIONS,
        MFA_PUBLIC_KEY_OPTIONS,
        SUDO_PUBLIC_KEY_OPTIONS,
    )


@dataclass(frozen=True)
class MultiFactorDetails:
    """Partial authentication awaiting a second factor."""

    preferred_method: CredentialType
    intended_redirect: str
    remember: bool
    partially_authenticated_user_id: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["preferred_method"] = self.preferred_method.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MultiFactorDetails:
        return cls(
            preferred_method=CredentialType(data["preferred_method"]),
            intended_redirect=data["intended_redirect"],
            remember=bool(data["remember"]),
            partially_authenticated_user_id=str(data["partially_authenticated_user_id"]),
        )


class CeremonyState:
    """Ceremony slots of a single session.

    Example:
        ```python
        state = CeremonyState(store, request.session_id)
        await state.begin_multi_factor(details)

        details = await state.multi_factor()
        if details is None:
            raise PreconditionFailedError()
        ```
    """

    def __init__(self, store: ISessionStore, session_id: str) -> None:
        self.store = store
        self.session_id = session_id

    # ── Partial authentication ───────────────────────────────────

    async def begin_multi_factor(self, details: MultiFactorDetails) -> None:
        """Start a partial authentication.

        Stale WebAuthn challenge options are purged first so that options
        issued for another identity can never be confirmed here.
        """
        await self.purge_challenge_options()
        await self.store.put(self.session_id, SessionKeys.MULTI_FACTOR, details.to_dict())

    async def multi_factor(self) -> MultiFactorDetails | None:
        data = await self.store.get(self.session_id, SessionKeys.MULTI_FACTOR)
        if not data or not data.get("partially_authenticated_user_id"):
            return None
        return MultiFactorDetails.from_dict(data)

    async def clear_multi_factor(self) -> None:
        await self.store.forget(self.session_id, SessionKeys.MULTI_FACTOR)

    # ── WebAuthn options ─────────────────────────────────────────

    async def put_options(self, key: str, options: str) -> None:
        await self.store.put(self.session_id, key, options)

    async def peek_options(self, key: str) -> str | None:
        return await self.store.get(self.session_id, key)

    async def pull_options(self, key: str) -> str | None:
        """Take options out of the session; each value can be taken once."""
        return await self.store.pull(self.session_id, key)

    async def forget(self, *keys: str) -> None:
        await self.store.forget(self.session_id, *keys)

    async def purge_challenge_options(self) -> None:
        await self.store.forget(self.session_id, *SessionKeys.CHALLENGE_OPTIONS)

    # ── Pending registrations ────────────────────────────────────

    async def pending_totp_secret(self) -> str | None:
        return await self.store.get(self.session_id, SessionKeys.PENDING_TOTP_SECRET)

    async def set_pending_totp_secret(self, secret: str) -> None:
        await self.store.put(self.session_id, SessionKeys.PENDING_TOTP_SECRET, secret)

    async def clear_pending_totp_secret(self) -> None:
        await self.store.forget(self.session_id, SessionKeys.PENDING_TOTP_SECRET)

    async def pending_recovery_codes(self) -> list[str] | None:
        return await self.store.get(self.session_id, SessionKeys.PENDING_RECOVERY_CODES)

    async def set_pending_recovery_codes(self, codes: list[str]) -> None:
        await self.store.put(self.session_id, SessionKeys.PENDING_RECOVERY_CODES, codes)

    async def clear_pending_recovery_codes(self) -> None:
        await self.store.forget(self.session_id, SessionKeys.PENDING_RECOVERY_CODES)

    # ── Sudo mode ────────────────────────────────────────────────

    async def sudo_confirmed_at(self) -> float | None:
        return await self.store.get(self.session_id, SessionKeys.SUDO_CONFIRMED_AT)

    async def sudo_required_at(self) -> float | None:
        return await self.store.get(self.session_id, SessionKeys.SUDO_REQUIRED_AT)

    async def confirm_sudo(self, now: float) -> None:
        await self.store.forget(self.session_id, SessionKeys.SUDO_REQUIRED_AT)
        await self.store.put(self.session_id, SessionKeys.SUDO_CONFIRMED_AT, now)

    async def require_sudo(self, now: float) -> None:
        await self.store.forget(self.session_id, SessionKeys.SUDO_CONFIRMED_AT)
        await self.store.put(self.session_id, SessionKeys.SUDO_REQUIRED_AT, now)


__all__: list[str] = ["SessionKeys", "MultiFactorDetails", "CeremonyState"]
