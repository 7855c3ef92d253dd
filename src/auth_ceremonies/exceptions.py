"""Ceremony exceptions.

Every error raised by an orchestrator inherits from CeremonyError so that the
HTTP collaborator can map the taxonomy onto responses with a single handler:

- ValidationError       -> 422 with field errors
- PreconditionFailedError -> 428
- ChallengeFailedError  -> 422 with a generic message
- RateLimitedError      -> 429 with Retry-After
- ForbiddenError        -> 403
"""

from __future__ import annotations

# ═══════════════════════════════════════════════════════════════
# BASE CEREMONY ERROR
# ═══════════════════════════════════════════════════════════════


class CeremonyError(Exception):
    """Root exception for all authentication ceremony errors."""


class ValidationError(CeremonyError):
    """Raised when ceremony input is malformed.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


# ═══════════════════════════════════════════════════════════════
# CEREMONY STATE ERRORS
# ═══════════════════════════════════════════════════════════════


class PreconditionFailedError(CeremonyError):
    """Raised when a ceremony step runs without its session state.

    Examples:
        - Confirming a TOTP registration with no pending secret
        - Submitting a multi-factor challenge without partial authentication
        - Replaying already consumed WebAuthn options

    Never counted against a rate limit and never reveals whether an
    account exists.
    """

    def __init__(self, message: str = "The ceremony state is invalid or expired.") -> None:
        super().__init__(message)


# ═══════════════════════════════════════════════════════════════
# CHALLENGE ERRORS
# ═══════════════════════════════════════════════════════════════


class ChallengeFailedError(CeremonyError):
    """Raised when a password, code or credential does not verify.

    The message is identical for every cause (wrong secret, replayed code,
    malformed blob, foreign credential) so it cannot be used as an oracle.

    Attributes:
        credential_type: Which kind of challenge failed, when relevant.
    """

    DEFAULT_MESSAGE = "The provided credentials do not match our records."

    def __init__(
        self,
        message: str = DEFAULT_MESSAGE,
        credential_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.credential_type = credential_type


class SignCountRegressionError(CeremonyError):
    """Raised when an authenticator reports a signature counter that did not grow.

    This is a signal that the credential may have been cloned.
    """


class RateLimitedError(CeremonyError):
    """Raised when a throttle key has too many attempts.

    Attributes:
        available_in: Seconds until the next attempt is allowed.
        scope: The throttle key scope that was exceeded.
    """

    def __init__(
        self,
        message: str = "Too many attempts.",
        available_in: int = 0,
        scope: str | None = None,
    ) -> None:
        super().__init__(message)
        self.available_in = available_in
        self.scope = scope


# ═══════════════════════════════════════════════════════════════
# AUTHORIZATION ERRORS
# ═══════════════════════════════════════════════════════════════


class ForbiddenError(CeremonyError):
    """Raised when the action is not permitted for the current account."""


class SudoModeRequiredError(ForbiddenError):
    """Raised when a sensitive action needs a fresh sudo-mode confirmation.

    Attributes:
        expects_json: Whether the caller wants a structured body instead of
            a redirect to the confirmation page.
    """

    def __init__(
        self,
        message: str = "Sudo-mode required.",
        expects_json: bool = False,
    ) -> None:
        super().__init__(message)
        self.expects_json = expects_json

    def to_dict(self) -> dict[str, str]:
        return {"message": str(self)}


class PasswordRequiredError(ForbiddenError):
    """Raised when a password-only action is attempted by a passkey account."""


class NotFoundError(CeremonyError):
    """Raised when a credential or owner cannot be found for the caller."""


__all__: list[str] = [
    "CeremonyError",
    "ValidationError",
    "PreconditionFailedError",
    "ChallengeFailedError",
    "SignCountRegressionError",
    "RateLimitedError",
    "ForbiddenError",
    "SudoModeRequiredError",
    "PasswordRequiredError",
    "NotFoundError",
]
