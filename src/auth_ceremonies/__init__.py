"""Auth Ceremonies

Server-side orchestration of authentication ceremonies: password and
passkey login, multi-factor challenges (security keys, TOTP, recovery
codes), sudo mode, registration, account recovery and credential settings.

The package owns the ceremony state machines, rate limiting and timing
normalization. Persistence, sessions, WebAuthn/TOTP verification and
notification delivery are ports supplied by the host application.

Usage:
    ```python
    from auth_ceremonies import CeremonyRequest, ChallengeFailedError

    request = CeremonyRequest(session_id=session_id, ip_address=client_ip)
    try:
        outcome = await login.password(request, {"email": email, "password": password})
    except ChallengeFailedError as exc:
        return render_error(str(exc))
    ```

Submodules:
    - `challenges`: password, public key, TOTP and recovery code checks
    - `settings`: credential registration and removal, password change
    - `adapters`: py_webauthn, pyotp and bcrypt/argon2 adapters
    - `contrib.redis`: Redis rate limiter, TOTP step store and sessions
    - `observability`: Prometheus metrics
"""

from __future__ import annotations

from .authentication import SessionAuthenticator
from .config import CeremonyConfig, RelyingParty, WebAuthnConfig
from .credentials import CredentialAttributes, CredentialType, MultiFactorCredential
from .dispatcher import EventDispatcher
from .events import (
    ALL_EVENTS,
    AccountRecovered,
    AccountRecoveryFailed,
    AccountRecoveryRequested,
    Authenticated,
    AuthenticationFailed,
    CeremonyEvent,
    CredentialRemoved,
    Lockout,
    MultiFactorChallenged,
    MultiFactorChallengeFailed,
    PasswordChanged,
    RecoveryCodesGenerated,
    Registered,
    SudoModeChallenged,
    SudoModeEnabled,
)
from .exceptions import (
    CeremonyError,
    ChallengeFailedError,
    ForbiddenError,
    NotFoundError,
    PasswordRequiredError,
    PreconditionFailedError,
    RateLimitedError,
    SignCountRegressionError,
    SudoModeRequiredError,
    ValidationError,
)
from .login import LoginOrchestrator
from .multifactor import MultiFactorOrchestrator
from .outcomes import (
    AuthenticatedOutcome,
    ChallengePage,
    CredentialRegistered,
    MultiFactorRequired,
    PasskeyRegistrationStarted,
    TotpRegistrationStarted,
)
from .ports import (
    IAuthGuard,
    ICredentialRepository,
    INotifier,
    IOwnerRepository,
    IPasswordHasher,
    IRecoveryTokenBroker,
    ITotpAuthenticator,
    ITotpStepStore,
    IWebAuthnVerifier,
    Owner,
    UserEntity,
    VerificationFailure,
    VerificationResult,
)
from .rate_limiting import InMemoryRateLimiter, IRateLimiter, Throttle
from .recovery import AccountRecovery
from .recovery_codes import RecoveryCodeManager
from .registration import RegistrationOrchestrator
from .request import CeremonyRequest
from .security import AccountSecurityIndicator
from .session import InMemorySessionStore, ISessionStore
from .state import CeremonyState, SessionKeys
from .sudo import SudoModeChallenge, SudoModeGuard
from .timebox import Timebox

__all__: list[str] = [
    # Configuration
    "CeremonyConfig",
    "RelyingParty",
    "WebAuthnConfig",
    # Requests & outcomes
    "CeremonyRequest",
    "AuthenticatedOutcome",
    "ChallengePage",
    "CredentialRegistered",
    "MultiFactorRequired",
    "PasskeyRegistrationStarted",
    "TotpRegistrationStarted",
    # Orchestrators
    "LoginOrchestrator",
    "MultiFactorOrchestrator",
    "RegistrationOrchestrator",
    "AccountRecovery",
    "SessionAuthenticator",
    "SudoModeGuard",
    "SudoModeChallenge",
    "AccountSecurityIndicator",
    # Credentials
    "CredentialAttributes",
    "CredentialType",
    "MultiFactorCredential",
    "RecoveryCodeManager",
    # State
    "CeremonyState",
    "SessionKeys",
    "ISessionStore",
    "InMemorySessionStore",
    # Rate limiting & timing
    "IRateLimiter",
    "InMemoryRateLimiter",
    "Throttle",
    "Timebox",
    # Ports
    "IAuthGuard",
    "ICredentialRepository",
    "INotifier",
    "IOwnerRepository",
    "IPasswordHasher",
    "IRecoveryTokenBroker",
    "ITotpAuthenticator",
    "ITotpStepStore",
    "IWebAuthnVerifier",
    "Owner",
    "UserEntity",
    "VerificationFailure",
    "VerificationResult",
    # Events
    "EventDispatcher",
    "CeremonyEvent",
    "ALL_EVENTS",
    "AccountRecovered",
    "AccountRecoveryFailed",
    "AccountRecoveryRequested",
    "Authenticated",
    "AuthenticationFailed",
    "CredentialRemoved",
    "Lockout",
    "MultiFactorChallenged",
    "MultiFactorChallengeFailed",
    "PasswordChanged",
    "RecoveryCodesGenerated",
    "Registered",
    "SudoModeChallenged",
    "SudoModeEnabled",
    # Exceptions
    "CeremonyError",
    "ChallengeFailedError",
    "ForbiddenError",
    "NotFoundError",
    "PasswordRequiredError",
    "PreconditionFailedError",
    "RateLimitedError",
    "SignCountRegressionError",
    "SudoModeRequiredError",
    "ValidationError",
]
