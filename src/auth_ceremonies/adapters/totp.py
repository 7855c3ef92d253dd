"""TOTP adapter built on pyotp.

Verification is replay protected: the last accepted time-step is kept per
identity in an :class:`~auth_ceremonies.ports.ITotpStepStore`, and only codes
of a strictly newer step are accepted.
"""

from __future__ import annotations

import asyncio
import secrets
import time
from typing import TYPE_CHECKING, Any

from ..ports import ITotpAuthenticator, ITotpStepStore

if TYPE_CHECKING:
    from collections.abc import Callable


class PyOtpAuthenticator(ITotpAuthenticator):
    """RFC 6238 authenticator compatible with any authenticator app.

    Example:
        ```python
        authenticator = PyOtpAuthenticator(InMemoryTotpStepStore(), issuer="Acme")
        secret = authenticator.generate_secret()
        uri = authenticator.provisioning_uri(secret, "jane@example.com")

        await authenticator.verify("user-1", secret, "123456")
        ```
    """

    def __init__(
        self,
        steps: ITotpStepStore,
        *,
        issuer: str = "auth-ceremonies",
        digits: int = 6,
        interval: int = 30,
        valid_window: int = 1,
        secret_length: int = 32,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the authenticator.

        Args:
            steps: Store of the last accepted step per identity.
            issuer: Application name shown in authenticator apps.
            digits: Code length.
            interval: Step length in seconds.
            valid_window: Steps accepted on either side of the current one.
            secret_length: Length of generated base32 secrets.
            clock: Time source, injectable for tests.
        """
        self.steps = steps
        self.issuer = issuer
        self.digits = digits
        self.interval = interval
        self.valid_window = valid_window
        self.secret_length = secret_length
        self.clock = clock

    def _get_pyotp(self) -> Any:
        """Lazy import pyotp."""
        try:
            import pyotp

            return pyotp
        except ImportError as e:
            raise ImportError(
                "pyotp is required for TOTP support. Install with: pip install pyotp"
            ) from e

    def _totp(self, secret: str) -> Any:
        return self._get_pyotp().TOTP(secret, digits=self.digits, interval=self.interval)

    def generate_secret(self) -> str:
        return str(self._get_pyotp().random_base32(length=self.secret_length))

    def provisioning_uri(self, secret: str, holder: str) -> str:
        return str(self._totp(secret).provisioning_uri(name=holder, issuer_name=self.issuer))

    def current_code(self, secret: str) -> str:
        """Code of the current step (for tests and setup screens)."""
        return str(self._totp(secret).generate_otp(self._current_step()))

    def _current_step(self) -> int:
        return int(self.clock()) // self.interval

    async def verify(self, identity: str, secret: str, code: str) -> bool:
        """Accept ``code`` if it belongs to a step newer than the last accepted one.

        Malformed secrets and codes are rejected rather than raised.
        """
        if not code.isdigit() or len(code) != self.digits:
            return False
        try:
            totp = self._totp(secret)
            current = self._current_step()
            matching = [
                step
                for step in range(current - self.valid_window, current + self.valid_window + 1)
                if secrets.compare_digest(str(totp.generate_otp(step)), code)
            ]
        except (ValueError, TypeError):
            return False

        ttl = (2 * self.valid_window + 1) * self.interval
        for step in matching:
            if await self.steps.advance(identity, step, ttl):
                return True
        return False


class InMemoryTotpStepStore(ITotpStepStore):
    """Last accepted steps kept in memory, for TESTING ONLY."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._steps: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def advance(self, identity: str, step: int, ttl: int) -> bool:
        async with self._lock:
            now = self._clock()
            entry = self._steps.get(identity)
            if entry is not None and entry[1] > now and entry[0] >= step:
                return False
            self._steps[identity] = (step, now + ttl)
            return True


__all__: list[str] = ["PyOtpAuthenticator", "InMemoryTotpStepStore"]
