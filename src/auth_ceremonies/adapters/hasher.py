"""Password hashing adapter.

bcrypt by default, argon2id when configured. Hashes produced by the other
algorithm keep verifying, and are reported by :meth:`needs_rehash` so the
password challenge can upgrade them after a successful login.
"""

from __future__ import annotations

from typing import Any, Literal, cast

from ..ports import IPasswordHasher


class PasswordHasher(IPasswordHasher):
    """Password hasher backed by bcrypt or argon2-cffi.

    Example:
        ```python
        hasher = PasswordHasher(rounds=12)
        hashed = hasher.hash("correct horse battery staple")

        assert hasher.verify(hashed, "correct horse battery staple")
        ```
    """

    def __init__(
        self,
        *,
        algorithm: Literal["bcrypt", "argon2id"] = "bcrypt",
        rounds: int = 12,
    ) -> None:
        """Initialize the hasher.

        Args:
            algorithm: Algorithm used for new hashes.
            rounds: bcrypt cost factor.
        """
        self.algorithm = algorithm
        self.rounds = rounds
        self._bcrypt: Any = None
        self._argon2: Any = None

    def _get_bcrypt(self) -> Any:
        """Lazy import bcrypt."""
        if self._bcrypt is None:
            try:
                import bcrypt

                self._bcrypt = bcrypt
            except ImportError as e:
                raise ImportError(
                    "bcrypt is required for password hashing. "
                    "Install with: pip install bcrypt"
                ) from e
        return self._bcrypt

    def _get_argon2(self) -> Any:
        """Lazy import argon2-cffi."""
        if self._argon2 is None:
            try:
                import argon2

                self._argon2 = argon2
            except ImportError as e:
                raise ImportError(
                    "argon2-cffi is required for argon2id hashing. "
                    "Install with: pip install auth-ceremonies[argon2]"
                ) from e
        return self._argon2

    @staticmethod
    def _is_argon2(hashed_password: str) -> bool:
        return hashed_password.startswith("$argon2")

    def hash(self, password: str) -> str:
        if self.algorithm == "argon2id":
            return cast("str", self._get_argon2().PasswordHasher().hash(password))
        bcrypt = self._get_bcrypt()
        return cast("bytes", bcrypt.hashpw(password.encode(), bcrypt.gensalt(self.rounds))).decode()

    def verify(self, hashed_password: str, password: str) -> bool:
        """Check ``password`` against a stored hash of either algorithm.

        A malformed hash never matches.
        """
        if self._is_argon2(hashed_password):
            argon2 = self._get_argon2()
            try:
                return cast("bool", argon2.PasswordHasher().verify(hashed_password, password))
            except (argon2.exceptions.VerificationError, argon2.exceptions.InvalidHashError):
                return False

        try:
            return cast(
                "bool",
                self._get_bcrypt().checkpw(password.encode(), hashed_password.encode()),
            )
        except ValueError:
            return False

    def needs_rehash(self, hashed_password: str) -> bool:
        """Whether the hash was made with another algorithm or weaker settings."""
        if self._is_argon2(hashed_password):
            if self.algorithm != "argon2id":
                return True
            argon2 = self._get_argon2()
            try:
                return cast("bool", argon2.PasswordHasher().check_needs_rehash(hashed_password))
            except argon2.exceptions.InvalidHashError:
                return False

        if self.algorithm != "bcrypt":
            return True

        # $2b$12$...
        parts = hashed_password.split("$")
        if len(parts) >= 3 and parts[2].isdigit():
            return int(parts[2]) < self.rounds
        return False


__all__: list[str] = ["PasswordHasher"]
