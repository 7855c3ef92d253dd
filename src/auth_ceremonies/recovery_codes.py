"""Recovery codes.

One-time codes that let an owner regain access when every multi-factor
credential is lost. A set holds 8 codes formatted ``XXXXX-XXXXX``.
"""

from __future__ import annotations

import re
import secrets
import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

_RECOVERY_CODE = re.compile(r"^[A-Za-z0-9]{10}$")


def normalize_code(code: str) -> str:
    """Strip separators and upper-case a code for comparison."""
    return code.replace("-", "").strip().upper()


def _same_code(stored: str, candidate: str) -> bool:
    return secrets.compare_digest(
        normalize_code(stored).encode(), normalize_code(candidate).encode()
    )


def looks_like_recovery_code(code: str) -> bool:
    """Tell a recovery code apart from a 6-digit TOTP code.

    Any code with a dash, or whose dash-stripped form has the recovery code
    length, is treated as a recovery code.
    """
    return "-" in code or _RECOVERY_CODE.match(normalize_code(code)) is not None


class RecoveryCodeManager:
    """An ordered set of recovery codes.

    Example:
        ```python
        manager = RecoveryCodeManager.generate()
        codes = manager.to_list()  # show once, then persist on the owner

        manager = RecoveryCodeManager.from_list(owner.recovery_codes)
        if manager.contains("h4pfk-envzv"):
            manager.remove("h4pfk-envzv")
        ```
    """

    ALPHABET = string.ascii_uppercase + string.digits
    COUNT = 8
    LENGTH = 10

    def __init__(self, codes: Iterable[str]) -> None:
        self._codes = list(codes)

    @classmethod
    def from_list(cls, codes: Iterable[str]) -> RecoveryCodeManager:
        return cls(codes)

    @classmethod
    def generate(cls) -> RecoveryCodeManager:
        """Generate a fresh set of distinct codes."""
        codes: list[str] = []
        while len(codes) < cls.COUNT:
            code = cls._format_code(cls._generate_code())
            if code not in codes:
                codes.append(code)
        return cls(codes)

    @classmethod
    def _generate_code(cls) -> str:
        return "".join(secrets.choice(cls.ALPHABET) for _ in range(cls.LENGTH))

    @staticmethod
    def _format_code(code: str) -> str:
        half = len(code) // 2
        return f"{code[:half]}-{code[half:]}"

    def contains(self, candidate: str) -> bool:
        """Whether the set holds ``candidate`` (case and dash insensitive)."""
        return any(_same_code(code, candidate) for code in self._codes)

    def remove(self, candidate: str) -> RecoveryCodeManager:
        """Remove the first code matching ``candidate``, keeping order."""
        for index, code in enumerate(self._codes):
            if _same_code(code, candidate):
                del self._codes[index]
                break
        return self

    def to_list(self) -> list[str]:
        return list(self._codes)

    def __len__(self) -> int:
        return len(self._codes)


__all__: list[str] = [
    "RecoveryCodeManager",
    "normalize_code",
    "looks_like_recovery_code",
]
