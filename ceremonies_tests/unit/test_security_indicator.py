"""Tests for AccountSecurityIndicator."""

from __future__ import annotations

import pytest

from auth_ceremonies import AccountSecurityIndicator


class TestEvaluate:
    @pytest.mark.parametrize(
        ("has_mfa", "has_codes", "expected", "color"),
        [
            (False, False, AccountSecurityIndicator.NO_MFA_NO_RECOVERY_CODES, "RED"),
            (False, True, AccountSecurityIndicator.NO_MFA_HAS_RECOVERY_CODES, "RED"),
            (True, False, AccountSecurityIndicator.HAS_MFA_NO_RECOVERY_CODES, "ORANGE"),
            (True, True, AccountSecurityIndicator.HAS_MFA_HAS_RECOVERY_CODES, "GREEN"),
        ],
    )
    def test_states(self, has_mfa, has_codes, expected, color) -> None:
        indicator = AccountSecurityIndicator.evaluate(has_mfa, has_codes)

        assert indicator is expected
        assert indicator.color == color
        assert indicator.has_issues is (color != "GREEN")

    def test_to_dict(self) -> None:
        assert AccountSecurityIndicator.HAS_MFA_HAS_RECOVERY_CODES.to_dict() == {
            "color": "GREEN",
            "has_issues": False,
            "message": "Your account is well-protected.",
        }


@pytest.mark.asyncio
class TestForOwner:
    async def test_owner_with_totp_and_no_codes(
        self, password_owner, owner_totp, credentials
    ) -> None:
        indicator = await AccountSecurityIndicator.for_owner(password_owner, credentials)

        assert indicator is AccountSecurityIndicator.HAS_MFA_NO_RECOVERY_CODES

    async def test_fresh_owner(self, password_owner, credentials) -> None:
        indicator = await AccountSecurityIndicator.for_owner(password_owner, credentials)

        assert indicator is AccountSecurityIndicator.NO_MFA_NO_RECOVERY_CODES
