"""Tests for ceremony input validation."""

from __future__ import annotations

import pytest

from auth_ceremonies import ValidationError
from auth_ceremonies.inputs import (
    PASSWORD_MAX_BYTES,
    ChangePasswordInput,
    MultiFactorInput,
    PasswordLoginInput,
    PasswordRegistrationInput,
    validate_input,
)


class TestValidateInput:
    @pytest.mark.parametrize("field", ["identity", "email", "username"])
    def test_identity_aliases(self, field: str) -> None:
        data = validate_input(PasswordLoginInput, {field: " jane ", "password": "x"})

        assert data.identity == "jane"
        assert data.remember is False

    def test_errors_are_keyed_by_field(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_input(PasswordLoginInput, {"identity": "jane"})

        assert list(exc_info.value.errors) == ["password"]

    def test_validated_models_pass_through(self) -> None:
        data = PasswordLoginInput(identity="jane", password="x")

        assert validate_input(PasswordLoginInput, data) is data

    def test_multi_factor_needs_a_credential_or_code(self) -> None:
        with pytest.raises(ValidationError):
            validate_input(MultiFactorInput, {"code": ""})

        assert validate_input(MultiFactorInput, {"credential": '{"id": "x"}'}).code is None

    def test_password_length_comes_from_the_context(self) -> None:
        payload = {
            "name": "Ann",
            "email": "ann@example.com",
            "password": "twelve-chars",
            "password_confirmation": "twelve-chars",
        }

        validate_input(PasswordRegistrationInput, payload)
        with pytest.raises(ValidationError) as exc_info:
            validate_input(PasswordRegistrationInput, payload, {"password_min_length": 16})

        assert "password" in exc_info.value.errors

    @pytest.mark.parametrize("password", ["x" * 73, "\u00e9" * 37])
    def test_passwords_beyond_the_hash_limit_are_rejected(self, password: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_input(
                ChangePasswordInput,
                {
                    "current_password": "old",
                    "new_password": password,
                    "new_password_confirmation": password,
                },
            )

        assert "new_password" in exc_info.value.errors
        assert validate_input(
            ChangePasswordInput,
            {
                "current_password": "old",
                "new_password": "x" * PASSWORD_MAX_BYTES,
                "new_password_confirmation": "x" * PASSWORD_MAX_BYTES,
            },
        )

    def test_new_password_must_be_confirmed(self) -> None:
        with pytest.raises(ValidationError):
            validate_input(
                ChangePasswordInput,
                {
                    "current_password": "old",
                    "new_password": "a-long-password",
                    "new_password_confirmation": "different-password",
                },
            )

    def test_string_errors_are_wrapped(self) -> None:
        assert ValidationError("Bad input.").errors == {"__root__": ["Bad input."]}
