"""Ceremony input models.

Each ceremony step validates its payload through one of these pydantic
models; failures surface as :class:`~auth_ceremonies.exceptions.ValidationError`
with field-level messages.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)

#: WebAuthn responses are passed through untouched (JSON text or decoded).
CredentialPayload = Union[str, dict[str, Any]]

#: bcrypt only reads the first 72 bytes of a password.
PASSWORD_MAX_BYTES = 72


def _password_strength(value: str, info: ValidationInfo) -> str:
    minimum = (info.context or {}).get("password_min_length", 8)
    if len(value) < minimum:
        raise ValueError(f"The password must be at least {minimum} characters.")
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"The password must not be longer than {PASSWORD_MAX_BYTES} bytes.")
    return value


class CeremonyInput(BaseModel):
    """Base class for ceremony payloads."""

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)


class PasswordLoginInput(CeremonyInput):
    identity: str = Field(
        min_length=1, validation_alias=AliasChoices("identity", "email", "username")
    )
    password: str = Field(min_length=1)
    remember: bool = False


class PasskeyLoginInput(CeremonyInput):
    credential: CredentialPayload
    remember: bool = False


class MultiFactorInput(CeremonyInput):
    credential: CredentialPayload | None = None
    code: str | None = None

    @model_validator(mode="after")
    def _requires_credential_or_code(self) -> MultiFactorInput:
        if self.credential is None and not self.code:
            raise ValueError("Either a credential or a code is required.")
        return self


class PasskeyRegistrationInput(CeremonyInput):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    username: str | None = Field(default=None, min_length=1, max_length=255)


class PasswordRegistrationInput(PasskeyRegistrationInput):
    password: str
    password_confirmation: str

    @field_validator("password")
    @classmethod
    def _strong_enough(cls, value: str, info: ValidationInfo) -> str:
        return _password_strength(value, info)

    @model_validator(mode="after")
    def _confirmed(self) -> PasswordRegistrationInput:
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class CredentialInput(CeremonyInput):
    credential: CredentialPayload


class PublicKeyRegistrationInput(CeremonyInput):
    name: str = Field(min_length=1, max_length=255)
    credential: CredentialPayload


class TotpConfirmationInput(CeremonyInput):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=6, max_length=6)


class RecoveryCodeInput(CeremonyInput):
    code: str = Field(min_length=1)


class PasswordConfirmationInput(CeremonyInput):
    password: str = Field(min_length=1)


class ChangePasswordInput(CeremonyInput):
    current_password: str = Field(min_length=1)
    new_password: str
    new_password_confirmation: str

    @field_validator("new_password")
    @classmethod
    def _strong_enough(cls, value: str, info: ValidationInfo) -> str:
        return _password_strength(value, info)

    @model_validator(mode="after")
    def _confirmed(self) -> ChangePasswordInput:
        if self.new_password != self.new_password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class RecoveryRequestInput(CeremonyInput):
    email: str = Field(min_length=3, max_length=255)


class AccountRecoveryInput(CeremonyInput):
    email: str = Field(min_length=3, max_length=255)
    token: str = Field(min_length=1)
    code: str | None = None


def validate_input(
    model: type[M],
    payload: Mapping[str, Any] | M,
    context: dict[str, Any] | None = None,
) -> M:
    """Validate a raw payload into ``model``.

    Raises:
        ValidationError: With ``{field: [messages]}`` errors.
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(dict(payload), context=context)  # type: ignore[arg-type]
    except PydanticValidationError as exc:
        errors: dict[str, list[str]] = {}
        for error in exc.errors():
            loc = ".".join(str(p) for p in error.get("loc", ())) or "__root__"
            msg = error.get("msg", "validation error")
            errors.setdefault(loc, []).append(msg)
        raise ValidationError(errors) from exc


__all__: list[str] = [
    "CeremonyInput",
    "PasswordLoginInput",
    "PasskeyLoginInput",
    "MultiFactorInput",
    "PasskeyRegistrationInput",
    "PasswordRegistrationInput",
    "CredentialInput",
    "PublicKeyRegistrationInput",
    "TotpConfirmationInput",
    "RecoveryCodeInput",
    "PasswordConfirmationInput",
    "ChangePasswordInput",
    "RecoveryRequestInput",
    "AccountRecoveryInput",
    "PASSWORD_MAX_BYTES",
    "validate_input",
]
