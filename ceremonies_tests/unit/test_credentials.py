"""Tests for credential records."""

from __future__ import annotations

import json

import pytest

from auth_ceremonies import (
    CredentialAttributes,
    CredentialType,
    MultiFactorCredential,
    SignCountRegressionError,
)
from auth_ceremonies.credentials import public_key_credential_id


def attributes(sign_count: int = 5) -> CredentialAttributes:
    return CredentialAttributes(
        id=b"\x01\x02\xff",
        public_key=b"cose",
        sign_count=sign_count,
        user_handle="owner-1",
        transports=("usb", "nfc"),
    )


class TestCredentialIds:
    def test_public_key_id_is_derived_from_the_raw_id(self) -> None:
        assert public_key_credential_id(b"\x01\x02") == "public-key-AQI"

    def test_totp_id_is_prefixed(self) -> None:
        credential = MultiFactorCredential.totp("owner-1", "Phone", "SECRET")

        assert credential.id.startswith("totp-")
        assert credential.type is CredentialType.TOTP


class TestCredentialAttributes:
    def test_json_uses_standard_base64_and_camel_case_keys(self) -> None:
        payload = json.loads(attributes().to_json())

        assert payload == {
            "id": "AQL/",
            "publicKey": "Y29zZQ==",
            "signCount": 5,
            "userHandle": "owner-1",
            "transports": ["usb", "nfc"],
        }
        assert CredentialAttributes.from_json(attributes().to_json()) == attributes()

    def test_with_sign_count_advances(self) -> None:
        assert attributes(5).with_sign_count(6).sign_count == 6

    @pytest.mark.parametrize("count", [5, 4, 0])
    def test_with_sign_count_rejects_regression(self, count: int) -> None:
        with pytest.raises(SignCountRegressionError):
            attributes(5).with_sign_count(count)


class TestMultiFactorCredential:
    def test_public_key_credential_stores_attributes(self) -> None:
        credential = MultiFactorCredential.public_key("owner-1", "Key", attributes())

        assert credential.id == attributes().credential_id
        assert credential.attributes == attributes()

    def test_totp_credential_has_no_attributes(self) -> None:
        with pytest.raises(TypeError):
            _ = MultiFactorCredential.totp("owner-1", "Phone", "SECRET").attributes

    def test_to_dict_hides_the_secret(self) -> None:
        data = MultiFactorCredential.totp("owner-1", "Phone", "SECRET").to_dict()

        assert "secret" not in data
        assert data["type"] == "totp"
        assert data["name"] == "Phone"
