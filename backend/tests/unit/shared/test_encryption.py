"""Unit tests for at-rest credential encryption."""

from __future__ import annotations

import pytest

from leadscore.shared.security.encryption import CredentialCipher, DecryptionError, derive_key


class TestDeriveKey:
    def test_is_deterministic_and_32_bytes(self) -> None:
        key = derive_key("secret")
        assert len(key) == 32
        assert derive_key("secret") == key
        assert derive_key("other") != key


class TestCredentialCipher:
    def test_round_trip(self, cipher: CredentialCipher) -> None:
        token = cipher.encrypt("sk-ant-api03-abcdef")
        assert token.startswith("encrypted:")
        assert cipher.decrypt(token) == "sk-ant-api03-abcdef"

    def test_format_is_hex_iv_and_ciphertext(self, cipher: CredentialCipher) -> None:
        iv_hex, ct_hex = cipher.encrypt("x").removeprefix("encrypted:").split(":")
        assert len(bytes.fromhex(iv_hex)) == 16
        assert len(bytes.fromhex(ct_hex)) == 16

    def test_random_iv_per_value(self, cipher: CredentialCipher) -> None:
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_unicode_plaintext(self, cipher: CredentialCipher) -> None:
        assert cipher.decrypt(cipher.encrypt("clé-秘密")) == "clé-秘密"

    def test_plain_values_pass_through(self, cipher: CredentialCipher) -> None:
        assert cipher.decrypt("sk-plain") == "sk-plain"

    def test_is_encrypted(self) -> None:
        assert CredentialCipher.is_encrypted("encrypted:00:11")
        assert not CredentialCipher.is_encrypted("sk-plain")
        assert not CredentialCipher.is_encrypted("")
        assert not CredentialCipher.is_encrypted(None)

    @pytest.mark.parametrize(
        "value",
        [
            "encrypted:no-separator",
            "encrypted:zz:11",
            "encrypted:00:11",
            "encrypted:00112233445566778899aabbccddeeff:",
        ],
    )
    def test_malformed_values_raise(self, cipher: CredentialCipher, value: str) -> None:
        with pytest.raises(DecryptionError):
            cipher.decrypt(value)

    def test_wrong_key_raises(self, cipher: CredentialCipher) -> None:
        token = CredentialCipher("a-completely-different-key").encrypt(
            "a credential long enough to span blocks"
        )
        with pytest.raises(DecryptionError):
            cipher.decrypt(token)
