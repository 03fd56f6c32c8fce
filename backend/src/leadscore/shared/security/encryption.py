"""At-rest encryption for provider credentials.

Format::

    encrypted:<hex iv>:<hex ciphertext>

AES-256-CBC with PKCS7 padding and a random 16-byte IV per value.  The key is
derived from the configured secret with scrypt (N=16384, r=8, p=1, 32 bytes),
the same parameters as Node's ``crypto.scryptSync`` defaults, so values
written by the scraper integration decrypt here unchanged.
"""

from __future__ import annotations

import os

import structlog
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from leadscore.domain.value_objects import ENCRYPTED_PREFIX

logger = structlog.get_logger(__name__)

_SALT = b"salt"
_IV_SIZE = 16


class DecryptionError(Exception):
    """Stored ciphertext could not be decrypted with the configured key."""


def derive_key(secret: str) -> bytes:
    kdf = Scrypt(salt=_SALT, length=32, n=2**14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


class CredentialCipher:
    """Encrypts and decrypts single credential strings."""

    def __init__(self, secret: str) -> None:
        self._key = derive_key(secret)

    @staticmethod
    def is_encrypted(value: str | None) -> bool:
        return bool(value) and value.startswith(ENCRYPTED_PREFIX)  # type: ignore[union-attr]

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(_IV_SIZE)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{ENCRYPTED_PREFIX}{iv.hex()}:{ciphertext.hex()}"

    def decrypt(self, value: str) -> str:
        """Reverse :meth:`encrypt`.  Values without the marker are returned as-is."""
        if not self.is_encrypted(value):
            return value
        body = value[len(ENCRYPTED_PREFIX):]
        iv_hex, sep, ct_hex = body.partition(":")
        if not sep:
            raise DecryptionError("Malformed ciphertext: missing IV separator")
        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ct_hex)
            if len(iv) != _IV_SIZE or not ciphertext:
                raise DecryptionError("Malformed ciphertext")
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except DecryptionError:
            raise
        except ValueError as exc:
            # Bad hex, wrong block length, bad padding or non-UTF-8 output
            logger.warning("credential_decrypt_failed", error=str(exc))
            raise DecryptionError(str(exc)) from exc
