"""Symmetric encryption for secure column values.

AES in CBC mode with PKCS7 padding, via the ``cryptography`` package. Every
call to ``encrypt`` draws a fresh random IV, so equal cleartexts produce
different ciphertexts. Stored layout::

    [1 byte IV length][IV bytes][ciphertext bytes]
"""

import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from tom.errors import InvalidKeyError
from tom.models.enums import KeyLength

VALID_KEY_LENGTHS = tuple(int(length) for length in KeyLength)

_BLOCK_BITS = algorithms.AES.block_size


class SecureValueCodec:
    """Encrypts and decrypts byte strings with one fixed key.

    Accepts a raw key, or its text form ``"0 255 0 ..."`` (one decimal byte
    per entry). Keys must be 16, 24 or 32 bytes long.
    """

    def __init__(self, key: bytes | str) -> None:
        if isinstance(key, str):
            key = parse_key(key)
        if len(key) not in VALID_KEY_LENGTHS:
            raise InvalidKeyError("The key must contain 16, 24, or 32 bytes.", key_length=len(key))
        self._key = bytes(key)

    @staticmethod
    def create_key(key_length: KeyLength = KeyLength.K128) -> bytes:
        """Create a random key suitable for the constructor."""
        return os.urandom(int(key_length))

    def encrypt(self, clear_data: bytes) -> bytes:
        """Encrypt ``clear_data`` under a new IV; empty input yields one padding block."""
        iv = os.urandom(_BLOCK_BITS // 8)
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(clear_data) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(padded) + encryptor.finalize()

        return bytes([len(iv)]) + iv + encrypted

    def decrypt(self, encrypted_data: bytes) -> bytes:
        """Decrypt data produced by ``encrypt``.

        A zero-length input is treated as an empty marker and returns ``b""``.
        """
        if not encrypted_data:
            return b""
        iv_length = encrypted_data[0]
        iv = encrypted_data[1 : 1 + iv_length]
        encrypted = encrypted_data[1 + iv_length :]

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(encrypted) + decryptor.finalize()

        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()


def parse_key(text: str) -> bytes:
    """Parse a ``"0 255 0 ..."`` key into bytes."""
    try:
        return bytes(int(part) for part in text.split())
    except ValueError as exc:
        raise InvalidKeyError(f"Malformed encryption key text: {exc}") from exc


def format_key(key: bytes) -> str:
    """Render a key in the ``"0 255 0 ..."`` text form accepted by ``parse_key``."""
    return " ".join(str(byte) for byte in key)
