"""Tests for SecureValueCodec."""

import pytest

from sample_models import TEST_KEY
from tom.errors import InvalidKeyError
from tom.models.enums import KeyLength
from tom.services.codec import SecureValueCodec, format_key, parse_key


class TestKeyValidation:
    """Tests for key length checks at construction."""

    @pytest.mark.parametrize("length", [16, 24, 32])
    def test_accepts_valid_lengths(self, length: int) -> None:
        SecureValueCodec(bytes(length))

    @pytest.mark.parametrize("length", [0, 8, 15, 17, 31, 33, 64])
    def test_rejects_other_lengths(self, length: int) -> None:
        with pytest.raises(InvalidKeyError) as exc_info:
            SecureValueCodec(bytes(length))

        assert exc_info.value.key_length == length

    def test_accepts_text_key(self) -> None:
        codec = SecureValueCodec(format_key(TEST_KEY))

        assert codec.decrypt(SecureValueCodec(TEST_KEY).encrypt(b"shared")) == b"shared"

    def test_rejects_malformed_text_key(self) -> None:
        with pytest.raises(InvalidKeyError):
            SecureValueCodec("1 2 three")

    def test_rejects_out_of_range_byte(self) -> None:
        with pytest.raises(InvalidKeyError):
            parse_key(" ".join(["256"] * 16))


class TestCreateKey:
    """Tests for random key creation."""

    @pytest.mark.parametrize("key_length", list(KeyLength))
    def test_key_has_requested_length(self, key_length: KeyLength) -> None:
        assert len(SecureValueCodec.create_key(key_length)) == int(key_length)

    def test_keys_are_random(self) -> None:
        assert SecureValueCodec.create_key() != SecureValueCodec.create_key()

    def test_text_form_round_trips(self) -> None:
        key = SecureValueCodec.create_key(KeyLength.K256)

        assert parse_key(format_key(key)) == key


class TestEncryptDecrypt:
    """Tests for the stored layout and round trips."""

    def test_round_trip(self, codec: SecureValueCodec) -> None:
        assert codec.decrypt(codec.encrypt(b"Created")) == b"Created"

    def test_layout_starts_with_iv_length(self, codec: SecureValueCodec) -> None:
        encrypted = codec.encrypt(b"Created")

        assert encrypted[0] == 16
        # IV plus one padded block.
        assert len(encrypted) == 1 + 16 + 16

    def test_same_cleartext_gives_different_ciphertexts(self, codec: SecureValueCodec) -> None:
        first = codec.encrypt(b"Created")
        second = codec.encrypt(b"Created")

        assert first != second
        assert codec.decrypt(first) == codec.decrypt(second) == b"Created"

    def test_empty_cleartext_round_trips(self, codec: SecureValueCodec) -> None:
        encrypted = codec.encrypt(b"")

        assert len(encrypted) == 1 + 16 + 16
        assert codec.decrypt(encrypted) == b""

    def test_zero_length_marker_decrypts_to_empty(self, codec: SecureValueCodec) -> None:
        assert codec.decrypt(b"") == b""

