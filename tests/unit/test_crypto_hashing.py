"""
Unit tests for hashing functionality.
"""

import pytest

from daogov.crypto.hashing import Hash, SHA256Hasher


class TestHash:
    """Test the Hash class."""

    def test_hash_creation(self):
        """Test creating a hash from bytes."""
        data = b"\x01" * 32
        assert Hash(data).value == data

    def test_hash_invalid_length(self):
        """Test that hash must be exactly 32 bytes."""
        with pytest.raises(ValueError, match="Hash must be exactly 32 bytes"):
            Hash(b"\x01" * 31)

    def test_hex_round_trip(self):
        """Test hex conversion."""
        hash_obj = Hash(b"\xab" * 32)
        assert hash_obj.to_hex() == "ab" * 32
        assert str(hash_obj) == "ab" * 32
        assert Hash.from_hex(hash_obj.to_hex()) == hash_obj

    def test_zero(self):
        """Test the zero hash."""
        assert Hash.zero().value == b"\x00" * 32

    def test_equality_and_hashing(self):
        """Test comparison and use as dict key."""
        first = Hash(b"\x01" * 32)
        second = Hash(b"\x01" * 32)
        assert first == second
        assert first != Hash.zero()
        assert first != "not a hash"
        assert len({first, second}) == 1


class TestSHA256Hasher:
    """Test SHA256Hasher."""

    def test_known_vector(self):
        """Test SHA-256 of the empty string."""
        assert SHA256Hasher.hash(b"").to_hex() == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_string_and_bytes_agree(self):
        """Test that strings are hashed as UTF-8."""
        assert SHA256Hasher.hash("0xdao:secret") == SHA256Hasher.hash(b"0xdao:secret")
