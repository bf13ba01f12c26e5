"""
Tests for the partition key function.
"""

from __future__ import annotations

import pytest

from chain_ingest.partition import PARTITION_KEYS, partition_key


class TestPartitionKey:
    """Tests for partition_key."""

    def test_known_value(self):
        """Test (0x3F & 0xE0) + (0x01 << 8) = 0x120."""
        assert partition_key(bytes([0x3F, 0x01])) == 0x120

    def test_low_bits_of_first_byte_ignored(self):
        """Test that bytes differing only in the low five bits share a key."""
        assert partition_key(bytes([0x20, 0x7A])) == partition_key(bytes([0x3F, 0x7A]))

    def test_second_byte_is_high_byte(self):
        """Test that the second byte lands in bits 8-15."""
        assert partition_key(bytes([0x00, 0xFF])) == 0xFF00
        assert partition_key(bytes([0xFF, 0xFF])) == 0xFFE0

    def test_only_first_two_bytes_matter(self):
        """Test that trailing bytes do not change the key."""
        assert partition_key(bytes([0x3F, 0x01]) + b"\xaa" * 30) == 0x120

    def test_hex_string_input(self):
        """Test that a display-order hex string gives the same key as its bytes."""
        tx_hash = "3f01" + "00" * 30
        assert partition_key(tx_hash) == partition_key(bytes.fromhex(tx_hash)) == 0x120

    def test_too_short(self):
        """Test that fewer than two bytes is an error."""
        with pytest.raises(ValueError):
            partition_key(b"\x3f")

    def test_deterministic(self):
        """Test that the same hash always yields the same key."""
        tx_hash = bytes(range(32))
        assert partition_key(tx_hash) == partition_key(bytes(tx_hash))


class TestPartitionKeys:
    """Tests for the set of reachable keys."""

    def test_count(self):
        """Test that 3 + 8 bits give 2048 keys."""
        assert len(PARTITION_KEYS) == 2048
        assert len(set(PARTITION_KEYS)) == 2048

    def test_every_key_reachable(self):
        """Test that each listed key is produced by some hash."""
        reachable = {partition_key(bytes([b0, b1])) for b0 in range(0, 256, 0x20) for b1 in range(256)}
        assert reachable == set(PARTITION_KEYS)

    def test_sorted(self):
        assert list(PARTITION_KEYS) == sorted(PARTITION_KEYS)
