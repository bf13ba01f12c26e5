"""
Partition key function for the transaction index.

The key keeps the top three bits of the first hash byte and all eight
bits of the second, giving 2048 distinct keys spread uniformly over the
hash space:

    key = (byte0 & 0xE0) + (byte1 << 8)

Example:
    >>> from chain_ingest.partition import partition_key
    >>> hex(partition_key(bytes.fromhex("3f01")))
    '0x120'
"""

from __future__ import annotations

PARTITION_MASK = 0xE0

# Every reachable key, in ascending order
PARTITION_KEYS: tuple[int, ...] = tuple(
    (hi << 8) + lo for hi in range(256) for lo in range(0, 256, 0x20)
)


def partition_key(tx_hash: bytes | str) -> int:
    """Compute the partition key of a transaction hash.

    Args:
        tx_hash: Hash bytes, most-significant byte first, or the
            equivalent hex string

    Returns:
        Unsigned partition key in [0, 0xFFE0]

    Raises:
        ValueError: If fewer than two bytes are supplied
    """
    if isinstance(tx_hash, str):
        tx_hash = bytes.fromhex(tx_hash[:4])

    if len(tx_hash) < 2:
        raise ValueError("Partition key needs at least two hash bytes")

    return (tx_hash[0] & PARTITION_MASK) + (tx_hash[1] << 8)
