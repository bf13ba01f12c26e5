"""
Block and transaction models.

Blocks are parsed from their canonical wire serialization (the bytes
stored in ``blkNNNNN.dat`` files). Only what ingestion needs is decoded:
the 80-byte header, and each transaction's boundaries and txid. Legacy
and segwit transactions are both supported; the txid always covers the
non-witness serialization.

Hashes are exposed in display order (most-significant byte first), the
order used by block explorers and RPC.

Example:
    >>> from chain_ingest.models import Block
    >>>
    >>> block = Block.from_bytes(raw)
    >>> print(block.hash, len(block.transactions))
    >>> for tx in block.transactions:
    ...     print(tx.hash)
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

HEADER_SIZE = 80


def double_sha256(data: bytes) -> bytes:
    """SHA-256 applied twice, as used for block and transaction ids."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def encode_varint(value: int) -> bytes:
    """Encode a CompactSize unsigned integer."""
    if value < 0xFD:
        return value.to_bytes(1, "little")
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


class _Reader:
    """Cursor over a bytes buffer with bounds checking."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def read(self, n: int) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise ValueError(
                f"Unexpected end of data: need {n} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def read_varint(self) -> int:
        prefix = self.read(1)[0]
        if prefix < 0xFD:
            return prefix
        size = {0xFD: 2, 0xFE: 4, 0xFF: 8}[prefix]
        return int.from_bytes(self.read(size), "little")

    def skip_script(self) -> None:
        self.read(self.read_varint())


@dataclass(frozen=True)
class Transaction:
    """A transaction inside a block.

    Attributes:
        raw: Full wire serialization (including witness data if any)
        txid: Double-SHA256 of the non-witness serialization, internal order
    """

    raw: bytes = field(repr=False)
    txid: bytes

    @property
    def hash_bytes(self) -> bytes:
        """Transaction id, most-significant byte first."""
        return self.txid[::-1]

    @property
    def hash(self) -> str:
        """Transaction id as a display-order hex string."""
        return self.hash_bytes.hex()

    @property
    def is_segwit(self) -> bool:
        return len(self.raw) > 5 and self.raw[4] == 0 and self.raw[5] == 1

    @classmethod
    def from_bytes(cls, data: bytes) -> Transaction:
        """Parse a single serialized transaction."""
        reader = _Reader(data)
        tx = cls._read(reader)
        if reader.offset != len(data):
            raise ValueError(f"{len(data) - reader.offset} trailing bytes after transaction")
        return tx

    @classmethod
    def _read(cls, reader: _Reader) -> Transaction:
        start = reader.offset
        version = reader.read(4)

        segwit = False
        if reader.data[reader.offset : reader.offset + 2] == b"\x00\x01":
            reader.read(2)
            segwit = True

        body_start = reader.offset
        input_count = reader.read_varint()
        for _ in range(input_count):
            reader.read(36)  # previous outpoint
            reader.skip_script()
            reader.read(4)  # sequence

        output_count = reader.read_varint()
        for _ in range(output_count):
            reader.read(8)  # value
            reader.skip_script()
        body_end = reader.offset

        if segwit:
            for _ in range(input_count):
                for _ in range(reader.read_varint()):
                    reader.skip_script()

        locktime = reader.read(4)
        raw = reader.data[start : reader.offset]

        stripped = version + reader.data[body_start:body_end] + locktime
        return cls(raw=raw, txid=double_sha256(stripped))


@dataclass(frozen=True)
class Block:
    """A parsed block.

    Attributes:
        header: 80-byte block header
        transactions: Transactions in block order
        raw: Canonical wire serialization of the whole block
    """

    header: bytes = field(repr=False)
    transactions: tuple[Transaction, ...] = field(repr=False)
    raw: bytes = field(repr=False)

    @property
    def hash_bytes(self) -> bytes:
        """Block hash, most-significant byte first."""
        return double_sha256(self.header)[::-1]

    @property
    def hash(self) -> str:
        """Block hash as a display-order hex string."""
        return self.hash_bytes.hex()

    @property
    def previous_hash(self) -> str:
        return self.header[4:36][::-1].hex()

    @property
    def timestamp(self) -> int:
        return int.from_bytes(self.header[68:72], "little")

    def serialize(self) -> bytes:
        """Return the canonical wire representation."""
        return self.raw

    @classmethod
    def from_bytes(cls, data: bytes) -> Block:
        """Parse a serialized block.

        Args:
            data: Wire serialization of exactly one block

        Returns:
            Parsed Block

        Raises:
            ValueError: If the data is truncated or has trailing bytes
        """
        reader = _Reader(data)
        header = reader.read(HEADER_SIZE)

        tx_count = reader.read_varint()
        transactions = tuple(Transaction._read(reader) for _ in range(tx_count))

        if reader.offset != len(data):
            raise ValueError(f"{len(data) - reader.offset} trailing bytes after block")

        return cls(header=header, transactions=transactions, raw=bytes(data))

    @classmethod
    def build(cls, header: bytes, transactions: list[bytes]) -> Block:
        """Assemble a block from a header and serialized transactions."""
        if len(header) != HEADER_SIZE:
            raise ValueError(f"Header must be {HEADER_SIZE} bytes, got {len(header)}")
        raw = header + encode_varint(len(transactions)) + b"".join(transactions)
        return cls.from_bytes(raw)

    def __repr__(self) -> str:
        return f"Block(hash={self.hash}, transactions={len(self.transactions)})"
