"""
Test factories for generating blocks and transactions.

Blocks built by ``BlockFactory.create`` are real wire serializations:
they parse with ``Block.from_bytes`` and their ids are the true double
SHA-256 hashes. ``BlockFactory.with_hashes`` builds a block whose
transactions carry chosen ids instead, for tests that need exact
partition keys.

Example:
    >>> from tests.fixtures import BlockFactory
    >>>
    >>> block = BlockFactory.create(tx_count=3)
    >>> chain = BlockFactory.create_chain(10)
    >>> txid = BlockFactory.hash_in_partition(0x120)
"""

from __future__ import annotations

import hashlib

from chain_ingest.models import Block, Transaction
from chain_ingest.models.chain import HEADER_SIZE, double_sha256, encode_varint

P2PKH_SCRIPT = bytes.fromhex("76a914") + b"\x11" * 20 + bytes.fromhex("88ac")


class BlockFactory:
    """Factory for creating test blocks.

    Attributes:
        _counter: Internal counter making every transaction unique
    """

    _counter: int = 0

    @classmethod
    def reset(cls) -> None:
        """Reset the counter to 0."""
        cls._counter = 0

    @classmethod
    def _next(cls) -> int:
        cls._counter += 1
        return cls._counter

    @classmethod
    def transaction(cls, *, segwit: bool = False, outputs: int = 1) -> bytes:
        """Serialize a unique one-input transaction.

        Args:
            segwit: Emit the marker/flag bytes and one witness stack
            outputs: Number of outputs

        Returns:
            Wire serialization
        """
        n = cls._next()
        prevout = hashlib.sha256(n.to_bytes(8, "little")).digest() + (0).to_bytes(4, "little")
        script_sig = b"" if segwit else b"\x51" + n.to_bytes(4, "little")

        body = encode_varint(1) + prevout + encode_varint(len(script_sig)) + script_sig
        body += b"\xff\xff\xff\xff"
        body += encode_varint(outputs)
        for i in range(outputs):
            body += (5_000_000_000 - i).to_bytes(8, "little")
            body += encode_varint(len(P2PKH_SCRIPT)) + P2PKH_SCRIPT

        version = (2 if segwit else 1).to_bytes(4, "little")
        locktime = n.to_bytes(4, "little")

        if not segwit:
            return version + body + locktime

        witness = encode_varint(2) + encode_varint(71) + b"\x30" * 71 + encode_varint(33) + b"\x02" * 33
        return version + b"\x00\x01" + body + witness + locktime

    @classmethod
    def header(cls, previous: str | None = None, nonce: int | None = None) -> bytes:
        """Build an 80-byte header."""
        prev = bytes.fromhex(previous)[::-1] if previous else b"\x00" * 32
        nonce = cls._next() if nonce is None else nonce
        header = (
            (4).to_bytes(4, "little")
            + prev
            + hashlib.sha256(nonce.to_bytes(8, "little")).digest()
            + (1_700_000_000 + nonce).to_bytes(4, "little")
            + bytes.fromhex("ffff001d")
            + nonce.to_bytes(4, "little")
        )
        assert len(header) == HEADER_SIZE
        return header

    @classmethod
    def create(
        cls,
        tx_count: int = 1,
        *,
        previous: str | None = None,
        segwit: bool = False,
        transactions: list[bytes] | None = None,
    ) -> Block:
        """Create a parsed block.

        Args:
            tx_count: Number of fresh transactions (ignored if
                ``transactions`` is given)
            previous: Previous block hash (display order)
            segwit: Build segwit transactions
            transactions: Explicit serialized transactions

        Returns:
            Block parsed from its own serialization
        """
        if transactions is None:
            transactions = [cls.transaction(segwit=segwit) for _ in range(tx_count)]
        return Block.build(cls.header(previous), transactions)

    @classmethod
    def create_chain(cls, count: int, tx_count: int = 1) -> list[Block]:
        """Create ``count`` linked blocks."""
        blocks: list[Block] = []
        previous = None
        for _ in range(count):
            block = cls.create(tx_count, previous=previous)
            blocks.append(block)
            previous = block.hash
        return blocks

    @classmethod
    def hash_in_partition(cls, key: int) -> str:
        """A unique display-order tx hash whose partition key is ``key``."""
        if key & 0x1F or not 0 <= key <= 0xFFE0:
            raise ValueError(f"{key:#x} is not a reachable partition key")
        n = cls._next()
        first = (key & 0xFF) | (n & 0x1F)
        second = key >> 8
        return bytes([first, second]).hex() + n.to_bytes(30, "big").hex()

    @classmethod
    def with_hashes(cls, tx_hashes: list[str]) -> Block:
        """Create a block whose transactions have the given ids.

        The transaction payloads are real serializations but their ids
        are overridden, so the block does not round-trip through
        ``Block.from_bytes``.
        """
        transactions = tuple(
            Transaction(raw=cls.transaction(), txid=bytes.fromhex(h)[::-1]) for h in tx_hashes
        )
        header = cls.header()
        raw = header + encode_varint(len(transactions)) + b"".join(tx.raw for tx in transactions)
        return Block(header=header, transactions=transactions, raw=raw)


def txid_of(raw_tx: bytes) -> str:
    """Display-order txid of a legacy serialization."""
    return double_sha256(raw_tx)[::-1].hex()
