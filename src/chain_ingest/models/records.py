"""
Index records and work units.

An IndexRecord is one row of the transaction table. Its row key encodes
the confirming block, so a transaction confirmed in two competing blocks
yields two coexisting rows, while re-ingesting the same (tx, block) pair
overwrites the same row.

Example:
    >>> from chain_ingest.models import IndexRecord
    >>>
    >>> record = IndexRecord.confirmed(tx_hash, block_hash)
    >>> record.row_key
    '<tx_hash>-b<block_hash>'
    >>> record.to_entity()
    {'PartitionKey': '288', 'RowKey': '...'}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chain_ingest.models.chain import Block
from chain_ingest.models.cursor import Cursor
from chain_ingest.partition import partition_key


class IndexRecord(BaseModel):
    """A transaction index entry addressed by (partition_key, row_key).

    Attributes:
        partition_key: Partition derived from the transaction hash only
        row_key: Unique key within the partition
        tx_hash: Transaction hash (display-order hex)
        block_hash: Confirming block hash, None for mempool records
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    partition_key: int = Field(ge=0, le=0xFFFF)
    row_key: str = Field(min_length=1)
    tx_hash: str
    block_hash: str | None = None

    @field_validator("tx_hash", "block_hash")
    @classmethod
    def validate_hash(cls, v: str | None) -> str | None:
        """Hashes are lowercase 64-character hex strings."""
        if v is None:
            return v
        v = v.lower()
        if len(v) != 64:
            raise ValueError(f"hash must be 64 hex characters, got {len(v)}")
        int(v, 16)
        return v

    @classmethod
    def confirmed(cls, tx_hash: str, block_hash: str) -> IndexRecord:
        """Record for a transaction confirmed in ``block_hash``."""
        tx_hash = tx_hash.lower()
        block_hash = block_hash.lower()
        return cls(
            partition_key=partition_key(tx_hash),
            row_key=f"{tx_hash}-b{block_hash}",
            tx_hash=tx_hash,
            block_hash=block_hash,
        )

    @classmethod
    def unconfirmed(cls, tx_hash: str) -> IndexRecord:
        """Record for a transaction seen only in the mempool."""
        tx_hash = tx_hash.lower()
        return cls(
            partition_key=partition_key(tx_hash),
            row_key=f"{tx_hash}-m",
            tx_hash=tx_hash,
        )

    @property
    def is_confirmed(self) -> bool:
        return self.block_hash is not None

    def to_entity(self) -> dict[str, Any]:
        """Table entity form: string PartitionKey and RowKey."""
        return {
            "PartitionKey": str(self.partition_key),
            "RowKey": self.row_key,
        }


@dataclass(frozen=True)
class TransactionBatch:
    """Work unit for the transaction pipeline.

    All records share one partition key, so the batch can be written
    atomically.
    """

    partition_key: int
    records: tuple[IndexRecord, ...]

    def __post_init__(self) -> None:
        if not self.records:
            raise ValueError("TransactionBatch cannot be empty")
        mismatched = [r for r in self.records if r.partition_key != self.partition_key]
        if mismatched:
            raise ValueError(
                f"{len(mismatched)} records do not belong to partition {self.partition_key}"
            )

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class BlockUpload:
    """Work unit for the block pipeline: one block and where it was read."""

    block: Block
    cursor: Cursor
