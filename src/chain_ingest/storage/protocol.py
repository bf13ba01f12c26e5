"""
Storage protocols for chain-ingest.

Two remote services receive ingested data:

- TableStore: a partitioned key-value table. Entities are addressed by
  (PartitionKey, RowKey); a batch is atomic, holds at most
  MAX_BATCH_SIZE entities, and all of them share one partition key.
- BlobStore: write-once objects grouped in containers.

Currently implemented:
- SQLiteTableStore / FileBlobStore: local, durable backends
- MemoryTableStore / MemoryBlobStore: in-process backends for dry runs

Example:
    >>> from chain_ingest.storage import SQLiteTableStore
    >>>
    >>> store = SQLiteTableStore("data/transactions.db")
    >>> store.create_table_if_missing("transactions")
    >>> store.batch_insert_or_replace("transactions", "288", entities)
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from chain_ingest.exceptions import BatchConstraintError

MAX_BATCH_SIZE = 100


class UploadResult(str, Enum):
    """Outcome of a blob upload."""

    CREATED = "created"
    REPLACED = "replaced"
    ALREADY_EXISTS = "already_exists"


def validate_batch(partition_key: str, entities: Sequence[dict[str, Any]]) -> None:
    """Check the atomic-batch rules shared by every table store.

    Raises:
        BatchConstraintError: If the batch is empty, too large, mixes
            partitions, or repeats a row key
    """
    if not entities:
        raise BatchConstraintError("Batch is empty")
    if len(entities) > MAX_BATCH_SIZE:
        raise BatchConstraintError(
            f"Batch of {len(entities)} entities exceeds the limit of {MAX_BATCH_SIZE}"
        )

    row_keys = set()
    for entity in entities:
        if entity.get("PartitionKey") != partition_key:
            raise BatchConstraintError(
                f"Entity {entity.get('RowKey')!r} has partition "
                f"{entity.get('PartitionKey')!r}, batch is for {partition_key!r}"
            )
        row_key = entity.get("RowKey")
        if not row_key:
            raise BatchConstraintError("Entity is missing a RowKey")
        if row_key in row_keys:
            raise BatchConstraintError(f"Row key {row_key!r} appears twice in one batch")
        row_keys.add(row_key)


@runtime_checkable
class TableStore(Protocol):
    """Interface for partitioned table backends."""

    def create_table_if_missing(self, table: str) -> None:
        """Create the table. Idempotent."""
        ...

    def batch_insert_or_replace(
        self,
        table: str,
        partition_key: str,
        entities: Sequence[dict[str, Any]],
    ) -> int:
        """Upsert entities atomically.

        Args:
            table: Table name
            partition_key: Partition shared by every entity
            entities: Dicts with PartitionKey, RowKey and extra properties

        Returns:
            Number of entities written

        Raises:
            BatchConstraintError: If the batch breaks the batch rules
            TransientStoreError: If the write may be retried
        """
        ...

    def get(self, table: str, partition_key: str, row_key: str) -> dict[str, Any] | None:
        """Fetch one entity, or None if absent."""
        ...

    def count(self, table: str) -> int:
        """Number of entities in the table."""
        ...

    def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        ...


@runtime_checkable
class BlobStore(Protocol):
    """Interface for write-once blob backends."""

    def create_container_if_missing(self, container: str) -> None:
        """Create the container. Idempotent."""
        ...

    def upload_if_absent(self, container: str, key: str, data: bytes) -> UploadResult:
        """Create the blob unless one already exists under ``key``.

        Returns:
            CREATED, or ALREADY_EXISTS (existing blob left untouched)

        Raises:
            TransientStoreError: If the upload may be retried
        """
        ...

    def upload(self, container: str, key: str, data: bytes) -> UploadResult:
        """Create or overwrite the blob.

        Returns:
            CREATED or REPLACED
        """
        ...

    def exists(self, container: str, key: str) -> bool:
        ...

    def read(self, container: str, key: str) -> bytes:
        """Read a blob.

        Raises:
            KeyError: If the blob does not exist
        """
        ...

    def close(self) -> None:
        ...
