"""
Bucketed batcher for index records.

Records are grouped by partition key; a group is emitted as one
TransactionBatch as soon as it reaches the batch ceiling, or when the
caller forces a flush at a checkpoint or at the end of the stream.

Within a bucket records are keyed by row key, so a block that appears
twice in the block files yields one row per transaction, not two.

The batcher is owned by the producer thread. It holds no lock; only the
thread that reads blocks may call ``add`` and the flush methods.
"""

from __future__ import annotations

from collections.abc import Callable

from chain_ingest.models import IndexRecord, TransactionBatch
from chain_ingest.storage.protocol import MAX_BATCH_SIZE


class BucketedBatcher:
    """Accumulates records per partition key.

    Args:
        emit: Called with each flushed batch (typically WorkerPool.submit)
        max_batch_size: Records per batch, at most the store's limit
    """

    def __init__(
        self,
        emit: Callable[[TransactionBatch], None],
        max_batch_size: int = MAX_BATCH_SIZE,
    ):
        if not 1 <= max_batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"max_batch_size must be between 1 and {MAX_BATCH_SIZE}")

        self._emit = emit
        self.max_batch_size = max_batch_size
        self._buckets: dict[int, dict[str, IndexRecord]] = {}
        self.batches_emitted = 0
        self.records_emitted = 0

    def add(self, record: IndexRecord) -> bool:
        """Add a record, flushing its bucket once it holds enough distinct rows.

        Returns:
            True if the add caused a flush
        """
        bucket = self._buckets.setdefault(record.partition_key, {})
        # a repeated row replaces the pending one
        bucket[record.row_key] = record

        if len(bucket) >= self.max_batch_size:
            self.flush(record.partition_key)
            return True
        return False

    def flush(self, key: int) -> TransactionBatch | None:
        """Remove one bucket and emit it as a batch.

        Returns:
            The emitted batch, or None if the bucket was empty
        """
        records = self._buckets.pop(key, None)
        if not records:
            return None

        batch = TransactionBatch(partition_key=key, records=tuple(records.values()))
        self._emit(batch)
        self.batches_emitted += 1
        self.records_emitted += len(records)
        return batch

    def flush_all(self) -> int:
        """Emit every pending bucket.

        Returns:
            Number of batches emitted
        """
        flushed = 0
        for key in list(self._buckets):
            if self.flush(key) is not None:
                flushed += 1
        return flushed

    @property
    def pending_keys(self) -> list[int]:
        return list(self._buckets)

    @property
    def pending_records(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def bucket_size(self, key: int) -> int:
        return len(self._buckets.get(key, ()))

    def __len__(self) -> int:
        return len(self._buckets)
