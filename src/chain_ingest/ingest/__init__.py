"""
Ingestion pipelines for chain-ingest.

This module orchestrates the flow from block files to remote stores:

1. Resume from the stream's saved cursor
2. Read blocks in order from the block source
3. Transaction pipeline: index each transaction, batch per partition key
   Block pipeline: wrap each raw block for upload
4. Hand work units to a bounded pool of writer threads
5. Periodically drain the pool and persist the cursor

Example:
    >>> from chain_ingest.ingest import (
    ...     CheckpointStore,
    ...     TransactionBatchWriter,
    ...     TransactionIngestionPipeline,
    ... )
    >>> from chain_ingest.sources import BlockFileSource
    >>> from chain_ingest.storage import SQLiteTableStore
    >>>
    >>> source = BlockFileSource("/data/bitcoin/blocks")
    >>> writer = TransactionBatchWriter(SQLiteTableStore("data/transactions.db"))
    >>> pipeline = TransactionIngestionPipeline(source, CheckpointStore("state"), writer)
    >>>
    >>> with pipeline:
    ...     stats = pipeline.run()
    >>> print(f"Indexed {stats.transactions_indexed} transactions")

The pipelines are designed to be:
- Idempotent: every remote write is an upsert or a write-once blob
- Resumable: the cursor is saved only after a full drain
- Observable: structured logging and run statistics
"""

from chain_ingest.ingest.batcher import BucketedBatcher
from chain_ingest.ingest.checkpoint import CheckpointStore
from chain_ingest.ingest.pipeline import (
    TX_STREAM,
    BlockIngestionPipeline,
    IngestionPipeline,
    PipelineOptions,
    PipelineStats,
    TransactionIngestionPipeline,
    run_block_ingestion,
    run_transaction_ingestion,
)
from chain_ingest.ingest.workers import WorkerPool
from chain_ingest.ingest.writers import (
    BlockUploader,
    RetryPolicy,
    TransactionBatchWriter,
    pad_to_sector,
)

__all__ = [
    "TX_STREAM",
    "BlockIngestionPipeline",
    "BlockUploader",
    "BucketedBatcher",
    "CheckpointStore",
    "IngestionPipeline",
    "PipelineOptions",
    "PipelineStats",
    "RetryPolicy",
    "TransactionBatchWriter",
    "TransactionIngestionPipeline",
    "WorkerPool",
    "pad_to_sector",
    "run_block_ingestion",
    "run_transaction_ingestion",
]
