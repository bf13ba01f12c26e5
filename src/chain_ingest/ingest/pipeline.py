"""
Ingestion pipeline driver.

Coordinates the flow of blocks from a block source to the remote stores:

    source.enumerate(cursor) -> producer (this thread) -> WorkerPool -> writer

The producer reads blocks strictly in cursor order and keeps the cursor
in memory. Every ``checkpoint_interval_seconds`` it flushes pending
batches, waits for the worker pool to finish everything submitted so
far, and only then persists the cursor. A crash therefore replays at
most one interval of blocks, and never skips one.

State machine:
    STARTING -> RUNNING -> CHECKPOINTING -> RUNNING ... -> DRAINING -> STOPPED

Source read errors are not caught: they abort the run and leave the last
persisted cursor in place. Remote write errors are absorbed by the
writers' retry loops.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from ..exceptions import DeliveryError
from ..models import (
    Block,
    BlockUpload,
    Cursor,
    IndexRecord,
    IngestionRun,
    PipelineState,
    TransactionBatch,
)
from ..sources.protocol import BlockSource
from ..storage.protocol import MAX_BATCH_SIZE, BlobStore, TableStore
from ..utils.logging import log_context
from .batcher import BucketedBatcher
from .checkpoint import CheckpointStore
from .workers import DEFAULT_CAPACITY, WorkerPool
from .writers import (
    DEFAULT_CONTAINER,
    DEFAULT_TABLE,
    BlockUploader,
    RemoteWriter,
    RetryPolicy,
    TransactionBatchWriter,
)

logger = structlog.get_logger(__name__)

U = TypeVar("U")

TX_STREAM = "tx"


@dataclass
class PipelineStats:
    """Statistics from a pipeline run."""

    start_cursor: Cursor = Cursor(0, 0)
    final_cursor: Cursor = Cursor(0, 0)
    blocks_read: int = 0
    transactions_indexed: int = 0
    units_submitted: int = 0
    units_failed: int = 0
    checkpoints_saved: int = 0
    elapsed_seconds: float = 0.0

    @property
    def blocks_per_second(self) -> float:
        if self.elapsed_seconds > 0:
            return self.blocks_read / self.elapsed_seconds
        return 0.0


@dataclass
class PipelineOptions:
    """Options controlling pipeline behavior."""

    workers: int = 4
    queue_capacity: int = DEFAULT_CAPACITY
    checkpoint_interval_seconds: float = 300.0
    max_batch_size: int = MAX_BATCH_SIZE
    max_blocks: int | None = None
    progress_every_blocks: int = 1000


class IngestionPipeline(Generic[U]):
    """Base driver shared by the transaction and block pipelines.

    Subclasses set ``stream`` and implement ``_process_block``; they may
    also buffer units and release them in ``_flush_pending``.

    Usage:
        pipeline = BlockIngestionPipeline(source, checkpoints, uploader)
        with pipeline:
            stats = pipeline.run()
    """

    stream: str | None = None
    name = "ingest"

    def __init__(
        self,
        source: BlockSource,
        checkpoints: CheckpointStore,
        writer: RemoteWriter,
        options: PipelineOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize pipeline.

        Args:
            source: Ordered, resumable block source
            checkpoints: Cursor persistence
            writer: Remote writer handling this pipeline's work units
            options: Pipeline configuration options
            clock: Monotonic clock driving the checkpoint timer
        """
        self.source = source
        self.checkpoints = checkpoints
        self.writer = writer
        self.options = options or PipelineOptions()
        self.clock = clock

        self.state = PipelineState.STOPPED
        self.run_record: IngestionRun | None = None
        self._stop_requested = threading.Event()
        self._pool: WorkerPool[U] | None = None
        self._cursor = Cursor.origin()
        self._saved_cursor: Cursor | None = None
        self._stats = PipelineStats()

    def __enter__(self) -> IngestionPipeline[U]:
        """Connect the source and create the remote table/container."""
        self.source.connect()
        self.writer.prepare()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.source.close()

    @property
    def cursor(self) -> Cursor:
        """Cursor of the last block read."""
        return self._cursor

    def request_stop(self) -> None:
        """Ask the run to drain, checkpoint and stop after the current block.

        Safe to call from a signal handler or another thread.
        """
        self._stop_requested.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def run(self) -> PipelineStats:
        """Execute the pipeline until the source is exhausted or stopped.

        Returns:
            PipelineStats with run metrics

        Raises:
            Exception: Whatever the block source raised; the run is
                recorded as failed and the saved cursor is unchanged
            DeliveryError: If a bounded retry policy dropped work units
        """
        self.state = PipelineState.STARTING
        started = time.monotonic()

        start = self.checkpoints.load(self.stream)
        self._cursor = start
        self._saved_cursor = None
        self._stats = stats = PipelineStats(start_cursor=start, final_cursor=start)
        self.run_record = IngestionRun(
            stream=self.stream or "blocks",
            source_name=self.source.source_name,
            start_cursor=str(start),
        )

        pool: WorkerPool[U] = WorkerPool(
            self.writer.write,
            workers=self.options.workers,
            capacity=self.options.queue_capacity,
            name=f"{self.name}-writer",
        )
        self._pool = pool

        with log_context(stream=self.stream or "blocks"):
            logger.info(
                "pipeline_started",
                source=self.source.source_name,
                start=str(start),
                workers=self.options.workers,
            )

            pool.start()
            try:
                self._run_loop(start)

                self.state = PipelineState.DRAINING
                self._flush_pending()
                pool.drain()
                pool.stop()
                self._persist()

            except BaseException as e:
                if pool.running:
                    pool.stop()
                self._finish(stats, started)
                self.run_record.fail(f"{type(e).__name__}: {e}")
                logger.error(
                    "pipeline_failed",
                    error=str(e),
                    cursor=str(self._cursor),
                    saved=str(self._saved_cursor or start),
                )
                raise

            self._finish(stats, started)
            end = str(stats.final_cursor)
            if self.stop_requested:
                self.run_record.cancel(end_cursor=end)
            else:
                self.run_record.complete(end_cursor=end)

            logger.info(
                "pipeline_completed",
                blocks=stats.blocks_read,
                transactions=stats.transactions_indexed,
                units=stats.units_submitted,
                cursor=end,
                elapsed_seconds=round(stats.elapsed_seconds, 2),
                rate=round(stats.blocks_per_second, 1),
            )

        return stats

    def _run_loop(self, start: Cursor) -> None:
        stats = self._stats
        self.state = PipelineState.RUNNING
        last_checkpoint = self.clock()

        for block, cursor in self.source.enumerate(start):
            self._cursor = cursor
            stats.blocks_read += 1
            self._process_block(block, cursor)

            if stats.blocks_read % self.options.progress_every_blocks == 0:
                logger.info(
                    "ingest_progress",
                    blocks=stats.blocks_read,
                    transactions=stats.transactions_indexed,
                    units=stats.units_submitted,
                    cursor=str(cursor),
                )

            if self.clock() - last_checkpoint >= self.options.checkpoint_interval_seconds:
                self._checkpoint()
                last_checkpoint = self.clock()

            if self.stop_requested:
                logger.info("pipeline_stop_requested", cursor=str(cursor))
                break
            if self.options.max_blocks and stats.blocks_read >= self.options.max_blocks:
                break

    def _checkpoint(self) -> None:
        self.state = PipelineState.CHECKPOINTING
        self._flush_pending()
        assert self._pool is not None
        self._pool.drain()
        self._persist()
        self.state = PipelineState.RUNNING

    def _persist(self) -> None:
        """Save the in-memory cursor once every unit before it is written."""
        assert self._pool is not None
        stats = self._stats

        stats.units_failed = self._pool.units_failed
        if stats.units_failed:
            raise DeliveryError(
                f"{stats.units_failed} work units were not delivered; "
                f"cursor stays at {self._saved_cursor or stats.start_cursor}"
            )

        if stats.blocks_read == 0 or self._cursor == self._saved_cursor:
            return

        self.checkpoints.save(self._cursor, self.stream)
        self._saved_cursor = self._cursor
        stats.final_cursor = self._cursor
        stats.checkpoints_saved += 1
        logger.info(
            "checkpoint_saved",
            cursor=str(self._cursor),
            blocks=stats.blocks_read,
            units=stats.units_submitted,
        )

    def _finish(self, stats: PipelineStats, started: float) -> None:
        self.state = PipelineState.STOPPED
        stats.elapsed_seconds = time.monotonic() - started
        if self._pool is not None:
            stats.units_failed = self._pool.units_failed

        run = self.run_record
        assert run is not None
        run.blocks_read = stats.blocks_read
        run.transactions_indexed = stats.transactions_indexed
        run.units_submitted = stats.units_submitted
        run.checkpoints_saved = stats.checkpoints_saved
        if self._saved_cursor is not None:
            run.end_cursor = str(self._saved_cursor)

    def _submit(self, unit: U) -> None:
        assert self._pool is not None
        self._pool.submit(unit)
        self._stats.units_submitted += 1

    def _process_block(self, block: Block, cursor: Cursor) -> None:
        raise NotImplementedError

    def _flush_pending(self) -> None:
        """Release buffered units before a drain."""


class TransactionIngestionPipeline(IngestionPipeline[TransactionBatch]):
    """Indexes every transaction into the partitioned table.

    Each transaction becomes an IndexRecord keyed by its hash and its
    block's hash; records are batched per partition key.
    """

    stream = TX_STREAM
    name = "tx"

    def __init__(
        self,
        source: BlockSource,
        checkpoints: CheckpointStore,
        writer: TransactionBatchWriter,
        options: PipelineOptions | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(source, checkpoints, writer, options, clock=clock)
        self.batcher = BucketedBatcher(self._submit, self.options.max_batch_size)

    def _process_block(self, block: Block, cursor: Cursor) -> None:
        block_hash = block.hash
        for tx in block.transactions:
            self.batcher.add(IndexRecord.confirmed(tx.hash, block_hash))
            self._stats.transactions_indexed += 1

    def _flush_pending(self) -> None:
        flushed = self.batcher.flush_all()
        if flushed:
            logger.debug("buckets_flushed", batches=flushed)


class BlockIngestionPipeline(IngestionPipeline[BlockUpload]):
    """Uploads every raw block to the blob store, keyed by block hash."""

    stream = None
    name = "blocks"

    def _process_block(self, block: Block, cursor: Cursor) -> None:
        self._submit(BlockUpload(block=block, cursor=cursor))


def run_transaction_ingestion(
    source: BlockSource,
    checkpoints: CheckpointStore,
    store: TableStore,
    *,
    table: str = DEFAULT_TABLE,
    workers: int = 4,
    retry: RetryPolicy | None = None,
    max_blocks: int | None = None,
) -> PipelineStats:
    """Convenience function to run the transaction pipeline.

    Returns:
        PipelineStats with run metrics
    """
    writer = TransactionBatchWriter(store, table, retry)
    options = PipelineOptions(workers=workers, max_blocks=max_blocks)

    with TransactionIngestionPipeline(source, checkpoints, writer, options) as pipeline:
        return pipeline.run()


def run_block_ingestion(
    source: BlockSource,
    checkpoints: CheckpointStore,
    store: BlobStore,
    *,
    container: str = DEFAULT_CONTAINER,
    workers: int = 4,
    retry: RetryPolicy | None = None,
    max_blocks: int | None = None,
) -> PipelineStats:
    """Convenience function to run the block pipeline.

    Returns:
        PipelineStats with run metrics
    """
    writer = BlockUploader(store, container, retry)
    options = PipelineOptions(workers=workers, max_blocks=max_blocks)

    with BlockIngestionPipeline(source, checkpoints, writer, options) as pipeline:
        return pipeline.run()
