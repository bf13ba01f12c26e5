"""
Remote writers: deliver one work unit to a remote store.

Both writers retry until the store accepts the unit, sleeping a fixed
interval between attempts. Writes are idempotent (insert-or-replace rows,
write-once blobs keyed by content hash), so a unit delivered twice after
a crash or a retried timeout leaves the same remote state.

A bounded RetryPolicy (``max_attempts``) is available for deployments
that prefer an alert over an indefinite stall; the default never gives up.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

import structlog

from chain_ingest.exceptions import BatchConstraintError, RetryExhaustedError
from chain_ingest.models import BlockUpload, TransactionBatch
from chain_ingest.storage.protocol import BlobStore, TableStore, UploadResult

logger = structlog.get_logger(__name__)

R = TypeVar("R")

SECTOR_SIZE = 512
DEFAULT_TABLE = "transactions"
DEFAULT_CONTAINER = "nbitcoinindexer"


def pad_to_sector(data: bytes, sector_size: int = SECTOR_SIZE) -> bytes:
    """Zero-pad data to the next multiple of ``sector_size``."""
    remainder = len(data) % sector_size
    if remainder == 0:
        return data
    return data + b"\x00" * (sector_size - remainder)


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry.

    Attributes:
        delay_seconds: Sleep between attempts
        max_attempts: Give up after this many attempts (None = never)
        sleep: Sleep function, replaceable in tests
    """

    delay_seconds: float = 5.0
    max_attempts: int | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    def should_retry(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts


@dataclass
class WriterStats:
    """Counters shared by the worker threads of one writer."""

    units: int = 0
    items: int = 0
    bytes_written: int = 0
    retries: int = 0
    already_existing: int = 0
    elapsed_seconds: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, *, items: int, elapsed: float, size: int = 0, existed: bool = False) -> None:
        with self._lock:
            self.units += 1
            self.items += items
            self.bytes_written += size
            self.elapsed_seconds += elapsed
            if existed:
                self.already_existing += 1

    def record_retry(self) -> None:
        with self._lock:
            self.retries += 1


class RemoteWriter:
    """Base for writers: retry loop and completion counters."""

    event_prefix = "write"

    def __init__(self, retry: RetryPolicy | None = None):
        self.retry = retry or RetryPolicy()
        self.stats = WriterStats()

    def _with_retry(self, what: str, attempt_fn: Callable[[int], R]) -> R:
        attempt = 0
        while True:
            attempt += 1
            try:
                return attempt_fn(attempt)
            except BatchConstraintError:
                raise
            except Exception as e:
                self.stats.record_retry()
                logger.warning(
                    f"{self.event_prefix}_retry",
                    unit=what,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                    delay=self.retry.delay_seconds,
                )
                if not self.retry.should_retry(attempt):
                    raise RetryExhaustedError(what, attempt, e) from e
                self.retry.sleep(self.retry.delay_seconds)


class TransactionBatchWriter(RemoteWriter):
    """Writes TransactionBatch units to the partitioned table."""

    event_prefix = "batch_write"

    def __init__(
        self,
        store: TableStore,
        table: str = DEFAULT_TABLE,
        retry: RetryPolicy | None = None,
    ):
        super().__init__(retry)
        self.store = store
        self.table = table

    def prepare(self) -> None:
        """Create the table if it does not exist."""
        self.store.create_table_if_missing(self.table)

    def write(self, batch: TransactionBatch) -> int:
        """Upsert the batch, retrying until it succeeds.

        Returns:
            Number of records written
        """
        start = time.monotonic()
        entities = [record.to_entity() for record in batch.records]
        partition = str(batch.partition_key)

        written = self._with_retry(
            f"partition {partition} ({len(entities)} records)",
            lambda _attempt: self.store.batch_insert_or_replace(self.table, partition, entities),
        )

        elapsed = time.monotonic() - start
        self.stats.record(items=written, elapsed=elapsed)
        logger.debug(
            "batch_written",
            partition_key=batch.partition_key,
            records=written,
            elapsed_seconds=round(elapsed, 3),
        )
        return written


class BlockUploader(RemoteWriter):
    """Uploads BlockUpload units to the blob store under the block hash."""

    event_prefix = "block_upload"

    def __init__(
        self,
        store: BlobStore,
        container: str = DEFAULT_CONTAINER,
        retry: RetryPolicy | None = None,
    ):
        super().__init__(retry)
        self.store = store
        self.container = container

    def prepare(self) -> None:
        """Create the container if it does not exist."""
        self.store.create_container_if_missing(self.container)

    def write(self, unit: BlockUpload) -> UploadResult:
        """Upload the block, retrying until it succeeds.

        The first attempt is write-once; an existing blob counts as done.
        After a failed attempt the blob may exist only partially, so
        retries overwrite it.

        Returns:
            CREATED, REPLACED or ALREADY_EXISTS
        """
        start = time.monotonic()
        key = unit.block.hash
        data = pad_to_sector(unit.block.serialize())

        def attempt(n: int) -> UploadResult:
            if n == 1:
                return self.store.upload_if_absent(self.container, key, data)
            return self.store.upload(self.container, key, data)

        result = self._with_retry(f"block {key} at {unit.cursor}", attempt)

        elapsed = time.monotonic() - start
        existed = result == UploadResult.ALREADY_EXISTS
        self.stats.record(
            items=1,
            elapsed=elapsed,
            size=0 if existed else len(data),
            existed=existed,
        )

        if existed:
            logger.debug("block_already_uploaded", block=key, cursor=str(unit.cursor))
        else:
            logger.debug(
                "block_uploaded",
                block=key,
                cursor=str(unit.cursor),
                size=len(data),
                elapsed_seconds=round(elapsed, 3),
            )
        return result
