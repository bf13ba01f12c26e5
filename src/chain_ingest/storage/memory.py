"""
In-memory table and blob stores.

Thread-safe stand-ins for the remote services, used by ``--dry-run``
and by tests. They enforce the same batch rules as the durable stores.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from chain_ingest.storage.protocol import UploadResult, validate_batch


class MemoryTableStore:
    """Partitioned table store held in a dict.

    Attributes:
        tables: table -> {(partition_key, row_key): entity}
        batches_written: Successful batch calls, in order
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[tuple[str, str], dict[str, Any]]] = {}
        self.batches_written: list[tuple[str, str, int]] = []
        self._lock = threading.Lock()

    def create_table_if_missing(self, table: str) -> None:
        with self._lock:
            self.tables.setdefault(table, {})

    def batch_insert_or_replace(
        self,
        table: str,
        partition_key: str,
        entities: Sequence[dict[str, Any]],
    ) -> int:
        validate_batch(partition_key, entities)
        now = datetime.now(UTC).isoformat()

        with self._lock:
            if table not in self.tables:
                raise KeyError(f"Table {table!r} does not exist")
            rows = self.tables[table]
            for entity in entities:
                rows[(partition_key, entity["RowKey"])] = {**entity, "Timestamp": now}
            self.batches_written.append((table, partition_key, len(entities)))

        return len(entities)

    def get(self, table: str, partition_key: str, row_key: str) -> dict[str, Any] | None:
        with self._lock:
            entity = self.tables.get(table, {}).get((partition_key, row_key))
            return dict(entity) if entity is not None else None

    def count(self, table: str) -> int:
        with self._lock:
            return len(self.tables.get(table, {}))

    def row_keys(self, table: str) -> set[tuple[str, str]]:
        """All (partition_key, row_key) pairs in a table."""
        with self._lock:
            return set(self.tables.get(table, {}))

    def close(self) -> None:
        pass


class MemoryBlobStore:
    """Blob store held in a dict.

    Attributes:
        containers: container -> {key: data}
        uploads: Every upload call as (container, key, result)
    """

    def __init__(self) -> None:
        self.containers: dict[str, dict[str, bytes]] = {}
        self.uploads: list[tuple[str, str, UploadResult]] = []
        self._lock = threading.Lock()

    def create_container_if_missing(self, container: str) -> None:
        with self._lock:
            self.containers.setdefault(container, {})

    def _blobs(self, container: str) -> dict[str, bytes]:
        if container not in self.containers:
            raise KeyError(f"Container {container!r} does not exist")
        return self.containers[container]

    def upload_if_absent(self, container: str, key: str, data: bytes) -> UploadResult:
        with self._lock:
            blobs = self._blobs(container)
            if key in blobs:
                result = UploadResult.ALREADY_EXISTS
            else:
                blobs[key] = bytes(data)
                result = UploadResult.CREATED
            self.uploads.append((container, key, result))
        return result

    def upload(self, container: str, key: str, data: bytes) -> UploadResult:
        with self._lock:
            blobs = self._blobs(container)
            result = UploadResult.REPLACED if key in blobs else UploadResult.CREATED
            blobs[key] = bytes(data)
            self.uploads.append((container, key, result))
        return result

    def exists(self, container: str, key: str) -> bool:
        with self._lock:
            return key in self.containers.get(container, {})

    def read(self, container: str, key: str) -> bytes:
        with self._lock:
            return self._blobs(container)[key]

    def close(self) -> None:
        pass
