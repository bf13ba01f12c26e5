"""
SQLite table store for chain-ingest.

Implements the TableStore protocol on a local SQLite database. Each
table is a SQLite table keyed by (partition_key, row_key); a batch is
written in one transaction with INSERT OR REPLACE, so repeating a batch
leaves the table unchanged.

Worker threads each get their own connection. WAL mode lets them write
one after another without blocking readers.

Example:
    >>> from chain_ingest.storage import SQLiteTableStore
    >>>
    >>> store = SQLiteTableStore("data/transactions.db")
    >>> store.create_table_if_missing("transactions")
    >>> store.batch_insert_or_replace("transactions", "288", entities)
    >>> store.count("transactions")
    >>> store.close()
"""

from __future__ import annotations

import json
import re
import sqlite3
import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from chain_ingest.exceptions import TransientStoreError
from chain_ingest.storage.protocol import validate_batch

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9]{2,62}$")

RESERVED_PROPERTIES = ("PartitionKey", "RowKey", "Timestamp")


def _check_table_name(table: str) -> str:
    if not TABLE_NAME_PATTERN.match(table):
        raise ValueError(f"Invalid table name {table!r}: use 3-63 alphanumeric characters")
    return table


class SQLiteTableStore:
    """Partitioned table store backed by SQLite.

    Attributes:
        db_path: Path to the SQLite database file
        timeout: Seconds to wait on a locked database before failing
    """

    def __init__(self, db_path: str | Path, *, timeout: float = 60.0):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
            timeout: Lock wait in seconds (from TransportSettings.timeout_seconds)
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._lock = threading.Lock()

    @property
    def connection(self) -> sqlite3.Connection:
        """Connection for the calling thread, created on first use."""
        conn = getattr(self._local, "connection", None)
        if conn is None:
            conn = self._connect()
            self._local.connection = conn
        return conn

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path, timeout=self.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")

        with self._lock:
            self._connections.append(conn)
        return conn

    def create_table_if_missing(self, table: str) -> None:
        _check_table_name(table)
        with self.connection as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS "{table}" (
                    partition_key TEXT NOT NULL,
                    row_key TEXT NOT NULL,
                    properties TEXT NOT NULL DEFAULT '{{}}',
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (partition_key, row_key)
                ) WITHOUT ROWID
            """)

    def batch_insert_or_replace(
        self,
        table: str,
        partition_key: str,
        entities: Sequence[dict[str, Any]],
    ) -> int:
        """Upsert a batch of entities in one transaction.

        Raises:
            BatchConstraintError: If the batch breaks the batch rules
            TransientStoreError: If SQLite reports a lock or I/O problem
        """
        _check_table_name(table)
        validate_batch(partition_key, entities)

        now = datetime.now(UTC).isoformat()
        rows = [
            (
                partition_key,
                entity["RowKey"],
                json.dumps(
                    {k: v for k, v in entity.items() if k not in RESERVED_PROPERTIES},
                    sort_keys=True,
                ),
                now,
            )
            for entity in entities
        ]

        try:
            with self.connection as conn:
                conn.executemany(
                    f"""
                    INSERT OR REPLACE INTO "{table}"
                        (partition_key, row_key, properties, updated_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.OperationalError as e:
            raise TransientStoreError(f"Batch write to {table} failed: {e}") from e

        return len(rows)

    def get(self, table: str, partition_key: str, row_key: str) -> dict[str, Any] | None:
        _check_table_name(table)
        row = self.connection.execute(
            f'SELECT * FROM "{table}" WHERE partition_key = ? AND row_key = ?',
            (partition_key, row_key),
        ).fetchone()
        if row is None:
            return None

        return {
            "PartitionKey": row["partition_key"],
            "RowKey": row["row_key"],
            "Timestamp": row["updated_at"],
            **json.loads(row["properties"]),
        }

    def count(self, table: str) -> int:
        _check_table_name(table)
        return self.connection.execute(f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]

    def partition_counts(self, table: str) -> dict[str, int]:
        """Entities per partition key."""
        _check_table_name(table)
        rows = self.connection.execute(
            f'SELECT partition_key, COUNT(*) AS n FROM "{table}" GROUP BY partition_key'
        ).fetchall()
        return {row["partition_key"]: row["n"] for row in rows}

    def close(self) -> None:
        with self._lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    def __repr__(self) -> str:
        return f"SQLiteTableStore({str(self.db_path)!r})"
