"""
Storage backends for chain-ingest.

Table stores (TableStore protocol):
- SQLiteTableStore: Local SQLite database (default)
- MemoryTableStore: In-process dict (dry runs, tests)

Blob stores (BlobStore protocol):
- FileBlobStore: One file per blob under a root directory (default)
- MemoryBlobStore: In-process dict (dry runs, tests)

Example:
    >>> from chain_ingest.storage import FileBlobStore, SQLiteTableStore
    >>>
    >>> table_store = SQLiteTableStore("data/transactions.db")
    >>> blob_store = FileBlobStore("data/blobs")
"""

from chain_ingest.storage.blobs import FileBlobStore
from chain_ingest.storage.memory import MemoryBlobStore, MemoryTableStore
from chain_ingest.storage.protocol import (
    MAX_BATCH_SIZE,
    BlobStore,
    TableStore,
    UploadResult,
    validate_batch,
)
from chain_ingest.storage.sqlite import SQLiteTableStore

__all__ = [
    "MAX_BATCH_SIZE",
    "BlobStore",
    "FileBlobStore",
    "MemoryBlobStore",
    "MemoryTableStore",
    "SQLiteTableStore",
    "TableStore",
    "UploadResult",
    "validate_batch",
]
