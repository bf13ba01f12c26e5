"""
chain-ingest

Pumps a local blockchain block store into remote storage: a partitioned
transaction index table and a write-once blob container of raw blocks.

Features:
- Ordered, resumable reading of blkNNNNN.dat block files
- Transaction index records batched per partition key
- Bounded worker pool with retry-until-success writers
- Periodic drain-then-checkpoint cursor persistence, one file per stream

Example:
    >>> from chain_ingest import BlockFileSource, CheckpointStore, SQLiteTableStore
    >>> from chain_ingest.ingest import run_transaction_ingestion
    >>>
    >>> stats = run_transaction_ingestion(
    ...     BlockFileSource("/data/bitcoin/blocks"),
    ...     CheckpointStore("state"),
    ...     SQLiteTableStore("data/transactions.db"),
    ... )
    >>> print(f"Indexed {stats.transactions_indexed} transactions")

For more information, run:
    $ chain-ingest --help
"""

__version__ = "0.1.0"

from chain_ingest.config.settings import Settings, get_settings
from chain_ingest.ingest.checkpoint import CheckpointStore
from chain_ingest.models.chain import Block, Transaction
from chain_ingest.models.cursor import Cursor
from chain_ingest.models.records import IndexRecord, TransactionBatch
from chain_ingest.models.runs import IngestionRun
from chain_ingest.partition import partition_key
from chain_ingest.sources.blockfile import BlockFileSource
from chain_ingest.sources.protocol import BlockSource
from chain_ingest.storage.blobs import FileBlobStore
from chain_ingest.storage.protocol import BlobStore, TableStore
from chain_ingest.storage.sqlite import SQLiteTableStore

__all__ = [
    "Block",
    "BlobStore",
    "BlockFileSource",
    "BlockSource",
    "CheckpointStore",
    "Cursor",
    "FileBlobStore",
    "IndexRecord",
    "IngestionRun",
    "SQLiteTableStore",
    "Settings",
    "TableStore",
    "Transaction",
    "TransactionBatch",
    "__version__",
    "get_settings",
    "partition_key",
]
