"""
Data models for chain-ingest.

This module provides:
- Cursor: Resumable position within the block files
- Block, Transaction: Parsed chain data
- IndexRecord: Partition-addressed transaction index entry
- TransactionBatch, BlockUpload: Work units for the worker pool
- IngestionRun: Metadata about ingestion runs
"""

from chain_ingest.models.chain import Block, Transaction
from chain_ingest.models.cursor import Cursor
from chain_ingest.models.records import BlockUpload, IndexRecord, TransactionBatch
from chain_ingest.models.runs import IngestionRun, PipelineState, RunStatus

__all__ = [
    "Block",
    "BlockUpload",
    "Cursor",
    "IndexRecord",
    "IngestionRun",
    "PipelineState",
    "RunStatus",
    "Transaction",
    "TransactionBatch",
]
