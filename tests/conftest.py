"""
Pytest configuration and shared fixtures for chain-ingest.

This module provides:
- Block factories for generating test data
- In-memory sources and stores for testing without infrastructure
- Temporary SQLite, blob and checkpoint fixtures

Example usage in tests:
    def test_something(block_factory, memory_table):
        block = block_factory.create(tx_count=3)
        ...
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from chain_ingest.ingest import CheckpointStore, RetryPolicy
from chain_ingest.models import Block
from chain_ingest.sources import MemoryBlockSource, write_block_file
from chain_ingest.storage import (
    FileBlobStore,
    MemoryBlobStore,
    MemoryTableStore,
    SQLiteTableStore,
)
from tests.fixtures.factories import BlockFactory

# ============================================================================
# FACTORY FIXTURES
# ============================================================================


@pytest.fixture
def block_factory() -> type[BlockFactory]:
    """Provide a BlockFactory with counter reset."""
    BlockFactory.reset()
    return BlockFactory


@pytest.fixture
def chain(block_factory: type[BlockFactory]) -> list[Block]:
    """Ten linked blocks with two transactions each."""
    return block_factory.create_chain(10, tx_count=2)


# ============================================================================
# SOURCE FIXTURES
# ============================================================================


@pytest.fixture
def memory_source(chain: list[Block]) -> MemoryBlockSource:
    """An unconnected in-memory source over ``chain``."""
    return MemoryBlockSource(chain)


@pytest.fixture
def blocks_dir(tmp_path: Path, chain: list[Block]) -> Path:
    """A block directory holding ``chain`` split over two files.

    blk00000.dat holds the first six blocks, blk00001.dat the rest.
    """
    directory = tmp_path / "blocks"
    directory.mkdir()
    write_block_file(directory / "blk00000.dat", chain[:6])
    write_block_file(directory / "blk00001.dat", chain[6:])
    return directory


# ============================================================================
# STORE FIXTURES
# ============================================================================


@pytest.fixture
def memory_table() -> MemoryTableStore:
    return MemoryTableStore()


@pytest.fixture
def memory_blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def sqlite_table(tmp_path: Path) -> Iterator[SQLiteTableStore]:
    """Provide a temporary SQLite table store.

    Yields:
        SQLiteTableStore with a ``transactions`` table created
    """
    store = SQLiteTableStore(tmp_path / "data" / "transactions.db", timeout=5.0)
    store.create_table_if_missing("transactions")
    yield store
    store.close()


@pytest.fixture
def file_blobs(tmp_path: Path) -> FileBlobStore:
    """Provide a temporary blob store with the default container."""
    store = FileBlobStore(tmp_path / "blobs")
    store.create_container_if_missing("nbitcoinindexer")
    return store


@pytest.fixture
def checkpoints(tmp_path: Path) -> CheckpointStore:
    """Provide a checkpoint store in a temp directory."""
    return CheckpointStore(tmp_path / "state")


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by ``no_wait_retry``, in order."""
    return []


@pytest.fixture
def no_wait_retry(sleeps: list[float]) -> RetryPolicy:
    """Retry policy that records delays instead of sleeping."""
    return RetryPolicy(delay_seconds=5.0, sleep=sleeps.append)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow")
    config.addinivalue_line("markers", "integration: mark as integration test")
