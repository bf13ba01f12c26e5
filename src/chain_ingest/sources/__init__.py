"""
Block sources for chain-ingest.

This module provides sources that implement the BlockSource protocol:

- BlockFileSource: Bitcoin Core blkNNNNN.dat files (default)
- MemoryBlockSource: In-memory blocks (tests, demos, dry runs)

Example:
    >>> from chain_ingest.models import Cursor
    >>> from chain_ingest.sources import BlockFileSource
    >>>
    >>> source = BlockFileSource("/data/bitcoin/blocks")
    >>> source.connect()
    >>> for block, cursor in source.enumerate(Cursor(12, 0)):
    ...     process(block)

To implement a custom source, see `sources/protocol.py` for the interface.
"""

from chain_ingest.sources.blockfile import NETWORK_MAGIC, BlockFileSource, write_block_file
from chain_ingest.sources.memory import MemoryBlockSource
from chain_ingest.sources.protocol import (
    BlockSource,
    get_source,
    list_sources,
    register_source,
)

__all__ = [
    "NETWORK_MAGIC",
    "BlockFileSource",
    "BlockSource",
    "MemoryBlockSource",
    "get_source",
    "list_sources",
    "register_source",
    "write_block_file",
]
