"""
Test fixtures for chain-ingest.

This module provides:
- BlockFactory: Create real and synthetic blocks for tests
"""

from tests.fixtures.factories import BlockFactory, txid_of

__all__ = [
    "BlockFactory",
    "txid_of",
]
