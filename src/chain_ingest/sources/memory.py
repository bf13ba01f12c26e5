"""
In-memory block source.

Lays a list of blocks out as if they were framed back to back in a
single block file (index 0), so cursors behave exactly like those of
BlockFileSource. Useful for tests, demos and replaying exported blocks.

Example:
    >>> from chain_ingest.sources import MemoryBlockSource
    >>>
    >>> source = MemoryBlockSource(blocks)
    >>> source.connect()
    >>> pairs = list(source.enumerate(Cursor.origin()))
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from chain_ingest.models import Block, Cursor
from chain_ingest.sources.blockfile import RECORD_HEADER_SIZE
from chain_ingest.sources.protocol import register_source


@register_source("memory")
class MemoryBlockSource:
    """Block source over an in-memory sequence of blocks.

    Attributes:
        source_name: Always "memory"
        blocks: Blocks in chain order
        fail_after: Raise OSError once this many blocks have been yielded
            in one enumeration (None = never)
    """

    source_name = "memory"

    def __init__(self, blocks: Sequence[Block], *, fail_after: int | None = None):
        self.blocks = list(blocks)
        self.fail_after = fail_after
        self._connected = False

        self.cursors: list[Cursor] = []
        offset = 0
        for block in self.blocks:
            self.cursors.append(Cursor(0, offset))
            offset += RECORD_HEADER_SIZE + len(block.serialize())

    def connect(self) -> None:
        self._connected = True

    def enumerate(self, start: Cursor) -> Iterator[tuple[Block, Cursor]]:
        """Yield blocks whose cursor is at or after ``start``."""
        if not self._connected:
            raise RuntimeError("Source not connected. Call connect() first.")

        yielded = 0
        for block, cursor in zip(self.blocks, self.cursors):
            if cursor < start:
                continue
            if self.fail_after is not None and yielded >= self.fail_after:
                raise OSError(f"Simulated read failure at {cursor}")
            yield block, cursor
            yielded += 1

    def close(self) -> None:
        self._connected = False

    def __repr__(self) -> str:
        return f"MemoryBlockSource(blocks={len(self.blocks)})"
