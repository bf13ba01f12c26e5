"""
Block source protocol for chain-ingest.

A block source yields ``(Block, Cursor)`` pairs in strictly ascending
cursor order, starting at (and including) any cursor it previously
produced. Pipelines resume by handing back the last persisted cursor.

Example - Implementing a custom source:
    >>> from chain_ingest.sources import register_source
    >>>
    >>> @register_source("rpc")
    >>> class RpcBlockSource:
    ...     source_name = "rpc"
    ...
    ...     def connect(self) -> None:
    ...         self.client = RpcClient(self.url)
    ...
    ...     def enumerate(self, start):
    ...         for height in range(start.byte_offset, self.client.tip() + 1):
    ...             yield Block.from_bytes(self.client.raw(height)), Cursor(0, height)
    ...
    ...     def close(self) -> None:
    ...         self.client.disconnect()
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from chain_ingest.models import Block, Cursor


_SOURCE_REGISTRY: dict[str, type] = {}


@runtime_checkable
class BlockSource(Protocol):
    """Interface for ordered, resumable block sources.

    Implementations:
    - BlockFileSource: Bitcoin Core blkNNNNN.dat files (default)
    - MemoryBlockSource: In-memory blocks for tests and demos
    """

    @property
    def source_name(self) -> str:
        """Human-readable source identifier used in logs and run records."""
        ...

    def connect(self) -> None:
        """Validate configuration and prepare for reading.

        Raises:
            FileNotFoundError: If the underlying data is missing
        """
        ...

    def enumerate(self, start: Cursor) -> Iterator[tuple[Block, Cursor]]:
        """Yield blocks at or after ``start``, in cursor order.

        The sequence is lazy and finite: it ends at the last complete
        block currently available.

        Args:
            start: Cursor to resume from (inclusive)

        Yields:
            (Block, Cursor) pairs, cursor strictly ascending

        Raises:
            BlockFileError: If the data cannot be parsed
            OSError: If the data cannot be read
        """
        ...

    def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        ...


def register_source(name: str):
    """Decorator to register a source implementation by name.

    Raises:
        ValueError: If the name is already taken
    """

    def decorator(cls: type) -> type:
        if name in _SOURCE_REGISTRY:
            raise ValueError(f"Source '{name}' is already registered")
        _SOURCE_REGISTRY[name] = cls
        return cls

    return decorator


def get_source(name: str, *args, **kwargs) -> BlockSource:
    """Instantiate a registered source by name.

    Raises:
        KeyError: If source is not registered
    """
    if name not in _SOURCE_REGISTRY:
        available = ", ".join(list_sources())
        raise KeyError(f"Source '{name}' not found. Available: {available}")

    return _SOURCE_REGISTRY[name](*args, **kwargs)


def list_sources() -> list[str]:
    """List all registered source names."""
    return list(_SOURCE_REGISTRY.keys())
