"""
Cursor model: a resumable position within a sequence of block files.

Example:
    >>> from chain_ingest.models import Cursor
    >>>
    >>> cursor = Cursor(file_index=3, byte_offset=1024)
    >>> str(cursor)
    '3:1024'
    >>> Cursor.parse("3:1024") == cursor
    True
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Cursor:
    """Position of a block record: (file index, byte offset).

    Cursors compare in tuple order, so a later file always sorts after
    an earlier one regardless of offset.

    Attributes:
        file_index: Index of the block file (blk00003.dat -> 3)
        byte_offset: Offset of the block record within that file
    """

    file_index: int = 0
    byte_offset: int = 0

    def __post_init__(self) -> None:
        if self.file_index < 0 or self.byte_offset < 0:
            raise ValueError(
                f"Cursor components must be non-negative, got "
                f"({self.file_index}, {self.byte_offset})"
            )

    @classmethod
    def origin(cls) -> Cursor:
        """Start of the stream (first byte of the first file)."""
        return cls(0, 0)

    @property
    def is_origin(self) -> bool:
        return self.file_index == 0 and self.byte_offset == 0

    @classmethod
    def parse(cls, text: str) -> Cursor:
        """Parse the textual form produced by ``str(cursor)``.

        Args:
            text: String of the form ``"<file_index>:<byte_offset>"``

        Returns:
            Parsed Cursor

        Raises:
            ValueError: If the text is not a valid cursor encoding
        """
        parts = text.strip().split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid cursor: {text!r}")

        try:
            file_index, byte_offset = int(parts[0]), int(parts[1])
        except ValueError as e:
            raise ValueError(f"Invalid cursor: {text!r}") from e

        return cls(file_index, byte_offset)

    def __str__(self) -> str:
        return f"{self.file_index}:{self.byte_offset}"
