"""
Block-file source for chain-ingest.

Reads the ``blkNNNNN.dat`` files written by Bitcoin Core. Each file is a
sequence of records:

    magic (4 bytes) | length (4 bytes, little-endian) | block (length bytes)

Files are preallocated, so a run of zero bytes marks the end of the
written part. A record cut short at the end of a file is the block
currently being appended and ends enumeration of that file.

Example:
    >>> from chain_ingest.models import Cursor
    >>> from chain_ingest.sources import BlockFileSource
    >>>
    >>> source = BlockFileSource("~/.bitcoin/blocks", network="main")
    >>> source.connect()
    >>> for block, cursor in source.enumerate(Cursor.origin()):
    ...     print(cursor, block.hash)
    >>> source.close()
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path

import structlog

from chain_ingest.exceptions import BlockFileError
from chain_ingest.models import Block, Cursor
from chain_ingest.sources.protocol import register_source

logger = structlog.get_logger(__name__)

NETWORK_MAGIC: dict[str, bytes] = {
    "main": bytes.fromhex("f9beb4d9"),
    "test": bytes.fromhex("0b110907"),
    "regtest": bytes.fromhex("fabfb5da"),
    "signet": bytes.fromhex("0a03cf40"),
}

RECORD_HEADER_SIZE = 8
BLOCK_FILE_PATTERN = re.compile(r"^blk(\d{5})\.dat$")


def block_file_name(index: int) -> str:
    """File name for a block file index (3 -> blk00003.dat)."""
    return f"blk{index:05d}.dat"


@register_source("blockfile")
class BlockFileSource:
    """Sequential reader over a directory of block files.

    Attributes:
        source_name: Always "blockfile"
        directory: Directory holding the blk files
        network: Network name selecting the record magic
    """

    source_name = "blockfile"

    def __init__(self, directory: str | Path, *, network: str = "main"):
        """Initialize the source.

        Args:
            directory: Directory holding blkNNNNN.dat files
            network: "main", "test", "regtest" or "signet"

        Raises:
            ValueError: If the network is unknown
        """
        network = network.lower()
        if network not in NETWORK_MAGIC:
            raise ValueError(f"Unknown network {network!r}")

        self.directory = Path(directory).expanduser()
        self.network = network
        self.magic = NETWORK_MAGIC[network]
        self._connected = False

    def connect(self) -> None:
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Block directory not found: {self.directory}")
        self._connected = True

    def block_files(self) -> list[tuple[int, Path]]:
        """List (index, path) of block files, ordered by index."""
        files = []
        for path in self.directory.iterdir():
            match = BLOCK_FILE_PATTERN.match(path.name)
            if match and path.is_file():
                files.append((int(match.group(1)), path))
        return sorted(files)

    def enumerate(self, start: Cursor) -> Iterator[tuple[Block, Cursor]]:
        """Yield blocks from ``start`` (inclusive) to the last complete record.

        Raises:
            RuntimeError: If not connected
            BlockFileError: On an unknown record magic or unparsable block
        """
        if not self._connected:
            raise RuntimeError("Source not connected. Call connect() first.")

        logger.info("block_files_opened", directory=str(self.directory), start=str(start))

        for index, path in self.block_files():
            if index < start.file_index:
                continue

            offset = start.byte_offset if index == start.file_index else 0
            yield from self._read_file(index, path, offset)

    def _read_file(self, index: int, path: Path, offset: int) -> Iterator[tuple[Block, Cursor]]:
        with open(path, "rb") as f:
            f.seek(offset)

            while True:
                record_header = f.read(RECORD_HEADER_SIZE)
                if len(record_header) < RECORD_HEADER_SIZE:
                    break

                magic = record_header[:4]
                if magic == b"\x00\x00\x00\x00":
                    break
                if magic != self.magic:
                    raise BlockFileError(
                        f"Unexpected magic {magic.hex()} in {path.name} at offset {offset} "
                        f"(expecting {self.magic.hex()} for {self.network})"
                    )

                length = int.from_bytes(record_header[4:], "little")
                payload = f.read(length)
                if len(payload) < length:
                    logger.warning(
                        "block_record_truncated",
                        file=path.name,
                        offset=offset,
                        expected=length,
                        available=len(payload),
                    )
                    break

                try:
                    block = Block.from_bytes(payload)
                except ValueError as e:
                    raise BlockFileError(
                        f"Invalid block in {path.name} at offset {offset}: {e}"
                    ) from e

                yield block, Cursor(index, offset)
                offset += RECORD_HEADER_SIZE + length

    def close(self) -> None:
        self._connected = False

    def __repr__(self) -> str:
        return f"BlockFileSource(directory={str(self.directory)!r}, network={self.network!r})"


def write_block_file(path: str | Path, blocks: list[Block], *, network: str = "main") -> list[int]:
    """Write blocks in block-file framing, returning each record's offset."""
    magic = NETWORK_MAGIC[network]
    offsets = []
    with open(path, "wb") as f:
        for block in blocks:
            offsets.append(f.tell())
            raw = block.serialize()
            f.write(magic + len(raw).to_bytes(4, "little") + raw)
    return offsets
