"""
Checkpoint persistence.

Stores one Cursor per named ingestion stream in a small text file. The
default stream uses the configured progress file (``progress.dat``); a
named stream ``s`` uses ``progress-s.dat`` next to it.

Writes go to a temporary file that is fsynced and renamed over the
target, so a crash leaves either the old or the new cursor on disk. An
absent or unreadable file resumes from the origin: every write is
idempotent, so the cost of a lost checkpoint is a full re-ingestion,
not corruption.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import structlog

from chain_ingest.models import Cursor

logger = structlog.get_logger(__name__)

DEFAULT_PROGRESS_FILE = "progress.dat"


class CheckpointStore:
    """File-backed cursor store, one file per stream.

    Usage:
        store = CheckpointStore("state")
        cursor = store.load("tx")
        ...
        store.save(cursor, "tx")
    """

    def __init__(self, directory: str | Path = ".", progress_file: str = DEFAULT_PROGRESS_FILE):
        """Initialize the store.

        Args:
            directory: Directory holding the progress files
            progress_file: File name for the default stream
        """
        if not progress_file or Path(progress_file).name != progress_file:
            raise ValueError(f"progress_file must be a plain file name, got {progress_file!r}")

        self.directory = Path(directory)
        self.progress_file = progress_file

    def path_for(self, stream: str | None = None) -> Path:
        """Path of the progress file for a stream (None = default stream)."""
        if not stream:
            return self.directory / self.progress_file

        base = Path(self.progress_file)
        return self.directory / f"{base.stem}-{stream}{base.suffix}"

    def load(self, stream: str | None = None) -> Cursor:
        """Read the saved cursor, falling back to the origin.

        Args:
            stream: Stream name (None = default stream)

        Returns:
            Saved Cursor, or Cursor.origin() if none is usable
        """
        path = self.path_for(stream)

        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("checkpoint_missing", path=str(path))
            return Cursor.origin()
        except OSError as e:
            logger.warning("checkpoint_unreadable", path=str(path), error=str(e))
            return Cursor.origin()

        try:
            return Cursor.parse(text)
        except ValueError as e:
            logger.warning("checkpoint_unreadable", path=str(path), error=str(e))
            return Cursor.origin()

    def save(self, cursor: Cursor, stream: str | None = None) -> Path:
        """Persist a cursor atomically.

        Returns:
            Path written
        """
        path = self.path_for(stream)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(str(cursor))
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        return path

    def reset(self, stream: str | None = None) -> bool:
        """Delete a stream's progress file.

        Returns:
            True if a file was removed
        """
        path = self.path_for(stream)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("checkpoint_reset", path=str(path))
        return True

    def __repr__(self) -> str:
        return f"CheckpointStore({str(self.directory)!r}, {self.progress_file!r})"
