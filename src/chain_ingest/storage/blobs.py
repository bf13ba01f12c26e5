"""
Directory-backed blob store for chain-ingest.

Each container is a directory under the store root and each blob a file
named by its key. Blobs are written to a temporary file first and then
linked (write-once) or renamed (overwrite) into place, so a reader never
sees a partial blob.

Example:
    >>> from chain_ingest.storage import FileBlobStore
    >>>
    >>> store = FileBlobStore("data/blobs")
    >>> store.create_container_if_missing("nbitcoinindexer")
    >>> store.upload_if_absent("nbitcoinindexer", block_hash, data)
    <UploadResult.CREATED: 'created'>
"""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

from chain_ingest.exceptions import TransientStoreError
from chain_ingest.storage.protocol import UploadResult

NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")


def _check_name(kind: str, name: str) -> str:
    if not NAME_PATTERN.match(name) or name in (".", ".."):
        raise ValueError(f"Invalid {kind} name {name!r}")
    return name


class FileBlobStore:
    """Write-once blob store on the local filesystem.

    Attributes:
        root: Directory holding one subdirectory per container
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _container_dir(self, container: str) -> Path:
        return self.root / _check_name("container", container)

    def _blob_path(self, container: str, key: str) -> Path:
        return self._container_dir(container) / _check_name("blob", key)

    def create_container_if_missing(self, container: str) -> None:
        self._container_dir(container).mkdir(parents=True, exist_ok=True)

    def _write_temp(self, directory: Path, data: bytes) -> str:
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            os.unlink(temp_path)
            raise
        return temp_path

    def upload_if_absent(self, container: str, key: str, data: bytes) -> UploadResult:
        """Create the blob unless it exists.

        Raises:
            TransientStoreError: On any filesystem error other than the
                blob already existing
        """
        path = self._blob_path(container, key)
        if path.exists():
            return UploadResult.ALREADY_EXISTS

        try:
            temp_path = self._write_temp(path.parent, data)
            try:
                os.link(temp_path, path)
            except FileExistsError:
                return UploadResult.ALREADY_EXISTS
            finally:
                os.unlink(temp_path)
        except OSError as e:
            raise TransientStoreError(f"Upload of {container}/{key} failed: {e}") from e

        return UploadResult.CREATED

    def upload(self, container: str, key: str, data: bytes) -> UploadResult:
        """Create or replace the blob."""
        path = self._blob_path(container, key)
        existed = path.exists()

        try:
            temp_path = self._write_temp(path.parent, data)
            os.replace(temp_path, path)
        except OSError as e:
            raise TransientStoreError(f"Upload of {container}/{key} failed: {e}") from e

        return UploadResult.REPLACED if existed else UploadResult.CREATED

    def exists(self, container: str, key: str) -> bool:
        return self._blob_path(container, key).is_file()

    def read(self, container: str, key: str) -> bytes:
        path = self._blob_path(container, key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise KeyError(f"{container}/{key}") from None

    def list_keys(self, container: str) -> list[str]:
        """Blob keys in a container, sorted."""
        directory = self._container_dir(container)
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if not p.name.startswith("."))

    def close(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"FileBlobStore({str(self.root)!r})"
