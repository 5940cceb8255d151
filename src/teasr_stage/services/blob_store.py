# src/teasr_stage/services/blob_store.py
"""Blob storage for encrypted media and blurred thumbnails."""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

from teasr_stage.services.errors import BlobIOError, BlobNotFoundError

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Stores and retrieves opaque bytes by key."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous value."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the bytes stored under ``key``.

        Raises:
            BlobNotFoundError: If nothing is stored under ``key``.
            BlobIOError: If the backend fails to read.
        """


class LocalBlobStore(BlobStore):
    """Filesystem-backed store rooted at a single directory.

    File I/O runs in worker threads so the event loop never blocks on disk.
    """

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root).resolve()

    def _path_for(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if not key or relative.is_absolute() or ".." in relative.parts:
            raise BlobIOError(f"Invalid blob key: {key!r}")
        return self.root.joinpath(*relative.parts)

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)

    async def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as err:
            logger.warning("Failed to write blob %s: %s", key, err)
            raise BlobIOError(f"Failed to write blob {key}") from err

    async def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as err:
            raise BlobNotFoundError(f"Blob {key} not found") from err
        except OSError as err:
            logger.warning("Failed to read blob %s: %s", key, err)
            raise BlobIOError(f"Failed to read blob {key}") from err
