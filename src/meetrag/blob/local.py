"""Filesystem-backed blob store."""

from __future__ import annotations

import asyncio
from pathlib import Path

from meetrag.core.exceptions import TransientInfraError
from meetrag.core.logging_config import get_logger

logger = get_logger(__name__)


class LocalBlobStore:
    """Stores blobs as files under a root directory.

    Blob references are the keys relative to the root, e.g.
    ``"<session_id>/<uuid>.webm"``.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._logger = logger.bind(blob_root=str(self._root))

    @property
    def root(self) -> Path:
        return self._root

    def _path_for(self, ref: str) -> Path:
        path = (self._root / ref).resolve()
        if not path.is_relative_to(self._root.resolve()):
            raise ValueError(f"Blob reference escapes the store root: {ref!r}")
        return path

    async def put(self, data: bytes, key: str) -> str:
        """Write bytes under ``key`` and return the blob reference.

        Raises:
            TransientInfraError: If the file cannot be written.
        """
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".part")
            tmp.write_bytes(data)
            tmp.replace(path)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            self._logger.error("blob_put_failed", blob_ref=key, error=str(e))
            raise TransientInfraError(f"Failed to store blob {key}: {e}", component="blob_store") from e
        self._logger.debug("blob_stored", blob_ref=key, size_bytes=len(data))
        return key

    async def get(self, ref: str) -> bytes:
        """Read a blob.

        Raises:
            FileNotFoundError: If the blob does not exist.
        """
        return await asyncio.to_thread(self._path_for(ref).read_bytes)

    async def delete(self, ref: str) -> bool:
        """Delete a blob.

        Returns:
            True if a file was removed, False if it was already gone
        """
        path = self._path_for(ref)

        def _unlink() -> bool:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            return True

        removed = await asyncio.to_thread(_unlink)
        self._logger.debug("blob_deleted", blob_ref=ref, removed=removed)
        return removed
