"""
Local blob storage for winner photos.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import NamedTuple

from .errors import BlobStoreError

logger = logging.getLogger(__name__)


class UploadedFile(NamedTuple):
    filename: str
    content: bytes


class BlobStore:
    """Stores uploaded files under a root directory and hands out their URLs."""

    def __init__(
        self,
        root: str,
        base_url: str = "/media",
    ) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _resolve(self, key: str) -> Path:
        path = (self.root / key).resolve()
        root = self.root.resolve()
        if root != path and root not in path.parents:
            raise BlobStoreError(f"Blob key {key!r} escapes the storage root")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    async def upload(
        self,
        key: str,
        content: bytes,
    ) -> str:
        """
        Write a blob and return the URL it can be fetched from.

        @param key: Slash-separated path of the blob below the root
        @param content: Raw file bytes
        @return: Retrievable URL for the stored blob
        """
        path = self._resolve(key)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        try:
            await asyncio.get_running_loop().run_in_executor(None, write)
        except OSError as e:
            raise BlobStoreError(f"Could not store blob {key!r}: {e}") from e

        logger.info("Stored blob %s (%d bytes)", key, len(content))
        return self.url_for(key)


def winner_photo_key(winner_id: str, filename: str) -> str:
    """
    Storage key for a winner photo: winners/<winner id>/<file name>.

    Directory parts of the uploaded name are dropped.
    """
    name = PurePosixPath(filename.replace("\\", "/")).name
    if not name or name in (".", ".."):
        raise BlobStoreError(f"Invalid photo file name {filename!r}")
    return f"winners/{winner_id}/{name}"
