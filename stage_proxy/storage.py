"""Storage adapter interface and the local uploads implementation."""
from abc import ABC, abstractmethod
import mimetypes
import os
import tempfile
from pathlib import Path
from pydantic import BaseModel

from stage_proxy.errors import StorageWriteError
from stage_proxy.image_utils import sniff_mime
from stage_proxy.logger import get_logger
from stage_proxy.settings import settings

log = get_logger("storage")


class StoredFile(BaseModel):
    """Bytes of a local file, ready to be served."""
    path: str
    data: bytes
    size: int
    mime_type: str


class StorageAdapter(ABC):
    """Abstract storage adapter interface."""

    @abstractmethod
    def path_for(self, key: str) -> Path:
        """
        Map a storage key to its filesystem path.

        Args:
            key: Asset key (e.g., "2024/05/image.jpg")

        Returns:
            Absolute or base-relative path
        """
        pass

    @abstractmethod
    async def save(self, key: str, data: bytes) -> str:
        """
        Save data under a key and return the written path.

        Args:
            key: Asset key, its directory part is the year/month bucket
            data: Binary data to save

        Returns:
            Path of the written file

        Raises:
            StorageWriteError: If the file could not be written
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check if key exists in storage.

        Args:
            key: Asset key

        Returns:
            True if exists, False otherwise
        """
        pass

    @abstractmethod
    async def read_file(self, path: str) -> StoredFile:
        """
        Read an arbitrary local file with its size and MIME type.

        Args:
            path: Filesystem path (need not be inside the storage root)

        Returns:
            StoredFile
        """
        pass


class LocalStorageAdapter(StorageAdapter):
    """Local uploads directory."""

    def __init__(self, base_path: str = None):
        self.base_path = Path(base_path or settings.UPLOADS_BASE_DIR)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """Get full filesystem path for a key."""
        # Keep keys inside the uploads root
        parts = [part for part in key.split("/") if part and part not in (".", "..")]
        return self.base_path.joinpath(*parts)

    async def save(self, key: str, data: bytes) -> str:
        """
        Write atomically: a temp file in the destination directory is moved into place,
        so concurrent writers of the same key never expose a partial file.
        """
        full_path = self.path_for(key)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=".sfp-", suffix=".part")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, full_path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageWriteError(f"Could not write {key}: {e}") from e

        log.info(f"Stored {len(data)} bytes at {full_path}")
        return str(full_path)

    async def exists(self, key: str) -> bool:
        """Check if key exists in local filesystem."""
        return self.path_for(key).is_file()

    async def read_file(self, path: str) -> StoredFile:
        """Read a local file for serving."""
        with open(path, "rb") as f:
            data = f.read()

        mime_type = sniff_mime(data) or mimetypes.guess_type(path)[0] or "application/octet-stream"
        return StoredFile(path=str(path), data=data, size=len(data), mime_type=mime_type)


def get_storage_adapter(base_path: str = None) -> StorageAdapter:
    """Factory function to get the storage adapter."""
    return LocalStorageAdapter(base_path)
