"""Object storage for generated code images."""
import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional

from app.config import settings
from app.services.errors import ReadinessTimeoutError, StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    """
    Minimal bucket-style storage interface.

    Keys are relative POSIX paths such as "{owner_id}/{item_id}.png".
    """

    @abstractmethod
    def upload(
        self, path: str, data: bytes, content_type: str, upsert: bool = True
    ) -> str:
        """
        Store bytes under the given key.

        Returns the normalized key. Raises StorageError on failure, or if the
        key exists and upsert is False.
        """
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def read(self, path: str) -> bytes:
        """Return stored bytes. Raises StorageError if missing."""
        pass

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Public URL under which the stored object is served."""
        pass

    async def wait_for_object(
        self,
        path: str,
        attempts: Optional[int] = None,
        interval: Optional[float] = None,
    ) -> str:
        """
        Poll until an object exists, for at most `attempts` checks.

        Returns the public URL. Raises ReadinessTimeoutError if the object
        never appears.
        """
        attempts = attempts or settings.readiness_poll_attempts
        interval = settings.readiness_poll_interval if interval is None else interval

        for attempt in range(attempts):
            if self.exists(path):
                return self.get_public_url(path)
            if attempt < attempts - 1:
                await asyncio.sleep(interval)

        raise ReadinessTimeoutError(
            f"Object {path} not available after {attempts} attempts"
        )


class LocalObjectStorage(ObjectStorage):
    """Bucket stored on local disk and served by the app as static files."""

    def __init__(
        self,
        root_dir: Optional[str] = None,
        bucket: Optional[str] = None,
        public_base: Optional[str] = None,
    ):
        self.bucket = bucket or settings.storage_bucket
        self.public_base = (public_base or settings.storage_public_base).rstrip("/")
        self.bucket_dir = Path(root_dir or settings.storage_dir) / self.bucket
        self.bucket_dir.mkdir(parents=True, exist_ok=True)

    def _key(self, path: str) -> str:
        """Normalize a key and reject anything escaping the bucket."""
        key = PurePosixPath(path.strip("/"))
        if not key.parts or key.is_absolute() or ".." in key.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return str(key)

    def _file(self, key: str) -> Path:
        return self.bucket_dir / key

    def upload(
        self, path: str, data: bytes, content_type: str, upsert: bool = True
    ) -> str:
        key = self._key(path)
        target = self._file(key)

        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {key}")

        tmp = target.with_suffix(target.suffix + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(data)
            tmp.replace(target)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            logger.error("Upload of %s (%s) failed: %s", key, content_type, e)
            raise StorageError(f"Upload failed for {key}: {e}") from e

        logger.info("Stored %s (%d bytes, %s)", key, len(data), content_type)
        return key

    def exists(self, path: str) -> bool:
        return self._file(self._key(path)).is_file()

    def read(self, path: str) -> bytes:
        key = self._key(path)
        try:
            return self._file(key).read_bytes()
        except OSError as e:
            raise StorageError(f"Object not readable: {key}") from e

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base}/{self.bucket}/{self._key(path)}"


_storage: Optional[ObjectStorage] = None


def get_storage() -> ObjectStorage:
    """FastAPI dependency returning the configured object storage."""
    global _storage
    if _storage is None:
        _storage = LocalObjectStorage()
    return _storage
