"""Storage for the original uploaded file bytes."""

import asyncio
import re
from abc import ABC, abstractmethod
from pathlib import Path

from clauseguard.utils.errors import ObjectStorageError
from clauseguard.utils.logging import get_logger

logger = get_logger(__name__)

UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_name(name: str) -> str:
    """Reduce a user-supplied name to a single safe path component."""
    cleaned = UNSAFE_CHARS.sub("_", Path(name).name).strip("._")
    return cleaned or "upload"


class ObjectStore(ABC):
    """Put/get interface for uploaded files."""

    @abstractmethod
    async def put(self, user_id: str, file_name: str, data: bytes) -> str:
        """Store bytes and return their location."""
        pass

    @abstractmethod
    async def get(self, location: str) -> bytes:
        """Read bytes back from a location returned by put()."""
        pass


class LocalObjectStore(ObjectStore):
    """Files under a base directory, keyed ``<user_id>/<file_name>``."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def _path(self, location: str) -> Path:
        path = (self.base_dir / location).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise ObjectStorageError(f"Location outside storage directory: {location}", {"location": location})
        return path

    async def put(self, user_id: str, file_name: str, data: bytes) -> str:
        location = f"{safe_name(user_id)}/{safe_name(file_name)}"
        path = self._path(location)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            raise ObjectStorageError(f"Failed to store {file_name}: {e}", {"location": location}) from e

        logger.debug(f"Stored upload at {location}", extra={"size": len(data)})
        return location

    async def get(self, location: str) -> bytes:
        path = self._path(location)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ObjectStorageError(f"Failed to read {location}: {e}", {"location": location}) from e
