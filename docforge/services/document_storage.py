"""File storage for rendered documents."""

import logging
import re
import uuid
from pathlib import Path

import aiofiles
import aiofiles.os

from docforge.config import settings
from docforge.services.errors import PersistenceError

logger = logging.getLogger(__name__)

# File extension per template content type
CONTENT_TYPE_EXTENSIONS = {
    "text": ".txt",
    "html": ".html",
}

MEDIA_TYPES = {
    ".txt": "text/plain; charset=utf-8",
    ".html": "text/html; charset=utf-8",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(name: str, max_length: int = 80) -> str:
    """Reduce a display name to a filesystem-safe stem."""
    stem = _UNSAFE_CHARS.sub("_", name).strip("._")
    return stem[:max_length] or "document"


class DocumentStorage:
    """Stores rendered document bodies as files under the documents directory.

    Stored paths are relative to ``storage_path`` so the directory can move.
    """

    def __init__(self, storage_path: Path | None = None) -> None:
        self.storage_path = storage_path or settings.documents_dir
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, relative_path: str) -> Path:
        path = (self.storage_path / relative_path).resolve()
        if not path.is_relative_to(self.storage_path.resolve()):
            raise PersistenceError(f"Refusing to access '{relative_path}' outside document storage")
        return path

    async def save(self, name: str, content: str, content_type: str = "text") -> str:
        """Write a rendered document and return its relative path.

        Raises:
            PersistenceError: If the file cannot be written.
        """
        ext = CONTENT_TYPE_EXTENSIONS.get(content_type, ".txt")
        filename = f"{safe_filename(name)}_{uuid.uuid4().hex}{ext}"
        file_path = self.storage_path / filename
        try:
            async with aiofiles.open(file_path, "w", encoding="utf-8", newline="") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to write document %s: %s", file_path, e)
            raise PersistenceError(f"Could not store document '{name}': {e}") from e
        return filename

    async def read(self, relative_path: str) -> str:
        """Read a stored document.

        Raises:
            PersistenceError: If the file is missing or unreadable.
        """
        file_path = self._resolve(relative_path)
        try:
            async with aiofiles.open(file_path, "r", encoding="utf-8", newline="") as f:
                return await f.read()
        except OSError as e:
            raise PersistenceError(f"Could not read stored document '{relative_path}': {e}") from e

    async def delete(self, relative_path: str) -> bool:
        """Delete a stored document.

        Returns:
            True if deleted, False if it was already gone.
        """
        file_path = self._resolve(relative_path)
        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Could not delete stored document '{relative_path}': {e}") from e
        return True

    def get_path(self, relative_path: str) -> Path | None:
        """Full path of a stored document, or None if it does not exist."""
        file_path = self._resolve(relative_path)
        if file_path.exists():
            return file_path
        return None

    @staticmethod
    def media_type(relative_path: str) -> str:
        return MEDIA_TYPES.get(Path(relative_path).suffix, "application/octet-stream")
