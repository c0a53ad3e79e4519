"""Attachment files on the local filesystem.

Files are stored flat under the upload directory as ``<file_id><suffix>``;
the database keeps the mapping from attachment to path.
"""
import os
import uuid
from pathlib import Path
from typing import Iterable, Tuple
import logging

from chatrelay.errors import StorageError

logger = logging.getLogger(__name__)


class FileStore:
    def __init__(self, root: str):
        self.root = Path(root).expanduser()

    def save(self, filename: str, content: bytes) -> Tuple[str, str]:
        """Write ``content`` and return ``(file_id, path)``"""
        file_id = uuid.uuid4().hex
        suffix = Path(filename or "").suffix.lower()
        path = self.root / f"{file_id}{suffix}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            logger.error(f"Error saving upload {filename}: {str(e)}")
            raise StorageError("Could not store uploaded file") from e
        logger.info(f"Stored {filename} ({len(content)} bytes) as {path}")
        return file_id, str(path)

    def exists(self, path: str) -> bool:
        return os.path.isfile(path)

    def delete(self, path: str) -> bool:
        """Remove a stored file. Failures are logged, never raised."""
        try:
            os.remove(path)
            logger.info(f"Deleted file {path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Could not delete file {path}: {str(e)}")
            return False

    def delete_many(self, paths: Iterable[str]) -> int:
        return sum(1 for path in paths if self.delete(path))
