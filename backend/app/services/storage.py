"""
File Storage Service

Stores uploaded product images on the public disk and serves them as
static files.
- Uploads are verified to be real images before they touch the disk
- Stored paths are relative to the disk root ("images/<name>.png")
- Public URLs are derived from the relative path at read time
"""
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image

from app.config import get_settings

logger = logging.getLogger(__name__)

# Extensions Pillow reports for the formats we accept
IMAGE_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "GIF": ".gif",
    "WEBP": ".webp",
}


class StorageError(Exception):
    """Raised when a file cannot be stored."""


@dataclass
class UploadedFile:
    """An uploaded file, already read into memory."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


class FileStorage(ABC):
    """Base class for file storage backends."""

    @abstractmethod
    def store(self, file: UploadedFile, folder: str) -> str:
        """Store a file under folder and return its relative path."""
        pass

    @abstractmethod
    def url_for(self, path: str) -> str:
        """Public URL (path part) of a stored file."""
        pass

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Remove a stored file. Returns False if it did not exist."""
        pass


class LocalFileStorage(FileStorage):
    """Public disk on the local filesystem, served under a URL prefix."""

    def __init__(
        self,
        root: Optional[Path] = None,
        url_prefix: Optional[str] = None,
        max_bytes: Optional[int] = None
    ):
        settings = get_settings()
        self.root = Path(root or settings.storage_root)
        self.url_prefix = (url_prefix if url_prefix is not None else settings.storage_url_prefix).rstrip("/")
        self.max_bytes = max_bytes or settings.max_image_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def get_full_path(self, path: str) -> Path:
        """Get the full filesystem path for a stored file."""
        full_path = (self.root / path).resolve()
        if self.root.resolve() not in full_path.parents:
            raise StorageError(f"Path escapes storage root: {path}")
        return full_path

    def exists(self, path: str) -> bool:
        return self.get_full_path(path).exists()

    def store(self, file: UploadedFile, folder: str) -> str:
        """
        Verify and write an uploaded image.

        Args:
            file: The uploaded file
            folder: Destination folder relative to the disk root

        Returns:
            Path of the stored file relative to the disk root

        Raises:
            StorageError: if the upload is empty, too large, not an image,
                or cannot be written
        """
        if not file.content:
            raise StorageError(f"Empty upload: {file.filename}")

        if len(file.content) > self.max_bytes:
            raise StorageError(
                f"Upload too large: {file.filename} ({len(file.content)} bytes)"
            )

        image_format = self._detect_image_format(file.content)
        if image_format not in IMAGE_EXTENSIONS:
            raise StorageError(f"Not a supported image: {file.filename}")

        # Random name, the client's filename is never trusted
        relative_path = f"{folder.strip('/')}/{uuid.uuid4().hex}{IMAGE_EXTENSIONS[image_format]}"
        output_path = self.get_full_path(relative_path)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(file.content)
        except OSError as e:
            logger.error(f"Error storing {file.filename}: {e}")
            raise StorageError(f"Could not store {file.filename}") from e

        logger.info(f"Stored upload {file.filename} as {relative_path}")
        return relative_path

    def url_for(self, path: str) -> str:
        return f"{self.url_prefix}/{path.lstrip('/')}"

    def delete(self, path: str) -> bool:
        if not self.exists(path):
            return False
        self.get_full_path(path).unlink()
        logger.info(f"Deleted stored file {path}")
        return True

    def _detect_image_format(self, content: bytes) -> Optional[str]:
        """Return Pillow's format name, or None if content is not an image."""
        try:
            with Image.open(BytesIO(content)) as img:
                img.verify()
                return img.format
        except Exception:
            return None


def upload_image(storage: FileStorage, file: Optional[UploadedFile], folder: Optional[str] = None) -> Optional[str]:
    """Store an optional image upload, returning its path or None if absent."""
    if file is None:
        return None
    return storage.store(file, folder or get_settings().images_folder)


def public_url(storage: FileStorage, path: Optional[str]) -> Optional[str]:
    """Absolute public URL of a stored file."""
    if not path:
        return None
    return get_settings().app_url.rstrip("/") + storage.url_for(path)


_storage: Optional[LocalFileStorage] = None


def get_storage() -> FileStorage:
    """Dependency returning the shared public disk."""
    global _storage
    if _storage is None:
        _storage = LocalFileStorage()
    return _storage
