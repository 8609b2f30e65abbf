"""
Storage Abstraction Layer - The Bridge Pattern

Stages user-supplied source images on local disk until the pipeline
uploads them to the asset provider.
"""

import io
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple
from datetime import datetime

from PIL import Image, UnidentifiedImageError

from flux_studio.core.config import settings
from flux_studio.core.exceptions import ValidationError


def inspect_image(file_data: bytes) -> Tuple[str, str]:
    """
    Check that the bytes decode as an image.

    Returns:
        Tuple of (format, mime_type), e.g. ("PNG", "image/png")
    """
    try:
        with Image.open(io.BytesIO(file_data)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"File is not a supported image: {e}")

    mime_type = Image.MIME.get(image_format, "application/octet-stream")
    return image_format, mime_type


class IStorage(ABC):
    """Interface for source image staging - The Bridge"""

    @abstractmethod
    async def upload(
        self,
        file_data: bytes,
        filename: str,
        folder: str = "uploads"
    ) -> str:
        """
        Store a file and return its unique storage key.

        Args:
            file_data: Raw bytes of the file
            filename: Original filename
            folder: Subfolder prefix

        Returns:
            Storage key that can be used with get_path()
        """
        pass

    @abstractmethod
    def get_path(self, storage_key: str) -> Path:
        """Resolve a storage key to a readable local path."""
        pass

    @abstractmethod
    async def delete(self, storage_key: str) -> bool:
        """Delete a staged file. Returns True if it existed."""
        pass

    @abstractmethod
    async def exists(self, storage_key: str) -> bool:
        """Check if a file exists in storage."""
        pass


class LocalStorage(IStorage):
    """Local filesystem staging area."""

    def __init__(self, base_path: str = "./data/uploads"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _get_unique_filename(self, filename: str) -> str:
        """Generate a unique filename with UUID prefix."""
        ext = Path(filename).suffix
        unique_id = uuid.uuid4().hex[:12]
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{timestamp}_{unique_id}{ext}"

    async def upload(
        self,
        file_data: bytes,
        filename: str,
        folder: str = "uploads"
    ) -> str:
        folder_path = self.base_path / folder
        folder_path.mkdir(parents=True, exist_ok=True)

        unique_filename = self._get_unique_filename(filename)
        file_path = folder_path / unique_filename

        with open(file_path, "wb") as f:
            f.write(file_data)

        return f"{folder}/{unique_filename}"

    def get_path(self, storage_key: str) -> Path:
        return self.base_path / storage_key

    async def delete(self, storage_key: str) -> bool:
        file_path = self.base_path / storage_key
        if file_path.exists():
            file_path.unlink()
            return True
        return False

    async def exists(self, storage_key: str) -> bool:
        return (self.base_path / storage_key).exists()


class StorageFactory:
    """Factory for the staging storage singleton."""

    _instance: Optional[IStorage] = None

    @classmethod
    def get_storage(cls) -> IStorage:
        if cls._instance is None:
            cls._instance = LocalStorage(base_path=settings.LOCAL_STORAGE_PATH)
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None


def get_storage() -> IStorage:
    """Get the storage instance - ready for FastAPI Depends()."""
    return StorageFactory.get_storage()
