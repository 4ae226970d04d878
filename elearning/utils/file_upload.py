# elearning/utils/file_upload.py

import logging
import uuid
from pathlib import Path

from fastapi import HTTPException, UploadFile

from elearning.core.config import settings

logger = logging.getLogger(__name__)

STORAGE_FOLDERS = ("courses", "users")


class FileUploadService:
    """Service to handle image uploads with UUID naming and storage management."""

    def __init__(self, base_storage_path: str = "storage", max_size_mb: int = 5):
        """
        Initialize the file upload service.

        Args:
            base_storage_path: Base directory for file storage (relative to project root)
            max_size_mb: Largest accepted upload
        """
        self.base_storage_path = Path(base_storage_path)
        self.max_size = max_size_mb * 1024 * 1024
        self.allowed_extensions = {
            f".{ext.lower().lstrip('.')}" for ext in settings.allowed_image_types
        }
        self._ensure_storage_directories()

    def _ensure_storage_directories(self):
        """Create storage directories if they don't exist."""
        for folder in STORAGE_FOLDERS:
            (self.base_storage_path / folder).mkdir(parents=True, exist_ok=True)

    def _get_file_extension(self, filename: str) -> str:
        return Path(filename).suffix.lower()

    def _validate_image(self, file: UploadFile) -> None:
        """
        Validate uploaded image file.

        Raises:
            HTTPException: If the filename is missing or the extension or
            content type is not an image
        """
        if not file.filename:
            raise HTTPException(status_code=400, detail="No filename provided")

        extension = self._get_file_extension(file.filename)
        if extension not in self.allowed_extensions:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type. Allowed types: {', '.join(sorted(self.allowed_extensions))}",
            )

        if file.content_type and not file.content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="Only image files are allowed")

    async def save_image(
        self, file: UploadFile, folder: str = "courses"
    ) -> tuple[str, str]:
        """
        Save an uploaded image with UUID naming.

        Args:
            file: The uploaded file
            folder: Subfolder within storage ('courses' or 'users')

        Returns:
            Tuple of (uuid_filename, relative_path)
        """
        self._validate_image(file)

        try:
            contents = await file.read()
        except OSError as e:
            raise HTTPException(status_code=400, detail=f"Error reading file: {str(e)}")
        finally:
            await file.seek(0)

        if len(contents) == 0:
            raise HTTPException(status_code=400, detail="Empty file uploaded")

        if len(contents) > self.max_size:
            raise HTTPException(
                status_code=400,
                detail=f"File size exceeds maximum allowed size of {self.max_size / (1024*1024)}MB",
            )

        extension = self._get_file_extension(file.filename)
        uuid_filename = f"{uuid.uuid4()}{extension}"

        folder_path = self.base_storage_path / folder
        folder_path.mkdir(parents=True, exist_ok=True)

        try:
            (folder_path / uuid_filename).write_bytes(contents)
        except OSError as e:
            logger.error(f"Error saving upload to {folder_path}: {e}")
            raise HTTPException(status_code=500, detail=f"Error saving file: {str(e)}")

        # Relative path is what gets stored on the model
        relative_path = f"{folder}/{uuid_filename}"
        logger.info(f"Stored upload {relative_path} ({len(contents)} bytes)")
        return uuid_filename, relative_path

    def delete_image(self, relative_path: str) -> bool:
        """
        Delete a stored image.

        Args:
            relative_path: Relative path to the file (e.g., 'courses/uuid.jpg')

        Returns:
            True if deleted, False if the path is not a stored file
        """
        file_path = self.base_storage_path / relative_path
        try:
            if file_path.is_file():
                file_path.unlink()
                return True
        except OSError as e:
            logger.warning(f"Could not delete {file_path}: {e}")
        return False


# Create a singleton instance
file_upload_service = FileUploadService(settings.upload_dir, settings.max_upload_size_mb)
