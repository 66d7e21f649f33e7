"""File storage for uploaded client documents."""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from taxportal.config import settings
from taxportal.exceptions import ValidationFailed

logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    """Where an upload was written and how big it was."""

    stored_filename: str
    file_path: str
    file_size: int
    content_type: str


class FileHandler:
    """Validate and persist uploaded files. Only metadata goes to the database."""

    def __init__(self, upload_dir: Optional[Path] = None, max_file_size: Optional[int] = None):
        """Initialize file handler."""
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.max_file_size = max_file_size or settings.max_file_size_bytes

    def validate(self, file: UploadFile) -> int:
        """
        Validate an upload without writing anything.

        Returns:
            File size in bytes

        Raises:
            ValidationFailed: missing name, disallowed type, or too large
        """
        if not file.filename:
            raise ValidationFailed("Uploaded file has no name")

        if file.content_type not in settings.ALLOWED_MIME_TYPES:
            raise ValidationFailed(
                "Invalid file type. Allowed: PDF, images, and spreadsheets (xlsx, xls, csv)",
                details={"filename": file.filename, "content_type": file.content_type},
            )

        file.file.seek(0, 2)  # Move to end
        file_size = file.file.tell()
        file.file.seek(0)  # Reset

        if file_size > self.max_file_size:
            raise ValidationFailed(
                f"File size ({file_size / 1024 / 1024:.1f}MB) exceeds maximum "
                f"({self.max_file_size / 1024 / 1024:.0f}MB)",
                details={"filename": file.filename, "file_size": file_size},
            )

        return file_size

    async def save_upload(self, file: UploadFile, user_id: str) -> StoredFile:
        """
        Save uploaded file to disk.

        Args:
            file: Uploaded file (already validated)
            user_id: Owner, used for directory organization

        Returns:
            StoredFile describing the written file
        """
        user_dir = self.upload_dir / user_id
        user_dir.mkdir(parents=True, exist_ok=True)

        stored_filename = f"{uuid.uuid4()}{Path(file.filename).suffix.lower()}"
        file_path = user_dir / stored_filename

        content = await file.read()
        file_path.write_bytes(content)

        return StoredFile(
            stored_filename=stored_filename,
            file_path=str(file_path),
            file_size=len(content),
            content_type=file.content_type,
        )

    def delete(self, user_id: str, stored_filename: str) -> None:
        """Remove a stored file if it is still there."""
        file_path = self.upload_dir / user_id / stored_filename
        if file_path.exists():
            file_path.unlink()
        else:
            logger.warning(f"Stored file already missing: {file_path}")
