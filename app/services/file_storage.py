import logging
import os
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

from fastapi import UploadFile
from fastapi.responses import FileResponse

from app.core.config import settings
from app.core.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_EXTENSIONS = {
    ".pdf", ".doc", ".docx", ".txt", ".png", ".jpg", ".jpeg", ".ppt", ".pptx", ".zip",
}


@dataclass
class StoredFile:
    key: str
    file_name: str
    file_size: int
    file_type: Optional[str]

    def as_dict(self) -> dict:
        return {
            "file_name": self.file_name,
            "storage_key": self.key,
            "file_size": self.file_size,
            "file_type": self.file_type,
        }


class FileStorage:
    """Files on local disk under upload_dir; one instance is resolved from settings at startup."""

    def __init__(
        self,
        upload_dir: str,
        max_size: int,
        allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
    ):
        self.upload_dir = upload_dir
        self.max_size = max_size
        self.allowed_extensions = {e.lower() for e in allowed_extensions}
        os.makedirs(self.upload_dir, exist_ok=True)

    def _get_file_extension(self, filename: str) -> str:
        return os.path.splitext(filename)[1].lower()

    def check_file(
        self,
        file: UploadFile,
        allowed_extensions: Optional[Iterable[str]] = None,
        max_size: Optional[int] = None,
    ) -> bytes:
        allowed = {e.lower() for e in allowed_extensions} if allowed_extensions else self.allowed_extensions
        if self._get_file_extension(file.filename or "") not in allowed:
            raise ValidationFailed(f"File type not allowed: {file.filename}")

        content = file.file.read()
        limit = max_size or self.max_size
        if len(content) > limit:
            raise ValidationFailed(f"File too large: {file.filename}")
        return content

    def save_file(
        self,
        file: UploadFile,
        subfolder: str,
        allowed_extensions: Optional[Iterable[str]] = None,
        max_size: Optional[int] = None,
    ) -> StoredFile:
        content = self.check_file(file, allowed_extensions, max_size)
        unique_filename = f"{uuid.uuid4()}_{os.path.basename(file.filename)}"
        key = f"{subfolder}/{unique_filename}"
        self._write(key, content)
        return StoredFile(
            key=key,
            file_name=file.filename,
            file_size=len(content),
            file_type=file.content_type,
        )

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.upload_dir, key))
        if not path.startswith(os.path.abspath(self.upload_dir) + os.sep):
            raise NotFound("File not found")
        return path

    def _write(self, key: str, content: bytes) -> None:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as buffer:
            buffer.write(content)

    def delete_file(self, key: str) -> bool:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)
            return True
        return False

    def download_response(self, key: str, file_name: str):
        path = self._path(key)
        if not os.path.exists(path):
            raise NotFound("File not found on server")
        return FileResponse(path, filename=file_name)


@lru_cache()
def get_file_storage() -> FileStorage:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        logger.info("Using local file storage at %s", settings.UPLOAD_DIR)
        return FileStorage(settings.UPLOAD_DIR, settings.MAX_UPLOAD_SIZE)
    raise RuntimeError(f"Unsupported STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
