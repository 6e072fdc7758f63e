"""Storage service abstraction for uploaded receipt images.

Supports two backends selected via ``settings.STORAGE_BACKEND``:

1. **filesystem** (default): Stores files under ``settings.UPLOAD_DEST``.
2. **minio**: Uses the MinIO S3-compatible object storage.

Saved images are referenced by a path-like URL (``/uploads/<uuid><ext>``)
that is persisted on the receipt row.  Only the trailing path segment
is used to resolve the underlying file or object, so the prefix may
change without breaking stored rows.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException

from receipt_scanner.core.config import settings
from receipt_scanner.models.enums import StorageBackend
from receipt_scanner.models.schemas import ImageUpload

try:  # Optional dependency (listed in requirements)
    from minio import Minio  # type: ignore
    from minio.error import S3Error  # type: ignore
except Exception:  # pragma: no cover - MinIO not installed
    Minio = None  # type: ignore
    S3Error = Exception  # type: ignore

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_image_upload(
    upload: ImageUpload,
    max_size: int,
    allowed_extensions: Iterable[str],
    allowed_mime_types: Iterable[str],
) -> None:
    """Raise ``HTTPException(400)`` when the upload is not an acceptable image."""
    allowed_extensions = list(allowed_extensions)
    allowed_mime_types = list(allowed_mime_types)

    if upload.size > max_size:
        raise HTTPException(
            status_code=400,
            detail=f"File size {upload.size} bytes exceeds maximum allowed size of {max_size} bytes",
        )

    extension = file_extension(upload.filename)
    if extension not in allowed_extensions:
        raise HTTPException(
            status_code=400,
            detail=f"File extension {extension or '(none)'} is not allowed. Allowed: {', '.join(allowed_extensions)}",
        )

    if upload.content_type not in allowed_mime_types:
        raise HTTPException(
            status_code=400,
            detail=f"MIME type {upload.content_type} is not allowed. Allowed: {', '.join(allowed_mime_types)}",
        )

    if not upload.data:
        raise HTTPException(status_code=400, detail="File buffer is empty or invalid")


class StorageService:
    """Unified storage service (filesystem or MinIO)."""

    def __init__(self, base_dir: str | None = None, backend: str | None = None) -> None:
        self.backend = (backend or settings.STORAGE_BACKEND or StorageBackend.FILESYSTEM.value).lower()
        self.max_size = settings.MAX_FILE_SIZE
        self.allowed_extensions = list(settings.ALLOWED_EXTENSIONS)
        self.allowed_mime_types = list(settings.ALLOWED_MIME_TYPES)

        if self.backend == StorageBackend.MINIO.value and Minio is not None:
            self._client = Minio(
                settings.MINIO_ENDPOINT,
                access_key=settings.MINIO_ACCESS_KEY,
                secret_key=settings.MINIO_SECRET_KEY,
                secure=bool(settings.MINIO_USE_SSL),
            )
            self.bucket = settings.MINIO_BUCKET_NAME
            # Ensure bucket exists (idempotent)
            try:
                if not self._client.bucket_exists(self.bucket):
                    self._client.make_bucket(self.bucket)
            except Exception as e:  # pragma: no cover - startup path
                logger.warning("MinIO bucket ensure failed: %s", e)
            logger.info("Storage backend: MinIO bucket=%s", self.bucket)
        else:
            if self.backend == StorageBackend.MINIO.value:
                logger.warning("MinIO client unavailable; falling back to filesystem storage")
            self.backend = StorageBackend.FILESYSTEM.value
            base_path = Path(base_dir or settings.UPLOAD_DEST)
            self.base_dir = base_path.resolve()
            logger.info("Storage backend: filesystem base_dir=%s", self.base_dir)

    # ------------------------------------------------------------------
    # Naming helpers

    def _generate_filename(self, original_name: str) -> str:
        """Random name that keeps only the original (lower-cased) extension."""
        return f"{uuid.uuid4()}{file_extension(original_name)}"

    def _filename_from_url(self, image_url: str | None) -> Optional[str]:
        if not image_url:
            return None
        name = image_url.rstrip("/").split("/")[-1]
        if name in ("", ".", ".."):
            return None
        return name

    # ------------------------------------------------------------------
    # Blocking primitives (run in a worker thread)

    def _write(self, filename: str, data: bytes, content_type: str) -> None:
        if self.backend == StorageBackend.MINIO.value:
            self._client.put_object(
                self.bucket,
                filename,
                BytesIO(data),
                len(data),
                content_type=content_type or "application/octet-stream",
            )
            return
        if not self.base_dir.exists():
            self.base_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Created upload directory: %s", self.base_dir)
        (self.base_dir / filename).write_bytes(data)

    def _remove(self, filename: str) -> None:
        if self.backend == StorageBackend.MINIO.value:
            self._client.remove_object(self.bucket, filename)
            return
        (self.base_dir / filename).unlink()

    def _read(self, filename: str) -> bytes:
        if self.backend == StorageBackend.MINIO.value:
            try:
                resp = self._client.get_object(self.bucket, filename)
            except S3Error as e:  # pragma: no cover - network path
                raise FileNotFoundError(filename) from e
            try:
                return resp.read()
            finally:
                resp.close()
                resp.release_conn()
        return (self.base_dir / filename).read_bytes()

    def _stat(self, filename: str) -> Dict[str, Any]:
        if self.backend == StorageBackend.MINIO.value:
            try:
                stat = self._client.stat_object(self.bucket, filename)
            except S3Error:  # pragma: no cover - network path
                return {"exists": False}
            return {"exists": True, "size": stat.size, "path": f"{self.bucket}/{filename}"}
        path = self.base_dir / filename
        if not path.is_file():
            return {"exists": False}
        return {"exists": True, "size": path.stat().st_size, "path": str(path)}

    # ------------------------------------------------------------------
    # Public API

    def validate(self, upload: ImageUpload) -> None:
        validate_image_upload(upload, self.max_size, self.allowed_extensions, self.allowed_mime_types)

    async def save_image(self, upload: ImageUpload) -> str:
        """Persist an uploaded image and return its ``/uploads/<name>`` URL."""
        logger.info("Processing file upload: %s (%d bytes)", upload.filename, upload.size)
        self.validate(upload)
        filename = self._generate_filename(upload.filename)
        try:
            await asyncio.to_thread(self._write, filename, upload.data, upload.content_type or "")
        except Exception as e:
            logger.error("Failed to save image file %s: %s", filename, e)
            raise HTTPException(status_code=500, detail="Failed to save image file")
        logger.info("Image saved successfully: %s", filename)
        return f"{URL_PREFIX}/{filename}"

    async def delete_image(self, image_url: str | None) -> bool:
        """Remove a stored image.  Never raises; returns whether it was removed."""
        filename = self._filename_from_url(image_url)
        if not filename:
            logger.warning("Failed to delete image: invalid URL %r", image_url)
            return False
        try:
            await asyncio.to_thread(self._remove, filename)
        except Exception as e:
            logger.warning("Failed to delete image %s: %s", image_url, e)
            return False
        logger.info("Image deleted: %s", filename)
        return True

    async def load_image(self, image_url: str) -> bytes:
        """Return the stored bytes; raises ``FileNotFoundError`` when absent."""
        filename = self._filename_from_url(image_url)
        if not filename:
            raise FileNotFoundError(image_url)
        return await asyncio.to_thread(self._read, filename)

    async def get_image_info(self, image_url: str | None) -> Dict[str, Any]:
        filename = self._filename_from_url(image_url)
        if not filename:
            return {"exists": False}
        try:
            return await asyncio.to_thread(self._stat, filename)
        except Exception:
            return {"exists": False}
