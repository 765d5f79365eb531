"""
treinai/services/upload_service.py

Purpose: Local-disk file uploads

- Validates MIME type and size of incoming files
- Stores them under UPLOAD_DIR with random names
- Builds public URLs served from /uploads
- Removes previously uploaded files when replaced
"""

import os
import uuid
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlparse

import aiofiles
from fastapi import UploadFile

from treinai.core.config import settings
from treinai.core.exceptions import PayloadTooLargeError, ValidationError
from treinai.core.logging import get_logger
from utils.constants import IMAGE_MIME_TYPES, UPLOADS_ROUTE

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}


def upload_root() -> Path:
    root = Path(settings.UPLOAD_DIR)
    root.mkdir(parents=True, exist_ok=True)
    return root


def public_url(filename: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{UPLOADS_ROUTE}/{filename}"


async def save_upload(
    file: UploadFile,
    allowed_types: Sequence[str] = IMAGE_MIME_TYPES,
    max_bytes: Optional[int] = None,
) -> str:
    """
    Streams an uploaded file to disk.

    Args:
        file: Incoming multipart file
        allowed_types: Accepted MIME types
        max_bytes: Size limit (defaults to MAX_IMAGE_BYTES)

    Returns:
        Public URL of the stored file

    Raises:
        ValidationError: unsupported MIME type
        PayloadTooLargeError: file exceeds max_bytes (partial file is removed)
    """
    limit = max_bytes or settings.MAX_IMAGE_BYTES
    content_type = (file.content_type or "").lower()

    if content_type not in allowed_types:
        raise ValidationError(
            f"Unsupported file type: {content_type or 'unknown'}",
            code="UNSUPPORTED_MEDIA",
            details={"allowed": list(allowed_types)}
        )

    filename = f"{uuid.uuid4().hex}{EXTENSIONS.get(content_type, '')}"
    path = upload_root() / filename
    written = 0

    try:
        async with aiofiles.open(path, "wb") as out:
            while True:
                chunk = await file.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > limit:
                    raise PayloadTooLargeError(
                        f"File exceeds the {limit // (1024 * 1024) or 1}MB limit",
                        details={"max_bytes": limit}
                    )
                await out.write(chunk)
    except PayloadTooLargeError:
        path.unlink(missing_ok=True)
        raise

    logger.info(
        "Stored upload",
        extra={"upload_file": filename, "bytes": written, "content_type": content_type}
    )
    return public_url(filename)


def delete_upload(url: Optional[str]) -> bool:
    """
    Deletes a file previously returned by save_upload.

    URLs outside /uploads/ (external images) are ignored.

    Returns:
        True if a file was removed
    """
    if not url:
        return False

    path = urlparse(url).path
    prefix = f"{UPLOADS_ROUTE}/"
    if not path.startswith(prefix):
        return False

    filename = os.path.basename(path)
    target = upload_root() / filename
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to delete upload {filename}: {e}")
        return False

    logger.info("Deleted upload", extra={"upload_file": filename})
    return True
