"""
Menu photo uploads.

Files land in ``<UPLOAD_DIRECTORY>/menu`` named
``<epoch-ms>-<original name>`` with whitespace runs replaced by ``_``, and
are served back under ``/uploads/menu/``.
"""

import asyncio
import logging
import re
import time
from pathlib import Path, PurePath
from typing import Optional

from starlette.datastructures import UploadFile

from restaurant_api.exceptions import InvalidUpload

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/menu"
CHUNK_SIZE = 64 * 1024


def safe_filename(original: Optional[str], now_ms: Optional[int] = None) -> str:
    """Timestamped filename with directories stripped and whitespace collapsed."""
    base = PurePath((original or "").replace("\\", "/")).name or "image"
    base = re.sub(r"\s+", "_", base)
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{stamp}-{base}"


def build_image_url(base_url: str, filename: str) -> str:
    return f"{base_url.rstrip('/')}{UPLOAD_URL_PREFIX}/{filename}"


async def save_menu_image(upload: UploadFile, directory: Path, max_bytes: int) -> str:
    """
    Store an uploaded image and return its filename.

    Raises:
        InvalidUpload: Not an image, or larger than ``max_bytes``
    """
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise InvalidUpload(f"Unsupported file type: {content_type or 'unknown'}")

    chunks = []
    size = 0
    while chunk := await upload.read(CHUNK_SIZE):
        size += len(chunk)
        if size > max_bytes:
            raise InvalidUpload(f"Image exceeds {max_bytes} bytes")
        chunks.append(chunk)

    filename = safe_filename(upload.filename)
    await asyncio.to_thread(_write_image, directory, filename, b"".join(chunks))

    logger.info(f"Stored menu image {filename} ({size} bytes)")
    return filename


def _write_image(directory: Path, filename: str, data: bytes) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / filename).write_bytes(data)


async def delete_menu_image(directory: Path, filename: str) -> None:
    """Remove a stored image whose menu write did not go through."""
    await asyncio.to_thread((directory / filename).unlink, missing_ok=True)
    logger.info(f"Removed orphaned menu image {filename}")
