"""
utils/file_storage.py

Saves listing photos to local disk under MEDIA_ROOT/properties and hands
back the public URL served by the /media static mount.
"""

import logging
import uuid
import aiofiles
from fastapi import UploadFile
from pathlib import Path
from app.core.config import settings
from app.core.errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

_EXT_TO_CONTENT_TYPE = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}

_CONTENT_TYPE_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def property_images_dir() -> Path:
    return Path(settings.MEDIA_ROOT) / "properties"


def _resolve_extension(file: UploadFile) -> str:
    """
    Pick the stored file extension.

    Some mobile clients send 'application/octet-stream', so fall back to the
    filename extension before giving up.
    """
    content_type = (file.content_type or "").lower()
    if content_type in ALLOWED_IMAGE_TYPES:
        return _CONTENT_TYPE_TO_EXT[content_type]

    filename = file.filename or ""
    ext = Path(filename).suffix.lower()
    if ext in ALLOWED_EXTENSIONS:
        return _CONTENT_TYPE_TO_EXT[_EXT_TO_CONTENT_TYPE[ext]]

    raise ValidationError(
        f"Cannot determine image type for '{filename}'. Please upload a JPEG, PNG, or WebP image."
    )


async def _read_image(file: UploadFile) -> tuple[str, bytes]:
    """Check type and size; nothing touches the disk here."""
    ext = _resolve_extension(file)

    contents = await file.read()
    max_bytes = settings.MAX_IMAGE_SIZE_MB * 1024 * 1024
    if len(contents) > max_bytes:
        raise ValidationError(f"Image '{file.filename}' exceeds {settings.MAX_IMAGE_SIZE_MB}MB limit.")
    return ext, contents


async def _write_image(ext: str, contents: bytes) -> str:
    target_dir = property_images_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{uuid.uuid4().hex}{ext}"

    async with aiofiles.open(target_dir / filename, "wb") as out:
        await out.write(contents)

    return f"{settings.BASE_URL}/media/properties/{filename}"


async def save_property_image(file: UploadFile) -> str:
    ext, contents = await _read_image(file)
    return await _write_image(ext, contents)


async def save_property_images(files: list[UploadFile]) -> list[str]:
    """
    Save multiple images and return their URLs in order.

    Every file is validated before the first one is written, and a failed
    write removes the files already saved, so the batch lands whole or not
    at all.
    """
    prepared = [await _read_image(f) for f in files]

    urls = []
    try:
        for ext, contents in prepared:
            urls.append(await _write_image(ext, contents))
    except Exception:
        delete_property_images(urls)
        raise
    return urls


def delete_property_image(image_url: str):
    """Delete a stored image given its public URL. Missing files are ignored."""
    filename = image_url.split("/media/properties/")[-1]
    file_path = property_images_dir() / filename
    try:
        file_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not delete image %s: %s", file_path, e)


def delete_property_images(image_urls: list[str]):
    for url in image_urls:
        delete_property_image(url)
