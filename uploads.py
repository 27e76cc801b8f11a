# uploads.py
# Image uploads for image messages. Files land in UPLOAD_DIR and are served at /uploads.
import os
import secrets
from typing import Optional

from fastapi import UploadFile
from loguru import logger

from config import MAX_UPLOAD_BYTES, UPLOAD_DIR
from errors import InvalidUpload

URL_PREFIX = "/uploads"

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")
CONTENT_TYPE_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def image_extension(filename: Optional[str], content_type: str) -> str:
    """Extension the file is stored under; never one StaticFiles would serve as markup or script."""
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in IMAGE_EXTENSIONS:
        return ext
    return CONTENT_TYPE_EXTENSIONS.get(content_type, "")


def ensure_upload_dir(upload_dir: str = UPLOAD_DIR) -> str:
    os.makedirs(upload_dir, exist_ok=True)
    return upload_dir


def save_image(upload: UploadFile, upload_dir: str = UPLOAD_DIR, max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    """Store an image upload and return the URL it is served under."""
    if not (upload.content_type or "").startswith("image/"):
        raise InvalidUpload("Only image files are allowed")
    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise InvalidUpload(f"Image exceeds {max_bytes} bytes")
    if not data:
        raise InvalidUpload("Empty upload")

    ext = image_extension(upload.filename, upload.content_type)
    name = secrets.token_hex(16) + ext
    with open(os.path.join(ensure_upload_dir(upload_dir), name), "wb") as f:
        f.write(data)
    logger.info(f"Stored upload {name} ({len(data)} bytes)")
    return f"{URL_PREFIX}/{name}"
