import logging
import os
import secrets
import time
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from settings import settings

logger = logging.getLogger(__name__)


class UploadRejected(Exception):
    pass


def upload_root() -> Path:
    return Path(settings.UPLOAD_ROOT).resolve()


def _extension(filename: Optional[str]) -> str:
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext.isalnum():
            return ext
    return "bin"


def save_image(upload: UploadFile, admin_id: str, folder: str = "uploads") -> str:
    """
    Write an uploaded image under ``<UPLOAD_ROOT>/<folder>/<admin_id>/`` and
    return its public path ``/<folder>/<admin_id>/<filename>``.
    """
    if upload.content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise UploadRejected(f"Unsupported image type: {upload.content_type}")
    data = upload.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if not data:
        raise UploadRejected("Image file is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise UploadRejected(f"Image exceeds {settings.MAX_UPLOAD_BYTES} bytes")

    target_dir = upload_root() / folder / str(admin_id)
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{folder}-{int(time.time() * 1000)}-{secrets.token_hex(4)}.{_extension(upload.filename)}"
    (target_dir / filename).write_bytes(data)
    logger.info("Stored image %s/%s/%s (%d bytes)", folder, admin_id, filename, len(data))
    return f"/{folder}/{admin_id}/{filename}"


def has_content(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


def delete_image(public_path: str) -> bool:
    """Remove a previously stored image; paths outside the upload root are ignored."""
    root = upload_root()
    path = (root / public_path.lstrip("/")).resolve()
    if root not in path.parents:
        logger.warning("Refusing to delete %s outside upload root", public_path)
        return False
    if not path.is_file():
        return False
    os.remove(path)
    logger.info("Deleted image %s", public_path)
    return True
