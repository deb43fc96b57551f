"""Uploaded photo storage and content hashing."""

import hashlib
import random
import re
import time
from pathlib import Path

from waste_tracker.config import get_upload_dir
from waste_tracker.errors import PersistenceError

# Public URL prefix under which stored photos are referenced.
UPLOAD_URL_PREFIX = "/uploads"

_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest used to recognize repeat uploads."""
    return hashlib.sha256(data).hexdigest()


def guess_media_type(filename: str, default: str = "image/jpeg") -> str:
    return _MEDIA_TYPES.get(Path(filename or "").suffix.lower(), default)


def _safe_name(filename: str) -> str:
    name = Path(filename or "").name
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "image"


def save_upload(data: bytes, filename: str = None, upload_dir: Path = None) -> str:
    """Write an uploaded photo under a unique name and return its public path."""
    stored_name = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{_safe_name(filename)}"
    try:
        directory = Path(upload_dir) if upload_dir is not None else get_upload_dir()
        directory.mkdir(parents=True, exist_ok=True)
        (directory / stored_name).write_bytes(data)
    except OSError as e:
        raise PersistenceError(f"Could not save uploaded image: {e}") from e
    return f"{UPLOAD_URL_PREFIX}/{stored_name}"


def remove_upload(image_path: str, upload_dir: Path = None) -> None:
    """Delete a photo saved by save_upload; a missing file is ignored."""
    directory = Path(upload_dir) if upload_dir is not None else get_upload_dir()
    (directory / Path(image_path).name).unlink(missing_ok=True)
