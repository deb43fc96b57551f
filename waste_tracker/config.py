"""Environment-backed settings.

Values are read at call time so tests can set them via the environment.

Known keys:
    ANTHROPIC_API_KEY  credential for the vision collaborator.
    VISION_MODEL       model id used for photo analysis.
    UPLOAD_DIR         directory where uploaded photos are stored.
    MAX_UPLOAD_BYTES   largest accepted upload.
    LOG_LEVEL          root logging level for the API process.
"""

import os
from pathlib import Path

DEFAULT_VISION_MODEL = "claude-opus-4-5-20251101"
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024  # 10 MiB


def get_setting(key: str, default: str = None) -> str:
    """Return the value for a settings key, or default if unset or blank."""
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_api_key() -> str:
    return get_setting("ANTHROPIC_API_KEY")


def get_vision_model() -> str:
    return get_setting("VISION_MODEL", DEFAULT_VISION_MODEL)


def get_max_upload_bytes() -> int:
    raw = get_setting("MAX_UPLOAD_BYTES")
    try:
        return int(raw) if raw else DEFAULT_MAX_UPLOAD_BYTES
    except ValueError:
        return DEFAULT_MAX_UPLOAD_BYTES


def get_upload_dir() -> Path:
    """Return the upload directory, creating it if needed.

    Priority order:
    1. UPLOAD_DIR environment variable
    2. uploads/ beside the active store file
    """
    env_dir = get_setting("UPLOAD_DIR")
    if env_dir:
        path = Path(env_dir)
    else:
        from waste_tracker.db.database import get_db_path
        path = get_db_path().parent / "uploads"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_log_level() -> str:
    return get_setting("LOG_LEVEL", "INFO").upper()
