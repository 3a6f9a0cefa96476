"""
File Storage & Security

Provides upload handling for generation jobs with:
- Data URL / base64 image decoding
- Job ID validation
- Path traversal prevention
- Output location lookup
"""

import base64
import binascii
import os
import re
import shutil
from pathlib import Path
from typing import Tuple
from uuid import UUID

from .config import get_settings

# Extensions for accepted image MIME types
IMAGE_MIME_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
}

# Used when the payload is bare base64 with no MIME type
DEFAULT_IMAGE_EXTENSION = ".img"

OUTPUT_FILENAME = "video-generado.webm"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*),(?P<data>.*)$", re.DOTALL)


class InvalidUpload(ValueError):
    """Raised when an image payload cannot be decoded."""


def get_storage_root() -> Path:
    """
    Get the storage root path from configuration.

    Raises:
        ValueError: If storage path is not configured
    """
    storage_path = get_settings().storage_path

    if not storage_path:
        raise ValueError("STORAGE_PATH environment variable not set")

    return Path(storage_path).resolve()


def _mkdir_world_writable(path: Path) -> None:
    """
    Create a directory (and all parents) with world-writable permissions (0o777).
    Required for multi-container setups where backend creates dirs and worker writes to them.
    """
    path.mkdir(parents=True, exist_ok=True)
    os.chmod(path, 0o777)


def validate_job_id(job_id: str) -> bool:
    """
    Validate that a job ID is a valid UUID.

    Example:
        >>> validate_job_id("550e8400-e29b-41d4-a716-446655440000")
        True
        >>> validate_job_id("../malicious")
        False
    """
    try:
        UUID(job_id)
        return True
    except (ValueError, TypeError):
        return False


def _ensure_within_root(path: Path, storage_root: Path) -> Path:
    resolved_path = path.resolve()
    if not str(resolved_path).startswith(str(storage_root) + os.sep):
        raise ValueError("Path traversal detected: path escapes storage root")
    return resolved_path


def decode_image_payload(payload: str) -> Tuple[bytes, str]:
    """
    Decode a data URL or bare base64 string.

    Args:
        payload: ``data:image/png;base64,...`` or plain base64

    Returns:
        Tuple of (image bytes, file extension)

    Raises:
        InvalidUpload: If the payload is empty, not base64, or declares
            a non-image MIME type
    """
    payload = payload.strip()
    extension = DEFAULT_IMAGE_EXTENSION

    match = _DATA_URL_RE.match(payload)
    if match:
        mime = (match.group("mime") or "").lower()
        if not mime.startswith("image/"):
            raise InvalidUpload(f"Unsupported content type: {mime or 'none'}")
        if ";base64" not in match.group("params").lower():
            raise InvalidUpload("Image data URL must be base64 encoded")
        extension = IMAGE_MIME_EXTENSIONS.get(mime, DEFAULT_IMAGE_EXTENSION)
        payload = match.group("data")

    try:
        data = base64.b64decode(re.sub(r"\s+", "", payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidUpload(f"Invalid base64 image data: {e}") from e

    if not data:
        raise InvalidUpload("Image payload is empty")

    return data, extension


def save_upload(job_id: str, data: bytes, extension: str) -> str:
    """
    Store an uploaded image for the worker.

    The file lands at {STORAGE_ROOT}/uploads/{job_id}/source{ext}.

    Returns:
        str: Path relative to the storage root

    Raises:
        ValueError: If job_id is invalid or path traversal is detected
    """
    if not validate_job_id(job_id):
        raise ValueError("Invalid job ID: must be a valid UUID")

    storage_root = get_storage_root()
    upload_dir = storage_root / "uploads" / job_id
    _mkdir_world_writable(upload_dir)

    path = _ensure_within_root(upload_dir / f"source{extension}", storage_root)
    path.write_bytes(data)
    os.chmod(path, 0o666)

    return str(path.relative_to(storage_root))


def remove_upload(job_id: str) -> None:
    """Delete a job's upload directory if present."""
    if not validate_job_id(job_id):
        raise ValueError("Invalid job ID: must be a valid UUID")

    shutil.rmtree(get_storage_root() / "uploads" / job_id, ignore_errors=True)


def get_output_path(job_id: str) -> Path:
    """
    Get the location of a job's generated clip.

    Raises:
        ValueError: If job_id is invalid or path traversal is detected
    """
    if not validate_job_id(job_id):
        raise ValueError("Invalid job ID: must be a valid UUID")

    storage_root = get_storage_root()
    return _ensure_within_root(storage_root / "outputs" / job_id / OUTPUT_FILENAME, storage_root)
