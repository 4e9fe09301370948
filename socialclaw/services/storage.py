"""
On-disk attachment storage.

Attachments live under the configured upload root in one directory per media
category and are referenced from message rows by their public URL path,
e.g. ``/uploads/images/3f2a....png``.
"""

import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger("uvicorn.error")

PUBLIC_PREFIX = "/uploads"

CATEGORY_DIRS = {
    "image": "images",
    "audio": "audio",
    "video": "video",
}

# mimetypes gives odd picks for a few common types
_PREFERRED_EXT = {
    "image/jpeg": ".jpg",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "video/quicktime": ".mov",
}


class UnsupportedMediaType(ValueError):
    """Raised when an upload is not an image, audio or video file."""


# PUBLIC_INTERFACE
def category_for(mime_type: str) -> Optional[str]:
    """Return the directory name for a mime type, or None if it is not stored."""
    major = (mime_type or "").split("/", 1)[0].strip().lower()
    return CATEGORY_DIRS.get(major)


def extension_for(mime_type: str) -> str:
    mime_type = (mime_type or "").lower()
    return _PREFERRED_EXT.get(mime_type) or mimetypes.guess_extension(mime_type) or ".bin"


def ensure_dirs(upload_root: Path) -> None:
    for name in CATEGORY_DIRS.values():
        (upload_root / name).mkdir(parents=True, exist_ok=True)


# PUBLIC_INTERFACE
def save_attachment(upload_root: Path, content: bytes, mime_type: str, prefix: str = "") -> str:
    """Write bytes under the directory matching mime_type. Returns the public path.

    Raises:
        UnsupportedMediaType: if mime_type is not image/*, audio/* or video/*.
        OSError: if the file cannot be written.
    """
    category = category_for(mime_type)
    if category is None:
        raise UnsupportedMediaType(f"Unsupported media type: {mime_type or 'unknown'}")
    target_dir = upload_root / category
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = f"{prefix}{uuid.uuid4().hex}{extension_for(mime_type)}"
    (target_dir / filename).write_bytes(content)
    logger.debug(f"Stored attachment {category}/{filename} ({len(content)} bytes)")
    return f"{PUBLIC_PREFIX}/{category}/{filename}"


# PUBLIC_INTERFACE
def disk_path(upload_root: Path, public_path: str) -> Optional[Path]:
    """Map a public attachment path back to its file, refusing paths outside the root."""
    if not public_path or not public_path.startswith(PUBLIC_PREFIX + "/"):
        return None
    relative = public_path[len(PUBLIC_PREFIX) + 1:]
    root = upload_root.resolve()
    candidate = (root / relative).resolve()
    if root not in candidate.parents:
        return None
    return candidate


def remove_attachment(upload_root: Path, public_path: str) -> bool:
    """Delete an attachment file if present. I/O errors are logged, not raised."""
    path = disk_path(upload_root, public_path)
    if path is None or not path.exists():
        return False
    try:
        path.unlink()
        return True
    except OSError as e:
        logger.warning(f"Could not remove attachment {public_path}: {e}")
        return False
