"""File helpers: collision-free output paths, context and image loading."""
from __future__ import annotations

import base64
import logging
import os
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ErgonIOError, UniquePathExhaustedError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
}

CONTEXT_FILE_SUFFIXES = (".md", ".txt")


@dataclass
class ImageData:
    """Base64-encoded image payload ready to send to a vision model."""

    data: str
    mime_type: str


def _exists(path: str) -> bool:
    # Only "not found" means free; any other OSError propagates.
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _with_random_suffix(path: str) -> str:
    base, ext = os.path.splitext(path)
    return f"{base}-{random.randint(0, 9999):04d}{ext}"


def generate_unique_file_path(output_path: str | os.PathLike, max_retries: int = DEFAULT_MAX_RETRIES) -> str:
    """Return a path with no file on disk, derived from ``output_path``.

    The path is returned unchanged when free. Otherwise a hyphenated 4-digit
    random suffix is inserted before the extension (``name-0421.png``), and up
    to ``max_retries`` such candidates are tried.

    Args:
        output_path: Desired output path.
        max_retries: Maximum number of suffixed candidates to try.

    Returns:
        The first candidate that does not exist.

    Raises:
        UniquePathExhaustedError: If every candidate collides.
        OSError: If probing the filesystem fails for any reason other than
            the path not existing.
    """

    path = os.fspath(output_path)
    if not _exists(path):
        return path

    for attempt in range(1, max_retries + 1):
        candidate = _with_random_suffix(path)
        if not _exists(candidate):
            logger.debug("Resolved %s to %s after %d attempt(s)", path, candidate, attempt)
            return candidate

    raise UniquePathExhaustedError(path, max_retries)


def save_file_with_unique_name_if_exists(
    output_path: str | os.PathLike,
    data: bytes,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> str:
    """Write ``data`` to a collision-free variant of ``output_path``.

    Returns:
        The path actually written.
    """

    final_path = generate_unique_file_path(output_path, max_retries)
    with open(final_path, "wb") as fh:
        fh.write(data)
    logger.debug("Wrote %d bytes to %s", len(data), final_path)
    return final_path


def load_context_file(context: Optional[str]) -> Optional[str]:
    """Resolve a context option to text.

    Values ending in ``.md`` or ``.txt`` are read as files; anything else is
    taken as literal context text.
    """

    if not context:
        return None

    if context.endswith(CONTEXT_FILE_SUFFIXES):
        try:
            return Path(context).read_text(encoding="utf-8")
        except OSError as exc:
            raise ErgonIOError(f"Could not read context file {context}: {exc}") from exc

    return context


def mime_type_for(path: str | os.PathLike) -> str:
    """Map an image file extension to its MIME type."""

    ext = Path(path).suffix.lower().lstrip(".")
    try:
        return IMAGE_MIME_TYPES[ext]
    except KeyError:
        raise ValidationError(
            f"Unsupported file type: .{ext}. Supported: {', '.join(IMAGE_MIME_TYPES)}"
        ) from None


def read_image_file(path: str | os.PathLike) -> ImageData:
    """Read an image file as base64 with its MIME type."""

    mime_type = mime_type_for(path)
    try:
        raw = Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise ErgonIOError(f"File not found: {path}") from exc
    except OSError as exc:
        raise ErgonIOError(f"Could not read image file {path}: {exc}") from exc

    return ImageData(data=base64.b64encode(raw).decode("ascii"), mime_type=mime_type)


__all__ = [
    "ImageData",
    "generate_unique_file_path",
    "save_file_with_unique_name_if_exists",
    "load_context_file",
    "mime_type_for",
    "read_image_file",
]
