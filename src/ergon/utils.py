"""Utility helpers for the ergon CLI."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Tuple

from .errors import ValidationError


def setup_logging(level: int = logging.INFO) -> None:
    """Configure global logging style for CLI use.

    Args:
        level: Logging level passed to ``logging.basicConfig``.
    """

    logging.basicConfig(
        level=level,
        format="[%(levelname)s] %(message)s",
    )


def ensure_dir(path: Path) -> None:
    """Create directory if missing.

    Args:
        path: Directory path to create.

    Raises:
        OSError: If the directory cannot be created.
    """

    path.mkdir(parents=True, exist_ok=True)


def resolve_media_output_path(
    output: Optional[str],
    file_name: str,
    extension: str,
    accepted_extensions: Iterable[str],
) -> str:
    """Turn an ``--output`` value into a concrete file path.

    ``None`` yields ``<file_name>.<extension>`` in the working directory. An
    output ending in one of ``accepted_extensions`` is used as-is; anything
    else is treated as a directory.
    """

    default_name = f"{file_name}.{extension}"
    if not output:
        return default_name

    ext = Path(output).suffix.lower().lstrip(".")
    if ext and ext in accepted_extensions:
        return output
    return os.path.join(output, default_name)


def resolve_image_output_path(
    output: Optional[str],
    fmt: str,
    file_name: str,
    accepted_formats: Iterable[str],
) -> Tuple[str, str]:
    """Resolve an image ``--output`` value to ``(path, format)``.

    An existing directory receives ``<file_name>.<fmt>``. A path with an
    extension must use an accepted format matching ``fmt``; a path without
    one gets ``.<fmt>`` appended.

    Raises:
        ValidationError: On unsupported or mismatching extensions.
    """

    if not output:
        return f"{file_name}.{fmt}", fmt

    if os.path.isdir(output):
        return os.path.join(output, f"{file_name}.{fmt}"), fmt

    ext = Path(output).suffix.lower().lstrip(".")
    if not ext:
        return f"{output}.{fmt}", fmt

    accepted = tuple(accepted_formats)
    if ext not in accepted:
        raise ValidationError(f"Unsupported image format: {ext}. Accepted values: {', '.join(accepted)}")
    if ext != fmt and {ext, fmt} != {"jpg", "jpeg"}:
        raise ValidationError(f"Output extension ({ext}) does not match the requested format ({fmt})")
    return output, ext


__all__ = ["setup_logging", "ensure_dir", "resolve_media_output_path", "resolve_image_output_path"]
