"""Caption every image in a directory tree and render the results."""
from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import ErgonError
from .files import read_image_file
from .gemini_client import GeminiClient

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".heif")
DEFAULT_MAX_WORKERS = 8


@dataclass
class CatalogEntry:
    file: str
    caption: str


def walk_images(root: str | os.PathLike) -> Iterator[str]:
    """Yield image files under ``root``, depth first, sorted by name within each directory."""

    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)
    for entry in entries:
        if entry.is_dir():
            yield from walk_images(entry.path)
        elif entry.is_file() and os.path.splitext(entry.name)[1].lower() in IMAGE_EXTENSIONS:
            yield entry.path


def _caption_one(
    client: GeminiClient,
    path: str,
    lang: str,
    context: Optional[str],
    logger: logging.Logger,
) -> Optional[CatalogEntry]:
    try:
        caption = client.generate_caption(read_image_file(path), lang=lang, context=context)
    except (ErgonError, OSError) as exc:
        logger.error("Failed to process %s", path, extra={"data": {"error": str(exc)}})
        return None
    logger.info("Processed image", extra={"data": {"path": path}})
    return CatalogEntry(file=path, caption=caption)


def process_images(
    root: str | os.PathLike,
    client: GeminiClient,
    *,
    lang: str = "ja",
    context: Optional[str] = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    logger: Optional[logging.Logger] = None,
) -> List[CatalogEntry]:
    """Caption all images under ``root`` concurrently.

    A file that fails is logged and left out; the rest of the batch carries
    on. Results are returned in directory-walk order.

    Args:
        root: Directory to scan recursively.
        client: Caption client shared by all workers.
        lang: Caption language code.
        context: Optional context text for every caption.
        max_workers: Upper bound on concurrent requests.
        logger: Component logger; defaults to this module's logger.
    """

    logger = logger or logging.getLogger(__name__)
    paths = list(walk_images(root))
    if not paths:
        logger.warning("No images found", extra={"data": {"path": str(root)}})
        return []

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(paths)))) as executor:
        futures = [executor.submit(_caption_one, client, path, lang, context, logger) for path in paths]
        results = [future.result() for future in futures]

    return [result for result in results if result is not None]


def format_markdown_entry(entry: CatalogEntry, output_path: Optional[str] = None) -> str:
    """Markdown block for one image; image links are relative to ``output_path``."""

    image_path = entry.file
    if output_path:
        image_path = os.path.relpath(entry.file, os.path.dirname(os.path.abspath(output_path)))
    return f"---\n\n# {entry.file}\n\n{entry.caption}\n![]({Path(image_path).as_posix()})\n\n"


def render_catalog(entries: List[CatalogEntry], fmt: str = "markdown", output_path: Optional[str] = None) -> str:
    if fmt == "json":
        return json.dumps([asdict(e) for e in entries], indent=2, ensure_ascii=False)
    return "".join(format_markdown_entry(e, output_path) for e in entries)


__all__ = [
    "IMAGE_EXTENSIONS",
    "CatalogEntry",
    "walk_images",
    "process_images",
    "format_markdown_entry",
    "render_catalog",
]
