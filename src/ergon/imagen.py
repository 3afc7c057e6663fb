"""Imagen 4 image generation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

import httpx
from google.genai import errors as genai_errors
from google.genai import types
from PIL import Image, UnidentifiedImageError

from .constants import (
    ASPECT_RATIOS,
    DEFAULT_IMAGE_OPTIONS,
    IMAGE_ENGINES,
    IMAGE_FORMATS,
    IMAGE_TYPE_PROMPTS,
    IMAGEN_MODEL_IDS,
    PIL_FORMATS,
    SIZE_PRESETS,
    calculate_dimensions,
)
from .errors import ApiError, ValidationError, require_choice
from .gemini_client import GenAIClient, describe_api_error, describe_transport_error

logger = logging.getLogger(__name__)

PERSON_GENERATION = "ALLOW_ADULT"


@dataclass
class ImageOptions:
    """Options for one Imagen request."""

    engine: str = DEFAULT_IMAGE_OPTIONS["engine"]
    size: str = DEFAULT_IMAGE_OPTIONS["size"]
    aspect_ratio: str = DEFAULT_IMAGE_OPTIONS["aspect_ratio"]
    format: str = DEFAULT_IMAGE_OPTIONS["format"]
    quality: int = DEFAULT_IMAGE_OPTIONS["quality"]
    type: str = DEFAULT_IMAGE_OPTIONS["type"]

    def validate(self) -> None:
        """Raise ``ValidationError`` for any value outside its accepted set."""

        require_choice("engine", self.engine, IMAGE_ENGINES)
        require_choice("size", self.size, SIZE_PRESETS)
        require_choice("aspect ratio", self.aspect_ratio, ASPECT_RATIOS)
        require_choice("format", self.format, IMAGE_FORMATS)
        require_choice("image type", self.type, IMAGE_TYPE_PROMPTS)
        quality = self.quality
        if isinstance(quality, bool) or not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ValidationError(f"Invalid quality: {self.quality}. Accepted range: 1-100")


def convert_image(data: bytes, fmt: str, *, quality: int = 90, size: Optional[tuple[int, int]] = None) -> bytes:
    """Re-encode image bytes with Pillow, optionally resizing.

    Args:
        data: Encoded source image.
        fmt: Target format (``png``, ``jpg``, ``jpeg`` or ``webp``).
        quality: Lossy encoder quality (1-100).
        size: Optional ``(width, height)`` to resize to.
    """

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except UnidentifiedImageError as exc:
        raise ApiError("Returned image data could not be decoded") from exc

    if size and image.size != size:
        image = image.resize(size, Image.Resampling.LANCZOS)

    pil_format = PIL_FORMATS[fmt]
    if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = BytesIO()
    save_kwargs = {} if pil_format == "PNG" else {"quality": quality}
    image.save(buffer, format=pil_format, **save_kwargs)
    return buffer.getvalue()


class ImagenClient(GenAIClient):
    """Generates images with Imagen 4 and re-encodes them locally."""

    def generate_image(self, prompt: str, options: Optional[ImageOptions] = None) -> bytes:
        """Generate one image for ``prompt``.

        Returns:
            Encoded image bytes in ``options.format``, sized to the size
            preset for ``options.aspect_ratio``.

        Raises:
            ValidationError: If an option is out of range.
            ApiError: If the request fails or returns no image.
        """

        options = options or ImageOptions()
        options.validate()
        require_choice("engine", options.engine, IMAGEN_MODEL_IDS)
        model_id = IMAGEN_MODEL_IDS[options.engine]

        logger.debug(
            "Imagen request: model=%s aspect_ratio=%s format=%s size=%s",
            model_id,
            options.aspect_ratio,
            options.format,
            options.size,
        )

        try:
            response = self.client.models.generate_images(
                model=model_id,
                prompt=prompt,
                config=types.GenerateImagesConfig(
                    number_of_images=1,
                    aspect_ratio=options.aspect_ratio,
                    output_mime_type="image/png",
                    person_generation=PERSON_GENERATION,
                ),
            )
        except genai_errors.APIError as exc:
            raise ApiError(describe_api_error(exc)) from exc
        except httpx.HTTPError as exc:
            raise ApiError(describe_transport_error(exc)) from exc

        generated = getattr(response, "generated_images", None) or []
        image = getattr(generated[0], "image", None) if generated else None
        data = getattr(image, "image_bytes", None)
        if not data:
            raise ApiError("No image found in API response")

        return convert_image(
            data,
            options.format,
            quality=options.quality,
            size=calculate_dimensions(options.size, options.aspect_ratio),
        )


__all__ = ["ImageOptions", "ImagenClient", "convert_image"]
