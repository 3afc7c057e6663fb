"""Gemini-native image generation and editing ("Nano Banana")."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from google.genai import types

from .constants import NANO_BANANA_MODEL_IDS
from .errors import ApiError, ErgonIOError, require_choice
from .files import mime_type_for
from .gemini_client import GenAIClient, inline_payload, iter_parts

logger = logging.getLogger(__name__)

DEFAULT_ENGINE = "nano-banana"
EDIT_INPUT_FORMATS = ("jpg", "jpeg", "png", "gif", "webp")


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str


def _extract_image(response: types.GenerateContentResponse) -> GeneratedImage:
    """Return the first inline ``image/*`` part of a response."""

    for part in iter_parts(response):
        data, mime_type = inline_payload(part)
        if data and mime_type and mime_type.startswith("image/"):
            logger.debug("Extracted %s image (%d bytes)", mime_type, len(data))
            return GeneratedImage(data=data, mime_type=mime_type)
    raise ApiError("No image found in API response")


class NanoBananaClient(GenAIClient):
    """Generates and edits images with Gemini image models."""

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"])

    def generate_image(self, prompt: str, *, engine: str = DEFAULT_ENGINE) -> GeneratedImage:
        """Generate an image directly from ``prompt``."""

        require_choice("engine", engine, NANO_BANANA_MODEL_IDS)
        model_id = NANO_BANANA_MODEL_IDS[engine]
        logger.debug("Nano Banana generate: engine=%s model=%s", engine, model_id)

        response = self._generate_content(model=model_id, contents=prompt, config=self._config())
        return _extract_image(response)

    def edit_image(self, input_path: str | Path, prompt: str, *, engine: str = DEFAULT_ENGINE) -> GeneratedImage:
        """Apply an edit instruction to an existing image.

        Args:
            input_path: Source image (jpg, jpeg, png, gif or webp).
            prompt: Edit instruction, e.g. "make the sky blue".
            engine: ``nano-banana`` or ``nano-banana-pro``.
        """

        require_choice("engine", engine, NANO_BANANA_MODEL_IDS)
        require_choice("input format", Path(input_path).suffix.lower().lstrip("."), EDIT_INPUT_FORMATS)
        model_id = NANO_BANANA_MODEL_IDS[engine]

        try:
            raw = Path(input_path).read_bytes()
        except FileNotFoundError as exc:
            raise ErgonIOError(f"Input image not found: {input_path}") from exc
        except OSError as exc:
            raise ErgonIOError(f"Could not read input image {input_path}: {exc}") from exc

        logger.debug("Nano Banana edit: input=%s engine=%s model=%s", input_path, engine, model_id)

        contents = [
            types.Content(
                role="user",
                parts=[
                    types.Part.from_bytes(data=raw, mime_type=mime_type_for(input_path)),
                    types.Part.from_text(text=prompt),
                ],
            )
        ]
        response = self._generate_content(model=model_id, contents=contents, config=self._config())
        return _extract_image(response)


__all__ = ["GeneratedImage", "NanoBananaClient", "DEFAULT_ENGINE", "EDIT_INPUT_FORMATS"]
