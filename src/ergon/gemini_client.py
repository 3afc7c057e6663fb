"""Thin wrapper around Google Gemini text and vision calls.

This module isolates the SDK client so other code can stay framework-agnostic.
The implementation uses the official ``google-genai`` package; the image,
video and speech clients build on :class:`GenAIClient`.
"""
from __future__ import annotations

import base64
import json
import logging
import random
import re
from datetime import datetime
from typing import Any, Iterable, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from .constants import IMAGE_TYPE_PROMPTS, LANGUAGE_DESCRIPTIONS
from .errors import ApiError, ConfigurationError, ValidationError, require_choice
from .files import ImageData

logger = logging.getLogger(__name__)

DEFAULT_TEXT_MODEL = "gemini-2.0-flash"
MAX_OUTPUT_TOKENS = 2048

SUPPORTED_MIME_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/heic",
    "image/heif",
)

CAPTION_INSTRUCTION = (
    "Describe the image directly in 2-3 concise sentences. Focus on the key elements, "
    "actions, and atmosphere. Do not include introductory phrases such as 'Here is a "
    "description'. Start with the description immediately."
)

EXPLANATION_INSTRUCTION = (
    "Explain the image in detail. Cover the subject, composition, colors, lighting, any "
    "visible text, and the likely purpose or context of the image. Use short paragraphs "
    "and do not include introductory phrases."
)

PROMPT_TEMPLATE = """Generate a detailed image generation prompt based on the following information.

Message:
{message}

Context:
{context}

Style:
{style}

Please generate a prompt that meets the following criteria:
1. Include specific and detailed descriptions
2. Clearly specify the image style and atmosphere
3. Include all necessary elements
4. Output in English
5. Focus on visual elements and composition
6. Include lighting and color descriptions
7. Specify the mood and emotional tone

Respond with the prompt only."""

FILE_NAME_TEMPLATE = (
    "Suggest a short, descriptive English file name for content about the following theme. "
    "Use lowercase words separated by hyphens, no extension, no more than {max_length} "
    "characters. Respond with the file name only.\n\nTheme: {theme}"
)


def _get_error_json(exc: genai_errors.APIError) -> dict:
    """Extract JSON error data from an SDK error (version-compatible)."""
    for attr in ["response_json", "details"]:
        data = getattr(exc, attr, None)
        if isinstance(data, dict) and data:
            return data
    return {}


def describe_api_error(exc: genai_errors.APIError) -> str:
    """Human-readable summary of an SDK error."""

    error_data = _get_error_json(exc)
    status = getattr(exc, "code", None) or error_data.get("error", {}).get("code")
    message = getattr(exc, "message", None) or error_data.get("error", {}).get("message")
    if not message:
        message = json.dumps(error_data, ensure_ascii=False) if error_data else str(exc)
    return f"API request failed (status {status}): {message}" if status else f"API request failed: {message}"


def describe_transport_error(exc: httpx.HTTPError) -> str:
    """Summary of a network failure raised below the SDK (connect, read, timeout)."""

    return f"API request failed ({type(exc).__name__}): {exc}"


def iter_parts(response: Any) -> Iterable[Any]:
    """Yield content parts from the first candidate of a response."""

    for cand in getattr(response, "candidates", None) or []:
        content = getattr(cand, "content", None)
        for part in getattr(content, "parts", None) or []:
            yield part
        break


def inline_payload(part: Any) -> tuple[Optional[bytes], Optional[str]]:
    """Return ``(bytes, mime_type)`` of a part's inline data, if any."""

    inline = getattr(part, "inline_data", None)
    if inline is None:
        return None, None
    data = getattr(inline, "data", None)
    if isinstance(data, str):
        data = base64.b64decode(data)
    if isinstance(data, memoryview):
        data = data.tobytes()
    if not data:
        return None, None
    return bytes(data), getattr(inline, "mime_type", None)


def slugify_file_name(text: str, max_length: int = 40) -> str:
    """Reduce model output to a lowercase, hyphen-separated file stem."""

    first_line = text.strip().splitlines()[0] if text.strip() else ""
    stem = first_line.rsplit(".", 1)[0] if "." in first_line else first_line
    slug = re.sub(r"[^a-z0-9]+", "-", stem.lower()).strip("-")
    return slug[:max_length].rstrip("-")


class GenAIClient:
    """Holds a ``genai.Client`` and translates SDK errors into ``ApiError``."""

    def __init__(self, api_key: str, client: Optional[genai.Client] = None):
        if not api_key:
            raise ConfigurationError("GOOGLE_API_KEY is not set")
        self.api_key = api_key
        self.client = client or genai.Client(api_key=api_key)

    def _generate_content(self, **kwargs: Any) -> types.GenerateContentResponse:
        logger.debug("generate_content model=%s", kwargs.get("model"))
        try:
            return self.client.models.generate_content(**kwargs)
        except genai_errors.APIError as exc:
            raise ApiError(describe_api_error(exc)) from exc
        except httpx.HTTPError as exc:
            raise ApiError(describe_transport_error(exc)) from exc


class GeminiClient(GenAIClient):
    """Captions, explanations, image prompts and file names from Gemini."""

    def __init__(self, api_key: str, client: Optional[genai.Client] = None, model: str = DEFAULT_TEXT_MODEL):
        super().__init__(api_key, client)
        self.model = model

    def _text(self, contents: Any, system_instruction: Optional[str] = None) -> str:
        response = self._generate_content(
            model=self.model,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                max_output_tokens=MAX_OUTPUT_TOKENS,
            ),
        )
        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise ApiError("No text found in API response")
        return text.strip()

    def _describe_image(self, image: ImageData, instruction: str, lang: str, context: Optional[str]) -> str:
        if image.mime_type not in SUPPORTED_MIME_TYPES:
            raise ValidationError(f"Unsupported image type: {image.mime_type}")
        require_choice("language", lang, LANGUAGE_DESCRIPTIONS)

        try:
            raw = base64.b64decode(image.data, validate=True)
        except ValueError as exc:
            raise ValidationError("Image data is not valid base64") from exc

        system_instruction = instruction
        if context:
            system_instruction += f"\n\nConsider this context while describing:\n{context}"
        system_instruction += (
            f"\n\nWrite the description in {LANGUAGE_DESCRIPTIONS[lang]} ({lang}). "
            "Make it natural and fluent, without any introductory phrases."
        )

        contents = [
            types.Part.from_bytes(data=raw, mime_type=image.mime_type),
            "Please describe this image",
        ]
        return self._text(contents, system_instruction)

    def generate_caption(self, image: ImageData, *, lang: str = "ja", context: Optional[str] = None) -> str:
        """Describe an image in two or three sentences.

        Args:
            image: Base64 image payload.
            lang: Output language code (see ``LANGUAGE_DESCRIPTIONS``).
            context: Optional background text to steer the description.

        Raises:
            ValidationError: On an unsupported MIME type or language.
            ApiError: If the request fails or returns no text.
        """

        return self._describe_image(image, CAPTION_INSTRUCTION, lang, context)

    def generate_explanation(self, image: ImageData, *, lang: str = "ja", context: Optional[str] = None) -> str:
        """Explain an image in more depth than a caption."""

        return self._describe_image(image, EXPLANATION_INSTRUCTION, lang, context)

    def generate_prompt(self, theme: str, context: Optional[str] = None, *, image_type: Optional[str] = None) -> str:
        """Expand a theme into a detailed English image-generation prompt."""

        if not theme or not theme.strip():
            raise ValidationError("Theme is empty")
        if image_type is not None:
            require_choice("image type", image_type, IMAGE_TYPE_PROMPTS)

        request = PROMPT_TEMPLATE.format(
            message=theme,
            context=context or "(none)",
            style=IMAGE_TYPE_PROMPTS.get(image_type, "(any)") if image_type else "(any)",
        )
        prompt = self._text(request)
        logger.debug("Generated prompt: %s", prompt)
        return prompt

    def generate_file_name(self, theme: str, *, max_length: int = 40, include_random_number: bool = False) -> str:
        """Ask Gemini for a short file stem describing ``theme``.

        Falls back to a timestamped stem when the model reply has nothing
        usable in it.
        """

        slug = slugify_file_name(self._text(FILE_NAME_TEMPLATE.format(theme=theme, max_length=max_length)), max_length)
        if not slug:
            slug = f"ergon-{datetime.now():%Y%m%d-%H%M%S}"
        if include_random_number:
            slug = f"{slug}-{random.randint(0, 9999):04d}"
        return slug


__all__ = [
    "GenAIClient",
    "GeminiClient",
    "SUPPORTED_MIME_TYPES",
    "describe_api_error",
    "describe_transport_error",
    "iter_parts",
    "inline_payload",
    "slugify_file_name",
]
