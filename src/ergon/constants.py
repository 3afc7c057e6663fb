"""Accepted option values shared by commands and clients."""
from __future__ import annotations

from typing import Dict, Tuple

LANGUAGE_DESCRIPTIONS: Dict[str, str] = {
    "ja": "Japanese",
    "en": "English",
    "zh": "Chinese",
    "ko": "Korean",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "vi": "Vietnamese",
}

OUTPUT_FORMATS = ("markdown", "json")

IMAGE_FORMATS = ("jpg", "jpeg", "png", "webp")

# Pillow encoder name per output format
PIL_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}

ASPECT_RATIOS: Dict[str, float] = {
    "16:9": 16 / 9,
    "4:3": 4 / 3,
    "1:1": 1.0,
    "9:16": 9 / 16,
    "3:4": 3 / 4,
}

# Bounding box (landscape) for each size preset; "small"/"large" are used by built-in presets
SIZE_PRESETS: Dict[str, Tuple[int, int]] = {
    "tiny": (160, 90),
    "small": (640, 360),
    "hd": (1280, 720),
    "fullhd": (1920, 1080),
    "large": (2560, 1440),
    "2k": (2560, 1440),
    "4k": (3840, 2160),
}

IMAGE_TYPE_PROMPTS: Dict[str, str] = {
    "realistic": "Create a hyper-realistic photograph with exceptional detail and clarity.",
    "illustration": "Create a hand-drawn illustration with warm, inviting atmosphere and artistic charm.",
    "flat": (
        "Create a simple, minimal but slightly playful illustration on a white background. "
        "Use soft pastel colors with gentle saturation, with light blue, mint green and soft pink "
        "as accents. Keep lines rounded and details delicate so the result feels friendly and modern."
    ),
    "anime": "Create an image in Japanese anime style with vibrant colors and distinctive eye designs.",
    "watercolor": "Create a watercolor painting with soft, flowing colors and artistic blending effects.",
    "oil-painting": "Create an oil painting with rich textures, deep colors, and impasto effects.",
    "pixel-art": "Create a pixel art image with retro gaming aesthetics and digital precision.",
    "sketch": "Create a pencil or pen sketch with dynamic line variations and artistic expression.",
    "3d-render": "Create a 3D rendered image with realistic lighting, materials, and depth.",
    "corporate": "Create a professional business image with clean, modern aesthetics and corporate appeal.",
    "minimal": "Create a minimal design with clean lines, essential elements, and refined simplicity.",
    "pop-art": "Create a pop art image with bold colors, dot patterns, and contemporary style.",
}

IMAGEN_MODEL_IDS: Dict[str, str] = {
    "imagen4": "imagen-4.0-generate-001",
    "imagen4-fast": "imagen-4.0-fast-generate-001",
    "imagen4-ultra": "imagen-4.0-ultra-generate-001",
}

NANO_BANANA_MODEL_IDS: Dict[str, str] = {
    "nano-banana": "gemini-2.5-flash-image",
    "nano-banana-pro": "gemini-3-pro-image-preview",
}

IMAGE_ENGINES = tuple(IMAGEN_MODEL_IDS) + tuple(NANO_BANANA_MODEL_IDS)

DEFAULT_IMAGE_OPTIONS = {
    "engine": "imagen4",
    "size": "fullhd",
    "aspect_ratio": "16:9",
    "format": "webp",
    "quality": 90,
    "type": "flat",
}


def is_nano_banana(engine: str) -> bool:
    return engine in NANO_BANANA_MODEL_IDS


def calculate_dimensions(size: str, aspect_ratio: str) -> Tuple[int, int]:
    """Output size: landscape and square ratios keep the preset width, portrait ratios its height."""

    width, height = SIZE_PRESETS[size]
    ratio = ASPECT_RATIOS[aspect_ratio]
    if ratio >= 1:
        return width, round(width / ratio)
    return round(height * ratio), height
