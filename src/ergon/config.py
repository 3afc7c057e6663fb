"""User settings stored in ``~/.ergon/config.json`` and option precedence."""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = ("GOOGLE_API_KEY", "GEMINI_API_KEY")
MIN_API_KEY_LENGTH = 20
_API_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")

# JSON key -> attribute name
_JSON_KEYS = {
    "googleApiKey": "google_api_key",
    "defaultImageEngine": "default_image_engine",
    "defaultImageFormat": "default_image_format",
    "defaultAspectRatio": "default_aspect_ratio",
    "defaultLanguage": "default_language",
    "defaultAudioVoice": "default_audio_voice",
    "defaultAudioFormat": "default_audio_format",
}

DEFAULT_CONFIG: Dict[str, str] = {
    "default_image_engine": "imagen4",
    "default_image_format": "webp",
    "default_aspect_ratio": "16:9",
    "default_language": "ja",
    "default_audio_voice": "Kore",
    "default_audio_format": "mp3",
}


def get_config_dir() -> Path:
    """Return the settings directory (env ``ERGON_HOME`` overrides ``~/.ergon``)."""

    override = os.getenv("ERGON_HOME")
    if override:
        return Path(override)
    return Path.home() / ".ergon"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


@dataclass
class AppConfig:
    """Settings persisted between runs. Every field is optional."""

    google_api_key: Optional[str] = None
    default_image_engine: Optional[str] = None
    default_image_format: Optional[str] = None
    default_aspect_ratio: Optional[str] = None
    default_language: Optional[str] = None
    default_audio_voice: Optional[str] = None
    default_audio_format: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "AppConfig":
        """Build from the JSON layout; unknown keys are ignored."""

        values = {attr: raw[key] for key, attr in _JSON_KEYS.items() if key in raw}
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON layout, omitting unset keys."""
        return {
            key: getattr(self, attr)
            for key, attr in _JSON_KEYS.items()
            if getattr(self, attr) is not None
        }

    def get(self, name: str) -> Optional[str]:
        """Return a setting or its hardcoded default."""
        value = getattr(self, name)
        return value if value is not None else DEFAULT_CONFIG.get(name)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> Optional["AppConfig"]:
        """Load settings, or ``None`` when the file is missing or not valid JSON."""

        path = path or get_config_path()
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", path, exc)
            return None

        if not isinstance(raw, dict):
            logger.warning("Ignoring config file %s: expected a JSON object", path)
            return None
        return cls.from_dict(raw)

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the settings file whole, creating its directory."""

        path = path or get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved config to %s", path)
        return path


def load_config() -> Optional[AppConfig]:
    return AppConfig.load()


def save_config(config: AppConfig) -> Path:
    return config.save()


def resolve_option(key: str, sources: Sequence[Mapping[str, Any]], default: Any = None) -> Any:
    """Return the value for ``key`` from the first source that holds one.

    Sources are consulted in priority order (e.g. explicit CLI options, a
    preset, stored settings); ``None`` counts as "not set".
    """

    for source in sources:
        value = source.get(key)
        if value is not None:
            return value
    return default


def validate_api_key_format(api_key: str) -> Optional[str]:
    """Return a description of what is wrong with ``api_key``, or ``None``."""

    if not api_key:
        return "API key is empty"
    if len(api_key) < MIN_API_KEY_LENGTH:
        return "API key is too short"
    if not _API_KEY_RE.match(api_key):
        return "API key contains invalid characters"
    return None


def get_api_key() -> str:
    """Find the Google API key.

    Order: ``GOOGLE_API_KEY``, ``GEMINI_API_KEY`` (environment or ``.env``),
    then ``googleApiKey`` in the settings file.

    Raises:
        ConfigurationError: If no key is found or it is malformed.
    """

    load_dotenv()
    api_key = None
    for var in API_KEY_ENV_VARS:
        api_key = os.getenv(var)
        if api_key:
            logger.debug("Using API key from %s", var)
            break

    if not api_key:
        config = load_config()
        api_key = config.google_api_key if config else None

    if not api_key:
        raise ConfigurationError(
            "GOOGLE_API_KEY is not set. Export it or run `ergon configure`."
        )

    problem = validate_api_key_format(api_key)
    if problem:
        raise ConfigurationError(problem)
    return api_key


__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG",
    "get_config_dir",
    "get_config_path",
    "load_config",
    "save_config",
    "resolve_option",
    "validate_api_key_format",
    "get_api_key",
]
