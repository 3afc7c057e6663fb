"""Named image-generation presets (built-in and user-defined)."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .config import get_config_dir
from .errors import ValidationError

logger = logging.getLogger(__name__)

BUILTIN_PREFIX = "builtin:"

# JSON key -> attribute name
_JSON_KEYS = {
    "aspectRatio": "aspect_ratio",
    "type": "type",
    "engine": "engine",
    "format": "format",
    "size": "size",
    "quality": "quality",
}


@dataclass(frozen=True)
class ImagePreset:
    """Partial set of image options; unset fields fall through to other sources."""

    aspect_ratio: Optional[str] = None
    type: Optional[str] = None
    engine: Optional[str] = None
    format: Optional[str] = None
    size: Optional[str] = None
    quality: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "ImagePreset":
        """Build from the JSON layout.

        Raises:
            ValidationError: If a value has the wrong type (e.g. a string quality).
        """

        values = {attr: raw[key] for key, attr in _JSON_KEYS.items() if key in raw}
        for attr, value in values.items():
            if value is None:
                continue
            if attr == "quality":
                valid = isinstance(value, int) and not isinstance(value, bool)
            else:
                valid = isinstance(value, str)
            if not valid:
                raise ValidationError(f"Invalid preset value for {attr}: {value!r}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: getattr(self, attr)
            for key, attr in _JSON_KEYS.items()
            if getattr(self, attr) is not None
        }

    def as_options(self) -> Dict[str, Any]:
        """Attribute-keyed mapping usable as an option source."""
        return asdict(self)

    def is_empty(self) -> bool:
        return not self.to_dict()


BUILTIN_PRESETS: Dict[str, ImagePreset] = {
    "builtin:square": ImagePreset(aspect_ratio="1:1"),
    "builtin:landscape": ImagePreset(aspect_ratio="16:9"),
    "builtin:portrait": ImagePreset(aspect_ratio="9:16"),
    "builtin:social": ImagePreset(aspect_ratio="1:1", format="webp", size="small"),
    "builtin:presentation": ImagePreset(aspect_ratio="16:9", format="png", size="large"),
}


@dataclass(frozen=True)
class PresetEntry:
    name: str
    preset: ImagePreset
    builtin: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "preset": self.preset.to_dict(), "builtin": self.builtin}


def get_presets_path() -> Path:
    return get_config_dir() / "presets.json"


def is_builtin(name: str) -> bool:
    return name.startswith(BUILTIN_PREFIX)


def _read_presets_file() -> Dict[str, Any]:
    path = get_presets_path()
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable presets file %s: %s", path, exc)
        return {}

    return raw if isinstance(raw, dict) else {}


def load_presets() -> Dict[str, ImagePreset]:
    """Read user presets; a missing or unreadable file yields ``{}``.

    Entries with malformed values are skipped with a warning.
    """

    presets: Dict[str, ImagePreset] = {}
    for name, value in _read_presets_file().items():
        if not isinstance(value, dict):
            continue
        try:
            presets[name] = ImagePreset.from_dict(value)
        except ValidationError as exc:
            logger.warning("Skipping preset %s: %s", name, exc)
    return presets


def save_presets(presets: Mapping[str, ImagePreset]) -> None:
    """Write the whole user preset map."""

    path = get_presets_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {name: preset.to_dict() for name, preset in presets.items()}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def get_preset(name: str) -> Optional[ImagePreset]:
    """Look up a built-in or user preset by name."""

    if is_builtin(name):
        return BUILTIN_PRESETS.get(name)

    value = _read_presets_file().get(name)
    if not isinstance(value, dict):
        return None
    return ImagePreset.from_dict(value)


def save_preset(name: str, preset: ImagePreset) -> None:
    """Create or overwrite a user preset.

    Raises:
        ValidationError: If ``name`` uses the built-in prefix.
    """

    if is_builtin(name):
        raise ValidationError(f"Built-in presets cannot be overwritten: {name}")

    presets = load_presets()
    presets[name] = preset
    save_presets(presets)
    logger.debug("Saved preset %s", name)


def delete_preset(name: str) -> bool:
    """Remove a user preset.

    Returns:
        ``False`` when no such preset exists.

    Raises:
        ValidationError: If ``name`` uses the built-in prefix.
    """

    if is_builtin(name):
        raise ValidationError(f"Built-in presets cannot be deleted: {name}")

    presets = load_presets()
    if name not in presets:
        return False

    del presets[name]
    save_presets(presets)
    return True


def list_all_presets() -> List[PresetEntry]:
    """Built-in presets first, then user presets in file order."""

    entries = [PresetEntry(name, preset, True) for name, preset in BUILTIN_PRESETS.items()]
    entries.extend(PresetEntry(name, preset, False) for name, preset in load_presets().items())
    return entries


__all__ = [
    "BUILTIN_PREFIX",
    "BUILTIN_PRESETS",
    "ImagePreset",
    "PresetEntry",
    "get_presets_path",
    "load_presets",
    "save_presets",
    "get_preset",
    "save_preset",
    "delete_preset",
    "list_all_presets",
]
