"""Exception types raised by ergon."""
from __future__ import annotations


class ErgonError(Exception):
    """Base exception for ergon errors."""
    pass


class ConfigurationError(ErgonError):
    """Missing or malformed configuration (e.g. API key)."""
    pass


class ValidationError(ErgonError):
    """A caller-supplied value is outside the accepted set or range."""
    pass


class ErgonIOError(ErgonError):
    """A local file could not be read or written."""
    pass


class ApiError(ErgonError):
    """A generation API call failed or returned an unusable response."""
    pass


class UniquePathExhaustedError(ErgonError):
    """Every generated output path collided with an existing file."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(
            f"Could not find a free file name for {path}: "
            f"all {attempts} attempts collided with existing files."
        )


def require_choice(name: str, value, choices) -> None:
    """Raise ``ValidationError`` unless ``value`` is one of ``choices``."""

    if value not in choices:
        raise ValidationError(
            f"Invalid {name}: {value}. Accepted values: {', '.join(str(c) for c in choices)}"
        )


__all__ = [
    "ErgonError",
    "ConfigurationError",
    "ValidationError",
    "ErgonIOError",
    "ApiError",
    "UniquePathExhaustedError",
    "require_choice",
]
