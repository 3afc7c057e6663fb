"""Command line tools for Google generative AI: captions, images, video and narration."""
from .errors import (
    ApiError,
    ConfigurationError,
    ErgonError,
    ErgonIOError,
    UniquePathExhaustedError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ErgonError",
    "ConfigurationError",
    "ValidationError",
    "ErgonIOError",
    "ApiError",
    "UniquePathExhaustedError",
]
