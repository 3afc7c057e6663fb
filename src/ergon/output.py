"""JSON envelopes printed by commands run with ``--json``."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

import typer

from .errors import (
    ApiError,
    ConfigurationError,
    ErgonIOError,
    UniquePathExhaustedError,
    ValidationError,
)

ERROR_CODES = (
    (ConfigurationError, "CONFIGURATION_ERROR"),
    (ValidationError, "VALIDATION_ERROR"),
    (UniquePathExhaustedError, "UNIQUE_PATH_EXHAUSTED"),
    (ErgonIOError, "IO_ERROR"),
    (ApiError, "API_ERROR"),
    (OSError, "IO_ERROR"),
)


def error_code(exc: BaseException) -> Optional[str]:
    for exc_type, code in ERROR_CODES:
        if isinstance(exc, exc_type):
            return code
    return None


def success_output(command: str, result: Any) -> Dict[str, Any]:
    return {"success": True, "command": command, "result": result}


def error_output(command: str, message: str, code: Optional[str] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message}
    if code:
        error["code"] = code
    return {"success": False, "command": command, "error": error}


def print_json(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


__all__ = ["error_code", "success_output", "error_output", "print_json"]
