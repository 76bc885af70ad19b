"""
Unified error handling for Bones.

Pipeline errors are raised inside background runs and recorded on the
project; CLI commands map them to exit codes.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: External system error (source control, terraform, CI)
- 12: Validation error
- 13: Manifest error (missing or malformed skeleton.yaml)
- 14: Not found
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    EXTERNAL_ERROR = 11
    VALIDATION_ERROR = 12
    MANIFEST_ERROR = 13
    NOT_FOUND = 14
    UNKNOWN_ERROR = 127


class BonesError(Exception):
    """Base exception for Bones errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(BonesError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(BonesError):
    """Raised for invalid caller input, before any pipeline starts."""

    exit_code = ExitCode.VALIDATION_ERROR


class ManifestError(BonesError):
    """Base class for skeleton manifest failures."""

    exit_code = ExitCode.MANIFEST_ERROR


class ManifestNotFound(ManifestError):
    """Raised when skeleton.yaml is absent from the template source."""


class ManifestInvalid(ManifestError):
    """Raised when skeleton.yaml does not parse into step lists."""


class UnknownHandler(BonesError):
    """Raised when a step names a handler key that is not registered."""

    exit_code = ExitCode.MANIFEST_ERROR

    def __init__(self, key: str, available: list[str] | None = None):
        super().__init__(
            f"No handler registered for '{key}'",
            {"handler": key, "available": ",".join(sorted(available or []))},
        )
        self.key = key


class ExternalSystemError(BonesError):
    """Raised when a collaborator (GitHub, terraform, git) fails."""

    exit_code = ExitCode.EXTERNAL_ERROR

    def __init__(self, system: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(f"{system}: {message}", {"system": system, **(details or {})})
        self.system = system


class RegistryNotFound(BonesError):
    """Raised when a project id or project type slug is unknown."""

    exit_code = ExitCode.NOT_FOUND

    def __init__(self, kind: str, key: str):
        super().__init__(f"{kind} '{key}' not found", {"kind": kind, "key": key})
        self.kind = kind
        self.key = key


F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """Wrap a CLI command so failures become exit codes instead of tracebacks.

    BonesError maps to its own ``exit_code``, Ctrl-C to 130 and anything
    else to ``ExitCode.UNKNOWN_ERROR``.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except BonesError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: BonesError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items() if v)
        if detail_str:
            msg = f"{msg} ({detail_str})"
    return msg
