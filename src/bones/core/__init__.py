"""Core modules for Bones - error taxonomy and exit codes."""

from bones.core.errors import (
    BonesError,
    ConfigurationError,
    ExitCode,
    ExternalSystemError,
    ManifestError,
    ManifestInvalid,
    ManifestNotFound,
    RegistryNotFound,
    UnknownHandler,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "BonesError",
    "ConfigurationError",
    "ValidationError",
    "ManifestError",
    "ManifestNotFound",
    "ManifestInvalid",
    "UnknownHandler",
    "ExternalSystemError",
    "RegistryNotFound",
    "main_with_error_handling",
    "format_error_message",
]
