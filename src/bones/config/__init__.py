"""Bones configuration (pydantic-settings, BONES_ environment prefix)."""

from bones.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
