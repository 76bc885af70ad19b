"""Bones: manifest-driven project scaffolding service."""

__version__ = "0.1.0"
