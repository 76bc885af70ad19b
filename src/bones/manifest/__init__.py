"""Skeleton manifest loading."""

from bones.manifest.loader import (
    MANIFEST_RELATIVE_PATH,
    ManifestLoader,
    TemplateFetcher,
    parse_manifest,
)

__all__ = ["MANIFEST_RELATIVE_PATH", "ManifestLoader", "TemplateFetcher", "parse_manifest"]
