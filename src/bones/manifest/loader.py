"""
Skeleton manifest loader.

A project type's template source holds ``<path>/.skeleton/skeleton.yaml``:

    generate:
      steps:
        - name: repo
          handler: source-repo
        - name: infra
          handler: infra
          path: infra/aws-ecs
    destroy:
      steps:
        - name: infra
          handler: infra

Remote sources are cloned into a temporary directory for the duration of a
single load and removed afterwards.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator
from urllib.parse import urlsplit

import pydantic
import structlog
import yaml

from bones.core.errors import ExternalSystemError, ManifestInvalid, ManifestNotFound
from bones.domain.models import SkeletonManifest, Step
from bones.tooling.git import GitClient

logger = structlog.get_logger()

MANIFEST_RELATIVE_PATH = Path(".skeleton") / "skeleton.yaml"


class TemplateFetcher:
    """Materializes a template source on the local filesystem."""

    def __init__(self, git: GitClient | None = None) -> None:
        self._git = git or GitClient()

    @staticmethod
    def local_path(source: str) -> Path | None:
        """Local directory for ``file://`` URIs and absolute paths, else None.

        Relative strings are always remote references such as ``org/app``.
        """
        if source.startswith("file://"):
            return Path(urlsplit(source).path)
        candidate = Path(source).expanduser()
        if candidate.is_absolute():
            return candidate
        return None

    @asynccontextmanager
    async def materialize(self, source: str) -> AsyncIterator[Path]:
        local = self.local_path(source)
        if local is not None:
            yield local
            return
        async with self._git.checkout(source) as workspace:
            yield workspace.path


def _lower_keys(raw: dict[Any, Any]) -> dict[str, Any]:
    return {str(k).lower(): v for k, v in raw.items()}


def _steps(document: dict[str, Any], section: str) -> tuple[Step, ...]:
    raw = document.get(section)
    if raw is None:
        return ()
    if isinstance(raw, dict):
        fields = _lower_keys(raw)
        if "steps" not in fields:
            raise ManifestInvalid(
                f"'{section}' must contain a 'steps' list",
                {"section": section, "keys": ",".join(sorted(fields))},
            )
        raw = fields["steps"] or []
    if not isinstance(raw, list):
        raise ManifestInvalid(f"'{section}' steps must be a list", {"section": section})

    steps = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ManifestInvalid(
                f"{section} step {index} must be a mapping", {"section": section, "index": index}
            )
        fields = _lower_keys(item)
        for key in ("path", "cmd"):
            if fields.get(key) is None:
                fields.pop(key, None)
        try:
            steps.append(Step.model_validate(fields))
        except pydantic.ValidationError as exc:
            raise ManifestInvalid(
                f"{section} step {index} is invalid: {exc.errors()[0]['msg']}",
                {"section": section, "index": index},
            ) from exc
    return tuple(steps)


def parse_manifest(text: str) -> SkeletonManifest:
    """Parse skeleton.yaml content into generate and destroy step lists."""
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ManifestInvalid(f"skeleton.yaml is not valid YAML: {exc}") from exc

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ManifestInvalid("skeleton.yaml must be a mapping with 'generate' and 'destroy'")

    document = _lower_keys(document)
    return SkeletonManifest(generate=_steps(document, "generate"), destroy=_steps(document, "destroy"))


def manifest_path(root: Path, template_path: str) -> Path:
    return root / template_path.strip("/") / MANIFEST_RELATIVE_PATH


class ManifestLoader:
    """Fetches a template source and parses its skeleton manifest."""

    def __init__(self, fetcher: TemplateFetcher | None = None) -> None:
        self._fetcher = fetcher or TemplateFetcher()

    async def load(self, template_source: str, template_path: str = "") -> SkeletonManifest:
        log = logger.bind(template_source=template_source, template_path=template_path)
        try:
            async with self._fetcher.materialize(template_source) as root:
                path = manifest_path(root, template_path)
                if not path.is_file():
                    raise ManifestNotFound(
                        "Project configuration not found (skeleton.yaml missing)",
                        {"path": str(MANIFEST_RELATIVE_PATH), "template_path": template_path},
                    )
                text = path.read_text(encoding="utf-8")
        except ExternalSystemError as exc:
            raise ManifestNotFound(
                f"Template source could not be fetched: {exc.message}",
                {"template_source": template_source},
            ) from exc
        except UnicodeDecodeError as exc:
            raise ManifestInvalid(
                f"skeleton.yaml is not valid UTF-8: {exc.reason} at byte {exc.start}",
                {"template_path": template_path},
            ) from exc
        except OSError as exc:
            raise ManifestNotFound(
                f"skeleton.yaml could not be read: {exc}",
                {"template_source": template_source, "template_path": template_path},
            ) from exc

        manifest = parse_manifest(text)
        log.info(
            "manifest_loaded",
            generate_steps=len(manifest.generate),
            destroy_steps=len(manifest.destroy),
        )
        return manifest
