"""Root test configuration and shared fakes."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import pytest
import structlog

from bones.core.errors import ExternalSystemError
from bones.domain.models import Step
from bones.handlers.registry import PARTIAL_ARTIFACT_DETAIL, REPO_REFERENCE_KEY, HandlerRegistry
from bones.manifest.loader import MANIFEST_RELATIVE_PATH, ManifestLoader
from bones.pipeline.executor import PipelineExecutor
from bones.registry.store import ProjectRegistry


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


STANDARD_MANIFEST = """
generate:
  steps:
    - name: repo
      handler: source-repo
    - name: infra
      handler: infra
      path: infra/aws-ecs
    - name: ci
      handler: ci
destroy:
  steps:
    - name: ci
      handler: ci
    - name: infra
      handler: infra
    - name: repo
      handler: source-repo
"""


class RecordingHandler:
    """Handler double that appends every call to a shared journal."""

    def __init__(
        self,
        name: str,
        journal: list[dict[str, Any]],
        *,
        artifact: Optional[str] = None,
        artifact_key: Optional[str] = None,
        fail_on: tuple[str, ...] = (),
        partial: Optional[str] = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.system = name
        self.artifact_key = artifact_key
        self._journal = journal
        self._artifact = artifact
        self._fail_on = fail_on
        self._partial = partial
        self._delay = delay

    async def _call(self, entry: dict[str, Any]) -> None:
        self._journal.append(entry)
        if self._delay:
            await asyncio.sleep(self._delay)
        if entry["step"] in self._fail_on:
            details = {PARTIAL_ARTIFACT_DETAIL: self._partial} if self._partial else None
            raise ExternalSystemError(self.name, f"{entry['step']} exploded", details)

    async def create(
        self,
        project_name: str,
        repo_reference: Optional[str],
        template_source: str,
        template_path: str,
        data: Mapping[str, str],
        *,
        step: Optional[Step] = None,
    ) -> Optional[str]:
        await self._call(
            {
                "action": "create",
                "handler": self.name,
                "step": step.name if step else self.name,
                "project": project_name,
                "repo": repo_reference,
                "data": dict(data),
            }
        )
        if self._artifact is None:
            return None
        return self._artifact.format(project=project_name)

    async def destroy(
        self,
        project_name: str,
        repo_reference: Optional[str],
        *,
        step: Optional[Step] = None,
    ) -> None:
        await self._call(
            {
                "action": "destroy",
                "handler": self.name,
                "step": step.name if step else self.name,
                "project": project_name,
                "repo": repo_reference,
            }
        )


def write_skeleton(root: Path, manifest: str, path: str = "") -> Path:
    """Write ``root/path/.skeleton/skeleton.yaml`` and return ``root``."""
    target = root / path / MANIFEST_RELATIVE_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(manifest)
    return root


@pytest.fixture
def journal() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def make_handler(journal) -> Callable[..., RecordingHandler]:
    def factory(name: str, **kwargs: Any) -> RecordingHandler:
        return RecordingHandler(name, journal, **kwargs)

    return factory


@pytest.fixture
def handlers(make_handler) -> HandlerRegistry:
    registry = HandlerRegistry()
    registry.register(
        make_handler("source-repo", artifact="org/{project}", artifact_key=REPO_REFERENCE_KEY)
    )
    registry.register(make_handler("infra"))
    registry.register(make_handler("ci"))
    return registry


@pytest.fixture
def registry() -> ProjectRegistry:
    return ProjectRegistry()


@pytest.fixture
def skeleton_factory(tmp_path) -> Callable[..., Path]:
    def factory(manifest: str = STANDARD_MANIFEST, name: str = "skeleton", path: str = "") -> Path:
        return write_skeleton(tmp_path / name, manifest, path)

    return factory


@pytest.fixture
def skeleton(skeleton_factory) -> Path:
    return skeleton_factory()


@pytest.fixture
def executor(registry, handlers) -> PipelineExecutor:
    return PipelineExecutor(registry, handlers, ManifestLoader())
