"""Shared plumbing for the concrete handlers."""

from __future__ import annotations

import shutil
import tempfile
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import AsyncIterator, Iterator, Optional

from circuitbreaker import CircuitBreakerError

from bones.clients.base import PermanentHTTPError, RetryableHTTPError
from bones.core.errors import ExternalSystemError
from bones.domain.models import Step, slugify
from bones.manifest.loader import TemplateFetcher


class BaseHandler:
    """Common attributes for handlers wrapping one external system."""

    name: str = ""
    system: str = ""
    artifact_key: Optional[str] = None
    default_path: str = ""

    def step_path(self, step: Optional[Step]) -> str:
        if step is not None and step.path:
            return step.path.strip("/")
        return self.default_path

    @staticmethod
    def app_name(project_name: str, data: Optional[dict[str, str]] = None) -> str:
        if data and data.get("APP_NAME"):
            return data["APP_NAME"]
        return slugify(project_name)

    def require_repo(self, repo_reference: Optional[str]) -> str:
        if not repo_reference:
            raise ExternalSystemError(
                self.system,
                f"handler '{self.name}' needs a repository reference; "
                "run a source-repo step before it",
            )
        return repo_reference

    @contextmanager
    def external_errors(self) -> Iterator[None]:
        """Re-raise client failures as ExternalSystemError for this system."""
        try:
            yield
        except (PermanentHTTPError, RetryableHTTPError, CircuitBreakerError) as exc:
            raise ExternalSystemError(self.system, str(exc)) from exc
        except OSError as exc:
            raise ExternalSystemError(self.system, f"filesystem error: {exc}") from exc


def template_dir(root: Path, template_path: str, subdir: str) -> Path:
    path = root / template_path.strip("/") / subdir
    if not path.is_dir():
        raise FileNotFoundError(f"template directory '{template_path.strip('/')}/{subdir}' not found")
    return path


def copy_tree(src: Path, dest: Path) -> None:
    shutil.copytree(src, dest, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git"))


@asynccontextmanager
async def staged_template(
    fetcher: TemplateFetcher,
    template_source: str,
    template_path: str,
    subdir: str,
    workspace_root: Optional[Path] = None,
) -> AsyncIterator[Path]:
    """Copy a template subdirectory into a scratch directory removed on exit."""
    async with fetcher.materialize(template_source) as root:
        src = template_dir(root, template_path, subdir)
        with tempfile.TemporaryDirectory(prefix="bones-stage-", dir=workspace_root) as tmp:
            dest = Path(tmp) / subdir
            copy_tree(src, dest)
            yield dest
