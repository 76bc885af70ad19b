"""Run-scoped key/value data threaded between pipeline steps."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional

from bones.domain.models import Project, slugify
from bones.handlers.registry import REPO_REFERENCE_KEY


class PipelineContext:
    """Mutable data for one pipeline run.

    Keys are never removed during a run; the last write to a key wins.
    Handlers get a read-only view and contribute through their artifacts.
    """

    def __init__(self, seed: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(seed or {})

    @classmethod
    def for_project(cls, project: Project) -> PipelineContext:
        """Seed from the project's data, then add the derived standard values."""
        context = cls(project.data)
        slug = slugify(project.name)
        context.set("APP_NAME", slug)
        context.set("SERVICE_NAME", f"{slug}-service")
        context.set("PROJECT_NAME", project.name)
        context.set("PROJECT_ID", project.id)
        if project.description:
            context.set("PROJECT_DESCRIPTION", project.description)
        if project.repo_reference:
            context.set(REPO_REFERENCE_KEY, project.repo_reference)
        return context

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._data.get(key, default)

    def view(self) -> Mapping[str, str]:
        return MappingProxyType(self._data)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)
