"""
Concurrency-safe in-memory store for projects and project types.

Every access goes through one ``asyncio.Lock``; callers only ever see deep
copies, so in-flight pipelines cannot mutate each other's records except
through ``update_from_pipeline``.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict, List

import structlog

from bones.core.errors import RegistryNotFound, ValidationError
from bones.domain.models import Project, ProjectStatus, ProjectType

logger = structlog.get_logger()

ProjectMutation = Callable[[Project], None]


class ProjectRegistry:
    """Authoritative store of Project and ProjectType records."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._projects: Dict[str, Project] = {}
        self._types: Dict[str, ProjectType] = {}

    def _referenced(self, slug: str) -> bool:
        return any(
            p.type_slug == slug and p.status != ProjectStatus.destroyed for p in self._projects.values()
        )

    # Project types

    async def put_type(self, project_type: ProjectType) -> ProjectType:
        """Create or replace a project type; referenced types are immutable."""
        async with self._lock:
            existing = self._types.get(project_type.slug)
            if existing is not None and existing != project_type and self._referenced(project_type.slug):
                raise ValidationError(
                    f"Project type '{project_type.slug}' is in use and cannot be changed",
                    {"slug": project_type.slug},
                )
            self._types[project_type.slug] = project_type.model_copy(deep=True)
        logger.info("project_type_saved", slug=project_type.slug)
        return project_type.model_copy(deep=True)

    async def get_type(self, slug: str) -> ProjectType:
        async with self._lock:
            project_type = self._types.get(slug)
            if project_type is None:
                raise RegistryNotFound("Project type", slug)
            return project_type.model_copy(deep=True)

    async def list_types(self) -> List[ProjectType]:
        async with self._lock:
            return [t.model_copy(deep=True) for t in self._types.values()]

    async def delete_type(self, slug: str) -> ProjectType:
        async with self._lock:
            if slug not in self._types:
                raise RegistryNotFound("Project type", slug)
            if self._referenced(slug):
                raise ValidationError(
                    f"Project type '{slug}' is in use and cannot be deleted", {"slug": slug}
                )
            removed = self._types.pop(slug)
        logger.info("project_type_deleted", slug=slug)
        return removed

    # Projects

    async def create_placeholder(self, project: Project) -> Project:
        """Insert a project before any pipeline step has run."""
        async with self._lock:
            if project.type_slug not in self._types:
                raise RegistryNotFound("Project type", project.type_slug)
            if project.id in self._projects:
                raise ValidationError(f"Project '{project.id}' already exists", {"id": project.id})
            self._projects[project.id] = project.model_copy(deep=True)
        logger.info("project_created", project_id=project.id, type=project.type_slug)
        return project.model_copy(deep=True)

    async def get(self, project_id: str) -> Project:
        async with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                raise RegistryNotFound("Project", project_id)
            return project.model_copy(deep=True)

    async def list(self, *, include_destroyed: bool = False) -> List[Project]:
        async with self._lock:
            return [
                p.model_copy(deep=True)
                for p in self._projects.values()
                if include_destroyed or p.status != ProjectStatus.destroyed
            ]

    async def update_from_pipeline(self, project_id: str, mutation: ProjectMutation) -> Project:
        """Apply ``mutation`` to the stored record atomically.

        The mutation runs under the lock on a working copy and must not
        await. A destroyed project is final.
        """
        async with self._lock:
            current = self._projects.get(project_id)
            if current is None:
                raise RegistryNotFound("Project", project_id)
            if current.status == ProjectStatus.destroyed:
                raise ValidationError(
                    f"Project '{project_id}' has been destroyed", {"id": project_id}
                )
            working = current.model_copy(deep=True)
            mutation(working)
            working.updated_at = time.time()
            self._projects[project_id] = working
            return working.model_copy(deep=True)

    async def remove(self, project_id: str) -> Project:
        async with self._lock:
            project = self._projects.pop(project_id, None)
            if project is None:
                raise RegistryNotFound("Project", project_id)
        logger.info("project_removed", project_id=project_id)
        return project
