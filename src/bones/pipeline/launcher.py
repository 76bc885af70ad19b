"""
Background launcher for pipeline runs.

Each create or delete request starts one asyncio task and returns at once.
The task's progress is visible through the project's status slot in the
registry; the launcher keeps the task handles so runs can be awaited in
tests and cancelled on shutdown.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Dict, List, Mapping, Optional

import structlog

from bones.core.errors import ValidationError
from bones.domain.models import Project, ProjectStatus
from bones.pipeline.executor import PipelineExecutor
from bones.pipeline.results import PipelineResult
from bones.registry.store import ProjectRegistry

logger = structlog.get_logger()


class PipelineLauncher:
    """Starts and tracks generate/destroy runs, at most one per project."""

    def __init__(self, registry: ProjectRegistry, executor: PipelineExecutor) -> None:
        self._registry = registry
        self._executor = executor
        self._tasks: Dict[str, asyncio.Task[PipelineResult]] = {}

    async def create_project(
        self,
        *,
        name: str,
        type_slug: str,
        description: str = "",
        data: Optional[Mapping[str, str]] = None,
    ) -> Project:
        """Validate, insert the placeholder record and start generation."""
        if not name or not name.strip():
            raise ValidationError("Project name is required")
        project_type = await self._registry.get_type(type_slug)

        project = await self._registry.create_placeholder(
            Project(
                name=name.strip(),
                type_slug=project_type.slug,
                description=description,
                data=dict(data or {}),
            )
        )
        self._spawn(project.id, "generate", self._executor.run_generate(project, project_type))
        return project

    async def delete_project(self, project_id: str) -> Project:
        """Start the destroy pipeline for an existing project."""
        project = await self._registry.get(project_id)
        if project_id in self._tasks or project.status.is_active:
            raise ValidationError(
                f"Project '{project_id}' has a pipeline in progress",
                {"id": project_id, "status": project.status.value},
            )
        if project.status == ProjectStatus.destroyed:
            raise ValidationError(f"Project '{project_id}' is already destroyed", {"id": project_id})

        self._spawn(project.id, "destroy", self._executor.run_destroy(project))
        return project

    def _spawn(
        self, project_id: str, run: str, coro: Coroutine[Any, Any, PipelineResult]
    ) -> asyncio.Task[PipelineResult]:
        task = asyncio.create_task(coro, name=f"bones-{run}-{project_id}")
        self._tasks[project_id] = task
        task.add_done_callback(lambda t: self._done(project_id, run, t))
        logger.info("pipeline_launched", project_id=project_id, run=run)
        return task

    def _done(self, project_id: str, run: str, task: asyncio.Task[PipelineResult]) -> None:
        if self._tasks.get(project_id) is task:
            del self._tasks[project_id]
        if task.cancelled():
            logger.warning("pipeline_task_cancelled", project_id=project_id, run=run)
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "pipeline_task_crashed",
                project_id=project_id,
                run=run,
                error_type=type(exc).__name__,
                error=str(exc),
            )

    def running(self) -> List[str]:
        """Project ids with a run in flight."""
        return list(self._tasks)

    async def wait(self, project_id: str) -> Optional[PipelineResult]:
        """Wait for the in-flight run of ``project_id``, if any."""
        task = self._tasks.get(project_id)
        if task is None:
            return None
        return await task

    async def join(self) -> None:
        """Wait for every in-flight run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight runs and wait for them to record their state."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("pipeline_launcher_stopped", cancelled=len(tasks))
