"""
Pipeline executor: runs a project's generate or destroy steps.

Steps run strictly in manifest order. Failure handling is governed by
``FailurePolicy``:

- ``halt`` (default): the first failing step stops the run; later steps are
  recorded as skipped and never invoked.
- ``continue``: later steps still run; the first failing step is the one
  named on the project.

Either way the failure is recorded on the project (``status``,
``failed_step``, ``error`` and the per-step history). Manifest and dispatch
errors fail the run before any step is invoked. Any other unexpected error
ends the run as failed with its message recorded, so a project never stays
``running`` or ``destroying``.
"""

from __future__ import annotations

import asyncio
import time
from enum import StrEnum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

import structlog

from bones.core.errors import (
    BonesError,
    ExternalSystemError,
    ManifestError,
    UnknownHandler,
    ValidationError,
    format_error_message,
)
from bones.domain.models import (
    Project,
    ProjectStatus,
    ProjectType,
    Step,
    StepOutcome,
    StepRecord,
)
from bones.handlers.registry import (
    PARTIAL_ARTIFACT_DETAIL,
    REPO_REFERENCE_KEY,
    Handler,
    HandlerRegistry,
)
from bones.logging import bind_pipeline_context
from bones.manifest.loader import ManifestLoader
from bones.pipeline.context import PipelineContext
from bones.pipeline.results import PipelineResult, ResultCollector
from bones.registry.store import ProjectRegistry

T = TypeVar("T")

GENERATE = "generate"
DESTROY = "destroy"

GENERATE_FROM = frozenset({ProjectStatus.pending})
DESTROY_FROM = frozenset({ProjectStatus.ready, ProjectStatus.failed, ProjectStatus.partially_failed})


class FailurePolicy(StrEnum):
    HALT = "halt"
    CONTINUE = "continue"


def describe_error(error: BaseException) -> str:
    if isinstance(error, BonesError):
        return format_error_message(error)
    return f"{type(error).__name__}: {error}"


class PipelineExecutor:
    """Runs manifest steps against the handler registry for one project at a time."""

    def __init__(
        self,
        registry: ProjectRegistry,
        handlers: HandlerRegistry,
        loader: Optional[ManifestLoader] = None,
        *,
        failure_policy: FailurePolicy | str = FailurePolicy.HALT,
        step_timeout: Optional[float] = None,
        retain_tombstones: bool = True,
    ) -> None:
        self._registry = registry
        self._handlers = handlers
        self._loader = loader or ManifestLoader()
        self._policy = FailurePolicy(failure_policy)
        self._step_timeout = step_timeout
        self._retain_tombstones = retain_tombstones

    @property
    def failure_policy(self) -> FailurePolicy:
        return self._policy

    async def run_generate(self, project: Project, project_type: ProjectType) -> PipelineResult:
        """Provision ``project`` from ``project_type``'s generate steps."""
        log = bind_pipeline_context(project.id, GENERATE, type=project_type.slug)
        collector = ResultCollector(project.id, GENERATE)
        started = time.monotonic()

        current = await self._begin(project.id, GENERATE_FROM, ProjectStatus.running)
        log.info("pipeline_started")
        try:
            status = await self._generate(current, project_type, collector, log)
        except asyncio.CancelledError:
            await self._cancelled(current.id, collector, log)
            raise
        except Exception as exc:
            status = await self._abort(collector, current.id, exc, log)

        result = collector.finalize(status, time.monotonic() - started)
        log.info("pipeline_finished", status=status.value, failed_step=result.failed_step)
        return result

    async def run_destroy(self, project: Project) -> PipelineResult:
        """Tear down ``project`` using the destroy steps from its own repository."""
        log = bind_pipeline_context(project.id, DESTROY)
        collector = ResultCollector(project.id, DESTROY)
        started = time.monotonic()

        current = await self._begin(project.id, DESTROY_FROM, ProjectStatus.destroying)
        log.info("pipeline_started", repo=current.repo_reference)
        try:
            status = await self._destroy(current, collector, log)
        except asyncio.CancelledError:
            await self._cancelled(current.id, collector, log)
            raise
        except Exception as exc:
            status = await self._abort(collector, current.id, exc, log)

        result = collector.finalize(status, time.monotonic() - started)
        log.info("pipeline_finished", status=status.value, failed_step=result.failed_step)
        return result

    async def _generate(
        self,
        project: Project,
        project_type: ProjectType,
        collector: ResultCollector,
        log: structlog.stdlib.BoundLogger,
    ) -> ProjectStatus:
        try:
            manifest = await self._loader.load(project_type.template_source, project_type.template_path)
            plan = self._plan(manifest.generate)
        except (ManifestError, UnknownHandler) as exc:
            return await self._abort(collector, project.id, exc, log)

        context = PipelineContext.for_project(project)
        repo_reference = project.repo_reference
        await self._registry.update_from_pipeline(project.id, _fold(context.snapshot(), repo_reference))

        for step, handler in plan:
            if collector.failed and self._policy is FailurePolicy.HALT:
                await self._record(collector, project.id, _skipped(step))
                continue

            log.info("pipeline_step_started", step=step.name, handler=step.handler)
            step_started = time.monotonic()
            try:
                artifact = await self._bounded(
                    step,
                    handler,
                    handler.create(
                        project.name,
                        repo_reference,
                        project_type.template_source,
                        project_type.template_path,
                        context.view(),
                        step=step,
                    ),
                )
            except Exception as exc:
                log.error("pipeline_step_failed", step=step.name, error=describe_error(exc))
                fold = None
                leftover = _partial_artifact(handler, exc)
                if leftover:
                    context.set(handler.artifact_key, leftover)
                    if handler.artifact_key == REPO_REFERENCE_KEY:
                        repo_reference = leftover
                    fold = _fold(context.snapshot(), repo_reference)
                    log.warning("pipeline_step_left_artifact", step=step.name, artifact=leftover)
                await self._record(
                    collector, project.id, _failed(step, exc, step_started), fold=fold
                )
                continue

            if artifact and handler.artifact_key:
                context.set(handler.artifact_key, artifact)
                if handler.artifact_key == REPO_REFERENCE_KEY:
                    repo_reference = artifact

            record = StepRecord(
                name=step.name,
                handler=step.handler,
                outcome=StepOutcome.succeeded,
                artifact=artifact,
                duration_seconds=time.monotonic() - step_started,
            )
            await self._record(
                collector, project.id, record, fold=_fold(context.snapshot(), repo_reference)
            )
            log.info("pipeline_step_succeeded", step=step.name, artifact=artifact)

        status = ProjectStatus.partially_failed if collector.failed else ProjectStatus.ready
        await self._finish(project.id, status, collector)
        return status

    async def _destroy(
        self,
        project: Project,
        collector: ResultCollector,
        log: structlog.stdlib.BoundLogger,
    ) -> ProjectStatus:
        try:
            project_type = await self._registry.get_type(project.type_slug)
            if project.repo_reference:
                source, path = project.repo_reference, ""
            else:
                source, path = project_type.template_source, project_type.template_path
            manifest = await self._loader.load(source, path)
            plan = self._plan(manifest.destroy)
        except BonesError as exc:
            return await self._abort(collector, project.id, exc, log)

        for step, handler in plan:
            if collector.failed and self._policy is FailurePolicy.HALT:
                await self._record(collector, project.id, _skipped(step))
                continue

            log.info("pipeline_step_started", step=step.name, handler=step.handler)
            step_started = time.monotonic()
            try:
                await self._bounded(
                    step,
                    handler,
                    handler.destroy(project.name, project.repo_reference, step=step),
                )
            except Exception as exc:
                log.error("pipeline_step_failed", step=step.name, error=describe_error(exc))
                await self._record(collector, project.id, _failed(step, exc, step_started))
                continue

            record = StepRecord(
                name=step.name,
                handler=step.handler,
                outcome=StepOutcome.succeeded,
                duration_seconds=time.monotonic() - step_started,
            )
            await self._record(collector, project.id, record)
            log.info("pipeline_step_succeeded", step=step.name)

        status = ProjectStatus.failed if collector.failed else ProjectStatus.destroyed
        await self._finish(project.id, status, collector)
        if status is ProjectStatus.destroyed and not self._retain_tombstones:
            await self._registry.remove(project.id)
        return status

    def _plan(self, steps: Sequence[Step]) -> List[Tuple[Step, Handler]]:
        return list(zip(steps, self._handlers.resolve(steps)))

    async def _bounded(self, step: Step, handler: Handler, call: Awaitable[T]) -> T:
        if self._step_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._step_timeout)
        except asyncio.TimeoutError as exc:
            system = getattr(handler, "system", None) or step.handler
            raise ExternalSystemError(
                system, f"step '{step.name}' timed out after {self._step_timeout}s"
            ) from exc

    async def _begin(
        self, project_id: str, allowed: frozenset[ProjectStatus], status: ProjectStatus
    ) -> Project:
        def start(project: Project) -> None:
            if project.status not in allowed:
                raise ValidationError(
                    f"Project '{project.id}' is {project.status.value}; cannot move to {status.value}",
                    {"id": project.id, "status": project.status.value},
                )
            project.status = status
            project.failed_step = None
            project.error = None
            project.steps = []

        return await self._registry.update_from_pipeline(project_id, start)

    async def _record(
        self,
        collector: ResultCollector,
        project_id: str,
        record: StepRecord,
        fold: Optional[Callable[[Project], None]] = None,
    ) -> None:
        collector.record(record)

        def apply(project: Project) -> None:
            project.steps.append(record)
            if fold is not None:
                fold(project)

        await self._registry.update_from_pipeline(project_id, apply)

    async def _finish(
        self,
        project_id: str,
        status: ProjectStatus,
        collector: ResultCollector,
        *,
        error: Optional[str] = None,
    ) -> None:
        failed_step = collector.failed_step
        message = error or collector.error

        def finish(project: Project) -> None:
            project.status = status
            project.failed_step = failed_step
            project.error = message

        await self._registry.update_from_pipeline(project_id, finish)

    async def _abort(
        self,
        collector: ResultCollector,
        project_id: str,
        error: Exception,
        log: structlog.stdlib.BoundLogger,
    ) -> ProjectStatus:
        message = describe_error(error)
        collector.record_fatal(message)
        log.error(
            "pipeline_aborted",
            error_type=type(error).__name__,
            error=message,
            exc_info=not isinstance(error, BonesError),
        )
        await self._finish(project_id, ProjectStatus.failed, collector)
        return ProjectStatus.failed

    async def _cancelled(
        self,
        project_id: str,
        collector: ResultCollector,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        log.warning("pipeline_cancelled", failed_step=collector.failed_step)
        await self._finish(project_id, ProjectStatus.failed, collector, error="pipeline cancelled")


def _fold(data: dict[str, str], repo_reference: Optional[str]) -> Callable[[Project], None]:
    def fold(project: Project) -> None:
        project.data = data
        project.repo_reference = repo_reference

    return fold


def _partial_artifact(handler: Handler, error: Exception) -> Optional[str]:
    if not handler.artifact_key or not isinstance(error, BonesError):
        return None
    return error.details.get(PARTIAL_ARTIFACT_DETAIL) or None


def _skipped(step: Step) -> StepRecord:
    return StepRecord(name=step.name, handler=step.handler, outcome=StepOutcome.skipped)


def _failed(step: Step, error: BaseException, started: float) -> StepRecord:
    return StepRecord(
        name=step.name,
        handler=step.handler,
        outcome=StepOutcome.failed,
        error=describe_error(error),
        duration_seconds=time.monotonic() - started,
    )
