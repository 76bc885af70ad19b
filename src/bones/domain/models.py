from __future__ import annotations

import time
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def slugify(name: str) -> str:
    """Lowercase a display name and replace spaces with hyphens."""
    return name.lower().replace(" ", "-")


class ProjectStatus(StrEnum):
    """Lifecycle states of a project."""

    pending = "pending"
    running = "running"
    ready = "ready"
    failed = "failed"
    partially_failed = "partially_failed"
    destroying = "destroying"
    destroyed = "destroyed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (ProjectStatus.pending, ProjectStatus.running, ProjectStatus.destroying)


TERMINAL_STATUSES = frozenset(
    {
        ProjectStatus.ready,
        ProjectStatus.failed,
        ProjectStatus.partially_failed,
        ProjectStatus.destroyed,
    }
)


class StepOutcome(StrEnum):
    succeeded = "succeeded"
    failed = "failed"
    skipped = "skipped"


class Step(BaseModel):
    """One manifest step bound to a handler key."""

    model_config = ConfigDict(frozen=True)

    name: str
    handler: str
    path: str = ""
    cmd: str = ""

    @field_validator("name", "handler")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class SkeletonManifest(BaseModel):
    """Parsed .skeleton/skeleton.yaml: ordered generate and destroy steps."""

    model_config = ConfigDict(frozen=True)

    generate: tuple[Step, ...] = ()
    destroy: tuple[Step, ...] = ()


class StepRecord(BaseModel):
    name: str
    handler: str
    outcome: StepOutcome
    artifact: str | None = None
    error: str | None = None
    duration_seconds: float = 0.0


class ProjectType(BaseModel):
    slug: str
    name: str
    description: str = ""
    template_source: str
    template_path: str = ""

    @classmethod
    def from_name(
        cls,
        name: str,
        *,
        template_source: str,
        template_path: str = "",
        description: str = "",
    ) -> ProjectType:
        return cls(
            slug=slugify(name),
            name=name,
            description=description,
            template_source=template_source,
            template_path=template_path,
        )


class Project(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    type_slug: str
    description: str = ""
    repo_reference: str | None = None
    data: dict[str, str] = Field(default_factory=dict)
    status: ProjectStatus = ProjectStatus.pending
    failed_step: str | None = None
    error: str | None = None
    steps: list[StepRecord] = Field(default_factory=list)
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)
