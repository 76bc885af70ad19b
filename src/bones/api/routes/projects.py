from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from bones.api.deps import get_launcher, get_registry
from bones.core.errors import RegistryNotFound, ValidationError
from bones.domain.models import Project
from bones.pipeline.launcher import PipelineLauncher
from bones.registry.store import ProjectRegistry

router = APIRouter()
logger = structlog.get_logger()


class ProjectCreateRequest(BaseModel):
    type: str = Field(min_length=1)
    name: str = Field(min_length=1)
    desc: str = ""
    data: dict[str, str] = Field(default_factory=dict)


class ProjectDeleteRequest(BaseModel):
    id: str = Field(min_length=1)


@router.get("/project", response_model=list[Project], status_code=status.HTTP_200_OK)
async def list_projects(
    include_destroyed: bool = False,
    registry: ProjectRegistry = Depends(get_registry),  # noqa: B008
) -> list[Project]:
    return await registry.list(include_destroyed=include_destroyed)


@router.get("/project/{project_id}", response_model=Project, status_code=status.HTTP_200_OK)
async def get_project(
    project_id: str,
    registry: ProjectRegistry = Depends(get_registry),  # noqa: B008
) -> Project:
    try:
        return await registry.get(project_id)
    except RegistryNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc


@router.post("/project", response_model=Project, status_code=status.HTTP_202_ACCEPTED)
async def create_project(
    payload: ProjectCreateRequest,
    launcher: PipelineLauncher = Depends(get_launcher),  # noqa: B008
) -> Project:
    try:
        project = await launcher.create_project(
            name=payload.name,
            type_slug=payload.type,
            description=payload.desc,
            data=payload.data,
        )
    except RegistryNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc

    logger.info("project_generation_requested", project_id=project.id, type=project.type_slug)
    return project


@router.delete("/project", response_model=Project, status_code=status.HTTP_202_ACCEPTED)
async def delete_project(
    payload: ProjectDeleteRequest,
    launcher: PipelineLauncher = Depends(get_launcher),  # noqa: B008
) -> Project:
    try:
        project = await launcher.delete_project(payload.id)
    except RegistryNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc

    logger.info("project_destroy_requested", project_id=project.id)
    return project
