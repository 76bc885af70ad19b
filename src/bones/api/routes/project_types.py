from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from bones.api.deps import get_registry
from bones.core.errors import RegistryNotFound, ValidationError
from bones.domain.models import ProjectType
from bones.registry.store import ProjectRegistry

router = APIRouter()


class ProjectTypeCreateRequest(BaseModel):
    name: str = Field(min_length=1)
    desc: str = ""
    repo: str = Field(min_length=1)
    path: str = ""


class ProjectTypeDeleteRequest(BaseModel):
    slug: str = Field(min_length=1)


@router.get("/type", response_model=list[ProjectType], status_code=status.HTTP_200_OK)
async def list_project_types(
    registry: ProjectRegistry = Depends(get_registry),  # noqa: B008
) -> list[ProjectType]:
    return await registry.list_types()


@router.post("/type", response_model=ProjectType, status_code=status.HTTP_200_OK)
async def create_project_type(
    payload: ProjectTypeCreateRequest,
    registry: ProjectRegistry = Depends(get_registry),  # noqa: B008
) -> ProjectType:
    project_type = ProjectType.from_name(
        payload.name,
        template_source=payload.repo,
        template_path=payload.path,
        description=payload.desc,
    )
    try:
        return await registry.put_type(project_type)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc


@router.delete("/type", response_model=ProjectType, status_code=status.HTTP_200_OK)
async def delete_project_type(
    payload: ProjectTypeDeleteRequest,
    registry: ProjectRegistry = Depends(get_registry),  # noqa: B008
) -> ProjectType:
    try:
        return await registry.delete_type(payload.slug)
    except RegistryNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message) from exc
