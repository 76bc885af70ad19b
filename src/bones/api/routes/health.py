from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from bones import __version__
from bones.api.deps import get_launcher
from bones.pipeline.launcher import PipelineLauncher

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = __version__
    running_pipelines: int = 0


@router.get("/", status_code=status.HTTP_200_OK)
async def alive() -> str:
    """Liveness probe."""
    return "Alive"


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check(
    launcher: PipelineLauncher = Depends(get_launcher),  # noqa: B008
) -> HealthResponse:
    return HealthResponse(status="healthy", running_pipelines=len(launcher.running()))
