from __future__ import annotations

from fastapi import Request

from bones.pipeline.launcher import PipelineLauncher
from bones.registry.store import ProjectRegistry
from bones.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_registry(request: Request) -> ProjectRegistry:
    return get_runtime(request).registry


def get_launcher(request: Request) -> PipelineLauncher:
    return get_runtime(request).launcher
