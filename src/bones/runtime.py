"""Wiring of registry, handlers, executor and launcher from settings."""

from __future__ import annotations

from dataclasses import dataclass

from bones.config import Settings, get_settings
from bones.handlers import build_git_client, register_default_handlers
from bones.handlers.registry import HandlerRegistry
from bones.manifest.loader import ManifestLoader, TemplateFetcher
from bones.pipeline.executor import PipelineExecutor
from bones.pipeline.launcher import PipelineLauncher
from bones.registry.store import ProjectRegistry


@dataclass
class Runtime:
    registry: ProjectRegistry
    handlers: HandlerRegistry
    executor: PipelineExecutor
    launcher: PipelineLauncher


def build_runtime(
    settings: Settings | None = None,
    *,
    handlers: HandlerRegistry | None = None,
    loader: ManifestLoader | None = None,
) -> Runtime:
    """Build the pipeline runtime; default handlers are registered unless ``handlers`` is given."""
    cfg = settings or get_settings()
    registry = ProjectRegistry()
    if handlers is None:
        handlers = register_default_handlers(HandlerRegistry(), cfg)
    if loader is None:
        loader = ManifestLoader(TemplateFetcher(build_git_client(cfg)))

    executor = PipelineExecutor(
        registry,
        handlers,
        loader,
        failure_policy=cfg.failure_policy,
        step_timeout=cfg.step_timeout_seconds or None,
        retain_tombstones=cfg.retain_tombstones,
    )
    return Runtime(
        registry=registry,
        handlers=handlers,
        executor=executor,
        launcher=PipelineLauncher(registry, executor),
    )
