"""Manifest-driven step pipeline."""

from bones.pipeline.context import PipelineContext
from bones.pipeline.executor import FailurePolicy, PipelineExecutor
from bones.pipeline.launcher import PipelineLauncher
from bones.pipeline.results import PipelineResult, ResultCollector

__all__ = [
    "FailurePolicy",
    "PipelineContext",
    "PipelineExecutor",
    "PipelineLauncher",
    "PipelineResult",
    "ResultCollector",
]
