"""Result types for pipeline runs."""

from dataclasses import dataclass, field
from typing import List, Optional

from bones.domain.models import ProjectStatus, StepOutcome, StepRecord


@dataclass
class PipelineResult:
    """Outcome of one generate or destroy run."""

    project_id: str
    run: str
    status: ProjectStatus = ProjectStatus.running
    steps: List[StepRecord] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        """Whether every step ran and succeeded."""
        return self.error is None

    @property
    def executed(self) -> List[str]:
        """Names of steps whose handler was invoked, in order."""
        return [s.name for s in self.steps if s.outcome != StepOutcome.skipped]


class ResultCollector:
    """Aggregates step outcomes during a pipeline run."""

    def __init__(self, project_id: str, run: str) -> None:
        self._result = PipelineResult(project_id=project_id, run=run)

    def record(self, record: StepRecord) -> None:
        """Record a step outcome; the first failure names the failed step."""
        self._result.steps.append(record)
        if record.outcome == StepOutcome.failed and self._result.failed_step is None:
            self._result.failed_step = record.name
            self._result.error = record.error

    def record_fatal(self, error: str) -> None:
        """Record a failure that prevented any step from running."""
        self._result.error = error

    @property
    def failed(self) -> bool:
        return self._result.error is not None

    @property
    def failed_step(self) -> Optional[str]:
        return self._result.failed_step

    @property
    def error(self) -> Optional[str]:
        return self._result.error

    def finalize(self, status: ProjectStatus, duration: float) -> PipelineResult:
        """Return the final result with status and duration set."""
        self._result.status = status
        self._result.duration_seconds = duration
        return self._result
