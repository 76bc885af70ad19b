import pytest

from bones.config import Settings
from bones.domain.models import Project, ProjectStatus, StepOutcome, StepRecord, slugify
from bones.handlers import SourceRepoHandler
from bones.pipeline.context import PipelineContext
from bones.pipeline.executor import FailurePolicy
from bones.pipeline.results import ResultCollector
from bones.runtime import build_runtime


def test_context_for_project_derives_standard_values():
    project = Project(
        name="Billing API", type_slug="go", data={"APP_NAME": "ignored", "TEAM": "payments"}
    )

    context = PipelineContext.for_project(project)

    assert context["APP_NAME"] == "billing-api"
    assert context["SERVICE_NAME"] == "billing-api-service"
    assert context["TEAM"] == "payments"
    assert "PROJECT_DESCRIPTION" not in context
    assert "REPO_REFERENCE" not in context


def test_context_view_is_read_only_and_live():
    context = PipelineContext({"A": "1"})
    view = context.view()

    with pytest.raises(TypeError):
        view["B"] = "2"  # type: ignore[index]

    context.set("A", "2")
    assert view["A"] == "2"
    assert context.snapshot() == {"A": "2"}
    assert context.get("missing", "default") == "default"
    assert list(context) == ["A"]
    assert len(context) == 1


def test_slugify():
    assert slugify("My Go App") == "my-go-app"


def test_result_collector_keeps_first_failure():
    collector = ResultCollector("p-1", "generate")
    collector.record(StepRecord(name="A", handler="a", outcome=StepOutcome.succeeded))
    collector.record(StepRecord(name="B", handler="b", outcome=StepOutcome.failed, error="b broke"))
    collector.record(StepRecord(name="C", handler="c", outcome=StepOutcome.failed, error="c broke"))

    result = collector.finalize(ProjectStatus.partially_failed, 1.5)

    assert result.failed_step == "B"
    assert result.error == "b broke"
    assert result.executed == ["A", "B", "C"]
    assert not result.success


def test_status_flags():
    assert ProjectStatus.running.is_active
    assert ProjectStatus.destroying.is_active
    assert not ProjectStatus.ready.is_active
    assert ProjectStatus.partially_failed.is_terminal
    assert not ProjectStatus.pending.is_terminal


def test_build_runtime_from_settings():
    runtime = build_runtime(
        Settings(failure_policy="continue", step_timeout_seconds=0, github_org="acme")
    )

    assert runtime.executor.failure_policy is FailurePolicy.CONTINUE
    assert isinstance(runtime.handlers.get("github"), SourceRepoHandler)
    assert runtime.launcher.running() == []
