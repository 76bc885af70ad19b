from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
import respx
from httpx import Response

from bones.clients.github import GitHubClient
from bones.core.errors import ExternalSystemError
from bones.domain.models import Step
from bones.handlers import CIHandler, InfraHandler, SourceRepoHandler
from bones.handlers.registry import PARTIAL_ARTIFACT_DETAIL
from bones.tooling.git import GitClient
from bones.tooling.process import CommandResult
from bones.tooling.terraform import TerraformAction, TerraformRunner

API = "https://api.github.test"
DATA = {"APP_NAME": "app-1", "PROJECT_DESCRIPTION": "demo service", "REPO_REFERENCE": "acme/app-1"}


class GitRecorder:
    """Stands in for the git CLI; snapshots the working tree at each commit."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.commits: list[dict[str, str]] = []

    async def __call__(self, argv, **kwargs) -> CommandResult:
        self.calls.append(list(argv[1:]))
        if argv[1] == "clone":
            Path(argv[-1]).mkdir(parents=True)
        if argv[1] == "status":
            return CommandResult(tuple(argv), 0, "?? new-file\n", "")
        if "commit" in argv:
            cwd = Path(kwargs["cwd"])
            self.commits.append(
                {
                    p.relative_to(cwd).as_posix(): p.read_text()
                    for p in cwd.rglob("*")
                    if p.is_file()
                }
            )
        return CommandResult(tuple(argv), 0, "", "")


@pytest.fixture
def git_cli():
    recorder = GitRecorder()
    with patch("bones.tooling.git.run_command", new=recorder):
        yield recorder


@pytest.fixture
def template(tmp_path) -> Path:
    root = tmp_path / "skeleton-go"
    files = {
        "README.md": "# {{.APP_NAME}}\n\n{{.PROJECT_DESCRIPTION}}\n",
        "infra/aws-ecs/main.tf": 'variable "name" { default = "{{.APP_NAME}}" }\n',
        "infra/circleci/main.tf": 'resource "circleci_project" "p" {}\n',
        "infra/circleci/config.yml": "workflows:\n  {{.APP_NAME}}: {}\n",
    }
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def terraform_mock(seen: list[dict[str, Any]]) -> AsyncMock:
    async def execute(working_dir, variables, action, state_key):
        seen.append(
            {
                "files": {
                    p.name: p.read_text() for p in working_dir.glob("*") if p.is_file()
                },
                "variables": dict(variables),
                "action": action,
                "state_key": state_key,
            }
        )

    terraform = AsyncMock(spec=TerraformRunner)
    terraform.execute.side_effect = execute
    return terraform


# Source repository


@pytest.mark.asyncio
async def test_source_repo_create_seeds_repository(git_cli, template):
    github = GitHubClient("gh-token", base_url=API, org="acme")
    handler = SourceRepoHandler(github, GitClient(), owner="acme")

    with respx.mock:
        respx.post(f"{API}/orgs/acme/repos").mock(
            return_value=Response(201, json={"full_name": "acme/app-1"})
        )
        artifact = await handler.create("App 1", None, str(template), "", DATA)

    assert artifact == "acme/app-1"
    assert git_cli.calls[0][-2] == "https://github.com/acme/app-1.git"
    committed = git_cli.commits[0]
    assert committed["README.md"] == "# app-1\n\ndemo service\n"
    assert ["push", "--quiet", "origin", "HEAD"] in git_cli.calls


@pytest.mark.asyncio
async def test_source_repo_create_reports_github_failure(git_cli, template):
    handler = SourceRepoHandler(GitHubClient("gh-token", base_url=API, org="acme"), GitClient())

    with respx.mock:
        respx.post(f"{API}/orgs/acme/repos").mock(return_value=Response(422))

        with pytest.raises(ExternalSystemError) as exc_info:
            await handler.create("App 1", None, str(template), "", DATA)

    assert exc_info.value.system == "github"
    assert git_cli.calls == []


@pytest.mark.asyncio
async def test_source_repo_missing_template_path_deletes_new_repository(git_cli, template):
    handler = SourceRepoHandler(GitHubClient("gh-token", base_url=API, org="acme"), GitClient())

    with respx.mock:
        respx.post(f"{API}/orgs/acme/repos").mock(
            return_value=Response(201, json={"full_name": "acme/app-1"})
        )
        delete = respx.delete(f"{API}/repos/acme/app-1").mock(return_value=Response(204))

        with pytest.raises(ExternalSystemError, match="not found") as exc_info:
            await handler.create(
                "App 1", None, str(template), "", DATA, step=Step(name="repo", handler="github", path="nope")
            )

        assert delete.call_count == 1
    assert PARTIAL_ARTIFACT_DETAIL not in exc_info.value.details


@pytest.mark.asyncio
async def test_source_repo_seed_failure_deletes_new_repository(template):
    handler = SourceRepoHandler(
        GitHubClient("gh-token", base_url=API, org="acme"), GitClient(binary="/nonexistent-git")
    )

    with respx.mock:
        respx.post(f"{API}/orgs/acme/repos").mock(
            return_value=Response(201, json={"full_name": "acme/app-1"})
        )
        delete = respx.delete(f"{API}/repos/acme/app-1").mock(return_value=Response(204))

        with pytest.raises(ExternalSystemError, match="executable not found"):
            await handler.create("App 1", None, str(template), "", DATA)

        assert delete.call_count == 1


@pytest.mark.asyncio
async def test_source_repo_undeletable_repository_is_reported(template):
    handler = SourceRepoHandler(
        GitHubClient("gh-token", base_url=API, org="acme"), GitClient(binary="/nonexistent-git")
    )

    with respx.mock:
        respx.post(f"{API}/orgs/acme/repos").mock(
            return_value=Response(201, json={"full_name": "acme/app-1"})
        )
        respx.delete(f"{API}/repos/acme/app-1").mock(return_value=Response(403))

        with pytest.raises(ExternalSystemError) as exc_info:
            await handler.create("App 1", None, str(template), "", DATA)

    assert exc_info.value.details[PARTIAL_ARTIFACT_DETAIL] == "acme/app-1"
    assert "executable not found" in exc_info.value.message


@pytest.mark.asyncio
async def test_source_repo_destroy():
    handler = SourceRepoHandler(GitHubClient("gh-token", base_url=API), GitClient())

    with respx.mock:
        route = respx.delete(f"{API}/repos/acme/app-1").mock(return_value=Response(204))

        await handler.destroy("App 1", "acme/app-1")
        await handler.destroy("App 1", None)

        assert route.call_count == 1


# Infrastructure


@pytest.mark.asyncio
async def test_infra_create_commits_and_applies(git_cli, template):
    seen: list[dict[str, Any]] = []
    handler = InfraHandler(GitClient(), terraform_mock(seen), variables={"vpc_id": "vpc-1", "empty": ""})

    artifact = await handler.create(
        "App 1", "acme/app-1", str(template), "", DATA, step=Step(name="infra", handler="aws")
    )

    assert artifact == "app-1/infra/aws-ecs"
    assert git_cli.commits[0]["infra/aws-ecs/main.tf"] == 'variable "name" { default = "app-1" }\n'
    assert seen == [
        {
            "files": {"main.tf": 'variable "name" { default = "app-1" }\n'},
            "variables": {"vpc_id": "vpc-1"},
            "action": TerraformAction.APPLY,
            "state_key": "app-1/infra/aws-ecs",
        }
    ]


@pytest.mark.asyncio
async def test_infra_requires_repo_reference(template):
    handler = InfraHandler(GitClient(), terraform_mock([]))

    with pytest.raises(ExternalSystemError, match="needs a repository reference"):
        await handler.create("App 1", None, str(template), "", DATA)


@pytest.mark.asyncio
async def test_infra_destroy_runs_against_project_repo(git_cli):
    seen: list[dict[str, Any]] = []
    handler = InfraHandler(GitClient(), terraform_mock(seen))

    await handler.destroy("App 1", "acme/app-1")

    assert seen[0]["action"] == TerraformAction.DESTROY
    assert seen[0]["state_key"] == "app-1/infra/aws-ecs"
    assert git_cli.calls[0][0] == "clone"


# CI


@pytest.mark.asyncio
async def test_ci_create_applies_and_commits_config(git_cli, template):
    seen: list[dict[str, Any]] = []
    handler = CIHandler(GitClient(), terraform_mock(seen), github_user="bot", token="cci")

    artifact = await handler.create("App 1", "acme/app-1", str(template), "", DATA)

    assert artifact is None
    assert seen[0]["variables"] == {
        "project_name": "app-1",
        "github_user": "bot",
        "circleci_token": "cci",
    }
    assert seen[0]["state_key"] == "app-1/infra/circleci"
    assert git_cli.commits[0][".circleci/config.yml"] == "workflows:\n  app-1: {}\n"
    assert (template / "infra/circleci/config.yml").read_text() == "workflows:\n  {{.APP_NAME}}: {}\n"


@pytest.mark.asyncio
async def test_ci_destroy(git_cli):
    seen: list[dict[str, Any]] = []
    handler = CIHandler(GitClient(), terraform_mock(seen))

    await handler.destroy("App 1", "acme/app-1")

    assert seen[0]["action"] == TerraformAction.DESTROY
    assert seen[0]["variables"] == {"project_name": "app-1"}
