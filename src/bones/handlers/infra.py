"""Infrastructure handler: renders and applies the skeleton's terraform."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

import structlog

from bones.domain.models import Step, slugify
from bones.handlers.base import BaseHandler, copy_tree, template_dir
from bones.manifest.loader import TemplateFetcher
from bones.tooling.git import GitClient
from bones.tooling.render import render_tree
from bones.tooling.terraform import TerraformAction, TerraformRunner

logger = structlog.get_logger()


class InfraHandler(BaseHandler):
    """Provisions AWS infrastructure from ``infra/aws-ecs`` in the skeleton.

    The rendered terraform is committed to the project repository so that
    destroy can run against the same files. Returns the remote-state key.
    """

    name = "infra"
    system = "aws"
    artifact_key = "INFRA_STATE_KEY"
    default_path = "infra/aws-ecs"

    def __init__(
        self,
        git: GitClient,
        terraform: TerraformRunner,
        fetcher: Optional[TemplateFetcher] = None,
        *,
        variables: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._git = git
        self._terraform = terraform
        self._fetcher = fetcher or TemplateFetcher(git)
        self._variables = {k: v for k, v in (variables or {}).items() if v}

    def state_key(self, app_name: str, subdir: str) -> str:
        return f"{app_name}/{subdir}"

    async def create(
        self,
        project_name: str,
        repo_reference: Optional[str],
        template_source: str,
        template_path: str,
        data: Mapping[str, str],
        *,
        step: Optional[Step] = None,
    ) -> Optional[str]:
        repo = self.require_repo(repo_reference)
        subdir = self.step_path(step)
        state_key = self.state_key(self.app_name(project_name, dict(data)), subdir)
        logger.info("infra_create_started", project=project_name, repo=repo, state_key=state_key)

        with self.external_errors():
            async with self._fetcher.materialize(template_source) as root:
                async with self._git.checkout(repo, depth=None) as workspace:
                    working_dir: Path = workspace.path / subdir
                    copy_tree(template_dir(root, template_path, subdir), working_dir)
                    render_tree(working_dir, data)
                    if await workspace.commit_all("Process AWS Terraform files"):
                        await workspace.push()

                    await self._terraform.execute(
                        working_dir, self._variables, TerraformAction.APPLY, state_key
                    )

        logger.info("infra_create_finished", project=project_name, state_key=state_key)
        return state_key

    async def destroy(
        self,
        project_name: str,
        repo_reference: Optional[str],
        *,
        step: Optional[Step] = None,
    ) -> None:
        repo = self.require_repo(repo_reference)
        subdir = self.step_path(step)
        state_key = self.state_key(slugify(project_name), subdir)
        logger.info("infra_destroy_started", project=project_name, repo=repo, state_key=state_key)

        with self.external_errors():
            async with self._git.checkout(repo) as workspace:
                await self._terraform.execute(
                    workspace.path / subdir, self._variables, TerraformAction.DESTROY, state_key
                )
