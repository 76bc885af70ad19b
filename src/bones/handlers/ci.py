"""CI handler: registers the project with CircleCI and commits its config."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional

import structlog

from bones.domain.models import Step, slugify
from bones.handlers.base import BaseHandler, staged_template
from bones.manifest.loader import TemplateFetcher
from bones.tooling.git import GitClient
from bones.tooling.render import render_text, render_tree
from bones.tooling.terraform import TerraformAction, TerraformRunner

logger = structlog.get_logger()

CONFIG_FILE = "config.yml"
CONFIG_DEST = Path(".circleci") / CONFIG_FILE


class CIHandler(BaseHandler):
    """Applies ``infra/circleci`` terraform and pushes ``.circleci/config.yml``."""

    name = "ci"
    system = "circleci"
    default_path = "infra/circleci"

    def __init__(
        self,
        git: GitClient,
        terraform: TerraformRunner,
        fetcher: Optional[TemplateFetcher] = None,
        *,
        github_user: Optional[str] = None,
        token: Optional[str] = None,
        workspace_root: Optional[Path] = None,
    ) -> None:
        self._git = git
        self._terraform = terraform
        self._fetcher = fetcher or TemplateFetcher(git)
        self._github_user = github_user
        self._token = token
        self._workspace_root = workspace_root

    def _variables(self, project_name: str) -> dict[str, str]:
        variables = {"project_name": project_name}
        if self._github_user:
            variables["github_user"] = self._github_user
        if self._token:
            variables["circleci_token"] = self._token
        return variables

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
        app_name = self.app_name(project_name, dict(data))
        logger.info("ci_create_started", project=project_name, repo=repo)

        with self.external_errors():
            async with staged_template(
                self._fetcher, template_source, template_path, subdir, self._workspace_root
            ) as working_dir:
                render_tree(working_dir, data)
                await self._terraform.execute(
                    working_dir, self._variables(app_name), TerraformAction.APPLY, f"{app_name}/{subdir}"
                )
                config = working_dir / CONFIG_FILE
                config_text = config.read_text(encoding="utf-8") if config.is_file() else None

            if config_text is not None:
                async with self._git.checkout(repo, depth=None) as workspace:
                    dest = workspace.path / CONFIG_DEST
                    dest.parent.mkdir(parents=True, exist_ok=True)
                    dest.write_text(render_text(config_text, data), encoding="utf-8")
                    if await workspace.commit_all("Adding CircleCI Config"):
                        await workspace.push()
            else:
                logger.warning("ci_config_missing", project=project_name, path=f"{subdir}/{CONFIG_FILE}")

        logger.info("ci_create_finished", project=project_name)
        return None

    async def destroy(
        self,
        project_name: str,
        repo_reference: Optional[str],
        *,
        step: Optional[Step] = None,
    ) -> None:
        repo = self.require_repo(repo_reference)
        subdir = self.step_path(step)
        app_name = slugify(project_name)

        with self.external_errors():
            async with self._git.checkout(repo) as workspace:
                await self._terraform.execute(
                    workspace.path / subdir,
                    self._variables(app_name),
                    TerraformAction.DESTROY,
                    f"{app_name}/{subdir}",
                )
