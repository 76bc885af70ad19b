"""Source repository handler: creates the project repository from the skeleton."""

from __future__ import annotations

from typing import Mapping, Optional

import structlog

from bones.clients.github import GitHubClient
from bones.core.errors import ExternalSystemError
from bones.domain.models import Step
from bones.handlers.base import BaseHandler, copy_tree, template_dir
from bones.handlers.registry import PARTIAL_ARTIFACT_DETAIL, REPO_REFERENCE_KEY
from bones.manifest.loader import TemplateFetcher
from bones.tooling.git import GitClient
from bones.tooling.render import render_tree

logger = structlog.get_logger()


class SourceRepoHandler(BaseHandler):
    """Creates a GitHub repository seeded with the rendered skeleton.

    The artifact is the ``owner/name`` reference later steps clone from.
    """

    name = "source-repo"
    system = "github"
    artifact_key = REPO_REFERENCE_KEY

    def __init__(
        self,
        github: GitHubClient,
        git: GitClient,
        fetcher: Optional[TemplateFetcher] = None,
        *,
        owner: Optional[str] = None,
        private: bool = True,
    ) -> None:
        self._github = github
        self._git = git
        self._fetcher = fetcher or TemplateFetcher(git)
        self._owner = owner
        self._private = private

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
        repo_name = self.app_name(project_name, dict(data))
        log = logger.bind(project=project_name, repo=repo_name)

        with self.external_errors():
            created = await self._github.create_repository(
                repo_name,
                description=data.get("PROJECT_DESCRIPTION", ""),
                private=self._private,
            )
        full_name = created.get("full_name") or f"{self._owner}/{repo_name}"
        log.info("source_repo_created", full_name=full_name)

        try:
            with self.external_errors():
                async with self._fetcher.materialize(template_source) as root:
                    async with self._git.checkout(full_name, depth=None) as workspace:
                        copy_tree(
                            template_dir(root, template_path, self.step_path(step)), workspace.path
                        )
                        render_tree(workspace.path, data)
                        if await workspace.commit_all("Initial Commit"):
                            await workspace.push()
        except ExternalSystemError as exc:
            await self._discard(full_name, exc)
            raise

        log.info("source_repo_seeded", full_name=full_name)
        return full_name

    async def destroy(
        self,
        project_name: str,
        repo_reference: Optional[str],
        *,
        step: Optional[Step] = None,
    ) -> None:
        if not repo_reference:
            logger.warning("source_repo_destroy_skipped", project=project_name, reason="no repository")
            return
        with self.external_errors():
            await self._github.delete_repository(repo_reference)

    async def _discard(self, full_name: str, cause: ExternalSystemError) -> None:
        """Delete a repository whose seeding failed.

        If the delete fails too, the reference is attached to ``cause`` so the
        project still records it and destroy can remove the repository later.
        """
        log = logger.bind(full_name=full_name, reason=cause.message)
        try:
            with self.external_errors():
                await self._github.delete_repository(full_name)
        except ExternalSystemError as exc:
            cause.details[PARTIAL_ARTIFACT_DETAIL] = full_name
            log.error("source_repo_orphaned", error=exc.message)
            return
        log.warning("source_repo_discarded")
