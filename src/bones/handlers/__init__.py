"""Step handlers and the registry that dispatches to them."""

from __future__ import annotations

from bones.clients.github import GitHubClient
from bones.config import Settings
from bones.handlers.ci import CIHandler
from bones.handlers.infra import InfraHandler
from bones.handlers.registry import REPO_REFERENCE_KEY, Handler, HandlerRegistry
from bones.handlers.source_repo import SourceRepoHandler
from bones.manifest.loader import TemplateFetcher
from bones.tooling.git import GitClient, GitIdentity
from bones.tooling.terraform import StateBackend, TerraformRunner


def build_git_client(settings: Settings) -> GitClient:
    return GitClient(
        base_url=settings.github_base_url,
        identity=GitIdentity(
            user=settings.github_user,
            email=settings.github_email,
            token=settings.github_token,
        ),
        binary=settings.git_binary,
        timeout=settings.command_timeout_seconds,
        workspace_root=settings.workspace_root,
    )


def register_default_handlers(registry: HandlerRegistry, settings: Settings) -> HandlerRegistry:
    """Register the GitHub, AWS and CircleCI handlers under their keys and legacy aliases."""
    git = build_git_client(settings)
    fetcher = TemplateFetcher(git)
    terraform = TerraformRunner(
        binary=settings.terraform_binary,
        backend=StateBackend(
            bucket=settings.state_bucket,
            region=settings.aws_region,
            access_key=settings.aws_access_key,
            secret_key=settings.aws_secret_key,
        ),
        timeout=settings.command_timeout_seconds,
    )
    github = GitHubClient(
        settings.github_token,
        base_url=settings.github_api_url,
        org=settings.github_org,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
        backoff_factor=settings.http_retry_backoff_factor,
    )

    registry.register(
        SourceRepoHandler(github, git, fetcher, owner=settings.github_org or settings.github_user),
        aliases=("github",),
    )
    registry.register(
        InfraHandler(
            git,
            terraform,
            fetcher,
            variables={
                "vpc_id": settings.aws_vpc_id or "",
                "aws_region": settings.aws_region,
                "aws_access_key": settings.aws_access_key or "",
                "aws_secret_key": settings.aws_secret_key or "",
            },
        ),
        aliases=("aws",),
    )
    registry.register(
        CIHandler(
            git,
            terraform,
            fetcher,
            github_user=settings.github_user,
            token=settings.circleci_token,
            workspace_root=settings.workspace_root,
        ),
        aliases=("circleci",),
    )
    return registry


__all__ = [
    "CIHandler",
    "Handler",
    "HandlerRegistry",
    "InfraHandler",
    "REPO_REFERENCE_KEY",
    "SourceRepoHandler",
    "build_git_client",
    "register_default_handlers",
]
