from __future__ import annotations

from typing import Any

import httpx
import structlog

from bones.clients.base import BaseHTTPClient, PermanentHTTPError

logger = structlog.get_logger()


class GitHubClient(BaseHTTPClient):
    """GitHub REST client for repository lifecycle."""

    system = "github"

    def __init__(
        self,
        token: str | None,
        *,
        base_url: str = "https://api.github.com",
        org: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )
        self._token = token
        self._org = org

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["Accept"] = "application/vnd.github+json"
        headers["X-GitHub-Api-Version"] = "2022-11-28"
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _is_retryable(self, response: httpx.Response) -> bool:
        # Exhausted primary rate limit comes back as 403
        if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
            return True
        return super()._is_retryable(response)

    async def create_repository(
        self,
        name: str,
        *,
        description: str = "",
        private: bool = True,
    ) -> dict[str, Any]:
        """Create a repository under the configured org, or the token's user."""
        path = f"/orgs/{self._org}/repos" if self._org else "/user/repos"
        payload = {"name": name, "description": description, "private": private, "auto_init": False}
        repo = await self.post(path, json=payload)
        logger.info("github_repo_created", repo=repo.get("full_name", name))
        return repo

    async def get_repository(self, full_name: str) -> dict[str, Any]:
        return await self.get(f"/repos/{full_name}")

    async def delete_repository(self, full_name: str) -> bool:
        """Delete a repository; returns False when it was already gone."""
        try:
            await self.delete(f"/repos/{full_name}")
        except PermanentHTTPError as exc:
            if exc.status_code == 404:
                logger.info("github_repo_already_deleted", repo=full_name)
                return False
            raise
        logger.info("github_repo_deleted", repo=full_name)
        return True
