"""Clone, commit and push through the git CLI."""

from __future__ import annotations

import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator
from urllib.parse import quote, urlsplit, urlunsplit

import structlog

from bones.tooling.process import run_command

logger = structlog.get_logger()

SYSTEM = "git"


@dataclass(frozen=True)
class GitIdentity:
    user: str | None = None
    email: str = "bones@example.com"
    token: str | None = None


class GitClient:
    """Runs git commands with credentials injected into https remotes."""

    def __init__(
        self,
        *,
        base_url: str = "https://github.com",
        identity: GitIdentity | None = None,
        binary: str = "git",
        timeout: float | None = 900.0,
        workspace_root: Path | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._identity = identity or GitIdentity()
        self._binary = binary
        self._timeout = timeout
        self._workspace_root = workspace_root

    @property
    def identity(self) -> GitIdentity:
        return self._identity

    def remote_url(self, reference: str) -> str:
        """Turn an ``owner/name`` reference into a clone URL.

        URLs and absolute local paths are returned unchanged.
        """
        if "://" in reference or reference.startswith("git@") or Path(reference).is_absolute():
            return reference
        return f"{self._base_url}/{reference.strip('/')}.git"

    def _authenticated(self, url: str) -> str:
        token = self._identity.token
        parts = urlsplit(url)
        if not token or parts.scheme != "https" or "@" in parts.netloc:
            return url
        user = quote(self._identity.user or "x-access-token", safe="")
        netloc = f"{user}:{quote(token, safe='')}@{parts.netloc}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))

    async def run(self, *args: str, cwd: Path | None = None) -> str:
        result = await run_command(
            [self._binary, *args],
            system=SYSTEM,
            cwd=cwd,
            env={"GIT_TERMINAL_PROMPT": "0"},
            timeout=self._timeout,
            secrets=[self._identity.token or ""],
        )
        return result.stdout

    async def clone(self, reference: str, dest: Path, *, depth: int | None = 1) -> Path:
        url = self._authenticated(self.remote_url(reference))
        args = ["clone", "--quiet"]
        if depth is not None and "://" in url:
            args += ["--depth", str(depth)]
        await self.run(*args, url, str(dest))
        logger.info("git_cloned", reference=reference, dest=str(dest))
        return dest

    @asynccontextmanager
    async def checkout(self, reference: str, *, depth: int | None = 1) -> AsyncIterator[GitWorkspace]:
        """Clone into a temporary directory that is removed on exit."""
        with tempfile.TemporaryDirectory(prefix="bones-", dir=self._workspace_root) as tmp:
            dest = Path(tmp) / "checkout"
            await self.clone(reference, dest, depth=depth)
            yield GitWorkspace(self, dest)


class GitWorkspace:
    """A cloned working tree."""

    def __init__(self, client: GitClient, path: Path) -> None:
        self.client = client
        self.path = path

    async def commit_all(self, message: str) -> bool:
        """Stage everything and commit; returns False when there was nothing to commit."""
        await self.client.run("add", "--all", cwd=self.path)
        status = await self.client.run("status", "--porcelain", cwd=self.path)
        if not status.strip():
            return False
        identity = self.client.identity
        await self.client.run(
            "-c",
            f"user.name={identity.user or 'bones'}",
            "-c",
            f"user.email={identity.email}",
            "commit",
            "--quiet",
            "-m",
            message,
            cwd=self.path,
        )
        return True

    async def push(self) -> None:
        await self.client.run("push", "--quiet", "origin", "HEAD", cwd=self.path)
        logger.info("git_pushed", path=str(self.path))
