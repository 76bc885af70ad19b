from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

import structlog

from bones.core.errors import ExternalSystemError

logger = structlog.get_logger()

OUTPUT_PREVIEW_LENGTH = 2000


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


def _redact(argv: Sequence[str], secrets: Sequence[str]) -> list[str]:
    redacted = []
    for arg in argv:
        for secret in secrets:
            if secret:
                arg = arg.replace(secret, "***")
        redacted.append(arg)
    return redacted


async def run_command(
    argv: Sequence[str],
    *,
    system: str,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    secrets: Sequence[str] = (),
) -> CommandResult:
    """Run a subprocess to completion and raise ExternalSystemError on failure.

    ``secrets`` are masked in logs and error messages.
    """
    shown = _redact(argv, secrets)
    logger.debug("command_started", system=system, argv=shown, cwd=str(cwd) if cwd else None)

    full_env = None
    if env is not None:
        full_env = {**os.environ, **env}

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env=full_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise ExternalSystemError(system, f"executable not found: {argv[0]}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise ExternalSystemError(system, f"command timed out after {timeout}s: {' '.join(shown)}") from exc
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    result = CommandResult(
        argv=tuple(argv),
        returncode=proc.returncode or 0,
        stdout=stdout.decode(errors="replace") if stdout else "",
        stderr=stderr.decode(errors="replace") if stderr else "",
    )

    if result.returncode != 0:
        error_text = " ".join(_redact([result.stderr.strip() or result.stdout.strip()], secrets))
        logger.error(
            "command_failed",
            system=system,
            argv=shown,
            returncode=result.returncode,
            stderr=error_text[:OUTPUT_PREVIEW_LENGTH],
        )
        raise ExternalSystemError(
            system,
            f"'{' '.join(shown[:2])}' exited with {result.returncode}: {error_text[:OUTPUT_PREVIEW_LENGTH]}",
            {"returncode": result.returncode},
        )

    return result
