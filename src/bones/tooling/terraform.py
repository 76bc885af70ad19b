"""Terraform init/apply/destroy through the terraform CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping

import structlog

from bones.core.errors import ExternalSystemError
from bones.tooling.process import run_command

logger = structlog.get_logger()

SYSTEM = "terraform"


class TerraformAction(Enum):
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"


@dataclass(frozen=True)
class StateBackend:
    """S3 remote-state settings; the key is supplied per run."""

    bucket: str
    region: str = "us-east-1"
    access_key: str | None = None
    secret_key: str | None = None
    encrypt: bool = True

    def config_args(self, key: str) -> list[str]:
        values = {
            "bucket": self.bucket,
            "region": self.region,
            "encrypt": str(self.encrypt).lower(),
            "key": f"{key}/terraform.tfstate",
        }
        if self.access_key:
            values["access_key"] = self.access_key
        if self.secret_key:
            values["secret_key"] = self.secret_key
        return [f"-backend-config={name}={value}" for name, value in values.items()]


@dataclass
class TerraformRunner:
    binary: str = "terraform"
    backend: StateBackend | None = None
    timeout: float | None = 900.0
    env: dict[str, str] = field(default_factory=dict)

    def _secrets(self, variables: Mapping[str, str]) -> list[str]:
        secrets = [v for k, v in variables.items() if "token" in k or "secret" in k or "key" in k]
        if self.backend:
            secrets += [self.backend.access_key or "", self.backend.secret_key or ""]
        return secrets

    async def _run(self, working_dir: Path, args: list[str], variables: Mapping[str, str]) -> str:
        result = await run_command(
            [self.binary, *args],
            system=SYSTEM,
            cwd=working_dir,
            env={"TF_IN_AUTOMATION": "1", "TF_INPUT": "0", **self.env},
            timeout=self.timeout,
            secrets=self._secrets(variables),
        )
        return result.stdout

    async def init(self, working_dir: Path, state_key: str) -> None:
        args = ["init", "-input=false", "-no-color"]
        if self.backend:
            args += self.backend.config_args(state_key)
        await self._run(working_dir, args, {})

    async def execute(
        self,
        working_dir: Path,
        variables: Mapping[str, str],
        action: TerraformAction,
        state_key: str,
    ) -> None:
        """Init then plan, apply or destroy ``working_dir`` with ``variables``."""
        if not working_dir.is_dir():
            raise ExternalSystemError(SYSTEM, f"working directory not found: {working_dir}")

        var_args = [f"-var={name}={value}" for name, value in variables.items()]
        await self.init(working_dir, state_key)

        if action is TerraformAction.PLAN:
            await self._run(working_dir, ["plan", "-input=false", "-no-color", *var_args], variables)
            return

        if action is TerraformAction.APPLY:
            plan_file = "out.plan"
            await self._run(
                working_dir,
                ["plan", "-input=false", "-no-color", f"-out={plan_file}", *var_args],
                variables,
            )
            logger.info("terraform_applying", working_dir=str(working_dir), state_key=state_key)
            await self._run(
                working_dir, ["apply", "-input=false", "-no-color", "-auto-approve", plan_file], variables
            )
            (working_dir / plan_file).unlink(missing_ok=True)
            return

        logger.info("terraform_destroying", working_dir=str(working_dir), state_key=state_key)
        await self._run(
            working_dir, ["destroy", "-input=false", "-no-color", "-auto-approve", *var_args], variables
        )
