"""Thin wrappers around the local tools the handlers drive (git, terraform)."""

from bones.tooling.git import GitClient, GitIdentity, GitWorkspace
from bones.tooling.process import CommandResult, run_command
from bones.tooling.render import render_text, render_tree
from bones.tooling.terraform import StateBackend, TerraformAction, TerraformRunner

__all__ = [
    "CommandResult",
    "GitClient",
    "GitIdentity",
    "GitWorkspace",
    "StateBackend",
    "TerraformAction",
    "TerraformRunner",
    "render_text",
    "render_tree",
    "run_command",
]
