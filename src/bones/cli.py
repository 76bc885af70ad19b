"""
Bones command line.

Usage:
    bones serve [--host HOST] [--port PORT]
    bones manifest TEMPLATE_SOURCE [--path PATH]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.table import Table

from bones import __version__
from bones.config import get_settings
from bones.core.errors import ExitCode, main_with_error_handling
from bones.domain.models import Step
from bones.handlers import build_git_client
from bones.logging import configure_logging
from bones.manifest.loader import ManifestLoader, TemplateFetcher

console = Console()

BANNER = r"""
 ____
|  _ \
| |_) | ___  _ __   ___  ___
|  _ < / _ \| '_ \ / _ \/ __|
| |_) | (_) | | | |  __/\__ \
|____/ \___/|_| |_|\___||___/

Your skeleton army scaffolding service
"""


def _steps_table(title: str, steps: Sequence[Step]) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Handler")
    table.add_column("Path")
    table.add_column("Cmd")
    for index, step in enumerate(steps, 1):
        table.add_row(str(index), step.name, step.handler, step.path, step.cmd)
    return table


@main_with_error_handling()
def manifest_command(template_source: str, path: str = "") -> int:
    """Load and print a skeleton manifest without running it."""
    if Path(template_source).is_dir():
        template_source = str(Path(template_source).resolve())
    loader = ManifestLoader(TemplateFetcher(build_git_client(get_settings())))
    manifest = asyncio.run(loader.load(template_source, path))
    console.print(_steps_table("generate", manifest.generate))
    console.print(_steps_table("destroy", manifest.destroy))
    return ExitCode.SUCCESS


@main_with_error_handling()
def serve_command(host: str | None = None, port: int | None = None) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from bones.api.main import create_app

    settings = get_settings()
    console.print(BANNER)
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,
    )
    return ExitCode.SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bones", description="Skeleton project scaffolding service")
    parser.add_argument("--version", action="version", version=f"bones {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default from BONES_HOST)")
    serve_parser.add_argument("--port", type=int, help="Port (default from BONES_PORT)")

    manifest_parser = subparsers.add_parser("manifest", help="Validate and print a skeleton manifest")
    manifest_parser.add_argument("template_source", help="Template repository URL or local directory")
    manifest_parser.add_argument("--path", default="", help="Template path inside the source")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, log_format=settings.log_format)

    if args.command == "serve":
        sys.exit(serve_command(args.host, args.port))

    if args.command == "manifest":
        sys.exit(manifest_command(args.template_source, args.path))

    parser.print_help()
    sys.exit(ExitCode.SUCCESS)


if __name__ == "__main__":
    main()
