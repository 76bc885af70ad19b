"""Placeholder substitution for skeleton files.

Skeleton templates use ``{{.KEY}}`` placeholders filled from the pipeline
context. Unknown keys are left as written.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, Mapping

PLACEHOLDER = re.compile(r"\{\{\s*\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def render_text(text: str, data: Mapping[str, str]) -> str:
    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        return str(data[key]) if key in data else match.group(0)

    return PLACEHOLDER.sub(_sub, text)


def _files(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file() and ".git" not in path.relative_to(root).parts:
            yield path


def render_tree(root: Path, data: Mapping[str, str]) -> list[Path]:
    """Render every text file under ``root`` in place; returns the rendered paths."""
    rendered = []
    for path in _files(root):
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            continue
        output = render_text(text, data)
        if output != text:
            path.write_text(output, encoding="utf-8")
        rendered.append(path)
    return rendered
