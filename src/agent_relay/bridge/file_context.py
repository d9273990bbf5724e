"""Sandboxed reading of context files included in a prompt."""

from __future__ import annotations

import os
from pathlib import Path


def read_context_file(file_path: str, *, boundary: Path, max_bytes: int) -> str:
    """Return a prompt block for one file, or a marker explaining why it was skipped.

    Both the lexical path and its symlink-resolved target must stay inside
    `boundary`; the boundary itself is never an acceptable target.
    """

    if not isinstance(file_path, str):
        return f"--- File: {file_path} --- (Invalid path type)"
    try:
        boundary_real = boundary.resolve(strict=True)
        candidate = Path(os.path.abspath(boundary_real / file_path))
        if not _is_strictly_inside(candidate, boundary_real):
            return _blocked(file_path)

        resolved_real = candidate.resolve(strict=True)
        if not _is_strictly_inside(resolved_real, boundary_real):
            return _blocked(file_path)

        if not resolved_real.is_file():
            return f"--- File: {file_path} --- (Not a regular file)"
        size = resolved_real.stat().st_size
        if size > max_bytes:
            return (
                f"--- File: {file_path} --- (File too large: {size / 1024 / 1024:.1f}MB, "
                f"max {max_bytes / 1024 / 1024:.0f}MB)"
            )
        return f"--- File: {file_path} ---\n{resolved_real.read_text('utf-8')}"
    except (OSError, UnicodeDecodeError, ValueError):
        return f"--- File: {file_path} --- (Error reading file)"


def build_file_context(files: tuple[str, ...], *, boundary: Path, max_bytes: int) -> str | None:
    if not files:
        return None
    return "\n\n".join(
        read_context_file(file_path, boundary=boundary, max_bytes=max_bytes) for file_path in files
    )


def _is_strictly_inside(path: Path, boundary: Path) -> bool:
    relative = os.path.relpath(path, boundary)
    if relative in (".", ".."):
        return False
    return not relative.startswith(".." + os.sep) and not os.path.isabs(relative)


def _blocked(file_path: str) -> str:
    return (
        f"[BLOCKED] File '{file_path}' is outside the working directory. "
        "Only files within the project are allowed."
    )
