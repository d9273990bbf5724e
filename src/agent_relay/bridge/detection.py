"""Availability checks for provider CLI executables."""

from __future__ import annotations

import shutil
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CliDetection:
    """Result of looking up one CLI executable."""

    available: bool
    path: str | None
    error: str | None
    install_hint: str


def detect_cli(executable: str, *, install_hint: str) -> CliDetection:
    resolved = shutil.which(executable)
    if resolved is None:
        return CliDetection(
            available=False,
            path=None,
            error=f"Executable not found in PATH: {executable}",
            install_hint=f"Install with: {install_hint}",
        )
    return CliDetection(available=True, path=resolved, error=None, install_hint=install_hint)
