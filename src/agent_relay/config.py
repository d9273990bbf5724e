"""Runtime configuration for provider execution and persistence."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_TIMEOUT_MS = 3_600_000
MIN_TIMEOUT_MS = 5_000
MAX_TIMEOUT_MS = 3_600_000
MAX_CONTEXT_FILES = 20
MAX_FILE_SIZE_BYTES = 5 * 1024 * 1024


@dataclass(slots=True)
class ProviderSettings:
    """Per-provider execution settings."""

    command: str
    default_model: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def command_argv(self) -> list[str]:
        """Split the executable prefix the way a POSIX shell would."""

        return shlex.split(self.command)


@dataclass(slots=True)
class RelaySettings:
    """Application settings grouped by concern."""

    storage_dir: Path = Path(".agent_relay")
    workdir: Path = field(default_factory=Path.cwd)
    agents_dir: Path | None = None
    max_context_files: int = MAX_CONTEXT_FILES
    max_file_size_bytes: int = MAX_FILE_SIZE_BYTES
    codex: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(command="codex", default_model="gpt-5.2"),
    )
    gemini: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(
            command="gemini",
            default_model="gemini-3-pro-preview",
        ),
    )

    @classmethod
    def from_env(cls, storage_dir: Path | None = None) -> RelaySettings:
        """Load settings from environment with sane defaults for local use."""

        agents_dir_raw = os.getenv("AGENT_RELAY_AGENTS_DIR", "").strip()
        workdir_raw = os.getenv("AGENT_RELAY_WORKDIR", "").strip()
        return cls(
            storage_dir=storage_dir
            or Path(os.getenv("AGENT_RELAY_STORAGE_DIR", ".agent_relay")),
            workdir=Path(workdir_raw) if workdir_raw else Path.cwd(),
            agents_dir=Path(agents_dir_raw) if agents_dir_raw else None,
            max_context_files=_env_int("AGENT_RELAY_MAX_CONTEXT_FILES", MAX_CONTEXT_FILES),
            codex=_provider_settings_from_env(
                "CODEX",
                default_command="codex",
                default_model="gpt-5.2",
            ),
            gemini=_provider_settings_from_env(
                "GEMINI",
                default_command="gemini",
                default_model="gemini-3-pro-preview",
            ),
        )

    def provider(self, name: str) -> ProviderSettings:
        """Return settings for a provider by its tag."""

        if name == "codex":
            return self.codex
        if name == "gemini":
            return self.gemini
        raise ValueError(f"Unknown provider: {name!r}. Use codex or gemini.")

    def validate(self) -> None:
        """Raise configuration error if settings cannot drive a request."""

        if self.max_context_files <= 0:
            raise ValueError("AGENT_RELAY_MAX_CONTEXT_FILES must be > 0.")
        if self.max_file_size_bytes <= 0:
            raise ValueError("Max context file size must be > 0 bytes.")
        for name in ("codex", "gemini"):
            provider = self.provider(name)
            if not provider.command_argv():
                raise ValueError(
                    f"AGENT_RELAY_{name.upper()}_COMMAND must not be empty.",
                )
            if not provider.default_model.strip():
                raise ValueError(
                    f"AGENT_RELAY_{name.upper()}_DEFAULT_MODEL must not be empty.",
                )


def clamp_timeout_ms(raw: str | None) -> int:
    """Parse a millisecond timeout and clamp it into the supported range."""

    try:
        value = int((raw or "").strip())
    except ValueError:
        value = 0
    if value == 0:
        value = DEFAULT_TIMEOUT_MS
    return min(max(MIN_TIMEOUT_MS, value), MAX_TIMEOUT_MS)


def _provider_settings_from_env(
    prefix: str,
    *,
    default_command: str,
    default_model: str,
) -> ProviderSettings:
    return ProviderSettings(
        command=os.getenv(f"AGENT_RELAY_{prefix}_COMMAND", default_command),
        default_model=os.getenv(
            f"AGENT_RELAY_{prefix}_DEFAULT_MODEL",
            os.getenv(f"OMC_{prefix}_DEFAULT_MODEL", default_model),
        ),
        timeout_ms=clamp_timeout_ms(
            os.getenv(
                f"AGENT_RELAY_{prefix}_TIMEOUT_MS",
                os.getenv(f"OMC_{prefix}_TIMEOUT"),
            ),
        ),
    )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from error
