from __future__ import annotations

from pathlib import Path

import allure
import pytest

from agent_relay.config import (
    DEFAULT_TIMEOUT_MS,
    MAX_TIMEOUT_MS,
    MIN_TIMEOUT_MS,
    ProviderSettings,
    RelaySettings,
    clamp_timeout_ms,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings"),
]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, DEFAULT_TIMEOUT_MS),
        ("", DEFAULT_TIMEOUT_MS),
        ("not-a-number", DEFAULT_TIMEOUT_MS),
        ("0", DEFAULT_TIMEOUT_MS),
        ("-5", MIN_TIMEOUT_MS),
        ("100", MIN_TIMEOUT_MS),
        ("60000", 60_000),
        ("99999999", MAX_TIMEOUT_MS),
    ],
)
def test_clamp_timeout_ms(raw: str | None, expected: int) -> None:
    assert clamp_timeout_ms(raw) == expected


def test_from_env_reads_relay_variables(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("AGENT_RELAY_STORAGE_DIR", str(tmp_path / "audit"))
    monkeypatch.setenv("AGENT_RELAY_WORKDIR", str(tmp_path))
    monkeypatch.setenv("AGENT_RELAY_AGENTS_DIR", str(tmp_path / "agents"))
    monkeypatch.setenv("AGENT_RELAY_MAX_CONTEXT_FILES", "7")
    monkeypatch.setenv("AGENT_RELAY_CODEX_COMMAND", "/opt/bin/codex --profile ci")
    monkeypatch.setenv("AGENT_RELAY_CODEX_DEFAULT_MODEL", "gpt-test")
    monkeypatch.setenv("AGENT_RELAY_GEMINI_TIMEOUT_MS", "120000")

    settings = RelaySettings.from_env()

    assert settings.storage_dir == tmp_path / "audit"
    assert settings.workdir == tmp_path
    assert settings.agents_dir == tmp_path / "agents"
    assert settings.max_context_files == 7
    assert settings.codex.command_argv() == ["/opt/bin/codex", "--profile", "ci"]
    assert settings.codex.default_model == "gpt-test"
    assert settings.gemini.timeout_ms == 120_000
    assert settings.gemini.timeout_seconds == 120.0


def test_from_env_falls_back_to_legacy_variable_names(monkeypatch) -> None:
    monkeypatch.delenv("AGENT_RELAY_GEMINI_DEFAULT_MODEL", raising=False)
    monkeypatch.delenv("AGENT_RELAY_CODEX_TIMEOUT_MS", raising=False)
    monkeypatch.setenv("OMC_GEMINI_DEFAULT_MODEL", "gemini-2.5-pro")
    monkeypatch.setenv("OMC_CODEX_TIMEOUT", "1000")

    settings = RelaySettings.from_env()

    assert settings.gemini.default_model == "gemini-2.5-pro"
    assert settings.codex.timeout_ms == MIN_TIMEOUT_MS


def test_from_env_defaults(monkeypatch) -> None:
    for name in (
        "AGENT_RELAY_STORAGE_DIR",
        "AGENT_RELAY_AGENTS_DIR",
        "AGENT_RELAY_CODEX_COMMAND",
        "AGENT_RELAY_CODEX_DEFAULT_MODEL",
        "OMC_CODEX_DEFAULT_MODEL",
        "AGENT_RELAY_CODEX_TIMEOUT_MS",
        "OMC_CODEX_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = RelaySettings.from_env(storage_dir=Path("custom"))

    assert settings.storage_dir == Path("custom")
    assert settings.agents_dir is None
    assert settings.codex.command_argv() == ["codex"]
    assert settings.codex.default_model == "gpt-5.2"
    assert settings.codex.timeout_ms == DEFAULT_TIMEOUT_MS


def test_validate_rejects_empty_command() -> None:
    settings = RelaySettings(codex=ProviderSettings(command="  ", default_model="gpt-5.2"))

    with pytest.raises(ValueError, match="AGENT_RELAY_CODEX_COMMAND"):
        settings.validate()


def test_validate_rejects_non_positive_context_file_cap() -> None:
    settings = RelaySettings(max_context_files=0)

    with pytest.raises(ValueError, match="MAX_CONTEXT_FILES"):
        settings.validate()


def test_provider_lookup_rejects_unknown_name() -> None:
    with pytest.raises(ValueError, match="Unknown provider"):
        RelaySettings().provider("claude")


def test_from_env_rejects_non_integer_context_file_cap(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_RELAY_MAX_CONTEXT_FILES", "lots")

    with pytest.raises(ValueError, match="AGENT_RELAY_MAX_CONTEXT_FILES must be an integer"):
        RelaySettings.from_env()
