"""Shared test fixtures."""

from __future__ import annotations

import shlex
import sys
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from agent_relay.bridge.backend import echo_agent
from agent_relay.bridge.models import JobRecord, JobStatus
from agent_relay.bridge.persistence import PromptStore
from agent_relay.config import ProviderSettings, RelaySettings

ECHO_AGENT_PATH = Path(echo_agent.__file__)


class RecordingStore(PromptStore):
    """Prompt store that remembers every status write in order."""

    def __init__(self, root_dir: Path) -> None:
        super().__init__(root_dir)
        self.status_writes: list[JobRecord] = []
        self.response_existed_at_completion: bool | None = None

    def write_job_status(self, record: JobRecord) -> Path:
        if record.status is JobStatus.COMPLETED:
            self.response_existed_at_completion = Path(record.response_file).exists()
        self.status_writes.append(record)
        return super().write_job_status(record)

    @property
    def statuses(self) -> list[JobStatus]:
        return [record.status for record in self.status_writes]


@pytest.fixture()
def echo_command() -> Callable[..., str]:
    """Build a command line that runs the bundled echo agent."""

    def _build(*extra: str) -> str:
        return shlex.join([sys.executable, str(ECHO_AGENT_PATH), *extra])

    return _build


@pytest.fixture()
def fake_agent(tmp_path: Path) -> Callable[[str, str], str]:
    """Write a throwaway agent script and return the command that runs it."""

    def _write(name: str, body: str) -> str:
        script = tmp_path / "agents_bin" / f"{name}.py"
        script.parent.mkdir(parents=True, exist_ok=True)
        script.write_text(body.strip() + "\n", "utf-8")
        return shlex.join([sys.executable, str(script)])

    return _write


@pytest.fixture()
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture()
def relay_settings(tmp_path: Path, workdir: Path, echo_command) -> RelaySettings:
    return RelaySettings(
        storage_dir=tmp_path / "store",
        workdir=workdir,
        codex=ProviderSettings(
            command=echo_command("--format", "jsonl"),
            default_model="gpt-5.2",
            timeout_ms=20_000,
        ),
        gemini=ProviderSettings(
            command=echo_command("--format", "plain"),
            default_model="gemini-3-pro-preview",
            timeout_ms=20_000,
        ),
    )


@pytest.fixture()
def recording_store(tmp_path: Path) -> RecordingStore:
    return RecordingStore(tmp_path / "store")


@pytest.fixture()
def wait_for_terminal() -> Callable[..., JobRecord]:
    """Poll the store until a job reaches a terminal status."""

    def _wait(store: PromptStore, job_id: str, timeout: float = 15.0) -> JobRecord:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            record = store.read_job_status(job_id)
            if record is not None and record.status.is_terminal:
                return record
            time.sleep(0.05)
        raise AssertionError(f"job {job_id} did not settle within {timeout}s")

    return _wait
