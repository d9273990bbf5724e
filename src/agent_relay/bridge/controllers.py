"""Controllers for relay CLI commands."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path

from agent_relay.bridge.handler import RequestHandler
from agent_relay.bridge.models import InvocationRequest, JobRecord, JobStatus
from agent_relay.bridge.persistence import PromptStore
from agent_relay.bridge.providers import SUPPORTED_PROVIDERS, get_provider
from agent_relay.config import RelaySettings


@dataclass(slots=True)
class AskCommand:
    """CLI input for one provider call."""

    storage_dir: Path | None
    provider: str
    prompt: str
    agent_role: str | None
    model: str | None
    files: tuple[str, ...]
    background: bool
    output_format: str = "text"


@dataclass(slots=True)
class JobStatusCommand:
    """CLI input for one job status lookup."""

    storage_dir: Path | None
    job_id: str
    provider: str | None
    show_response: bool = False


@dataclass(slots=True)
class JobListCommand:
    """CLI input for job listing."""

    storage_dir: Path | None
    provider: str | None
    status: str | None
    limit: int


@dataclass(slots=True)
class JobWaitCommand:
    """CLI input for polling a job until it settles."""

    storage_dir: Path | None
    job_id: str
    provider: str | None
    timeout_seconds: float
    poll_interval_seconds: float = 1.0


@dataclass(slots=True)
class RelayCommandResult:
    """Rendered lines plus success flag for CLI exit status."""

    lines: list[str]
    success: bool


class RelayCliController:
    """Coordinates provider calls and job inspection CLI operations."""

    def __init__(self) -> None:
        self._handlers: list[RequestHandler] = []

    def ask(self, command: AskCommand) -> RelayCommandResult:
        settings = _load_settings(command.storage_dir)
        handler = RequestHandler(provider=get_provider(command.provider), settings=settings)
        self._handlers.append(handler)
        result = handler.handle(
            InvocationRequest(
                prompt=command.prompt,
                agent_role=command.agent_role,
                model=command.model,
                files=command.files,
                background=command.background,
            ),
        )
        if command.output_format == "json":
            lines = [json.dumps(result.to_payload(), ensure_ascii=False, indent=2)]
        else:
            lines = result.text.splitlines()
        return RelayCommandResult(lines=lines, success=not result.is_error)

    def wait_for_background(self, timeout: float | None = None) -> bool:
        """Keep supervising dispatched background jobs until they settle."""

        return all(
            handler.supervisor.wait_for_jobs(timeout=timeout) for handler in self._handlers
        )

    def job_status(self, command: JobStatusCommand) -> RelayCommandResult:
        store = PromptStore(_load_settings(command.storage_dir).storage_dir)
        record = store.read_job_status(command.job_id, provider=command.provider)
        if record is None:
            return RelayCommandResult(lines=[f"Job not found: {command.job_id}"], success=False)
        lines = _render_job(record)
        if command.show_response:
            response = store.read_response(Path(record.response_file))
            lines += ["", response if response is not None else "(no response yet)"]
        return RelayCommandResult(lines=lines, success=True)

    def list_jobs(self, command: JobListCommand) -> list[str]:
        store = PromptStore(_load_settings(command.storage_dir).storage_dir)
        records = store.list_jobs(provider=command.provider)
        if command.status is not None:
            records = [record for record in records if record.status.value == command.status]
        if not records:
            return ["No jobs found."]
        return [
            f"{record.job_id} provider={record.provider} status={record.status.value} "
            f"model={record.model} role={record.agent_role} pid={record.pid} "
            f"spawned_at={record.spawned_at}"
            for record in records[: command.limit]
        ]

    def wait_job(self, command: JobWaitCommand) -> RelayCommandResult:
        """Poll the status store until the job reaches a terminal status."""

        store = PromptStore(_load_settings(command.storage_dir).storage_dir)
        deadline = time.monotonic() + command.timeout_seconds
        while True:
            record = store.read_job_status(command.job_id, provider=command.provider)
            if record is not None and record.status.is_terminal:
                return RelayCommandResult(
                    lines=_render_job(record),
                    success=record.status is JobStatus.COMPLETED,
                )
            if time.monotonic() >= deadline:
                state = record.status.value if record is not None else "unknown"
                return RelayCommandResult(
                    lines=[
                        f"Timed out waiting for job {command.job_id} "
                        f"after {command.timeout_seconds:g}s (last status: {state})",
                    ],
                    success=False,
                )
            time.sleep(command.poll_interval_seconds)

    def tools(self, storage_dir: Path | None = None) -> list[str]:
        settings = _load_settings(storage_dir)
        schemas = [
            provider.tool_schema(default_model=settings.provider(name).default_model)
            for name, provider in SUPPORTED_PROVIDERS.items()
        ]
        return [json.dumps(schemas, ensure_ascii=False, indent=2)]


def _load_settings(storage_dir: Path | None) -> RelaySettings:
    settings = RelaySettings.from_env(storage_dir=storage_dir)
    settings.validate()
    return settings


def _render_job(record: JobRecord) -> list[str]:
    lines = [
        f"Job: {record.job_id} provider={record.provider} status={record.status.value}",
        f"Model: {record.model} role={record.agent_role} pid={record.pid}",
        f"Spawned at: {record.spawned_at}",
    ]
    if record.completed_at is not None:
        lines.append(f"Completed at: {record.completed_at}")
    if record.error is not None:
        lines.append(f"Error: {record.error}")
    lines += [
        f"Prompt file: {record.prompt_file}",
        f"Response file: {record.response_file}",
    ]
    return lines
