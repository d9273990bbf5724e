"""Domain models for prompt dispatch and background job tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Background job lifecycle states."""

    SPAWNED = "spawned"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMEOUT})


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


@dataclass(frozen=True, slots=True)
class InvocationRequest:
    """Immutable input of one provider call."""

    prompt: str
    agent_role: str | None
    model: str | None = None
    files: tuple[str, ...] = ()
    background: bool = False


@dataclass(slots=True)
class PromptDraft:
    """Prompt audit payload written once per request."""

    provider: str
    agent_role: str
    model: str
    prompt: str
    full_prompt: str
    files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PromptRecord:
    """Join key returned by prompt persistence."""

    id: str
    slug: str
    file_path: str


@dataclass(slots=True)
class ResponseRecord:
    """Response payload persisted after a successful execution."""

    provider: str
    agent_role: str
    model: str
    prompt_id: str
    slug: str
    response: str
    used_fallback: bool | None = None
    fallback_model: str | None = None


@dataclass(frozen=True, slots=True)
class JobMeta:
    """Identity of one background job, fixed before spawn."""

    provider: str
    job_id: str
    slug: str
    agent_role: str
    model: str
    prompt_file: str
    response_file: str


@dataclass(frozen=True, slots=True)
class JobRecord:
    """One persisted job status snapshot, superseded by the next write."""

    provider: str
    job_id: str
    slug: str
    status: JobStatus
    pid: int
    prompt_file: str
    response_file: str
    model: str
    agent_role: str
    spawned_at: str
    completed_at: str | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the on-disk field names."""

        payload: dict[str, Any] = {
            "provider": self.provider,
            "jobId": self.job_id,
            "slug": self.slug,
            "status": self.status.value,
            "pid": self.pid,
            "promptFile": self.prompt_file,
            "responseFile": self.response_file,
            "model": self.model,
            "agentRole": self.agent_role,
            "spawnedAt": self.spawned_at,
        }
        if self.completed_at is not None:
            payload["completedAt"] = self.completed_at
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> JobRecord:
        return cls(
            provider=str(payload["provider"]),
            job_id=str(payload["jobId"]),
            slug=str(payload["slug"]),
            status=JobStatus(payload["status"]),
            pid=int(payload["pid"]),
            prompt_file=str(payload["promptFile"]),
            response_file=str(payload["responseFile"]),
            model=str(payload["model"]),
            agent_role=str(payload["agentRole"]),
            spawned_at=str(payload["spawnedAt"]),
            completed_at=payload.get("completedAt"),
            error=payload.get("error"),
        )


@dataclass(frozen=True, slots=True)
class BackgroundLaunch:
    """Handle returned by a background spawn: a pid or an error message."""

    pid: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.pid is not None


@dataclass(slots=True)
class TextContent:
    """One text content block of a tool result."""

    text: str
    type: str = "text"


@dataclass(slots=True)
class ToolResult:
    """Result shape returned to the calling layer."""

    content: list[TextContent] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def text_result(cls, text: str, *, is_error: bool = False) -> ToolResult:
        return cls(content=[TextContent(text=text)], is_error=is_error)

    @property
    def text(self) -> str:
        return "\n".join(block.text for block in self.content)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "content": [{"type": block.type, "text": block.text} for block in self.content],
        }
        if self.is_error:
            payload["isError"] = True
        return payload
