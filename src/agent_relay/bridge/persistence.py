"""File-based audit trail for prompts, responses and background job status."""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from agent_relay.bridge.errors import PersistenceError
from agent_relay.bridge.models import (
    JobRecord,
    PromptDraft,
    PromptRecord,
    ResponseRecord,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

_SLUG_WORD = re.compile(r"[a-z0-9]+")
_SLUG_MAX_WORDS = 6
_SLUG_MAX_CHARS = 50


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# Mode a plain open() would give; mkstemp creates files as 0600.
FILE_MODE = 0o666 & ~_current_umask()


class JobStatusStore(Protocol):
    """Write side used by the background supervisor."""

    def write_job_status(self, record: JobRecord) -> Path:
        """Overwrite the status record of one job."""

    def persist_response(self, record: ResponseRecord) -> Path:
        """Write the response record of one prompt."""


class PromptStore:
    """Deterministic on-disk layout keyed by (provider, slug, id)."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir
        self.prompts_dir = root_dir / "prompts"
        self.jobs_dir = root_dir / "jobs"

    def prompt_path(self, provider: str, slug: str, prompt_id: str) -> Path:
        return self.prompts_dir / f"{provider}-prompt-{slug}-{prompt_id}.md"

    def response_path(self, provider: str, slug: str, prompt_id: str) -> Path:
        return self.prompts_dir / f"{provider}-response-{slug}-{prompt_id}.md"

    def status_path(self, provider: str, slug: str, job_id: str) -> Path:
        return self.jobs_dir / f"{provider}-status-{slug}-{job_id}.json"

    def persist_prompt(self, draft: PromptDraft) -> PromptRecord:
        """Write the prompt audit record once per request."""

        prompt_id = uuid4().hex[:8]
        slug = slugify(draft.prompt)
        path = self.prompt_path(draft.provider, slug, prompt_id)
        header = {
            "provider": draft.provider,
            "agent_role": draft.agent_role,
            "model": draft.model,
            "files": ", ".join(draft.files) if draft.files else None,
            "timestamp": utc_now_iso(),
        }
        body = (
            f"# {draft.provider.capitalize()} Prompt\n\n"
            f"## User Prompt\n\n{draft.prompt}\n\n"
            f"## Full Prompt\n\n{draft.full_prompt}\n"
        )
        _write_text_atomic(path, _front_matter(header) + body)
        logger.debug("Prompt persisted: %s", path)
        return PromptRecord(id=prompt_id, slug=slug, file_path=str(path))

    def persist_response(self, record: ResponseRecord) -> Path:
        path = self.response_path(record.provider, record.slug, record.prompt_id)
        header: dict[str, Any] = {
            "provider": record.provider,
            "agent_role": record.agent_role,
            "model": record.model,
            "prompt_id": record.prompt_id,
            "timestamp": utc_now_iso(),
        }
        if record.used_fallback is not None:
            header["used_fallback"] = "true" if record.used_fallback else "false"
            header["fallback_model"] = record.fallback_model
        body = f"# {record.provider.capitalize()} Response\n\n{record.response}\n"
        _write_text_atomic(path, _front_matter(header) + body)
        logger.debug("Response persisted: %s", path)
        return path

    def write_job_status(self, record: JobRecord) -> Path:
        path = self.status_path(record.provider, record.slug, record.job_id)
        _write_text_atomic(
            path,
            json.dumps(record.to_payload(), ensure_ascii=False, indent=2, sort_keys=True),
        )
        return path

    def read_job_status(self, job_id: str, *, provider: str | None = None) -> JobRecord | None:
        pattern = f"{provider or '*'}-status-*-{job_id}.json"
        path = next(iter(sorted(self.jobs_dir.glob(pattern))), None)
        if path is None:
            return None
        return _load_job_record(path)

    def list_jobs(self, *, provider: str | None = None) -> list[JobRecord]:
        """Return all known jobs, newest spawn first."""

        if not self.jobs_dir.exists():
            return []
        records: list[JobRecord] = []
        for path in self.jobs_dir.glob(f"{provider or '*'}-status-*.json"):
            try:
                records.append(_load_job_record(path))
            except PersistenceError:
                logger.warning("Skipping unreadable job status file %s", path)
        records.sort(key=lambda record: record.spawned_at, reverse=True)
        return records

    def read_response(self, path: Path) -> str | None:
        """Return the response body without its front matter, if written yet."""

        if not path.exists():
            return None
        try:
            text = path.read_text("utf-8")
        except OSError as error:
            raise PersistenceError(f"Failed to read response {path}: {error}") from error
        return strip_front_matter(text)


def slugify(prompt: str) -> str:
    words = _SLUG_WORD.findall(prompt.lower())[:_SLUG_MAX_WORDS]
    slug = "-".join(words)[:_SLUG_MAX_CHARS].strip("-")
    return slug or "prompt"


def strip_front_matter(text: str) -> str:
    if not text.startswith("---\n"):
        return text
    end = text.find("\n---\n", 4)
    if end == -1:
        return text
    return text[end + len("\n---\n") :].lstrip("\n")


def _front_matter(fields: dict[str, Any]) -> str:
    lines = [f"{key}: {value}" for key, value in fields.items() if value is not None]
    return "---\n" + "\n".join(lines) + "\n---\n\n"


def _load_job_record(path: Path) -> JobRecord:
    try:
        payload = json.loads(path.read_text("utf-8"))
        return JobRecord.from_payload(payload)
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as error:
        raise PersistenceError(f"Invalid job status file {path}: {error}") from error


def _write_text_atomic(path: Path, text: str) -> None:
    """Replace `path` in one step so readers never see a partial record."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.chmod(tmp_name, FILE_MODE)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as error:
        raise PersistenceError(f"Failed to write {path}: {error}") from error
