from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import allure
import pytest

from agent_relay.bridge.errors import PersistenceError
from agent_relay.bridge.models import (
    JobRecord,
    JobStatus,
    PromptDraft,
    ResponseRecord,
)
from agent_relay.bridge.persistence import FILE_MODE, PromptStore, slugify, strip_front_matter

pytestmark = [
    allure.epic("Audit Trail"),
    allure.feature("Prompt & Job Status Store"),
]


def _job(job_id: str, *, provider: str = "codex", spawned_at: str, **overrides) -> JobRecord:
    values = {
        "provider": provider,
        "job_id": job_id,
        "slug": "review-plan",
        "status": JobStatus.SPAWNED,
        "pid": 4242,
        "prompt_file": "/tmp/prompt.md",
        "response_file": "/tmp/response.md",
        "model": "gpt-5.2",
        "agent_role": "architect",
        "spawned_at": spawned_at,
    }
    values.update(overrides)
    return JobRecord(**values)


def test_slugify() -> None:
    assert slugify("Review the API plan, please! Now & later again") == (
        "review-the-api-plan-please-now"
    )
    assert slugify("!!!") == "prompt"
    assert len(slugify("word" * 40)) <= 50


def test_persist_prompt_writes_audit_file(tmp_path: Path) -> None:
    store = PromptStore(tmp_path)

    record = store.persist_prompt(
        PromptDraft(
            provider="codex",
            agent_role="architect",
            model="gpt-5.2",
            prompt="Review the plan",
            full_prompt="<system-instructions>\nbe terse\n</system-instructions>\n\nReview the plan",
            files=("a.py", "b.py"),
        ),
    )

    path = Path(record.file_path)
    assert record.slug == "review-the-plan"
    assert len(record.id) == 8
    assert path == store.prompt_path("codex", record.slug, record.id)
    text = path.read_text("utf-8")
    assert "agent_role: architect" in text
    assert "files: a.py, b.py" in text
    assert "## Full Prompt" in text


def test_persist_response_records_fallback_annotation(tmp_path: Path) -> None:
    store = PromptStore(tmp_path)

    path = store.persist_response(
        ResponseRecord(
            provider="gemini",
            agent_role="designer",
            model="gemini-2.5-pro",
            prompt_id="abcd1234",
            slug="design",
            response="Looks good.",
            used_fallback=True,
            fallback_model="gemini-2.5-pro",
        ),
    )

    assert path == store.response_path("gemini", "design", "abcd1234")
    text = path.read_text("utf-8")
    assert "used_fallback: true" in text
    assert "fallback_model: gemini-2.5-pro" in text
    assert store.read_response(path) == "# Gemini Response\n\nLooks good.\n"


def test_job_status_overwrites_in_place_and_round_trips(tmp_path: Path) -> None:
    store = PromptStore(tmp_path)
    spawned = _job("job00001", spawned_at="2026-01-01T00:00:00+00:00")
    store.write_job_status(spawned)
    path = store.write_job_status(
        _job(
            "job00001",
            spawned_at="2026-01-01T00:00:00+00:00",
            status=JobStatus.FAILED,
            completed_at="2026-01-01T00:01:00+00:00",
            error="Codex exited with code 2: bad flag",
        ),
    )

    payload = json.loads(path.read_text("utf-8"))
    assert payload["status"] == "failed"
    assert payload["jobId"] == "job00001"
    assert payload["error"] == "Codex exited with code 2: bad flag"
    assert len(list(store.jobs_dir.glob("*.json"))) == 1

    loaded = store.read_job_status("job00001")
    assert loaded is not None
    assert loaded.status is JobStatus.FAILED
    assert loaded.completed_at == "2026-01-01T00:01:00+00:00"


def test_spawned_status_omits_terminal_fields(tmp_path: Path) -> None:
    store = PromptStore(tmp_path)
    path = store.write_job_status(_job("job00002", spawned_at="2026-01-01T00:00:00+00:00"))

    payload = json.loads(path.read_text("utf-8"))
    assert "completedAt" not in payload
    assert "error" not in payload


def test_list_jobs_newest_first_with_provider_filter(tmp_path: Path) -> None:
    store = PromptStore(tmp_path)
    store.write_job_status(_job("old00001", spawned_at="2026-01-01T00:00:00+00:00"))
    store.write_job_status(_job("new00001", spawned_at="2026-01-02T00:00:00+00:00"))
    store.write_job_status(
        _job("gem00001", provider="gemini", spawned_at="2026-01-03T00:00:00+00:00"),
    )
    (store.jobs_dir / "codex-status-broken-deadbeef.json").write_text("{", "utf-8")

    assert [job.job_id for job in store.list_jobs()] == ["gem00001", "new00001", "old00001"]
    assert [job.job_id for job in store.list_jobs(provider="codex")] == ["new00001", "old00001"]
    assert store.read_job_status("gem00001", provider="codex") is None


def test_list_jobs_on_empty_store(tmp_path: Path) -> None:
    assert PromptStore(tmp_path / "nothing").list_jobs() == []


def test_write_failure_raises_persistence_error(tmp_path: Path) -> None:
    blocker = tmp_path / "store"
    blocker.write_text("not a directory", "utf-8")
    store = PromptStore(blocker)

    with pytest.raises(PersistenceError, match="Failed to write"):
        store.write_job_status(_job("job00003", spawned_at="2026-01-01T00:00:00+00:00"))


def test_strip_front_matter_leaves_plain_text_untouched() -> None:
    assert strip_front_matter("no header") == "no header"
    assert strip_front_matter("---\nkey: value\n---\n\nbody") == "body"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_records_use_umask_mode_not_private_temp_mode(tmp_path: Path) -> None:
    store = PromptStore(tmp_path)

    status_path = store.write_job_status(
        _job("job00004", spawned_at="2026-01-01T00:00:00+00:00"),
    )
    record = store.persist_prompt(
        PromptDraft(
            provider="codex",
            agent_role="critic",
            model="gpt-5.2",
            prompt="check modes",
            full_prompt="check modes",
        ),
    )

    current_umask = os.umask(0)
    os.umask(current_umask)
    assert FILE_MODE == 0o666 & ~current_umask
    for path in (status_path, Path(record.file_path)):
        assert stat.S_IMODE(path.stat().st_mode) == FILE_MODE
