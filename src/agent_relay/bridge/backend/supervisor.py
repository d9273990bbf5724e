"""Detached background execution tracked through the job status store."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace

from agent_relay.bridge.backend.base import (
    ChildExit,
    ChildRun,
    resolve_exit,
    spawn_child,
    terminate_process_group,
)
from agent_relay.bridge.errors import ExitError, PersistenceError
from agent_relay.bridge.models import (
    BackgroundLaunch,
    JobMeta,
    JobRecord,
    JobStatus,
    ResponseRecord,
    utc_now_iso,
)
from agent_relay.bridge.persistence import JobStatusStore
from agent_relay.bridge.providers import ProviderSpec
from agent_relay.config import ProviderSettings

logger = logging.getLogger(__name__)


class BackgroundJobSupervisor:
    """Launch-and-forget: spawn a detached child and drive its status records.

    Status writes for one job are strictly ordered spawned -> running -> terminal;
    after the first terminal write nothing else is written for that job.
    """

    def __init__(
        self,
        *,
        provider: ProviderSpec,
        settings: ProviderSettings,
        store: JobStatusStore,
        os_name: str | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.store = store
        self._os_name = os_name
        self._pending: dict[str, threading.Event] = {}

    def spawn_background(self, prompt: str, model: str, job_meta: JobMeta) -> BackgroundLaunch:
        """Spawn the child and return its pid without waiting for it."""

        argv = [*self.settings.command_argv(), *self.provider.build_args(model)]
        try:
            process = spawn_child(argv, detached=True)
        except OSError as error:
            return BackgroundLaunch(
                error=f"Failed to spawn {self.provider.display_name} CLI: {error}",
            )
        if not process.pid:
            return BackgroundLaunch(error="Failed to get process ID")

        initial = JobRecord(
            provider=job_meta.provider,
            job_id=job_meta.job_id,
            slug=job_meta.slug,
            status=JobStatus.SPAWNED,
            pid=process.pid,
            prompt_file=job_meta.prompt_file,
            response_file=job_meta.response_file,
            model=model,
            agent_role=job_meta.agent_role,
            spawned_at=utc_now_iso(),
        )
        self._write_status(initial)
        self._pending[job_meta.job_id] = threading.Event()

        run = ChildRun(process, timeout_seconds=self.settings.timeout_seconds)
        run.arm(lambda: self._on_timeout(run, initial))
        threading.Thread(
            target=self._feed_and_watch,
            args=(run, prompt, initial, job_meta),
            daemon=True,
            name=f"job-{job_meta.job_id}",
        ).start()
        logger.info(
            "Background %s job dispatched: job_id=%s pid=%s model=%s",
            self.provider.name,
            job_meta.job_id,
            process.pid,
            model,
        )
        return BackgroundLaunch(pid=process.pid)

    @property
    def pending_job_ids(self) -> tuple[str, ...]:
        """Jobs launched here that have not reached a terminal status yet."""

        return tuple(self._pending.copy())

    def wait_for_jobs(self, timeout: float | None = None) -> bool:
        """Block until every job launched by this supervisor has settled.

        Only short-lived callers need this; their supervision threads die with them.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        for event in list(self._pending.copy().values()):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not event.wait(remaining):
                return False
        return True

    def _feed_and_watch(
        self,
        run: ChildRun,
        prompt: str,
        initial: JobRecord,
        job_meta: JobMeta,
    ) -> None:
        try:
            run.feed_stdin(prompt)
        except OSError as error:
            message = f"Stdin write error: {error}"

            def stdin_failed() -> None:
                run.cancel_timer()
                self._write_terminal(initial, JobStatus.FAILED, error=message)

            run.latch.settle(stdin_failed)
        else:
            run.latch.while_pending(
                lambda: self._write_status(replace(initial, status=JobStatus.RUNNING)),
            )
        run.watch_exit(lambda child_exit: self._on_exit(run, initial, job_meta, child_exit))

    def _on_timeout(self, run: ChildRun, initial: JobRecord) -> None:
        def timed_out() -> None:
            terminate_process_group(run.process, os_name=self._os_name)
            logger.warning(
                "Background %s job timed out: job_id=%s pid=%s",
                self.provider.name,
                initial.job_id,
                initial.pid,
            )
            self._write_terminal(
                initial,
                JobStatus.TIMEOUT,
                error=(
                    f"{self.provider.display_name} timed out after {self.settings.timeout_ms}ms"
                ),
            )

        run.latch.settle(timed_out)

    def _on_exit(
        self,
        run: ChildRun,
        initial: JobRecord,
        job_meta: JobMeta,
        child_exit: ChildExit,
    ) -> None:
        def exited() -> None:
            try:
                response = resolve_exit(
                    display_name=self.provider.display_name,
                    child_exit=child_exit,
                    decode=self.provider.decode,
                )
            except ExitError as error:
                self._write_terminal(initial, JobStatus.FAILED, error=str(error))
                return
            try:
                self.store.persist_response(
                    ResponseRecord(
                        provider=job_meta.provider,
                        agent_role=job_meta.agent_role,
                        model=initial.model,
                        prompt_id=job_meta.job_id,
                        slug=job_meta.slug,
                        response=response,
                    ),
                )
            except PersistenceError as error:
                self._write_terminal(
                    initial,
                    JobStatus.FAILED,
                    error=f"Failed to persist response: {error}",
                )
                return
            self._write_terminal(initial, JobStatus.COMPLETED)

        if not run.latch.settle(exited):
            logger.debug(
                "Ignoring late exit of settled job_id=%s code=%s",
                initial.job_id,
                child_exit.returncode,
            )

    def _write_terminal(
        self,
        initial: JobRecord,
        status: JobStatus,
        *,
        error: str | None = None,
    ) -> None:
        self._write_status(
            replace(initial, status=status, completed_at=utc_now_iso(), error=error),
        )
        event = self._pending.pop(initial.job_id, None)
        if event is not None:
            event.set()
        logger.info(
            "Background %s job settled: job_id=%s status=%s",
            self.provider.name,
            initial.job_id,
            status.value,
        )

    def _write_status(self, record: JobRecord) -> None:
        try:
            self.store.write_job_status(record)
        except PersistenceError as error:
            logger.warning(
                "Job status write failed: job_id=%s status=%s error=%s",
                record.job_id,
                record.status.value,
                error,
            )
