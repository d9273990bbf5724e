"""Synchronous single-attempt execution of a provider CLI."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future

from agent_relay.bridge.backend.base import (
    ChildExit,
    ChildRun,
    resolve_exit,
    spawn_child,
    terminate_process,
)
from agent_relay.bridge.errors import (
    ExecError,
    ExecTimeoutError,
    ExitError,
    SpawnError,
    StdinError,
)
from agent_relay.bridge.providers import ProviderSpec
from agent_relay.config import ProviderSettings

logger = logging.getLogger(__name__)


class ProcessExecutor:
    """Run one child per call, feed it the prompt on stdin, wait for one outcome."""

    def __init__(self, *, provider: ProviderSpec, settings: ProviderSettings) -> None:
        self.provider = provider
        self.settings = settings

    def build_argv(self, model: str) -> list[str]:
        return [*self.settings.command_argv(), *self.provider.build_args(model)]

    def execute(self, prompt: str, model: str) -> str:
        """Return the decoded response or raise an `ExecError` subclass."""

        display_name = self.provider.display_name
        try:
            process = spawn_child(self.build_argv(model))
        except OSError as error:
            raise SpawnError(f"Failed to spawn {display_name} CLI: {error}") from error

        started = time.monotonic()
        run = ChildRun(process, timeout_seconds=self.settings.timeout_seconds)
        outcome: Future[str] = Future()

        def fail(error: ExecError) -> None:
            outcome.set_exception(error)

        def on_timeout() -> None:
            def timed_out() -> None:
                terminate_process(process)
                fail(
                    ExecTimeoutError(
                        f"{display_name} timed out after {self.settings.timeout_ms}ms",
                        timeout_ms=self.settings.timeout_ms,
                    ),
                )

            run.latch.settle(timed_out)

        def on_exit(child_exit: ChildExit) -> None:
            def exited() -> None:
                try:
                    response = resolve_exit(
                        display_name=display_name,
                        child_exit=child_exit,
                        decode=self.provider.decode,
                    )
                except ExitError as error:
                    fail(error)
                    return
                outcome.set_result(response)

            run.latch.settle(exited)

        run.arm(on_timeout)
        try:
            run.feed_stdin(prompt)
        except OSError as error:

            def stdin_failed() -> None:
                run.cancel_timer()
                terminate_process(process)
                fail(StdinError(f"Stdin write error: {error}"))

            run.latch.settle(stdin_failed)
        run.watch_exit(on_exit)

        try:
            return outcome.result()
        finally:
            logger.info(
                "%s run finished: model=%s pid=%s elapsed=%.1fs",
                display_name,
                model,
                process.pid,
                time.monotonic() - started,
            )
