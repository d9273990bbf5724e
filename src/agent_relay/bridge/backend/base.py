"""Child process plumbing shared by synchronous and background execution."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import IO

from agent_relay.bridge.errors import ExitError
from agent_relay.bridge.settlement import SettlementLatch

logger = logging.getLogger(__name__)

_READ_CHUNK = 8192


@dataclass(slots=True)
class ChildExit:
    """Exit code and joined output buffers of a finished child."""

    returncode: int
    stdout: str
    stderr: str


def spawn_child(argv: list[str], *, detached: bool = False) -> subprocess.Popen[str]:
    """Start a child with all three standard streams piped.

    Detached children lead their own process group so a timeout can signal the
    whole tree.
    """

    extra: dict[str, object] = {}
    if detached:
        if os.name == "nt":
            extra["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
        else:
            extra["start_new_session"] = True
    return subprocess.Popen(  # noqa: S603
        argv,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        **extra,  # type: ignore[arg-type]
    )


def terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return


def terminate_process_group(process: subprocess.Popen[str], *, os_name: str | None = None) -> None:
    """SIGTERM the child's process group on POSIX, the direct child elsewhere."""

    if (os_name or os.name) == "nt":
        terminate_process(process)
        return
    try:
        os.killpg(process.pid, signal.SIGTERM)
    except OSError:
        return


def resolve_exit(
    *,
    display_name: str,
    child_exit: ChildExit,
    decode: Callable[[str], str],
) -> str:
    """Decode output of a finished child or raise `ExitError`.

    Non-empty stdout counts as success even on a non-zero exit code.
    """

    if child_exit.returncode == 0 or child_exit.stdout.strip():
        return decode(child_exit.stdout)
    raise ExitError(
        f"{display_name} exited with code {child_exit.returncode}: "
        f"{child_exit.stderr or 'No output'}",
        exit_code=child_exit.returncode,
        stderr=child_exit.stderr,
    )


class ChildRun:
    """One spawned child: output collection, timeout timer and exit watcher.

    Every outcome handler settles through `latch`; whichever arrives first wins.
    """

    def __init__(self, process: subprocess.Popen[str], *, timeout_seconds: float) -> None:
        self.process = process
        self.latch = SettlementLatch()
        self._timeout_seconds = timeout_seconds
        self._stdout_chunks: list[str] = []
        self._stderr_chunks: list[str] = []
        self._readers: list[threading.Thread] = []
        self._timer: threading.Timer | None = None

    @property
    def pid(self) -> int:
        return self.process.pid

    def arm(self, on_timeout: Callable[[], None]) -> None:
        """Start draining stdout/stderr and arm the timeout timer."""

        for stream, sink in (
            (self.process.stdout, self._stdout_chunks),
            (self.process.stderr, self._stderr_chunks),
        ):
            if stream is None:
                continue
            reader = threading.Thread(
                target=_drain,
                args=(stream, sink),
                daemon=True,
                name=f"child-{self.pid}-reader",
            )
            reader.start()
            self._readers.append(reader)
        self._timer = threading.Timer(self._timeout_seconds, on_timeout)
        self._timer.daemon = True
        self._timer.start()

    def feed_stdin(self, prompt: str) -> None:
        """Write the prompt and close stdin; raises `OSError` on pipe failure."""

        stdin = self.process.stdin
        if stdin is None:
            raise OSError("stdin is not piped")
        try:
            stdin.write(prompt)
        finally:
            try:
                stdin.close()
            except OSError:
                logger.debug("Closing stdin of pid=%s failed", self.pid, exc_info=True)

    def watch_exit(self, on_exit: Callable[[ChildExit], None]) -> None:
        watcher = threading.Thread(
            target=self._wait_for_exit,
            args=(on_exit,),
            daemon=True,
            name=f"child-{self.pid}-watcher",
        )
        watcher.start()

    def cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _wait_for_exit(self, on_exit: Callable[[ChildExit], None]) -> None:
        returncode = self.process.wait()
        for reader in self._readers:
            reader.join()
        self.cancel_timer()
        try:
            on_exit(
                ChildExit(
                    returncode=returncode,
                    stdout="".join(self._stdout_chunks),
                    stderr="".join(self._stderr_chunks),
                ),
            )
        except Exception:
            logger.exception("Exit handler failed for pid=%s", self.pid)


def _drain(stream: IO[str], sink: list[str]) -> None:
    try:
        for chunk in iter(lambda: stream.read(_READ_CHUNK), ""):
            sink.append(chunk)
    except (OSError, ValueError):
        logger.debug("Output stream closed early", exc_info=True)
    finally:
        stream.close()
