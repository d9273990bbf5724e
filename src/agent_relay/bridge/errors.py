"""Error taxonomy for request handling and child process execution."""

from __future__ import annotations


class RelayError(RuntimeError):
    """Base error converted into an error result at the request boundary."""


class ValidationError(RelayError):
    """Request rejected before any process is spawned."""


class ToolUnavailableError(RelayError):
    """External CLI binary could not be located."""

    def __init__(self, message: str, *, install_hint: str) -> None:
        super().__init__(message)
        self.install_hint = install_hint


class PersistenceError(RelayError):
    """Prompt, response or job status could not be written."""


class ExecError(RelayError):
    """Child process did not produce a usable response."""


class SpawnError(ExecError):
    """Child process could not be created."""


class StdinError(ExecError):
    """Prompt could not be written to the child's standard input."""


class ExecTimeoutError(ExecError):
    """Child process exceeded the configured time bound."""

    def __init__(self, message: str, *, timeout_ms: int) -> None:
        super().__init__(message)
        self.timeout_ms = timeout_ms


class ExitError(ExecError):
    """Child exited non-zero without printing anything on stdout."""

    def __init__(self, message: str, *, exit_code: int | None, stderr: str) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class AggregateFallbackError(RelayError):
    """Every model of a fallback chain failed."""

    def __init__(self, failures: list[tuple[str, str]]) -> None:
        self.failures = failures
        super().__init__(
            "all models failed.\n" + "\n".join(f"{model}: {message}" for model, message in failures),
        )
