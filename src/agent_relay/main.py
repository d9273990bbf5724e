"""CLI entrypoint for agent-relay."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from agent_relay import __version__
from agent_relay.bridge.controllers import (
    AskCommand,
    JobListCommand,
    JobStatusCommand,
    JobWaitCommand,
    RelayCliController,
)
from agent_relay.bridge.models import JobStatus
from agent_relay.bridge.providers import SUPPORTED_PROVIDERS

click.rich_click.USE_MARKDOWN = True
RELAY_CONTROLLER = RelayCliController()


@click.group()
@click.version_option(version=__version__, prog_name="agent-relay")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def agent_relay(log_level: str) -> None:
    """Relay prompts to external CLI AI agents (codex, gemini)."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@agent_relay.command("ask")
@click.argument(
    "provider",
    type=click.Choice(sorted(SUPPORTED_PROVIDERS), case_sensitive=False),
)
@click.option("--prompt", "-p", required=True, help="Prompt text to send.")
@click.option(
    "--role",
    "agent_role",
    required=True,
    help="Agent role; must be one of the provider's roles (see `agent-relay tools`).",
)
@click.option("--model", default=None, help="Model override; defaults to provider default.")
@click.option(
    "--file",
    "files",
    multiple=True,
    help="Context file path inside the working directory. Can be repeated.",
)
@click.option(
    "--background/--foreground",
    default=False,
    show_default=True,
    help="Dispatch as a background job and print its handle immediately.",
)
@click.option(
    "--supervise/--no-supervise",
    default=True,
    show_default=True,
    help=(
        "With --background, keep this process alive until the job settles so its "
        "status file reaches a terminal state."
    ),
)
@click.option("--storage-dir", type=click.Path(path_type=Path), default=None, help="Audit dir.")
@click.option(
    "--output",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    show_default=True,
    help="Render the tool result as text or as its JSON payload.",
)
def ask(  # noqa: PLR0913
    provider: str,
    prompt: str,
    agent_role: str,
    model: str | None,
    files: tuple[str, ...],
    background: bool,
    supervise: bool,
    storage_dir: Path | None,
    output_format: str,
) -> None:
    """Send one prompt to a provider CLI."""

    with _config_errors():
        result = RELAY_CONTROLLER.ask(
            AskCommand(
                storage_dir=storage_dir,
                provider=provider.lower(),
                prompt=prompt,
                agent_role=agent_role,
                model=model,
                files=files,
                background=background,
                output_format=output_format.lower(),
            ),
        )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(f"{provider} request failed.")
    if background and supervise:
        RELAY_CONTROLLER.wait_for_background()


@agent_relay.group()
def jobs() -> None:
    """Background job inspection commands."""


@jobs.command("status")
@click.argument("job_id")
@click.option(
    "--provider",
    type=click.Choice(sorted(SUPPORTED_PROVIDERS), case_sensitive=False),
    default=None,
    help="Restrict lookup to one provider.",
)
@click.option(
    "--show-response/--no-show-response",
    default=False,
    show_default=True,
    help="Print the response body when it exists.",
)
@click.option("--storage-dir", type=click.Path(path_type=Path), default=None, help="Audit dir.")
def jobs_status(
    job_id: str,
    provider: str | None,
    show_response: bool,
    storage_dir: Path | None,
) -> None:
    """Show the latest status record of one job."""

    with _config_errors():
        result = RELAY_CONTROLLER.job_status(
            JobStatusCommand(
                storage_dir=storage_dir,
                job_id=job_id,
                provider=provider.lower() if provider else None,
                show_response=show_response,
            ),
        )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Job lookup failed.")


@jobs.command("list")
@click.option(
    "--provider",
    type=click.Choice(sorted(SUPPORTED_PROVIDERS), case_sensitive=False),
    default=None,
    help="Optional provider filter.",
)
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus], case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=20,
    show_default=True,
    help="Max number of jobs to print.",
)
@click.option("--storage-dir", type=click.Path(path_type=Path), default=None, help="Audit dir.")
def jobs_list(
    provider: str | None,
    status: str | None,
    limit: int,
    storage_dir: Path | None,
) -> None:
    """List background jobs, newest first."""

    with _config_errors():
        lines = RELAY_CONTROLLER.list_jobs(
            JobListCommand(
                storage_dir=storage_dir,
                provider=provider.lower() if provider else None,
                status=status.lower() if status else None,
                limit=limit,
            ),
        )
    _emit_lines(lines)


@jobs.command("wait")
@click.argument("job_id")
@click.option(
    "--provider",
    type=click.Choice(sorted(SUPPORTED_PROVIDERS), case_sensitive=False),
    default=None,
    help="Restrict lookup to one provider.",
)
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0),
    default=600.0,
    show_default=True,
    help="How long to poll before giving up.",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0.05),
    default=1.0,
    show_default=True,
    help="Seconds between status file reads.",
)
@click.option("--storage-dir", type=click.Path(path_type=Path), default=None, help="Audit dir.")
def jobs_wait(
    job_id: str,
    provider: str | None,
    timeout_seconds: float,
    poll_interval: float,
    storage_dir: Path | None,
) -> None:
    """Poll a job's status file until it completes, fails or times out."""

    with _config_errors():
        result = RELAY_CONTROLLER.wait_job(
            JobWaitCommand(
                storage_dir=storage_dir,
                job_id=job_id,
                provider=provider.lower() if provider else None,
                timeout_seconds=timeout_seconds,
                poll_interval_seconds=poll_interval,
            ),
        )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Job did not complete successfully.")


@agent_relay.command("tools")
def tools() -> None:
    """Print the JSON tool descriptors of all providers."""

    with _config_errors():
        lines = RELAY_CONTROLLER.tools()
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


@contextmanager
def _config_errors() -> Iterator[None]:
    """Report invalid settings as a CLI error instead of a traceback."""

    try:
        yield
    except ValueError as error:
        raise click.ClickException(f"Invalid configuration: {error}") from error


if __name__ == "__main__":  # pragma: no cover
    agent_relay()
