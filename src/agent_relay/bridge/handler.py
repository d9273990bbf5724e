"""Per-provider request entry point: validate, assemble, dispatch, shape the result."""

from __future__ import annotations

import logging
from collections.abc import Callable

from agent_relay.bridge.backend import BackgroundJobSupervisor, ProcessExecutor
from agent_relay.bridge.detection import CliDetection, detect_cli
from agent_relay.bridge.errors import (
    PersistenceError,
    RelayError,
    ToolUnavailableError,
    ValidationError,
)
from agent_relay.bridge.fallback import (
    FallbackOutcome,
    build_fallback_chain,
    run_fallback_chain,
)
from agent_relay.bridge.file_context import build_file_context
from agent_relay.bridge.models import (
    InvocationRequest,
    JobMeta,
    PromptDraft,
    PromptRecord,
    ResponseRecord,
    ToolResult,
)
from agent_relay.bridge.persistence import PromptStore
from agent_relay.bridge.prompts import SystemPromptResolver, build_full_prompt
from agent_relay.bridge.providers import SUPPORTED_PROVIDERS, ProviderSpec
from agent_relay.config import ProviderSettings, RelaySettings

logger = logging.getLogger(__name__)


class RequestHandler:
    """Handles one provider's tool calls; never raises past `handle`."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        provider: ProviderSpec,
        settings: RelaySettings,
        store: PromptStore | None = None,
        executor: ProcessExecutor | None = None,
        supervisor: BackgroundJobSupervisor | None = None,
        system_prompts: SystemPromptResolver | None = None,
        detect: Callable[[str], CliDetection] | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings
        self.provider_settings: ProviderSettings = settings.provider(provider.name)
        self.store = store or PromptStore(settings.storage_dir)
        self.executor = executor or ProcessExecutor(
            provider=provider,
            settings=self.provider_settings,
        )
        self.supervisor = supervisor or BackgroundJobSupervisor(
            provider=provider,
            settings=self.provider_settings,
            store=self.store,
        )
        self.system_prompts = system_prompts or SystemPromptResolver(settings.agents_dir)
        self._detect = detect or (
            lambda executable: detect_cli(executable, install_hint=provider.install_hint)
        )

    def handle(self, request: InvocationRequest) -> ToolResult:
        try:
            return self._handle(request)
        except RelayError as error:
            return ToolResult.text_result(str(error), is_error=True)

    def _handle(self, request: InvocationRequest) -> ToolResult:
        agent_role = self._validate_role(request.agent_role)
        if not request.prompt or not request.prompt.strip():
            raise ValidationError("Missing required field: prompt")
        self._check_available()

        system_prompt = self.system_prompts.resolve(agent_role)
        if len(request.files) > self.settings.max_context_files:
            raise ValidationError(
                f"Too many context files (max {self.settings.max_context_files}, "
                f"got {len(request.files)})",
            )
        file_context = build_file_context(
            request.files,
            boundary=self.settings.workdir,
            max_bytes=self.settings.max_file_size_bytes,
        )
        full_prompt = build_full_prompt(
            user_prompt=request.prompt,
            file_context=file_context,
            system_prompt=system_prompt,
        )
        model = (request.model or "").strip() or self.provider_settings.default_model
        prompt_record = self._persist_prompt(request, agent_role, model, full_prompt)

        if request.background:
            return self._dispatch_background(
                full_prompt=full_prompt,
                agent_role=agent_role,
                model=model,
                prompt_record=prompt_record,
            )
        return self._execute_sync(
            request=request,
            full_prompt=full_prompt,
            agent_role=agent_role,
            model=model,
            prompt_record=prompt_record,
        )

    def _validate_role(self, agent_role: str | None) -> str:
        if not agent_role or agent_role not in self.provider.valid_roles:
            raise ValidationError(
                f'Invalid agent_role: "{agent_role}". {self.provider.display_name} '
                f"requires one of: {', '.join(self.provider.valid_roles)}",
            )
        return agent_role

    def _check_available(self) -> None:
        argv = self.provider_settings.command_argv()
        detection = self._detect(argv[0] if argv else self.provider.executable)
        if not detection.available:
            raise ToolUnavailableError(
                f"{self.provider.display_name} CLI is not available: {detection.error}"
                f"\n\n{detection.install_hint}",
                install_hint=detection.install_hint,
            )

    def _persist_prompt(
        self,
        request: InvocationRequest,
        agent_role: str,
        model: str,
        full_prompt: str,
    ) -> PromptRecord | None:
        try:
            return self.store.persist_prompt(
                PromptDraft(
                    provider=self.provider.name,
                    agent_role=agent_role,
                    model=model,
                    prompt=request.prompt,
                    full_prompt=full_prompt,
                    files=request.files,
                ),
            )
        except PersistenceError as error:
            logger.warning("Prompt audit write failed for %s: %s", self.provider.name, error)
            return None

    def _dispatch_background(
        self,
        *,
        full_prompt: str,
        agent_role: str,
        model: str,
        prompt_record: PromptRecord | None,
    ) -> ToolResult:
        if prompt_record is None:
            raise PersistenceError("Failed to persist prompt for background execution")

        name = self.provider.name
        chain = build_fallback_chain(model, self.provider.model_fallbacks)
        attempt_model = chain[0]
        response_path = self.store.response_path(name, prompt_record.slug, prompt_record.id)
        status_path = self.store.status_path(name, prompt_record.slug, prompt_record.id)
        launch = self.supervisor.spawn_background(
            full_prompt,
            attempt_model,
            JobMeta(
                provider=name,
                job_id=prompt_record.id,
                slug=prompt_record.slug,
                agent_role=agent_role,
                model=attempt_model,
                prompt_file=prompt_record.file_path,
                response_file=str(response_path),
            ),
        )
        if not launch.ok:
            return ToolResult.text_result(
                f"Failed to spawn background job: {launch.error}",
                is_error=True,
            )

        lines = [
            "**Mode:** Background (non-blocking)",
            f"**Job ID:** {prompt_record.id}",
            f"**Agent Role:** {agent_role}",
        ]
        if self.provider.model_fallbacks:
            lines += [
                f"**Model (attempting):** {attempt_model}",
                f"**Fallback chain:** {' -> '.join(chain)}",
            ]
        else:
            lines.append(f"**Model:** {attempt_model}")
        lines += [
            f"**PID:** {launch.pid}",
            f"**Prompt File:** {prompt_record.file_path}",
            f"**Response File:** {response_path}",
            f"**Status File:** {status_path}",
            "",
        ]
        if self.provider.model_fallbacks:
            lines += [
                "Job dispatched. Background mode tries first model only.",
                "If it fails, check status file and retry with next model.",
            ]
        else:
            lines.append(
                "Job dispatched. Check response file existence or read status file "
                "for completion.",
            )
        return ToolResult.text_result("\n".join(lines))

    def _execute_sync(
        self,
        *,
        request: InvocationRequest,
        full_prompt: str,
        agent_role: str,
        model: str,
        prompt_record: PromptRecord | None,
    ) -> ToolResult:
        header = self._parameter_header(request, agent_role, prompt_record)
        try:
            outcome = self._run(full_prompt, model)
        except RelayError as error:
            return ToolResult.text_result(
                f"{header}\n\n---\n\n{self.provider.display_name} CLI error: {error}",
                is_error=True,
            )

        if prompt_record is not None:
            self._persist_response(outcome, agent_role, prompt_record)

        fallback_note = (
            f"[Fallback: used {outcome.model} instead of {outcome.requested_model}]\n\n"
            if outcome.used_fallback
            else ""
        )
        return ToolResult.text_result(f"{header}\n\n---\n\n{fallback_note}{outcome.response}")

    def _run(self, full_prompt: str, model: str) -> FallbackOutcome:
        if not self.provider.model_fallbacks:
            response = self.executor.execute(full_prompt, model)
            return FallbackOutcome(response=response, model=model, requested_model=model)
        return run_fallback_chain(
            execute=self.executor.execute,
            prompt=full_prompt,
            chain=build_fallback_chain(model, self.provider.model_fallbacks),
            requested_model=model,
        )

    def _persist_response(
        self,
        outcome: FallbackOutcome,
        agent_role: str,
        prompt_record: PromptRecord,
    ) -> None:
        with_fallback = bool(self.provider.model_fallbacks)
        try:
            self.store.persist_response(
                ResponseRecord(
                    provider=self.provider.name,
                    agent_role=agent_role,
                    model=outcome.model,
                    prompt_id=prompt_record.id,
                    slug=prompt_record.slug,
                    response=outcome.response,
                    used_fallback=outcome.used_fallback if with_fallback else None,
                    fallback_model=(
                        outcome.model if with_fallback and outcome.used_fallback else None
                    ),
                ),
            )
        except PersistenceError as error:
            logger.warning("Response audit write failed for %s: %s", self.provider.name, error)

    def _parameter_header(
        self,
        request: InvocationRequest,
        agent_role: str,
        prompt_record: PromptRecord | None,
    ) -> str:
        lines = [f"**Agent Role:** {agent_role}"]
        if request.files:
            lines.append(f"**Files:** {', '.join(request.files)}")
        if prompt_record is not None:
            response_path = self.store.response_path(
                self.provider.name,
                prompt_record.slug,
                prompt_record.id,
            )
            lines.append(f"**Prompt File:** {prompt_record.file_path}")
            lines.append(f"**Response File:** {response_path}")
        return "\n".join(lines)


def build_handlers(settings: RelaySettings) -> dict[str, RequestHandler]:
    """One handler per supported provider, sharing a single store."""

    store = PromptStore(settings.storage_dir)
    return {
        name: RequestHandler(provider=provider, settings=settings, store=store)
        for name, provider in SUPPORTED_PROVIDERS.items()
    }
