"""Static descriptions of the supported CLI providers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from agent_relay.bridge.decoder import decode_jsonl_output, decode_plain_output


class OutputFormat(str, Enum):
    JSONL = "jsonl"
    PLAIN = "plain"


@dataclass(frozen=True, slots=True)
class ProviderSpec:
    """Fixed invocation contract of one external CLI agent."""

    name: str
    display_name: str
    executable: str
    arg_template: tuple[str, ...]
    output_format: OutputFormat
    valid_roles: tuple[str, ...]
    install_hint: str
    files_argument: str
    description: str
    model_fallbacks: tuple[str, ...] = ()

    @property
    def tool_name(self) -> str:
        return f"ask_{self.name}"

    def build_args(self, model: str) -> list[str]:
        """Render provider arguments; the prompt always goes through stdin."""

        return [arg.format(model=model) for arg in self.arg_template]

    def decode(self, stdout: str) -> str:
        if self.output_format is OutputFormat.JSONL:
            return decode_jsonl_output(stdout)
        return decode_plain_output(stdout)

    def tool_schema(self, *, default_model: str) -> dict[str, Any]:
        """JSON-schema descriptor of the provider's single callable operation."""

        roles = ", ".join(self.valid_roles)
        return {
            "name": self.tool_name,
            "description": (
                f"Send a prompt to {self.display_name} CLI. {self.description} "
                f"Requires agent_role ({roles}). Requires {self.display_name} CLI "
                f"({self.install_hint})."
            ),
            "inputSchema": {
                "type": "object",
                "properties": {
                    "agent_role": {
                        "type": "string",
                        "enum": list(self.valid_roles),
                        "description": f"Required. Agent perspective: {roles}.",
                    },
                    self.files_argument: {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "File paths to include as context.",
                    },
                    "prompt": {
                        "type": "string",
                        "description": f"The prompt to send to {self.display_name}.",
                    },
                    "model": {
                        "type": "string",
                        "description": f"Model to use (default: {default_model}).",
                    },
                    "background": {
                        "type": "boolean",
                        "description": (
                            "Run in background. Returns immediately with job metadata "
                            "and file paths."
                        ),
                    },
                },
                "required": ["prompt", "agent_role"],
            },
        }


CODEX = ProviderSpec(
    name="codex",
    display_name="Codex",
    executable="codex",
    arg_template=("exec", "-m", "{model}", "--json", "--full-auto"),
    output_format=OutputFormat.JSONL,
    valid_roles=(
        "architect",
        "planner",
        "critic",
        "analyst",
        "code-reviewer",
        "security-reviewer",
        "tdd-guide",
    ),
    install_hint="npm install -g @openai/codex",
    files_argument="context_files",
    description=(
        "Best for analytical and planning work: architecture review, plan validation, "
        "critical analysis, code and security review."
    ),
)

GEMINI = ProviderSpec(
    name="gemini",
    display_name="Gemini",
    executable="gemini",
    arg_template=("--yolo", "--model", "{model}"),
    output_format=OutputFormat.PLAIN,
    valid_roles=("designer", "writer", "vision"),
    install_hint="npm install -g @google/gemini-cli",
    files_argument="files",
    description="Best for design review, documentation and large-context reading.",
    model_fallbacks=(
        "gemini-3-pro-preview",
        "gemini-3-flash-preview",
        "gemini-2.5-pro",
        "gemini-2.5-flash",
    ),
)

SUPPORTED_PROVIDERS: dict[str, ProviderSpec] = {CODEX.name: CODEX, GEMINI.name: GEMINI}


def get_provider(name: str) -> ProviderSpec:
    normalized = name.strip().lower()
    try:
        return SUPPORTED_PROVIDERS[normalized]
    except KeyError:
        raise ValueError(f"Unsupported provider: {name!r}. Use codex or gemini.") from None
