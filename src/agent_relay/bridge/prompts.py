"""System prompt resolution and full prompt assembly."""

from __future__ import annotations

import logging
from pathlib import Path

from agent_relay.bridge.persistence import strip_front_matter

logger = logging.getLogger(__name__)


class SystemPromptResolver:
    """Loads `<agents_dir>/<role>.md` as the system prompt of an agent role."""

    def __init__(self, agents_dir: Path | None) -> None:
        self.agents_dir = agents_dir

    def resolve(self, agent_role: str) -> str | None:
        if self.agents_dir is None:
            return None
        path = self.agents_dir / f"{agent_role}.md"
        if not path.is_file():
            logger.debug("No system prompt for role=%s in %s", agent_role, self.agents_dir)
            return None
        try:
            text = strip_front_matter(path.read_text("utf-8")).strip()
        except OSError as error:
            logger.warning("Failed to read system prompt %s: %s", path, error)
            return None
        return text or None


def build_full_prompt(
    *,
    user_prompt: str,
    file_context: str | None,
    system_prompt: str | None,
) -> str:
    """Concatenate system instructions, file context and the user prompt, in that order."""

    parts: list[str] = []
    if system_prompt:
        parts.append(f"<system-instructions>\n{system_prompt}\n</system-instructions>")
    if file_context:
        parts.append(file_context)
    parts.append(user_prompt)
    return "\n\n".join(parts)
