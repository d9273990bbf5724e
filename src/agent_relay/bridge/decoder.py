"""Decode streamed CLI agent output into a final response string."""

from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class MessageEvent:
    """`message` record; content is plain text or a list of typed parts."""

    content: str | tuple[dict[str, object], ...]


@dataclass(frozen=True, slots=True)
class OutputTextEvent:
    """`output_text` record carrying text directly."""

    text: str


@dataclass(frozen=True, slots=True)
class UnrecognizedEvent:
    """Blank, non-JSON or unknown record; progress noise from the agent."""

    raw: str


OutputEvent = MessageEvent | OutputTextEvent | UnrecognizedEvent


def parse_event(line: str) -> OutputEvent:
    """Parse one output line into a tagged event."""

    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        return UnrecognizedEvent(raw=line)
    if not isinstance(payload, dict):
        return UnrecognizedEvent(raw=line)

    event_type = payload.get("type")
    if event_type == "message":
        content = payload.get("content")
        if isinstance(content, str) and content:
            return MessageEvent(content=content)
        if isinstance(content, list):
            return MessageEvent(
                content=tuple(part for part in content if isinstance(part, dict)),
            )
    if event_type == "output_text":
        text = payload.get("text")
        if isinstance(text, str) and text:
            return OutputTextEvent(text=text)
    return UnrecognizedEvent(raw=line)


def event_text_segments(event: OutputEvent) -> list[str]:
    if isinstance(event, OutputTextEvent):
        return [event.text]
    if not isinstance(event, MessageEvent):
        return []
    if isinstance(event.content, str):
        return [event.content]
    segments: list[str] = []
    for part in event.content:
        text = part.get("text")
        if part.get("type") == "text" and isinstance(text, str) and text:
            segments.append(text)
    return segments


def decode_jsonl_output(raw_output: str) -> str:
    """Join text from JSONL agent events; fall back to the raw output unchanged."""

    segments: list[str] = []
    for line in raw_output.strip().split("\n"):
        if not line.strip():
            continue
        segments.extend(event_text_segments(parse_event(line)))
    if not segments:
        return raw_output
    return "\n".join(segments)


def decode_plain_output(raw_output: str) -> str:
    return raw_output.strip()
