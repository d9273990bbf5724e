"""Model fallback chain for providers with a canonical degradation order."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from agent_relay.bridge.errors import AggregateFallbackError, ExecError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FallbackOutcome:
    """First successful attempt of a chain."""

    response: str
    model: str
    requested_model: str

    @property
    def used_fallback(self) -> bool:
        return self.model != self.requested_model


def build_fallback_chain(requested_model: str, canonical: Sequence[str]) -> tuple[str, ...]:
    """Start at the requested model's position, or prepend it when unknown.

    A request that already names a degraded model never retries the models
    ranked ahead of it.
    """

    if not canonical:
        return (requested_model,)
    if requested_model in canonical:
        return tuple(canonical[canonical.index(requested_model) :])
    return (requested_model, *canonical)


def run_fallback_chain(
    *,
    execute: Callable[[str, str], str],
    prompt: str,
    chain: Sequence[str],
    requested_model: str,
) -> FallbackOutcome:
    """Try each model in order; raise `AggregateFallbackError` if none succeeds."""

    failures: list[tuple[str, str]] = []
    for model in chain:
        try:
            response = execute(prompt, model)
        except ExecError as error:
            failures.append((model, str(error)))
            logger.warning(
                "Model %s failed, %d candidates left: %s",
                model,
                len(chain) - len(failures),
                error,
            )
            continue
        return FallbackOutcome(response=response, model=model, requested_model=requested_model)
    raise AggregateFallbackError(failures)
