"""One-shot settlement latch shared by timeout and exit handlers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import Enum


class SettlementState(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"


class SettlementLatch:
    """First settling event wins; every later event for the same run is dropped.

    Actions passed to `settle` and `while_pending` run under the latch lock, so a
    non-terminal write can never land after a terminal one.
    """

    def __init__(self) -> None:
        self._state = SettlementState.PENDING
        self._lock = threading.Lock()

    @property
    def state(self) -> SettlementState:
        return self._state

    @property
    def settled(self) -> bool:
        return self._state is SettlementState.SETTLED

    def settle(self, action: Callable[[], None] | None = None) -> bool:
        """Transition to settled and run `action`; no-op if already settled."""

        with self._lock:
            if self._state is SettlementState.SETTLED:
                return False
            self._state = SettlementState.SETTLED
            if action is not None:
                action()
            return True

    def while_pending(self, action: Callable[[], None]) -> bool:
        """Run `action` only if nothing has settled yet."""

        with self._lock:
            if self._state is SettlementState.SETTLED:
                return False
            action()
            return True
