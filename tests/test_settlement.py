from __future__ import annotations

import threading

import allure

from agent_relay.bridge.settlement import SettlementLatch, SettlementState

pytestmark = [
    allure.epic("Agent Execution"),
    allure.feature("Settlement"),
]


def test_first_settle_wins_and_later_actions_are_dropped() -> None:
    latch = SettlementLatch()
    calls: list[str] = []

    assert latch.state is SettlementState.PENDING
    assert latch.settle(lambda: calls.append("timeout")) is True
    assert latch.settle(lambda: calls.append("exit")) is False

    assert calls == ["timeout"]
    assert latch.settled


def test_while_pending_runs_only_before_settlement() -> None:
    latch = SettlementLatch()
    calls: list[str] = []

    assert latch.while_pending(lambda: calls.append("running")) is True
    latch.settle()
    assert latch.while_pending(lambda: calls.append("late running")) is False

    assert calls == ["running"]


def test_concurrent_settlers_produce_exactly_one_outcome() -> None:
    latch = SettlementLatch()
    winners: list[int] = []
    barrier = threading.Barrier(8)

    def contender(index: int) -> None:
        barrier.wait()
        latch.settle(lambda: winners.append(index))

    threads = [threading.Thread(target=contender, args=(index,)) for index in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(winners) == 1
