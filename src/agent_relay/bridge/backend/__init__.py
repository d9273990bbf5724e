"""Child process backends for provider execution."""

from agent_relay.bridge.backend.base import ChildExit, ChildRun
from agent_relay.bridge.backend.executor import ProcessExecutor
from agent_relay.bridge.backend.supervisor import BackgroundJobSupervisor

__all__ = [
    "BackgroundJobSupervisor",
    "ChildExit",
    "ChildRun",
    "ProcessExecutor",
]
