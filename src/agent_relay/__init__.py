"""Dispatch prompts to external CLI AI agents and track background jobs."""

__version__ = "0.3.0"
