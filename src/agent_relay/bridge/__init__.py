"""Process bridge between prompts and external CLI agents (codex, gemini).

One request spawns exactly one child process per attempt. Synchronous calls
block until the child exits or times out; background calls return after spawn
and report progress only through the on-disk job status store.
"""
