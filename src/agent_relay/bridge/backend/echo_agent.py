"""Local stand-in for a provider CLI, used by integration tests and demos.

Reads the prompt from stdin and answers in the requested output format.
Accepts and ignores the provider's own flags so it can replace either CLI.
"""

from __future__ import annotations

import argparse
import json
import sys
import time


def main(argv: list[str] | None = None) -> int:
    """Echo the prompt back as JSONL events or plain text."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--format", choices=("jsonl", "plain"), default="jsonl")
    parser.add_argument("--exit-code", type=int, default=0)
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--stderr", default="")
    parser.add_argument("--silent", action="store_true")
    parser.add_argument("-m", "--model", default="echo")
    args, _unknown = parser.parse_known_args(argv)

    prompt = sys.stdin.read()
    if args.sleep:
        time.sleep(args.sleep)
    if args.stderr:
        sys.stderr.write(args.stderr)
    if not args.silent:
        reply = f"[{args.model}] {prompt.strip()}"
        if args.format == "jsonl":
            sys.stdout.write("progress: thinking\n")
            sys.stdout.write(json.dumps({"type": "output_text", "text": reply}) + "\n")
        else:
            sys.stdout.write(reply + "\n")
    return args.exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
