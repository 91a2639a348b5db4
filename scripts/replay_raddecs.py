#!/usr/bin/env python3
"""Replay a recorded raddec stream through the presence engine.

Reads one JSON raddec per line (camelCase, as emitted by raddec
producers), feeds them in order on a simulated clock driven by their
timestamps, and prints every published message as a JSON line:

    {"topic": "raddec", "payload": {...}}

Useful to check how window settings affect the event stream of a
capture without waiting for wall-clock time to pass.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any, TextIO

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pybarnacles import Barnacles, BarnaclesConfig  # noqa: E402


class _SimulatedClock:
    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now


def _read_raddecs(stream: TextIO) -> Iterator[dict[str, Any]]:
    for line_number, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError:
            logging.warning("Skipping line %d: invalid JSON", line_number)
            continue
        if isinstance(record, dict):
            yield record


def _advance(barnacles: Barnacles, clock: _SimulatedClock, until: int, deadline: int) -> int:
    """Sweep at every deadline up to *until*; return the next deadline."""
    while deadline <= until:
        clock.now = max(clock.now, deadline)
        deadline = barnacles.sweep_now()
    clock.now = max(clock.now, until)
    return deadline


def replay(stream: TextIO, out: TextIO, config: BarnaclesConfig, *, flush: bool) -> int:
    clock = _SimulatedClock()
    barnacles = Barnacles(config, clock=clock)
    published = 0

    def write(topic: str, payload: Any) -> None:
        nonlocal published
        published += 1
        out.write(json.dumps({"topic": topic, "payload": payload}, separators=(",", ":")) + "\n")

    barnacles.add_listener(write)

    deadline: int | None = None
    for record in _read_raddecs(stream):
        timestamp = record.get("timestamp")
        if isinstance(timestamp, (int, float)):
            if deadline is None:
                clock.now = int(timestamp)
            else:
                deadline = _advance(barnacles, clock, int(timestamp), deadline)
        if barnacles.handle_raddec(record) is not None:
            # Devices that are not due only report their deadline.
            deadline = barnacles.sweep_now()

    if flush and deadline is not None:
        # Every device disappears at the latest disappearance_ms after its last raddec.
        deadline = _advance(barnacles, clock, clock.now + config.disappearance_ms + config.delay_ms, deadline)

    return published


def main() -> None:
    parser = argparse.ArgumentParser(description="Replay a JSON-lines raddec capture on a simulated clock.")
    parser.add_argument("input", nargs="?", default="-", help="JSON-lines file (default: stdin)")
    parser.add_argument("--delay-ms", type=int, help="Debounce window")
    parser.add_argument("--keep-alive-ms", type=int, help="Keep-alive spacing")
    parser.add_argument("--disappearance-ms", type=int, help="Silence before a device disappears")
    parser.add_argument("--history-ms", type=int, help="Raddec history window")
    parser.add_argument(
        "--accept-stale",
        action="store_true",
        help="Correct stale raddec timestamps instead of dropping them",
    )
    parser.add_argument(
        "--no-flush",
        action="store_true",
        help="Stop at the last raddec instead of running until every device disappeared",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    for name in ("delay_ms", "keep_alive_ms", "disappearance_ms", "history_ms"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    if args.accept_stale:
        overrides["accept_stale_raddecs"] = True
    config = BarnaclesConfig.from_env(**overrides)

    if args.input == "-":
        published = replay(sys.stdin, sys.stdout, config, flush=not args.no_flush)
    else:
        with open(args.input, encoding="utf-8") as stream:
            published = replay(stream, sys.stdout, config, flush=not args.no_flush)

    logging.info("Published %d messages", published)


if __name__ == "__main__":
    main()
