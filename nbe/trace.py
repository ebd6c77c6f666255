from __future__ import annotations

import io
import json
from typing import Iterable, List, Optional

from nbe.runtime import Event


class JSONLTracer:
    """Event hook writing one JSON record per line to a text sink.

    ``kinds`` restricts the trace to some event kinds, e.g. only the
    ``equivalent`` verdicts of an engine.
    """

    def __init__(self, sink: io.TextIOBase, kinds: Optional[Iterable[str]] = None):
        self.sink = sink
        self.kinds = frozenset(kinds) if kinds is not None else None
        self.written = 0

    def __call__(self, event: Event) -> None:
        if self.kinds is not None and event.kind not in self.kinds:
            return
        # payloads that are not JSON values fall back to their repr
        self.sink.write(json.dumps(event.to_record(), default=repr))
        self.sink.write("\n")
        self.sink.flush()
        self.written += 1


def dump_events(events: Iterable[Event]) -> List[dict]:
    return [ev.to_record() for ev in events]


def read_trace(lines: Iterable[str]) -> List[dict]:
    """Parse JSONL trace lines back into records, skipping blank lines."""

    return [json.loads(line) for line in lines if line.strip()]
