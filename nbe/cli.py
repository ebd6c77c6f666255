from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Iterable

from nbe.engine import Engine
from nbe.fingerprint import fingerprint_term, fingerprint_theory
from nbe.monoid import MONOID, VAR
from nbe.runtime import Rewriter
from nbe.state import STATE
from nbe.terms import term_from_dict, term_to_dict
from nbe.trace import JSONLTracer

THEORIES = {theory.name: theory for theory in (STATE, MONOID)}


def _read_json(path: str) -> object:
    """Load a JSON document from a file path or stdin.

    Passing ``-`` reads from stdin to support piping goals into the CLI.
    """

    if path == "-":
        return json.loads(sys.stdin.read())

    target = Path(path)
    if not target.exists():
        raise FileNotFoundError(path)
    return json.loads(target.read_text())


def _add_tracer(hooks: list, destination: str):
    sink = open(destination, "w", encoding="utf-8")
    hooks.append(JSONLTracer(sink))
    return sink


class _IdentTable:
    """Allocates identifiers for variables written by name."""

    def __init__(self) -> None:
        self._indexes: Dict[str, int] = {}

    def resolve(self, payload: object) -> object:
        if isinstance(payload, list):
            return [self.resolve(item) for item in payload]
        if not isinstance(payload, dict):
            return payload
        if payload.get("op") == VAR:
            args = [self._ident(arg) for arg in payload.get("args", [])]
            return {**payload, "args": args}
        return {key: self.resolve(value) for key, value in payload.items()}

    def _ident(self, arg: object) -> object:
        if not isinstance(arg, str):
            return arg
        index = self._indexes.setdefault(arg, len(self._indexes))
        return {"ident": index, "name": arg}


def _describe(args: argparse.Namespace) -> dict:
    theory = THEORIES[args.theory]
    return {
        "theory": theory.name,
        "fingerprint": fingerprint_theory(theory),
        "signature": theory.signature.to_dict(),
        "schemas": [
            {"name": schema.name, "covers": list(schema.covers), "description": schema.description}
            for schema in theory.schemas
        ],
        "domains": {kind: list(values) for kind, values in sorted(theory.domains.items())},
    }


def _check(args: argparse.Namespace, hooks: list) -> dict:
    payload = _read_json(args.goals)
    if not isinstance(payload, dict) or "goals" not in payload:
        raise ValueError("goals document must be an object with a 'goals' list")

    table = _IdentTable()
    engine = Engine(MONOID, event_hooks=hooks)
    results = []
    for index, goal in enumerate(payload["goals"]):
        left = term_from_dict(table.resolve(goal["left"]))
        right = term_from_dict(table.resolve(goal["right"]))
        verdict = engine.equivalent(left, right)
        results.append(
            {
                "name": goal.get("name", f"goal{index}"),
                "equivalent": verdict.equal,
                "left_normal": term_to_dict(verdict.left),
                "right_normal": term_to_dict(verdict.right),
            }
        )
    return {"goals": results, **engine.stats()}


def _rewrite(args: argparse.Namespace, hooks: list) -> dict:
    payload = _read_json(args.term)
    if isinstance(payload, dict) and "term" in payload:
        payload = payload["term"]
    term = term_from_dict(_IdentTable().resolve(payload))

    rewriter = Rewriter(MONOID, event_hooks=hooks)
    root = rewriter.load(term)
    rewriter.run_until_idle(max_steps=args.max_steps)
    normal = Engine(MONOID).normalize(term)
    return {
        "root": root,
        "result": term_to_dict(rewriter.term),
        "result_fingerprint": fingerprint_term(rewriter.term),
        "normal_form": term_to_dict(normal),
        **rewriter.stats(),
    }


def run_cli(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Decide equivalence of algebraic terms by normalization.")
    commands = parser.add_subparsers(dest="command", required=True)

    describe = commands.add_parser("describe", help="Print a theory declaration as JSON")
    describe.add_argument("theory", choices=sorted(THEORIES))

    check = commands.add_parser("check", help="Decide Monoid equivalence goals from a JSON file")
    check.add_argument("goals", help="Path to a JSON goals document, or - for stdin")
    check.add_argument("--trace-jsonl", dest="trace_jsonl", help="Write engine events to a JSONL file")

    rewrite = commands.add_parser("rewrite", help="Rewrite a Monoid term to idle with the directed schemas")
    rewrite.add_argument("term", help="Path to a JSON term, or - for stdin")
    rewrite.add_argument("--max-steps", dest="max_steps", type=int, default=256, help="Step budget")
    rewrite.add_argument("--trace-jsonl", dest="trace_jsonl", help="Write rewrite events to a JSONL file")

    args = parser.parse_args(list(argv) if argv is not None else None)

    sink = None
    hooks: list = []
    try:
        trace_path = getattr(args, "trace_jsonl", None)
        sink = _add_tracer(hooks, trace_path) if trace_path else None
        if args.command == "describe":
            summary = _describe(args)
        elif args.command == "check":
            summary = _check(args, hooks)
        else:
            if args.max_steps <= 0:
                raise ValueError("--max-steps must be positive")
            summary = _rewrite(args, hooks)

        print(json.dumps(summary, indent=2, default=repr))
        return 0
    except Exception as exc:  # pragma: no cover - defensive shell entry
        print(f"nbe: {exc}", file=sys.stderr)
        return 1
    finally:
        if sink is not None:
            sink.close()


def main() -> int:  # pragma: no cover - thin wrapper
    return run_cli()


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
