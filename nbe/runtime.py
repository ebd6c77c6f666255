from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from nbe.fingerprint import fingerprint_term
from nbe.rewrite import AmbiguousRuleError, Path, Schema, matching_schemas, positions, replace_at
from nbe.terms import ProbeFn, Term, term_to_dict
from nbe.theory import Theory, TheoryError


@dataclass
class Event:
    kind: str
    before: str
    after: str
    before_term: Term
    after_term: Term
    rule: str | None = None
    path: Path = ()
    detail: Dict[str, object] = field(default_factory=dict)
    probes: ProbeFn | None = field(default=None, repr=False, compare=False)

    def to_record(self) -> Dict[str, object]:
        """JSON-ready event representation for tracing.

        The input side is rendered shallowly; the output side is unfolded at
        the probes, which keeps canonical forms fully visible.
        """

        record: Dict[str, object] = {
            "kind": self.kind,
            "before": self.before,
            "after": self.after,
            "before_term": term_to_dict(self.before_term),
            "after_term": term_to_dict(self.after_term, self.probes),
        }
        if self.rule is not None:
            record["rule"] = self.rule
            record["path"] = list(self.path)
        if self.detail:
            record["detail"] = dict(self.detail)
        return record


class Rewriter:
    """Stepping runtime that contracts redexes of a first-order theory.

    Each step rewrites the leftmost-outermost redex of the current term with
    the first matching schema's forward matcher. Only theories without
    continuations can be rewritten this way, since redexes under a binder are
    not visible as data.
    """

    def __init__(
        self,
        theory: Theory,
        event_hooks: Optional[List[Callable[[Event], None]]] = None,
        strict_matching: bool = False,
        rule_budgets: Optional[Dict[str, int]] = None,
        include_rules: Optional[List[str]] = None,
        exclude_rules: Optional[List[str]] = None,
    ):
        theory.check()
        if not theory.signature.first_order:
            raise TheoryError(f"directed rewriting needs a first-order theory, {theory.name} has continuations")
        if include_rules and exclude_rules:
            overlap = set(include_rules) & set(exclude_rules)
            if overlap:
                raise ValueError(f"Rules cannot be both included and excluded: {sorted(overlap)}")

        names = {schema.name for schema in theory.schemas}
        for name in (include_rules or []) + (exclude_rules or []):
            if name not in names:
                raise ValueError(f"Unknown rule: {name}")
        for name, limit in (rule_budgets or {}).items():
            if limit <= 0:
                raise ValueError(f"Rule budget for {name} must be positive")

        self.theory = theory
        schemas = [schema for schema in theory.schemas if schema.forward is not None]
        if include_rules:
            schemas = [schema for schema in schemas if schema.name in include_rules]
        if exclude_rules:
            schemas = [schema for schema in schemas if schema.name not in exclude_rules]
        self.schemas: List[Schema] = schemas
        self.event_hooks: List[Callable[[Event], None]] = event_hooks or []
        self.events: List[Event] = []
        self.strict_matching = strict_matching
        self.rule_budgets: Dict[str, int] = dict(rule_budgets) if rule_budgets else {}
        self.rule_counts: Dict[str, int] = {}
        self.rule_budget_exhausted: set[str] = set()
        self.exhausted_budget = False
        self.term: Optional[Term] = None
        self.root_id: Optional[str] = None

    def _reset_state(self) -> None:
        self.events.clear()
        self.rule_counts.clear()
        self.rule_budget_exhausted.clear()
        self.exhausted_budget = False

    def load(self, root: Term) -> str:
        self._reset_state()
        self.theory.signature.validate_tree(root)
        self.term = root
        self.root_id = fingerprint_term(root)
        return self.root_id

    def _available(self) -> List[Schema]:
        available: List[Schema] = []
        for schema in self.schemas:
            limit = self.rule_budgets.get(schema.name)
            if limit is not None and self.rule_counts.get(schema.name, 0) >= limit:
                self.rule_budget_exhausted.add(schema.name)
                continue
            available.append(schema)
        return available

    def step(self) -> Optional[Event]:
        if self.term is None:
            raise RuntimeError("no term loaded")

        schemas = self._available()
        for path, subterm in positions(self.term):
            matches = matching_schemas(schemas, subterm)
            if not matches:
                continue
            if self.strict_matching and len(matches) > 1:
                raise AmbiguousRuleError(subterm, matches)

            schema = matches[0]
            contractum = schema.forward(subterm)
            before_term = self.term
            self.term = replace_at(self.term, path, contractum)
            event = Event(
                kind="rewrite",
                before=fingerprint_term(before_term),
                after=fingerprint_term(self.term),
                before_term=before_term,
                after_term=self.term,
                rule=schema.name,
                path=path,
            )
            self.events.append(event)
            self.rule_counts[schema.name] = self.rule_counts.get(schema.name, 0) + 1
            for hook in self.event_hooks:
                hook(event)
            return event
        return None

    def run(self, max_steps: int = 1) -> List[Event]:
        emitted: List[Event] = []
        for _ in range(max_steps):
            ev = self.step()
            if ev is None:
                break
            emitted.append(ev)

        self.exhausted_budget = len(emitted) >= max_steps and self.is_reducible()
        return emitted

    def run_until_idle(self, max_steps: Optional[int] = None) -> List[Event]:
        """Rewrite until no schema applies or a step budget is hit."""

        emitted: List[Event] = []
        while max_steps is None or len(emitted) < max_steps:
            ev = self.step()
            if ev is None:
                break
            emitted.append(ev)

        self.exhausted_budget = max_steps is not None and len(emitted) >= max_steps and self.is_reducible()
        return emitted

    def is_reducible(self) -> bool:
        if self.term is None:
            return False
        schemas = self._available()
        return any(matching_schemas(schemas, subterm) for _path, subterm in positions(self.term))

    def stats(self) -> Dict[str, object]:
        """Summaries of rewriting activity."""

        return {
            "theory": self.theory.name,
            "events": len(self.events),
            "rule_counts": dict(self.rule_counts),
            "idle": not self.is_reducible(),
            "budget_exhausted": self.exhausted_budget,
            "rule_budget_exhausted": sorted(self.rule_budget_exhausted),
        }
