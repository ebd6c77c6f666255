from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

from nbe.evaluator import Evaluator
from nbe.fingerprint import fingerprint_term, term_key
from nbe.normalize import Normalizer, Verdict
from nbe.runtime import Event
from nbe.terms import Term, structural_equal
from nbe.theory import Theory


@dataclass(frozen=True)
class EngineConfig:
    """Knobs for one engine instance.

    ``domains`` overrides the probe values a theory declares for its answer
    types. Normal forms are memoized per input term when ``cache`` is on.
    Only the latest ``max_events`` events are kept; hooks still see all.
    """

    domains: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    cache: bool = True
    cache_size: int = 1024
    validate: bool = True
    max_events: int = 1024


def validate_config(config: EngineConfig) -> None:
    """Basic sanity checks to catch malformed configuration before use."""

    if config.cache_size <= 0:
        raise ValueError("cache_size must be positive")
    if config.max_events < 0:
        raise ValueError("max_events must not be negative")
    for kind, values in config.domains.items():
        if not values:
            raise ValueError(f"probe domain {kind} must not be empty")


class Engine:
    """Normalization-by-evaluation engine for one theory.

    Construction checks the theory declaration and refuses incomplete ones
    with ``TheoryError``. After that every operation is total on terms that
    respect the signature.

    Continuations are compared on the probe values of their answer type. For
    a theory whose answer types are not all exhaustively probed, such as
    Stateful with its sampled states, an equal verdict means the programs
    agree on the probes and is reported with ``exact=False``.
    """

    def __init__(
        self,
        theory: Theory,
        config: EngineConfig | None = None,
        event_hooks: Optional[List[Callable[[Event], None]]] = None,
    ):
        self.config = config if config is not None else EngineConfig()
        validate_config(self.config)
        theory.check(self.config.domains)

        self.theory = theory
        self.probes = theory.probes(self.config.domains)
        self.evaluator = Evaluator(theory)
        self.normalizer = Normalizer(theory, self.probes, self.evaluator)
        self.event_hooks: List[Callable[[Event], None]] = event_hooks or []
        self.events: Deque[Event] = deque(maxlen=self.config.max_events)
        # key -> (term, normal form); holding the term keeps the key valid
        self._cache: Dict[str, Tuple[Term, Term]] = {}
        self.counts: Dict[str, int] = {"events": 0, "normalized": 0, "cache_hits": 0, "checks": 0, "equal": 0}

    def _emit(self, event: Event) -> None:
        self.events.append(event)
        self.counts["events"] += 1
        for hook in self.event_hooks:
            hook(event)

    def _check(self, term: Term) -> None:
        if self.config.validate:
            self.theory.signature.validate_tree(term)

    def evaluate(self, term: Term) -> Any:
        self._check(term)
        return self.evaluator.evaluate(term)

    def reify(self, value: Any) -> Term:
        return self.normalizer.reify(value)

    def _remember(self, key: str, term: Term, normal: Term) -> None:
        if len(self._cache) >= self.config.cache_size:
            del self._cache[next(iter(self._cache))]
        self._cache[key] = (term, normal)

    def normalize(self, term: Term) -> Term:
        self._check(term)
        key = term_key(term) if self.config.cache else None
        if key is not None and key in self._cache:
            self.counts["cache_hits"] += 1
            return self._cache[key][1]

        normal = self.normalizer.normalize(term)
        if key is not None:
            self._remember(key, term, normal)
        self.counts["normalized"] += 1
        self._emit(
            Event(
                kind="normalize",
                before=fingerprint_term(term),
                after=fingerprint_term(normal, self.probes),
                before_term=term,
                after_term=normal,
                probes=self.probes,
            )
        )
        return normal

    def same(self, left: Term, right: Term) -> bool:
        """Structural equality with this engine's probes."""

        return structural_equal(left, right, self.probes)

    def equivalent(self, left: Term, right: Term) -> Verdict:
        """Decide ``left ~ right`` by comparing normal forms.

        A negative verdict is always exact. A positive one is exact only when
        the theory probes every answer type completely.
        """

        left_nf = self.normalize(left)
        right_nf = self.normalize(right)
        equal = self.same(left_nf, right_nf)
        verdict = Verdict(equal=equal, left=left_nf, right=right_nf, exact=not equal or self.theory.exact)
        self.counts["checks"] += 1
        if verdict.equal:
            self.counts["equal"] += 1
        self._emit(
            Event(
                kind="equivalent",
                before=fingerprint_term(left_nf, self.probes),
                after=fingerprint_term(right_nf, self.probes),
                before_term=left_nf,
                after_term=right_nf,
                detail={"equal": verdict.equal, "exact": verdict.exact},
                probes=self.probes,
            )
        )
        return verdict

    def is_normal(self, term: Term) -> bool:
        if self.theory.normal_form is None:
            return self.same(self.normalize(term), term)
        return self.theory.normal_form(term, self.probes)

    def clear_cache(self) -> None:
        self._cache.clear()

    def clear_events(self) -> None:
        """Drop retained events; the emitted count in ``stats`` is kept."""

        self.events.clear()

    def stats(self) -> Dict[str, object]:
        return {
            "theory": self.theory.name,
            "cache_entries": len(self._cache),
            "retained_events": len(self.events),
            **self.counts,
        }
