from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from nbe.evaluator import Evaluator
from nbe.terms import ProbeFn, Term, structural_equal
from nbe.theory import Theory


@dataclass(frozen=True)
class Verdict:
    """Outcome of an equivalence check.

    Truthy exactly when the two canonical forms coincide; both canonical
    terms are kept so a negative answer can be inspected. ``exact`` is false
    when equality was only established on sampled probe values, as for
    Stateful programs compared on a handful of states.
    """

    equal: bool
    left: Term
    right: Term
    exact: bool = True

    def __bool__(self) -> bool:
        return self.equal


class Normalizer:
    """Normalization by evaluation: ``normalize = reify . evaluate``."""

    def __init__(self, theory: Theory, probes: ProbeFn, evaluator: Evaluator | None = None):
        self.theory = theory
        self.probes = probes
        self.evaluator = evaluator if evaluator is not None else Evaluator(theory)

    def reify(self, value: Any) -> Term:
        return self.theory.reify(value)

    def normalize(self, term: Term) -> Term:
        return self.reify(self.evaluator.evaluate(term))

    def same(self, left: Term, right: Term) -> bool:
        return structural_equal(left, right, self.probes)

    def equivalent(self, left: Term, right: Term) -> Verdict:
        """Decide ``left ~ right`` with one normalize-and-compare pass.

        Continuations are compared on the probes only, so a positive answer
        for a theory with sampled answer types carries ``exact=False``.
        """

        left_nf = self.normalize(left)
        right_nf = self.normalize(right)
        equal = self.same(left_nf, right_nf)
        return Verdict(equal=equal, left=left_nf, right=right_nf, exact=not equal or self.theory.exact)
