"""Proof by reflection for concrete monoids.

A goal such as ``(x + (y + e)) + (z + e) == (x + e) + ((e + y) + z)`` over
concrete sequences is discharged by quoting both sides as Monoid terms,
deciding their equivalence by normalization, and reading the answer back
through the interpretation.

The interpretation must be a monoid homomorphism: ``identity`` is a
two-sided unit for ``combine`` and ``combine`` is associative. This is a
caller obligation. It is not checked at runtime, and an interpretation that
breaks it makes ``Reflector.prove`` report equalities that do not hold.
``check_homomorphism`` samples the laws for use in tests.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple

from nbe.engine import Engine
from nbe.env import Environment
from nbe.monoid import MONOID, SEQ, UNIT, VAR, seq, unit, var
from nbe.normalize import Verdict
from nbe.signature import SignatureError
from nbe.terms import Ident, Op, Term


@dataclass(frozen=True)
class Interpretation:
    """Concrete monoid that Monoid terms are read into."""

    name: str
    identity: Any
    combine: Callable[[Any, Any], Any]

    def denote(self, env: Environment, term: Term) -> Any:
        values: List[Any] = []
        stack: List[Tuple[Term, bool]] = [(term, False)]
        while stack:
            node, combining = stack.pop()
            if not isinstance(node, Op):
                raise SignatureError(f"cannot interpret {node!r} in {self.name}")
            if node.tag == UNIT:
                values.append(self.identity)
            elif node.tag == VAR:
                values.append(env(node.args[0]))
            elif node.tag != SEQ:
                raise SignatureError(f"no interpretation for operation {node.tag}")
            elif combining:
                right = values.pop()
                left = values.pop()
                values.append(self.combine(left, right))
            else:
                left, right = node.args
                stack.append((node, True))
                stack.append((right, False))
                stack.append((left, False))
        return values.pop()


SEQUENCES = Interpretation("sequences", (), lambda left, right: tuple(left) + tuple(right))
STRINGS = Interpretation("strings", "", operator.add)


class Quoter:
    """Builds Monoid terms together with the environment that reads them back."""

    def __init__(self, interpretation: Interpretation):
        self.interpretation = interpretation
        self.env = Environment(interpretation.identity)
        self._atoms: List[Tuple[Any, Ident]] = []

    def atom(self, value: Any, name: str = "") -> Op:
        """Quote a concrete value; equal values share one identifier."""

        for seen, ident in self._atoms:
            if seen == value:
                return var(ident)
        ident = Ident(len(self._atoms), name or f"x{len(self._atoms)}")
        self._atoms.append((value, ident))
        self.env = self.env.extend(ident, value)
        return var(ident)

    def atoms(self, *values: Any) -> Tuple[Op, ...]:
        return tuple(self.atom(value) for value in values)

    def unit(self) -> Op:
        return unit()

    def seq(self, left: Term, right: Term) -> Op:
        return seq(left, right)

    def concat(self, *terms: Term) -> Term:
        """Right-nested ``seq`` of ``terms``; ``unit`` when empty."""

        if not terms:
            return unit()
        result = terms[-1]
        for term in reversed(terms[:-1]):
            result = seq(term, result)
        return result

    def denote(self, term: Term) -> Any:
        return self.interpretation.denote(self.env, term)


@dataclass(frozen=True)
class Proof:
    """Result of a reflected equality goal.

    When ``holds`` is true, ``value`` is the concrete value both sides
    denote.
    """

    holds: bool
    left: Term
    right: Term
    verdict: Verdict
    value: Any = None

    def __bool__(self) -> bool:
        return self.holds


class Reflector:
    """Discharges concrete monoid equalities with the Monoid decision procedure."""

    def __init__(self, interpretation: Interpretation, engine: Optional[Engine] = None):
        self.interpretation = interpretation
        self.engine = engine if engine is not None else Engine(MONOID)
        if self.engine.theory is not MONOID:
            raise ValueError(f"reflection needs a monoid engine, got {self.engine.theory.name}")

    def quoter(self) -> Quoter:
        return Quoter(self.interpretation)

    def prove(self, quoter: Quoter, left: Term, right: Term) -> Proof:
        verdict = self.engine.equivalent(left, right)
        value = quoter.denote(left) if verdict.equal else None
        return Proof(holds=verdict.equal, left=left, right=right, verdict=verdict, value=value)


def check_homomorphism(interpretation: Interpretation, samples: Sequence[Any]) -> List[str]:
    """Return human-readable violations of the monoid laws on ``samples``."""

    violations: List[str] = []
    identity, combine = interpretation.identity, interpretation.combine
    for a in samples:
        if combine(identity, a) != a:
            violations.append(f"left identity fails for {a!r}")
        if combine(a, identity) != a:
            violations.append(f"right identity fails for {a!r}")
    for a in samples:
        for b in samples:
            for c in samples:
                if combine(combine(a, b), c) != combine(a, combine(b, c)):
                    violations.append(f"associativity fails for {a!r}, {b!r}, {c!r}")
    return violations
