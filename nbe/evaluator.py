from __future__ import annotations

from typing import Any, Dict, List, Tuple

from nbe.signature import SignatureError
from nbe.terms import Op, Return, Term, is_term
from nbe.theory import Theory


class Evaluator:
    """Structural evaluation of terms into a theory's semantic domain.

    A pure leaf goes through the theory's ``pure`` and an operation through
    the arm registered for its tag. First-order subterms are folded bottom-up
    with an explicit stack, and the callback handed to an arm returns their
    values without evaluating again. Arms decide when continuations are
    evaluated, which lets a stateful arm wait for the state it reads.
    """

    def __init__(self, theory: Theory):
        self.theory = theory

    def __call__(self, term: Term) -> Any:
        return self.evaluate(term)

    def _pure(self, term: Return) -> Any:
        if self.theory.pure is None:
            raise SignatureError(f"theory {self.theory.name} has no pure leaves")
        return self.theory.pure(term.value)

    def evaluate(self, term: Term) -> Any:
        if isinstance(term, Return):
            return self._pure(term)
        if not isinstance(term, Op):
            raise TypeError(f"cannot evaluate non-term {term!r}")

        # keyed by id; every node stays alive through ``term`` meanwhile
        done: Dict[int, Any] = {}

        def lookup(sub: Term) -> Any:
            key = id(sub)
            if key in done:
                return done[key]
            return self.evaluate(sub)

        stack: List[Tuple[Term, bool]] = [(term, False)]
        while stack:
            node, expanded = stack.pop()
            if id(node) in done:
                continue
            if isinstance(node, Return):
                done[id(node)] = self._pure(node)
                continue
            if not expanded:
                stack.append((node, True))
                stack.extend((arg, False) for arg in reversed(node.args) if is_term(arg))
                continue
            arm = self.theory.arms.get(node.tag)
            if arm is None:
                raise SignatureError(f"no evaluator arm for operation {node.tag}")
            done[id(node)] = arm(node, lookup)
        return done[id(term)]
