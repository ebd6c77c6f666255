"""Monoid theory: free variables, a unit and an associative ``seq``.

Terms are first-order trees. Evaluation is the Cayley embedding: each term
becomes the function it induces by left multiplication, and applying that
function to ``unit`` reads back a right-nested chain of variables.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple

from nbe.rewrite import Schema
from nbe.signature import TERM, OpSignature, Signature
from nbe.terms import Ident, Op, ProbeFn, Term
from nbe.theory import Theory

VAR = "var"
UNIT = "unit"
SEQ = "seq"

Semantic = Callable[[Term], Term]

SIGNATURE = Signature(
    [
        OpSignature(VAR, params=("ident",), free=True),
        OpSignature(UNIT),
        OpSignature(SEQ, params=(TERM, TERM)),
    ],
    pure=False,
)


def var(ident: Ident) -> Op:
    return Op(VAR, (ident,))


def unit() -> Op:
    return Op(UNIT)


def seq(left: Term, right: Term) -> Op:
    return Op(SEQ, (left, right))


def idents(*names: str) -> Tuple[Ident, ...]:
    """Allocate identifiers ordered as given."""

    return tuple(Ident(index, name) for index, name in enumerate(names))


def _is(term: Term, tag: str) -> bool:
    return isinstance(term, Op) and term.tag == tag


# Rewrite schemas.


def _left_unit_forward(term: Term) -> Optional[Term]:
    if _is(term, SEQ) and _is(term.args[0], UNIT):
        return term.args[1]
    return None


def _right_unit_forward(term: Term) -> Optional[Term]:
    if _is(term, SEQ) and _is(term.args[1], UNIT):
        return term.args[0]
    return None


def _assoc_forward(term: Term) -> Optional[Term]:
    if _is(term, SEQ) and _is(term.args[0], SEQ):
        (a, b), c = term.args[0].args, term.args[1]
        return seq(a, seq(b, c))
    return None


def _assoc_backward(term: Term) -> Optional[Term]:
    if _is(term, SEQ) and _is(term.args[1], SEQ):
        a, (b, c) = term.args[0], term.args[1].args
        return seq(seq(a, b), c)
    return None


LEFT_UNIT = Schema(
    name="left-unit",
    covers=(SEQ, UNIT),
    build=lambda a: (seq(unit(), a), a),
    forward=_left_unit_forward,
    backward=lambda a: seq(unit(), a),
)
RIGHT_UNIT = Schema(
    name="right-unit",
    covers=(SEQ, UNIT),
    build=lambda a: (seq(a, unit()), a),
    forward=_right_unit_forward,
    backward=lambda a: seq(a, unit()),
)
ASSOC = Schema(
    name="assoc",
    covers=(SEQ,),
    build=lambda a, b, c: (seq(seq(a, b), c), seq(a, seq(b, c))),
    forward=_assoc_forward,
    backward=_assoc_backward,
)


# Semantics.


class Endo:
    """Left multiplication by a sequence of atoms.

    Composition only records its two parts; applying the function walks
    them with a stack and builds the right-nested chain in one loop.
    """

    __slots__ = ("atom", "parts")

    def __init__(self, atom: Optional[Op] = None, parts: Tuple["Endo", ...] = ()):
        self.atom = atom
        self.parts = parts

    def atoms(self) -> List[Op]:
        found: List[Op] = []
        stack: List[Endo] = [self]
        while stack:
            node = stack.pop()
            if node.atom is not None:
                found.append(node.atom)
            stack.extend(reversed(node.parts))
        return found

    def __call__(self, rest: Term) -> Term:
        result = rest
        for atom in reversed(self.atoms()):
            result = seq(atom, result)
        return result


IDENTITY = Endo()


def _eval_var(op: Op, _evaluate: Callable[[Term], Semantic]) -> Semantic:
    return Endo(atom=op)


def _eval_unit(_op: Op, _evaluate: Callable[[Term], Semantic]) -> Semantic:
    return IDENTITY


def _eval_seq(op: Op, evaluate: Callable[[Term], Semantic]) -> Semantic:
    left, right = (evaluate(arg) for arg in op.args)
    return Endo(parts=(left, right))


def reify(semantic: Semantic) -> Term:
    return semantic(unit())


def flatten(term: Term) -> List[Ident]:
    """Variables of ``term`` in order, units dropped."""

    found: List[Ident] = []
    stack: List[Term] = [term]
    while stack:
        node = stack.pop()
        if _is(node, VAR):
            found.append(node.args[0])
        elif _is(node, SEQ):
            stack.append(node.args[1])
            stack.append(node.args[0])
    return found


def is_normal(term: Term, _probes: ProbeFn | None = None) -> bool:
    """A right-nested chain ``seq(var, seq(var, ... unit))``."""

    node = term
    while _is(node, SEQ):
        head, node = node.args
        if not _is(head, VAR):
            return False
    return _is(node, UNIT)


MONOID = Theory(
    name="monoid",
    signature=SIGNATURE,
    arms={VAR: _eval_var, UNIT: _eval_unit, SEQ: _eval_seq},
    reify=reify,
    schemas=(LEFT_UNIT, RIGHT_UNIT, ASSOC),
    normal_form=is_normal,
)
