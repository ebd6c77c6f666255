"""Stateful theory: reads and writes of a single natural-number cell.

Programs are built from ``get`` and ``put`` with ``sequence``::

    program = chain(put(1), lambda _: get(), lambda x: put(x + x), lambda _: get())
    run(program, 0)  # -> (2, 2)

Semantic values are functions ``state -> (final_state, result)``; every
program normalizes to the fixed shape ``get; set; return``.
"""

from __future__ import annotations

from typing import Any, Callable, Tuple

from nbe.evaluator import Evaluator
from nbe.rewrite import Schema
from nbe.signature import OpSignature, Signature
from nbe.terms import Op, ProbeFn, Return, Term, sequence
from nbe.theory import Theory

GET = "get"
SET = "set"
NAT = "nat"
UNIT = "unit"

DEFAULT_STATE_PROBES = (0, 1, 2, 3, 7, 42)

Semantic = Callable[[int], Tuple[int, Any]]

SIGNATURE = Signature(
    [
        OpSignature(GET, answers=(NAT,)),
        OpSignature(SET, params=(NAT,), answers=(UNIT,)),
    ]
)


def get() -> Op:
    return Op(GET, conts=(Return,))


def put(value: int) -> Op:
    """The ``set`` operation; named ``put`` to keep the builtin visible."""

    return Op(SET, (value,), (Return,))


# Rewrite schemas, stated over their metavariables.


def _get_get(k: Callable[[int, int], Term]) -> Tuple[Term, Term]:
    lhs = sequence(get(), lambda x: sequence(get(), lambda y: k(x, y)))
    rhs = sequence(get(), lambda x: k(x, x))
    return lhs, rhs


def _set_set(first: int, second: int, rest: Term) -> Tuple[Term, Term]:
    lhs = sequence(put(first), lambda _: sequence(put(second), lambda _: rest))
    rhs = sequence(put(second), lambda _: rest)
    return lhs, rhs


def _set_get(value: int, k: Callable[[int], Term]) -> Tuple[Term, Term]:
    lhs = sequence(put(value), lambda _: sequence(get(), k))
    rhs = sequence(put(value), lambda _: k(value))
    return lhs, rhs


def _get_set(rest: Term) -> Tuple[Term, Term]:
    lhs = sequence(get(), lambda x: sequence(put(x), lambda _: rest))
    return lhs, rest


GET_GET = Schema(
    name="get-get",
    covers=(GET,),
    build=_get_get,
    description="a second read is redundant",
)
SET_SET = Schema(
    name="set-set",
    covers=(SET,),
    build=_set_set,
    description="the first of two writes is dead",
)
SET_GET = Schema(
    name="set-get",
    covers=(SET, GET),
    build=_set_get,
    description="a read after a write sees the written value",
)
GET_SET = Schema(
    name="get-set",
    covers=(GET, SET),
    build=_get_set,
    description="writing back the value just read is a no-op",
)


# Semantics.


def _pure(value: Any) -> Semantic:
    return lambda state: (state, value)


class _Step:
    """Semantic value of an operation: one state transition, then the rest.

    Calling it drives the program in a loop, evaluating one node at a time,
    so program length never shows up as Python call depth.
    """

    __slots__ = ("transition", "evaluate")

    def __init__(self, transition: Callable[[int], Tuple[int, Term]], evaluate: Callable[[Term], Semantic]):
        self.transition = transition
        self.evaluate = evaluate

    def __call__(self, state: int) -> Tuple[int, Any]:
        value: Semantic = self
        while isinstance(value, _Step):
            state, rest = value.transition(state)
            value = value.evaluate(rest)
        return value(state)


def _eval_get(op: Op, evaluate: Callable[[Term], Semantic]) -> Semantic:
    (k,) = op.conts
    return _Step(lambda state: (state, k(state)), evaluate)


def _eval_set(op: Op, evaluate: Callable[[Term], Semantic]) -> Semantic:
    (value,) = op.args
    (k,) = op.conts
    return _Step(lambda _state: (value, k(())), evaluate)


def _write_back(outcome: Tuple[int, Any]) -> Term:
    final, result = outcome
    return sequence(put(final), lambda _: Return(result))


def reify(semantic: Semantic) -> Term:
    """``get(s. let (s', x) = f(s) in set(s'); return x)``."""

    return sequence(get(), lambda state: _write_back(semantic(state)))


def is_normal(term: Term, probes: ProbeFn) -> bool:
    """Check the canonical ``get; set; return`` shape."""

    if not isinstance(term, Op) or term.tag != GET or len(term.conts) != 1:
        return False
    (k,) = term.conts
    for state in probes(term, 0):
        write = k(state)
        if not isinstance(write, Op) or write.tag != SET or len(write.conts) != 1:
            return False
        if not isinstance(write.conts[0](()), Return):
            return False
    return True


STATE = Theory(
    name="state",
    signature=SIGNATURE,
    arms={GET: _eval_get, SET: _eval_set},
    reify=reify,
    schemas=(GET_GET, SET_SET, SET_GET, GET_SET),
    pure=_pure,
    domains={NAT: DEFAULT_STATE_PROBES, UNIT: ((),)},
    normal_form=is_normal,
    exhaustive=(UNIT,),
)

_EVALUATOR = Evaluator(STATE)


def run(term: Term, initial: int = 0) -> Tuple[int, Any]:
    """Evaluate ``term`` from ``initial`` and return ``(final_state, result)``."""

    return _EVALUATOR.evaluate(term)(initial)
