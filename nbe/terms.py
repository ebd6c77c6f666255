from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union


@dataclass(frozen=True)
class Return:
    """Pure leaf carrying a computation's result."""

    value: Any


@dataclass(frozen=True)
class Op:
    """A single operation node of some theory's signature.

    ``args`` holds the static payload: plain values, or first-order subterms
    for theories whose operations combine terms directly. ``conts`` holds one
    continuation per declared answer slot. A continuation maps the answer the
    operation produces to the rest of the computation; it is a function of the
    answer only, never of another term, so recursion over the tree always
    bottoms out.
    """

    tag: str
    args: Tuple[Any, ...] = ()
    conts: Tuple[Callable[[Any], "Term"], ...] = ()


Term = Union[Return, Op]

# Probe values for continuation slot ``slot`` of ``op``.
ProbeFn = Callable[[Op, int], Sequence[Any]]


@dataclass(frozen=True, order=True)
class Ident:
    """Opaque, totally ordered name for a free variable."""

    index: int
    name: str = field(default="", compare=False)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return self.name or f"#{self.index}"


def is_term(value: object) -> bool:
    return isinstance(value, (Return, Op))


def sequence(mx: Term, f: Callable[[Any], Term]) -> Term:
    """Bind ``f`` after ``mx``.

    A pure leaf hands its value straight to ``f``; an operation keeps its tag
    and payload and pushes ``f`` under every continuation. Functions pushed under an
    already bound continuation join its pending list, so neither binding nor
    later running the continuation nests Python calls.
    """

    if not is_term(mx):
        raise TypeError(f"cannot sequence non-term {mx!r}")
    return _bind_all(mx, (f,))


class _Bound:
    """Continuation ``k`` followed by the functions ``fs`` in order.

    Binding onto an already bound continuation extends ``fs`` instead of
    nesting closures, so running a long left-nested program stays a loop.
    """

    __slots__ = ("k", "fs")

    def __init__(self, k: Callable[[Any], Term], fs: Tuple[Callable[[Any], Term], ...]):
        self.k = k
        self.fs = fs

    def __call__(self, answer: Any) -> Term:
        return _bind_all(self.k(answer), self.fs)


def _extend(k: Callable[[Any], Term], fs: Tuple[Callable[[Any], Term], ...]) -> _Bound:
    if isinstance(k, _Bound):
        return _Bound(k.k, k.fs + fs)
    return _Bound(k, fs)


def _bind_all(mx: Term, fs: Tuple[Callable[[Any], Term], ...]) -> Term:
    index = 0
    while index < len(fs):
        if isinstance(mx, Return):
            mx = fs[index](mx.value)
            index += 1
            continue
        if isinstance(mx, Op):
            rest = fs[index:]
            return Op(tag=mx.tag, args=mx.args, conts=tuple(_extend(k, rest) for k in mx.conts))
        raise TypeError(f"cannot sequence non-term {mx!r}")
    return mx


def chain(mx: Term, *fs: Callable[[Any], Term]) -> Term:
    """Sequence ``mx`` through each function in turn."""

    result = mx
    for f in fs:
        result = sequence(result, f)
    return result


def then(mx: Term, my: Term) -> Term:
    """Run ``mx`` for its effects, then ``my``."""

    return sequence(mx, lambda _answer: my)


def same_value(x: object, y: object) -> bool:
    """Payload equality that also tells apart types, so ``1`` is not ``True``."""

    return type(x) is type(y) and x == y


def structural_equal(left: Term, right: Term, probes: ProbeFn | None = None) -> bool:
    """Compare two terms node by node.

    Payloads must have the same type and compare equal, and first-order
    subterms must match node by node. Continuations are compared by applying
    both to every probe value of their answer type, so the comparison is exact
    whenever the probe set covers the answer domain.
    """

    stack: List[Tuple[object, object]] = [(left, right)]
    while stack:
        a, b = stack.pop()
        if isinstance(a, Return) and isinstance(b, Return):
            if not same_value(a.value, b.value):
                return False
            continue
        if not (isinstance(a, Op) and isinstance(b, Op)):
            return False
        if a.tag != b.tag or len(a.args) != len(b.args) or len(a.conts) != len(b.conts):
            return False

        for x, y in zip(a.args, b.args):
            if is_term(x) or is_term(y):
                stack.append((x, y))
            elif not same_value(x, y):
                return False

        for slot, (ka, kb) in enumerate(zip(a.conts, b.conts)):
            if ka is kb:
                continue
            if probes is None:
                raise ValueError(f"comparing continuations of {a.tag} requires probe values")
            for answer in probes(a, slot):
                stack.append((ka(answer), kb(answer)))
    return True


def size(term: Term, probes: ProbeFn | None = None) -> int:
    """Count nodes, unfolding continuations at their probes when given."""

    count = 0
    stack: List[Term] = [term]
    while stack:
        node = stack.pop()
        count += 1
        if isinstance(node, Return):
            continue
        stack.extend(arg for arg in node.args if is_term(arg))
        if probes is None:
            continue
        for slot, k in enumerate(node.conts):
            stack.extend(k(answer) for answer in probes(node, slot))
    return count


def _encode_value(value: object) -> object:
    if isinstance(value, Ident):
        return {"ident": value.index, "name": value.name}
    if is_term(value):
        return term_to_dict(value)
    if isinstance(value, tuple):
        return [_encode_value(item) for item in value]
    return value


def term_to_dict(term: Term, probes: ProbeFn | None = None) -> Dict[str, Any]:
    """Serialize a term into a JSON-friendly dict for tracing.

    Without probes, continuations are rendered as an opaque placeholder.
    """

    if isinstance(term, Return):
        return {"return": _encode_value(term.value)}

    args = [term_to_dict(arg, probes) if is_term(arg) else _encode_value(arg) for arg in term.args]
    payload: Dict[str, Any] = {"op": term.tag, "args": args}
    if term.conts:
        if probes is None:
            payload["conts"] = ["<continuation>" for _ in term.conts]
        else:
            payload["conts"] = [
                [
                    {"answer": _encode_value(answer), "term": term_to_dict(k(answer), probes)}
                    for answer in probes(term, slot)
                ]
                for slot, k in enumerate(term.conts)
            ]
    return payload


def _decode_value(value: object) -> object:
    if isinstance(value, dict):
        if "ident" in value:
            return Ident(int(value["ident"]), str(value.get("name", "")))
        return term_from_dict(value)
    if isinstance(value, list):
        return tuple(_decode_value(item) for item in value)
    return value


def term_from_dict(payload: Dict[str, Any]) -> Term:
    """Rebuild a first-order term from ``term_to_dict`` output."""

    if "return" in payload:
        return Return(_decode_value(payload["return"]))
    if "op" not in payload:
        raise ValueError(f"term payload needs an 'op' or 'return' key: {payload}")
    if payload.get("conts"):
        raise ValueError(f"cannot rebuild continuations of {payload['op']} from data")
    args = tuple(_decode_value(arg) for arg in payload.get("args", ()))
    return Op(tag=str(payload["op"]), args=args)
