from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

from nbe.terms import Op, ProbeFn, Term, is_term, sequence, structural_equal

Path = Tuple[int, ...]


class RewriteError(ValueError):
    """Raised when a rewrite step or closure combination is not applicable."""


@dataclass(frozen=True)
class Related:
    """A pair of terms known to be equivalent, with the steps that relate them."""

    lhs: Term
    rhs: Term
    steps: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Schema:
    """Named local rewrite schema ``lhs ~> rhs``.

    ``build`` instantiates the schema's metavariables (payload values,
    subterms or continuation functions) and returns the ``(lhs, rhs)`` pair.
    Schemas over first-order theories may also carry matchers: ``forward``
    contracts a concrete redex and ``backward`` expands a concrete contractum,
    each returning ``None`` where the schema does not apply.
    """

    name: str
    covers: Tuple[str, ...]
    build: Callable[..., Tuple[Term, Term]]
    forward: Callable[[Term], Optional[Term]] | None = None
    backward: Callable[[Term], Optional[Term]] | None = None
    description: str = ""

    def instantiate(self, *params: Any) -> Related:
        lhs, rhs = self.build(*params)
        return Related(lhs, rhs, (self.name,))

    def applies(self, term: Term) -> bool:
        return self.forward is not None and self.forward(term) is not None


class AmbiguousRuleError(Exception):
    def __init__(self, term: Term, schemas: Iterable[Schema]):
        names = ", ".join(schema.name for schema in schemas)
        tag = term.tag if isinstance(term, Op) else "return"
        super().__init__(f"ambiguous match for term {tag}: {names}")
        self.term = term
        self.schemas = list(schemas)


# Closure combinators. They construct related pairs for testing the
# evaluator and normalizer; nothing on the decision path consumes them.


def refl(term: Term) -> Related:
    return Related(term, term, ("refl",))


def sym(related: Related) -> Related:
    return Related(related.rhs, related.lhs, related.steps + ("sym",))


def trans(first: Related, second: Related, probes: ProbeFn | None = None) -> Related:
    """Compose two pairs whose middle terms agree."""

    if not structural_equal(first.rhs, second.lhs, probes):
        raise RewriteError("cannot compose pairs whose middle terms differ")
    return Related(first.lhs, second.rhs, first.steps + second.steps)


def congruence(head: Related, cont: Callable[[Any], Related]) -> Related:
    """Lift equivalence through sequencing.

    From ``p1 ~ p2`` and ``k1(x) ~ k2(x)`` for every ``x`` this yields
    ``sequence(p1, k1) ~ sequence(p2, k2)``.
    """

    lhs = sequence(head.lhs, lambda x: cont(x).lhs)
    rhs = sequence(head.rhs, lambda x: cont(x).rhs)
    return Related(lhs, rhs, head.steps + ("congruence",))


def under(head: Related, f: Callable[[Any], Term]) -> Related:
    """``p1 ~ p2`` gives ``sequence(p1, f) ~ sequence(p2, f)``."""

    return congruence(head, lambda x: refl(f(x)))


def inside(mx: Term, cont: Callable[[Any], Related]) -> Related:
    """``k1(x) ~ k2(x)`` gives ``sequence(mx, k1) ~ sequence(mx, k2)``."""

    related = congruence(refl(mx), cont)
    return Related(related.lhs, related.rhs, ("inside",))


def congruence_args(tag: str, *parts: Any) -> Related:
    """Congruence over the subterm positions of a first-order operation.

    Each part is either a ``Related`` pair, used on its own side, or a plain
    payload shared by both sides.
    """

    lhs_args = tuple(part.lhs if isinstance(part, Related) else part for part in parts)
    rhs_args = tuple(part.rhs if isinstance(part, Related) else part for part in parts)
    steps: Tuple[str, ...] = ()
    for part in parts:
        if isinstance(part, Related):
            steps += part.steps
    return Related(Op(tag, lhs_args), Op(tag, rhs_args), steps + (f"congruence:{tag}",))


# First-order positions and directed rewriting.


def positions(term: Term, prefix: Path = ()) -> Iterator[Tuple[Path, Term]]:
    """Yield ``(path, subterm)`` pairs, outermost first, left to right."""

    stack: List[Tuple[Path, Term]] = [(prefix, term)]
    while stack:
        path, node = stack.pop()
        yield path, node
        if isinstance(node, Op):
            children = [(path + (index,), arg) for index, arg in enumerate(node.args) if is_term(arg)]
            stack.extend(reversed(children))


def subterm_at(term: Term, path: Sequence[int]) -> Term:
    node = term
    for index in path:
        if not isinstance(node, Op) or index >= len(node.args) or not is_term(node.args[index]):
            raise RewriteError(f"invalid path {tuple(path)}")
        node = node.args[index]
    return node


def replace_at(term: Term, path: Sequence[int], new_subterm: Term) -> Term:
    spine: List[Tuple[Op, int]] = []
    node = term
    for index in path:
        if not isinstance(node, Op) or index >= len(node.args) or not is_term(node.args[index]):
            raise RewriteError(f"invalid path {tuple(path)}")
        spine.append((node, index))
        node = node.args[index]

    result = new_subterm
    for parent, index in reversed(spine):
        args: List[Any] = list(parent.args)
        args[index] = result
        result = Op(tag=parent.tag, args=tuple(args), conts=parent.conts)
    return result


def matching_schemas(schemas: Sequence[Schema], term: Term) -> List[Schema]:
    return [schema for schema in schemas if schema.applies(term)]


def redexes(term: Term, schemas: Sequence[Schema]) -> List[Tuple[Path, Schema]]:
    """Every position where some schema's forward matcher applies."""

    found: List[Tuple[Path, Schema]] = []
    for path, subterm in positions(term):
        for schema in matching_schemas(schemas, subterm):
            found.append((path, schema))
    return found


def rewrite_at(term: Term, path: Sequence[int], schema: Schema, *, backward: bool = False) -> Term:
    """Apply ``schema`` at ``path`` in the given direction."""

    matcher = schema.backward if backward else schema.forward
    if matcher is None:
        direction = "backward" if backward else "forward"
        raise RewriteError(f"schema {schema.name} has no {direction} matcher")
    replaced = matcher(subterm_at(term, path))
    if replaced is None:
        raise RewriteError(f"schema {schema.name} does not apply at {tuple(path)}")
    return replace_at(term, path, replaced)
