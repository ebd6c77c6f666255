"""Seeded generators of terms and related pairs for property tests.

All randomness is drawn up front into plain recipes, so the continuations of
generated programs are pure functions of their answers.
"""

from __future__ import annotations

import random
from typing import Any, Callable, List, Optional, Sequence, Tuple

from nbe import monoid, state
from nbe.rewrite import Related, Schema, congruence, inside, positions, rewrite_at, sym, trans, under
from nbe.terms import Ident, ProbeFn, Return, Term, sequence

# (source, multiplier, offset): ``source`` picks a previous read counting
# back from the most recent one, ``None`` reads as zero.
Expr = Tuple[Optional[int], int, int]


def random_monoid_term(
    depth: int = 4,
    idents: Sequence[Ident] | None = None,
    *,
    rng: random.Random | None = None,
) -> Term:
    """Random Monoid term over ``idents`` of at most ``depth`` levels."""

    rng = rng or random.Random()
    pool = list(idents) if idents else list(monoid.idents("a", "b", "c"))
    if depth <= 1 or rng.random() < 0.3:
        if rng.random() < 0.25:
            return monoid.unit()
        return monoid.var(rng.choice(pool))
    return monoid.seq(
        random_monoid_term(depth - 1, pool, rng=rng),
        random_monoid_term(depth - 1, pool, rng=rng),
    )


def derive_monoid(
    term: Term,
    steps: int = 5,
    *,
    schemas: Sequence[Schema] | None = None,
    rng: random.Random | None = None,
) -> Related:
    """Walk ``steps`` random rewrites, in either direction, away from ``term``."""

    rng = rng or random.Random()
    schemas = list(schemas) if schemas is not None else list(monoid.MONOID.schemas)
    current = term
    names: List[str] = []
    for _ in range(steps):
        moves = []
        for path, subterm in positions(current):
            for schema in schemas:
                if schema.forward is not None and schema.forward(subterm) is not None:
                    moves.append((path, schema, False))
                if schema.backward is not None and schema.backward(subterm) is not None:
                    moves.append((path, schema, True))
        if not moves:
            break
        path, schema, backward = rng.choice(moves)
        current = rewrite_at(current, path, schema, backward=backward)
        names.append(f"{schema.name}^-1" if backward else schema.name)
    return Related(term, current, tuple(names))


def _expr(rng: random.Random) -> Expr:
    return (rng.choice([None, 0, 1]), rng.randint(0, 3), rng.randint(0, 5))


def _value(expr: Expr, reads: Tuple[int, ...]) -> int:
    source, multiplier, offset = expr
    base = 0
    if source is not None and source < len(reads):
        base = reads[-1 - source]
    return base * multiplier + offset


def _recipe(rng: random.Random, depth: int) -> tuple:
    if depth <= 0:
        return ("return", _expr(rng))
    roll = rng.random()
    if roll < 0.2:
        return ("return", _expr(rng))
    if roll < 0.6:
        return ("get", _recipe(rng, depth - 1))
    return ("set", _expr(rng), _recipe(rng, depth - 1))


def _build(recipe: tuple, reads: Tuple[int, ...]) -> Term:
    kind = recipe[0]
    if kind == "return":
        return Return(_value(recipe[1], reads))
    if kind == "get":
        rest = recipe[1]
        return sequence(state.get(), lambda x: _build(rest, reads + (x,)))
    _, expr, rest = recipe
    return sequence(state.put(_value(expr, reads)), lambda _: _build(rest, reads))


def random_program(depth: int = 3, *, rng: random.Random | None = None) -> Term:
    """Random Stateful program with at most ``depth`` operations on any path."""

    rng = rng or random.Random()
    return _build(_recipe(rng, depth), ())


def random_continuation(depth: int = 2, *, rng: random.Random | None = None):
    """Random pure function from a read value to a Stateful program."""

    rng = rng or random.Random()
    recipe = _recipe(rng, depth)
    return lambda *reads: _build(recipe, tuple(reads))


def _state_instance(rng: random.Random, depth: int) -> Related:
    schema = rng.choice(state.STATE.schemas)
    if schema.name == "get-get":
        return schema.instantiate(random_continuation(depth, rng=rng))
    if schema.name == "set-set":
        return schema.instantiate(rng.randint(0, 9), rng.randint(0, 9), random_program(depth, rng=rng))
    if schema.name == "set-get":
        return schema.instantiate(rng.randint(0, 9), random_continuation(depth, rng=rng))
    return schema.instantiate(random_program(depth, rng=rng))


def random_state_pair(depth: int = 2, *, rng: random.Random | None = None) -> Related:
    """Random pair related by one Stateful schema placed in a random context."""

    rng = rng or random.Random()
    related = _state_instance(rng, depth)
    roll = rng.random()
    if roll < 0.25:
        suffix = random_continuation(depth, rng=rng)
        related = under(related, suffix)
    elif roll < 0.5:
        prefix = random_program(1, rng=rng)
        inner = related
        related = inside(prefix, lambda _x: inner)
    elif roll < 0.7:
        first, second = related, _state_instance(rng, depth)
        related = congruence(first, lambda _x: second)
    if rng.random() < 0.3:
        related = sym(related)
    return related


def derive_state(
    steps: int = 4,
    depth: int = 0,
    *,
    probes: ProbeFn | None = None,
    rng: random.Random | None = None,
) -> Related:
    """Chain ``steps`` Stateful rewrites with ``trans``.

    The program runs ``steps`` schema instances one after the other. Link
    ``k`` rewrites instance ``k`` under the binders of the instances before
    it, which were rewritten by earlier links, so the last rewrite sits
    ``steps - 1`` binders deep. Instances are used in a random direction.
    """

    rng = rng or random.Random()
    probes = probes or state.STATE.probes({state.NAT: (0, 1)})
    instances: List[Related] = []
    for _ in range(steps):
        instance = _state_instance(rng, depth)
        instances.append(sym(instance) if rng.random() < 0.5 else instance)
    suffix = random_continuation(depth, rng=rng)

    def pending(index: int) -> Callable[[Any], Term]:
        # the original instances from ``index`` on, then the suffix
        if index == len(instances):
            return suffix
        return lambda _x: sequence(instances[index].lhs, pending(index + 1))

    derived: Optional[Related] = None
    names: List[str] = []
    for index, instance in enumerate(instances):
        link = under(instance, pending(index + 1))
        for before in reversed(instances[:index]):
            link = inside(before.rhs, lambda _x, link=link: link)
        derived = link if derived is None else trans(derived, link, probes)
        names.append(f"{'/'.join(instance.steps)}@{index}")

    if derived is None:
        return Related(Return(0), Return(0), ())
    if rng.random() < 0.5:
        prefix = random_program(1, rng=rng)
        inner = derived
        derived = inside(prefix, lambda _x: inner)
    return Related(derived.lhs, derived.rhs, tuple(names))


def sample_states(count: int = 5, *, rng: random.Random | None = None) -> List[int]:
    rng = rng or random.Random()
    return [rng.randint(0, 20) for _ in range(count)]


def pointwise(value: Any, states: Sequence[int]) -> List[Tuple[int, Any]]:
    """Tabulate a Stateful semantic value on ``states``."""

    return [value(s) for s in states]
