import operator

import pytest

from nbe import state
from nbe.engine import Engine
from nbe.env import Environment
from nbe.monoid import MONOID, idents
from nbe.reflection import SEQUENCES, STRINGS, Interpretation, Reflector, check_homomorphism


def test_sequence_goal_is_discharged_by_normalization():
    reflector = Reflector(SEQUENCES)
    q = reflector.quoter()
    x, y, z = q.atom((1, 2), "x"), q.atom((3,), "y"), q.atom((4, 5), "z")
    e = q.unit()

    # (x + (y + e)) + (z + e) == (x + e) + ((e + y) + z)
    left = q.seq(q.seq(x, q.seq(y, e)), q.seq(z, e))
    right = q.seq(q.seq(x, e), q.seq(q.seq(e, y), z))

    proof = reflector.prove(q, left, right)

    assert proof
    assert proof.value == (1, 2, 3, 4, 5)
    assert q.denote(left) == q.denote(right) == proof.value
    assert proof.verdict.left == proof.verdict.right


def test_string_goal():
    reflector = Reflector(STRINGS)
    q = reflector.quoter()
    hello, space, world = q.atoms("hello", " ", "world")

    proof = reflector.prove(q, q.concat(hello, space, world), q.seq(q.seq(hello, space), world))
    assert proof
    assert proof.value == "hello world"


def test_failed_goal_carries_no_value():
    reflector = Reflector(SEQUENCES)
    q = reflector.quoter()
    x, y = q.atoms((1,), (2,))

    proof = reflector.prove(q, q.seq(x, y), q.seq(y, x))

    assert not proof
    assert proof.value is None
    assert proof.left == q.seq(x, y)


def test_equal_values_share_an_identifier():
    q = Reflector(SEQUENCES).quoter()
    first = q.atom((7, 7))
    second = q.atom((7, 7))
    other = q.atom((8,))

    assert first == second
    assert first != other
    assert len(q.env) == 2
    assert [ident.name for ident in q.env.idents()] == ["x0", "x1"]


def test_concat_of_nothing_is_the_unit():
    q = Reflector(STRINGS).quoter()
    assert q.denote(q.concat()) == ""
    assert q.denote(q.concat(q.atom("ab"))) == "ab"


def test_reflection_needs_a_monoid_engine():
    with pytest.raises(ValueError):
        Reflector(SEQUENCES, Engine(state.STATE))
    assert Reflector(SEQUENCES, Engine(MONOID)).engine.theory is MONOID


def test_bundled_interpretations_are_homomorphisms():
    assert check_homomorphism(SEQUENCES, [(), (1,), (2, 3)]) == []
    assert check_homomorphism(STRINGS, ["", "a", "bc"]) == []


def test_broken_interpretation_yields_unsound_proofs():
    minus = Interpretation("minus", 0, operator.sub)
    assert check_homomorphism(minus, [0, 1, 2])

    reflector = Reflector(minus)
    q = reflector.quoter()
    a, b, c = q.atoms(10, 3, 2)
    left, right = q.seq(a, q.seq(b, c)), q.seq(q.seq(a, b), c)

    proof = reflector.prove(q, left, right)
    # The decision procedure accepts the goal even though the values differ.
    assert proof
    assert q.denote(left) != q.denote(right)


def test_environment_is_persistent_and_total():
    x, y = idents("x", "y")
    empty = Environment(default=())
    env = empty.extend(x, (1,))

    assert env(x) == (1,)
    assert env(y) == ()
    assert x in env and y not in env
    assert len(empty) == 0 and len(env) == 1

    shadowed = env.extend(x, (2,))
    assert shadowed.lookup(x) == (2,)
    assert env.lookup(x) == (1,)
    assert list(shadowed.extend(y, (3,)).items()) == [(x, (2,)), (y, (3,))]
