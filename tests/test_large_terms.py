from nbe import monoid, state
from nbe.engine import Engine, EngineConfig
from nbe.fingerprint import fingerprint_term
from nbe.reflection import STRINGS, Reflector
from nbe.rewrite import positions, replace_at, subterm_at
from nbe.terms import Return, chain, sequence, size, then

N = 5000
IDENTS = monoid.idents("a", "b", "c")


def _right_chain(n):
    term = monoid.unit()
    for index in reversed(range(n)):
        term = monoid.seq(monoid.var(IDENTS[index % 3]), term)
    return term


def _left_tree(n):
    term = monoid.var(IDENTS[0])
    for index in range(1, n):
        term = monoid.seq(term, monoid.var(IDENTS[index % 3]))
    return term


def test_long_normal_form_normalizes_to_itself():
    engine = Engine(monoid.MONOID, EngineConfig(cache=False))
    term = _right_chain(N)

    normal = engine.normalize(term)

    assert engine.same(normal, term)
    assert engine.is_normal(normal)
    assert size(normal) == 2 * N + 1


def test_deep_left_nesting_is_equivalent_to_the_chain():
    engine = Engine(monoid.MONOID)
    left, right = _left_tree(N), _right_chain(N)

    verdict = engine.equivalent(left, right)
    assert verdict
    assert verdict.exact
    assert len(monoid.flatten(verdict.left)) == N

    assert engine.equivalent(left, right)
    assert engine.stats()["cache_hits"] == 2


def test_deep_terms_fingerprint():
    engine = Engine(monoid.MONOID)
    left = _left_tree(N)

    assert fingerprint_term(left) == fingerprint_term(_left_tree(N))
    assert fingerprint_term(left) != fingerprint_term(_left_tree(N - 1))
    normal = engine.normalize(left)
    assert fingerprint_term(normal, engine.probes) == fingerprint_term(_right_chain(N))


def test_deep_positions_and_replacement():
    term = _right_chain(N)
    path = (1,) * N

    assert subterm_at(term, path) == monoid.unit()
    assert sum(1 for _ in positions(term)) == 2 * N + 1

    replaced = replace_at(term, path, monoid.var(IDENTS[1]))
    assert len(monoid.flatten(replaced)) == N + 1
    assert subterm_at(replaced, path) == monoid.var(IDENTS[1])


def _increment():
    return sequence(state.get(), lambda x: state.put(x + 1))


def test_long_left_nested_program_runs():
    program = Return(None)
    for _ in range(N):
        program = then(program, _increment())
    program = then(program, state.get())

    assert state.run(program, 0) == (N, N)
    assert state.run(program, 7) == (N + 7, N + 7)


def test_long_right_nested_program_normalizes():
    program = state.get()
    for _ in range(N):
        program = then(_increment(), program)

    engine = Engine(state.STATE, EngineConfig(domains={state.NAT: (0, 3)}))
    shortcut = chain(state.get(), lambda x: then(state.put(x + N), Return(x + N)))

    verdict = engine.equivalent(program, shortcut)
    assert verdict
    assert not verdict.exact
    assert state.run(program, 2) == (N + 2, N + 2)


def test_deep_goals_reflect():
    reflector = Reflector(STRINGS)
    q = reflector.quoter()
    atoms = [q.atom("ab"[index % 2]) for index in range(N)]

    left = atoms[0]
    for atom in atoms[1:]:
        left = q.seq(left, atom)
    right = q.concat(*atoms)

    proof = reflector.prove(q, left, right)
    assert proof
    assert proof.value == "ab" * (N // 2)
