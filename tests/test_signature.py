import pytest

from nbe import monoid, state
from nbe.signature import OpSignature, Signature, SignatureError
from nbe.terms import Op, Return, sequence


def test_stateful_signature_accepts_well_formed_operations():
    signature = state.STATE.signature
    signature.validate_term(state.get())
    signature.validate_term(state.put(3))
    signature.validate_term(Return("anything"))


@pytest.mark.parametrize(
    "term",
    [
        state.put(-1),
        state.put(True),
        state.put("3"),
        Op("get", (1,), (Return,)),
        Op("get"),
        Op("set", (1,), (None,)),
        Op("frob"),
    ],
)
def test_stateful_signature_rejects_malformed_operations(term):
    with pytest.raises(SignatureError):
        state.STATE.signature.validate_term(term)


def test_monoid_signature_rejects_pure_leaves_and_bad_payloads():
    a, = monoid.idents("a")
    signature = monoid.MONOID.signature

    signature.validate_tree(monoid.seq(monoid.var(a), monoid.unit()))
    with pytest.raises(SignatureError):
        signature.validate_tree(monoid.seq(monoid.var(a), Return(1)))
    with pytest.raises(SignatureError):
        signature.validate_tree(monoid.var("a"))
    with pytest.raises(SignatureError):
        signature.validate_tree(Op("seq", (monoid.unit(), 3)))


def test_validate_tree_follows_continuations_only_when_probed():
    bad = sequence(state.get(), lambda _x: state.put(-1))
    signature = state.STATE.signature

    signature.validate_tree(bad)
    with pytest.raises(SignatureError):
        signature.validate_tree(bad, state.STATE.probes())


def test_signature_dict_round_trip():
    for signature in (state.STATE.signature, monoid.MONOID.signature):
        payload = signature.to_dict()
        assert Signature.from_dict(payload).to_dict() == payload

    assert monoid.MONOID.signature.to_dict()["pure"] is False
    assert state.STATE.signature.to_dict()["operations"]["set"] == {
        "params": ["nat"],
        "answers": ["unit"],
        "free": False,
    }


def test_signature_rejects_duplicates_and_missing_payloads():
    with pytest.raises(SignatureError):
        Signature([OpSignature("x"), OpSignature("x")])
    with pytest.raises(SignatureError):
        Signature.from_dict({"symbols": {}})


def test_signature_introspection():
    assert monoid.MONOID.signature.first_order
    assert not state.STATE.signature.first_order
    assert state.STATE.signature.answer_type(state.get(), 0) == "nat"
    assert state.STATE.signature.answer_types() == {"nat", "unit"}
    assert state.STATE.signature.get("set").arity == 2
    assert [tag for tag, _ in monoid.MONOID.signature.items()] == ["seq", "unit", "var"]

    with pytest.raises(SignatureError):
        state.STATE.signature.answer_type(state.get(), 1)


def test_custom_value_checks_extend_the_builtin_ones():
    signature = Signature(
        [OpSignature("emit", params=("even",), answers=("unit",))],
        value_checks={"even": lambda value: isinstance(value, int) and value % 2 == 0},
    )
    signature.validate_term(Op("emit", (2,), (Return,)))
    with pytest.raises(SignatureError):
        signature.validate_term(Op("emit", (3,), (Return,)))
