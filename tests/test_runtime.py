import pytest

from nbe import monoid, state
from nbe.rewrite import AmbiguousRuleError
from nbe.runtime import Rewriter
from nbe.signature import SignatureError
from nbe.terms import Return
from nbe.theory import TheoryError

A, B, C = (monoid.var(ident) for ident in monoid.idents("a", "b", "c"))
U = monoid.unit()


def _messy():
    return monoid.seq(monoid.seq(A, U), monoid.seq(monoid.seq(U, B), C))


def test_rewriting_is_leftmost_outermost_in_schema_order():
    rewriter = Rewriter(monoid.MONOID)
    rewriter.load(_messy())
    events = rewriter.run_until_idle()

    assert [event.rule for event in events] == ["assoc", "left-unit", "assoc", "left-unit"]
    assert [event.path for event in events] == [(), (1,), (1,), (1,)]
    assert rewriter.term == monoid.seq(A, monoid.seq(B, C))

    stats = rewriter.stats()
    assert stats["idle"] is True
    assert stats["rule_counts"] == {"assoc": 2, "left-unit": 2}
    assert stats["budget_exhausted"] is False


def test_rule_budgets_switch_rules_off():
    rewriter = Rewriter(monoid.MONOID, rule_budgets={"assoc": 1})
    rewriter.load(_messy())
    rewriter.run_until_idle()

    assert rewriter.term == monoid.seq(A, monoid.seq(B, C))
    assert rewriter.stats()["rule_budget_exhausted"] == ["assoc"]
    assert rewriter.rule_counts["assoc"] == 1


def test_step_budget_is_reported():
    rewriter = Rewriter(monoid.MONOID)
    rewriter.load(_messy())
    events = rewriter.run_until_idle(max_steps=1)

    assert len(events) == 1
    assert rewriter.stats()["budget_exhausted"] is True
    assert rewriter.is_reducible()

    assert len(rewriter.run(max_steps=10)) == 3
    assert rewriter.stats()["budget_exhausted"] is False


def test_strict_matching_rejects_overlapping_rules():
    rewriter = Rewriter(monoid.MONOID, strict_matching=True)
    rewriter.load(monoid.seq(monoid.seq(A, B), U))
    with pytest.raises(AmbiguousRuleError) as excinfo:
        rewriter.step()
    assert {schema.name for schema in excinfo.value.schemas} == {"right-unit", "assoc"}


def test_include_and_exclude_filters():
    rewriter = Rewriter(monoid.MONOID, include_rules=["assoc"])
    rewriter.load(_messy())
    rewriter.run_until_idle()
    assert monoid.flatten(rewriter.term) == monoid.flatten(_messy())
    assert set(rewriter.rule_counts) == {"assoc"}

    rewriter = Rewriter(monoid.MONOID, exclude_rules=["assoc"])
    rewriter.load(monoid.seq(monoid.seq(A, B), C))
    assert rewriter.step() is None


def test_invalid_rewriter_configuration():
    with pytest.raises(ValueError):
        Rewriter(monoid.MONOID, include_rules=["missing"])
    with pytest.raises(ValueError):
        Rewriter(monoid.MONOID, include_rules=["assoc"], exclude_rules=["assoc"])
    with pytest.raises(ValueError):
        Rewriter(monoid.MONOID, rule_budgets={"assoc": 0})
    with pytest.raises(TheoryError):
        Rewriter(state.STATE)


def test_load_validates_and_fingerprints():
    rewriter = Rewriter(monoid.MONOID)
    with pytest.raises(SignatureError):
        rewriter.load(Return(1))
    with pytest.raises(RuntimeError):
        rewriter.step()

    first = rewriter.load(_messy())
    assert first == Rewriter(monoid.MONOID).load(_messy())
    assert rewriter.root_id == first


def test_hooks_see_every_rewrite():
    seen = []
    rewriter = Rewriter(monoid.MONOID, event_hooks=[seen.append])
    rewriter.load(_messy())
    rewriter.run_until_idle()
    assert seen == rewriter.events
    assert all(event.kind == "rewrite" for event in seen)
    assert seen[0].after == seen[1].before
