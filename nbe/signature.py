from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Tuple

from nbe.terms import Ident, Op, ProbeFn, Return, Term, is_term

TERM = "term"


class SignatureError(ValueError):
    """Raised when a term violates a declared operation signature."""


def _is_nat(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


VALUE_CHECKS: Dict[str, Callable[[object], bool]] = {
    "nat": _is_nat,
    "unit": lambda value: value == (),
    "ident": lambda value: isinstance(value, Ident),
    "any": lambda value: True,
    TERM: is_term,
}


@dataclass(frozen=True)
class OpSignature:
    """Arity of one operation tag.

    ``params`` lists payload field types (``"term"`` marks a first-order
    subterm), ``answers`` lists the answer type of each continuation slot.
    A ``free`` operation is a generator with no equations of its own.
    """

    tag: str
    params: Tuple[str, ...] = ()
    answers: Tuple[str, ...] = ()
    free: bool = False

    @property
    def arity(self) -> int:
        return len(self.params) + len(self.answers)

    def validate(self, op: Op, checks: Mapping[str, Callable[[object], bool]]) -> None:
        if op.tag != self.tag:
            raise SignatureError(f"signature mismatch: expected {self.tag}, got {op.tag}")
        if len(op.args) != len(self.params):
            raise SignatureError(
                f"operation {op.tag} expected {len(self.params)} payload fields, found {len(op.args)}"
            )
        if len(op.conts) != len(self.answers):
            raise SignatureError(
                f"operation {op.tag} expected {len(self.answers)} continuations, found {len(op.conts)}"
            )
        for index, (kind, value) in enumerate(zip(self.params, op.args)):
            check = checks.get(kind)
            if check is None:
                raise SignatureError(f"operation {op.tag} declares unknown payload type {kind}")
            if not check(value):
                raise SignatureError(f"operation {op.tag} payload {index} is not a valid {kind}: {value!r}")
        for slot, k in enumerate(op.conts):
            if not callable(k):
                raise SignatureError(f"operation {op.tag} continuation {slot} is not callable")


class Signature:
    """Declarative operation arities for one algebraic theory."""

    def __init__(
        self,
        entries: Iterable[OpSignature],
        *,
        pure: bool = True,
        value_checks: Mapping[str, Callable[[object], bool]] | None = None,
    ):
        entries_list = list(entries)
        self._by_tag = {entry.tag: entry for entry in entries_list}
        if len(self._by_tag) != len(entries_list):
            raise SignatureError("duplicate signature entries detected")
        self.pure = pure
        self.value_checks: Dict[str, Callable[[object], bool]] = dict(VALUE_CHECKS)
        if value_checks:
            self.value_checks.update(value_checks)

    def get(self, tag: str) -> OpSignature | None:
        return self._by_tag.get(tag)

    def tags(self) -> list[str]:
        return sorted(self._by_tag)

    def items(self) -> list[tuple[str, OpSignature]]:
        """Deterministic access to signature entries."""

        return sorted(self._by_tag.items())

    @property
    def first_order(self) -> bool:
        """True when no operation carries a continuation."""

        return all(not entry.answers for entry in self._by_tag.values())

    def answer_types(self) -> set[str]:
        return {answer for entry in self._by_tag.values() for answer in entry.answers}

    def answer_type(self, op: Op, slot: int) -> str:
        entry = self.get(op.tag)
        if entry is None:
            raise SignatureError(f"no signature declared for operation {op.tag}")
        if slot >= len(entry.answers):
            raise SignatureError(f"operation {op.tag} has no continuation slot {slot}")
        return entry.answers[slot]

    def validate_term(self, term: Term) -> None:
        if isinstance(term, Return):
            if not self.pure:
                raise SignatureError("theory has no pure leaves but term contains Return")
            return
        if not isinstance(term, Op):
            raise SignatureError(f"not a term: {term!r}")
        entry = self.get(term.tag)
        if entry is None:
            raise SignatureError(f"no signature declared for operation {term.tag}")
        entry.validate(term, self.value_checks)

    def validate_tree(self, term: Term, probes: ProbeFn | None = None) -> None:
        """Validate every node; continuations are followed only when probed."""

        stack: list[Term] = [term]
        while stack:
            node = stack.pop()
            self.validate_term(node)
            if isinstance(node, Return):
                continue
            stack.extend(arg for arg in node.args if is_term(arg))
            if probes is None:
                continue
            for slot, k in enumerate(node.conts):
                stack.extend(k(answer) for answer in probes(node, slot))

    def to_dict(self) -> dict:
        return {
            "pure": self.pure,
            "operations": {
                tag: {
                    "params": list(entry.params),
                    "answers": list(entry.answers),
                    "free": entry.free,
                }
                for tag, entry in sorted(self._by_tag.items())
            },
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Signature":
        try:
            operations = payload["operations"]
        except KeyError as exc:
            raise SignatureError("signature payload missing 'operations'") from exc

        entries: list[OpSignature] = []
        for tag, entry in operations.items():
            entries.append(
                OpSignature(
                    tag=tag,
                    params=tuple(str(kind) for kind in entry.get("params", ())),
                    answers=tuple(str(kind) for kind in entry.get("answers", ())),
                    free=bool(entry.get("free", False)),
                )
            )
        return cls(entries, pure=bool(payload.get("pure", True)))
