from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence, Tuple

from nbe.rewrite import Schema
from nbe.signature import Signature, SignatureError
from nbe.terms import Op, ProbeFn, Term

# An evaluator arm receives the operation node and an evaluate callback,
# which returns the already folded value for first-order subterms.
Arm = Callable[[Op, Callable[[Term], Any]], Any]


class TheoryError(SignatureError):
    """Raised when a theory declaration is incomplete or inconsistent."""


@dataclass(frozen=True)
class Theory:
    """Everything the engine needs to know about one algebraic theory.

    The term algebra, evaluator and normalizer are generic; a theory only
    supplies its signature, one evaluator arm per tag, the unit of its
    semantic domain (``pure``), a reifier back into syntax and its rewrite
    schemas. ``domains`` gives probe values for each continuation answer
    type, used to compare continuations extensionally; answer types listed in
    ``exhaustive`` have probe values covering their whole domain.
    """

    name: str
    signature: Signature
    arms: Mapping[str, Arm]
    reify: Callable[[Any], Term]
    schemas: Tuple[Schema, ...] = ()
    pure: Callable[[Any], Any] | None = None
    domains: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    normal_form: Callable[[Term, ProbeFn], bool] | None = None
    exhaustive: Tuple[str, ...] = ()

    def schema(self, name: str) -> Schema:
        for schema in self.schemas:
            if schema.name == name:
                return schema
        raise KeyError(f"theory {self.name} has no schema {name}")

    @property
    def exact(self) -> bool:
        """True when probing covers every answer type completely."""

        return self.signature.answer_types() <= set(self.exhaustive)

    def check(self, domains: Mapping[str, Sequence[Any]] | None = None) -> None:
        """Refuse incomplete declarations.

        Every tag needs an evaluator arm, every non-free tag needs at least one
        rewrite schema covering it, and every answer type needs probe values.
        """

        if not self.name:
            raise TheoryError("theory name must be non-empty")

        tags = set(self.signature.tags())
        missing_arms = tags - set(self.arms)
        if missing_arms:
            raise TheoryError(f"theory {self.name} has no evaluator arm for {sorted(missing_arms)}")
        extra_arms = set(self.arms) - tags
        if extra_arms:
            raise TheoryError(f"theory {self.name} has evaluator arms for undeclared {sorted(extra_arms)}")

        if self.signature.pure and self.pure is None:
            raise TheoryError(f"theory {self.name} allows Return leaves but declares no pure semantics")
        if not self.signature.pure and self.pure is not None:
            raise TheoryError(f"theory {self.name} declares pure semantics without Return leaves")

        seen: set[str] = set()
        covered: set[str] = set()
        for schema in self.schemas:
            if schema.name in seen:
                raise TheoryError(f"duplicate schema name: {schema.name}")
            seen.add(schema.name)
            unknown = set(schema.covers) - tags
            if unknown:
                raise TheoryError(f"schema {schema.name} covers undeclared operations {sorted(unknown)}")
            covered.update(schema.covers)

        for tag, entry in self.signature.items():
            if not entry.free and tag not in covered:
                raise TheoryError(f"operation {tag} of theory {self.name} has no rewrite coverage")

        unknown_exhaustive = set(self.exhaustive) - self.signature.answer_types()
        if unknown_exhaustive:
            raise TheoryError(
                f"theory {self.name} marks undeclared answer types exhaustive: {sorted(unknown_exhaustive)}"
            )

        available = dict(self.domains)
        if domains:
            available.update(domains)
        for answer in sorted(self.signature.answer_types()):
            values = available.get(answer)
            if not values:
                raise TheoryError(f"answer type {answer} of theory {self.name} has no probe values")

    def probes(self, domains: Mapping[str, Sequence[Any]] | None = None) -> ProbeFn:
        """Build the probe function for this theory's continuation slots."""

        available = {kind: tuple(values) for kind, values in self.domains.items()}
        if domains:
            available.update({kind: tuple(values) for kind, values in domains.items()})

        def _probe(op: Op, slot: int) -> Tuple[Any, ...]:
            return available[self.signature.answer_type(op, slot)]

        return _probe
