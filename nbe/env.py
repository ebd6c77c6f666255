from __future__ import annotations

from typing import Any, Dict, Iterator, Mapping, Tuple

from nbe.terms import Ident


class Environment:
    """Persistent total map from identifiers to values.

    Unbound identifiers read as ``default``. ``extend`` returns a new
    environment and never touches the receiver, so an environment can be
    shared freely once built.
    """

    __slots__ = ("_bindings", "default")

    def __init__(self, default: Any, bindings: Mapping[Ident, Any] | None = None):
        self.default = default
        self._bindings: Dict[Ident, Any] = dict(bindings) if bindings else {}

    def __call__(self, ident: Ident) -> Any:
        return self.lookup(ident)

    def lookup(self, ident: Ident) -> Any:
        return self._bindings.get(ident, self.default)

    def extend(self, ident: Ident, value: Any) -> "Environment":
        bindings = dict(self._bindings)
        bindings[ident] = value
        return Environment(self.default, bindings)

    def idents(self) -> Tuple[Ident, ...]:
        return tuple(sorted(self._bindings))

    def items(self) -> Iterator[Tuple[Ident, Any]]:
        for ident in self.idents():
            yield ident, self._bindings[ident]

    def __contains__(self, ident: object) -> bool:
        return ident in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        bound = ", ".join(f"{ident!r}={value!r}" for ident, value in self.items())
        return f"Environment({bound})"
