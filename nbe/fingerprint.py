from __future__ import annotations

import hashlib
from typing import Callable, Iterable, List, Optional, Tuple

from nbe.rewrite import Schema
from nbe.signature import Signature
from nbe.terms import Ident, Op, ProbeFn, Return, Term, is_term
from nbe.theory import Theory


def _hash_components(parts: Iterable[str]) -> str:
    raw = "|".join(parts)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


def _value_text(value: object) -> str:
    if isinstance(value, Ident):
        return f"ident:{value.index}"
    return repr(value)


def _digest(term: Term, probes: ProbeFn | None, cont_text: Callable[[object], str]) -> str:
    # post-order: a node's frame is popped again once its children's digests
    # sit on top of ``results``
    results: List[str] = []
    stack: List[Tuple[Term, Optional[List[Term]]]] = [(term, None)]
    while stack:
        node, children = stack.pop()
        if isinstance(node, Return):
            results.append(_hash_components(["return", _value_text(node.value)]))
            continue
        if not isinstance(node, Op):
            raise TypeError(f"cannot fingerprint non-term {node!r}")
        if children is None:
            children = [arg for arg in node.args if is_term(arg)]
            if probes is not None:
                for slot, k in enumerate(node.conts):
                    children.extend(k(answer) for answer in probes(node, slot))
            stack.append((node, children))
            stack.extend((child, None) for child in reversed(children))
            continue

        split = len(results) - len(children)
        digests = iter(results[split:])
        del results[split:]
        parts = [node.tag]
        for arg in node.args:
            parts.append(next(digests) if is_term(arg) else _value_text(arg))
        for slot, k in enumerate(node.conts):
            if probes is None:
                parts.append(cont_text(k))
                continue
            for answer in probes(node, slot):
                parts.append(f"{_value_text(answer)}->{next(digests)}")
        results.append(_hash_components(parts))
    return results[0]


def fingerprint_term(term: Term, probes: ProbeFn | None = None) -> str:
    """Deterministic structural fingerprint for a term.

    Continuations contribute their probed results when probes are given and
    an opaque marker otherwise.
    """

    return _digest(term, probes, lambda _k: "cont")


def term_key(term: Term) -> str:
    """Fingerprint that tells continuation objects apart by identity.

    Equal keys mean equal terms for as long as ``term`` is alive, which is
    what a cache holding on to its terms needs.
    """

    return _digest(term, None, lambda k: f"cont@{id(k)}")


def fingerprint_schema(schema: Schema) -> str:
    direction = ("f" if schema.forward else "-") + ("b" if schema.backward else "-")
    return _hash_components(["schema", schema.name, *sorted(schema.covers), direction])


def fingerprint_signature(signature: Signature) -> str:
    payload = signature.to_dict()
    parts = [f"pure={payload['pure']}"]
    for tag, entry in sorted(payload["operations"].items()):
        parts.append(
            f"{tag}:{','.join(entry['params'])}:{','.join(entry['answers'])}:free={entry['free']}"
        )
    return _hash_components(["signature", *parts])


def fingerprint_theory(theory: Theory) -> str:
    """Fingerprint a theory declaration: name, signature and schemas."""

    schema_hashes = [fingerprint_schema(schema) for schema in theory.schemas]
    return _hash_components(["theory", theory.name, fingerprint_signature(theory.signature), *schema_hashes])
