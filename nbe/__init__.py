from nbe.engine import Engine, EngineConfig, validate_config  # noqa: F401
from nbe.env import Environment  # noqa: F401
from nbe.evaluator import Evaluator  # noqa: F401
from nbe.fingerprint import (  # noqa: F401
    fingerprint_schema,
    fingerprint_signature,
    fingerprint_term,
    fingerprint_theory,
    term_key,
)
from nbe.monoid import MONOID  # noqa: F401
from nbe.normalize import Normalizer, Verdict  # noqa: F401
from nbe.reflection import (  # noqa: F401
    SEQUENCES,
    STRINGS,
    Interpretation,
    Proof,
    Quoter,
    Reflector,
    check_homomorphism,
)
from nbe.rewrite import (  # noqa: F401
    AmbiguousRuleError,
    Related,
    RewriteError,
    Schema,
    congruence,
    congruence_args,
    inside,
    positions,
    redexes,
    refl,
    replace_at,
    rewrite_at,
    sym,
    trans,
    under,
)
from nbe.runtime import Event, Rewriter  # noqa: F401
from nbe.signature import OpSignature, Signature, SignatureError  # noqa: F401
from nbe.state import STATE  # noqa: F401
from nbe.terms import (  # noqa: F401
    Ident,
    Op,
    Return,
    Term,
    chain,
    sequence,
    size,
    same_value,
    structural_equal,
    term_from_dict,
    term_to_dict,
    then,
)
from nbe.theory import Theory, TheoryError  # noqa: F401
from nbe.trace import JSONLTracer, dump_events, read_trace  # noqa: F401
