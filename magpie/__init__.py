"""
magpie - a term rewriting engine

Repeatedly rewrites a tree-shaped expression with a set of rules until no
rule changes it (fixed point) or it comes back to a tree seen earlier in
the run (cycle).

Quick Start:
    from magpie import RewriteEngine

    engine = RewriteEngine.from_text('''
        f(x) => g(x)
        g(x) => h(x)
    ''')

    engine("f(t)")   # => h(t)

Chatter Syntax:
    t                  - a leaf expression
    f(x g(a b))        - a nested expression
    f(x y)             - a pattern (flat list of parameter names)
    f(x y) => g(y x)   - a rule; x and y are substituted in the skeleton

Rules match by signature, the name plus the argument count ("f#2"). Within
one step, children are rewritten before their parents.

Example Rules File (cycle.rules):
    # f, g and h chase each other forever
    f(x) => g(x)
    g(x) => h(x)
    h(x) => f(x)
"""

__version__ = "0.1.0"

# Data model
from .terms import (
    Expression,
    Pattern,
    Mapping,
    signature,
    leaf,
)

# Notation
from .chatter import (
    ParseError,
    Parsed,
    ParseFailure,
    ParseResult,
    tokenize,
    parse_expression,
    parse_pattern,
    parse_mapping,
    format_expression,
    format_pattern,
    format_mapping,
    try_parse_expression,
    try_parse_pattern,
    try_parse_mapping,
)

# Core rewriter
from .rewriter import (
    transform,
    transform_once,
    substitute,
    index_mappings,
    ArityMismatch,
    RewriteLimitExceeded,
    RewriteStep,
    RewriteTrace,
    FIXED_POINT,
    CYCLE,
)

# Engine and rule files
from .engine import (
    RewriteEngine,
    load_mappings_from_text,
    load_mappings_from_file,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Data model
    "Expression",
    "Pattern",
    "Mapping",
    "signature",
    "leaf",
    # Notation
    "ParseError",
    "Parsed",
    "ParseFailure",
    "ParseResult",
    "tokenize",
    "parse_expression",
    "parse_pattern",
    "parse_mapping",
    "format_expression",
    "format_pattern",
    "format_mapping",
    "try_parse_expression",
    "try_parse_pattern",
    "try_parse_mapping",
    # Core
    "transform",
    "transform_once",
    "substitute",
    "index_mappings",
    "ArityMismatch",
    "RewriteLimitExceeded",
    "RewriteStep",
    "RewriteTrace",
    "FIXED_POINT",
    "CYCLE",
    # Engine
    "RewriteEngine",
    "load_mappings_from_text",
    "load_mappings_from_file",
]
