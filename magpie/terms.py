"""
Term data model for magpie.

Expressions are immutable named trees, patterns are flat rule left-hand
sides, and mappings pair a pattern with the skeleton it rewrites to.

    f(x g(a b) y)        Expression("f", [x, Expression("g", [a, b]), y])
    f(x y)               Pattern("f", ["x", "y"])
    f(x y) => g(y x)     Mapping(Pattern("f", ["x", "y"]), g(y x))

All three compare by structure, not identity, and hash accordingly, so
they can be stored in sets and used as dict keys.

Equality and hashing walk the tree recursively. Trees nested deeper than
the interpreter recursion limit (about 1000 by default) raise
RecursionError; use sys.setrecursionlimit() for deeper trees.
"""

from typing import Iterable, Tuple


def signature(name: str, arity: int) -> str:
    """
    Shape key used to match patterns against expressions.

    Examples:
        signature("f", 2) -> "f#2"
        signature("t", 0) -> "t#0"
    """
    return f"{name}#{arity}"


class Expression:
    """
    An immutable expression tree node.

    A leaf is an expression with no arguments. Two expressions are equal
    when their names are equal and their arguments are pairwise equal.

    Examples:
        t = Expression("t")
        e = Expression("f", [t])
        e == Expression("f", [Expression("t")])   # => True
        e.signature                                # => "f#1"
        str(e)                                     # => "f(t)"
    """

    __slots__ = ('_name', '_args', '_hash')

    def __init__(self, name: str, args: Iterable['Expression'] = ()):
        if not isinstance(name, str):
            raise TypeError(f"Expression name must be a string, got {type(name).__name__}")
        args = tuple(args)
        for arg in args:
            if not isinstance(arg, Expression):
                raise TypeError(f"Expression argument must be an Expression, got {type(arg).__name__}")
        self._name = name
        self._args = args
        self._hash = hash((name, args))

    @property
    def name(self) -> str:
        return self._name

    @property
    def args(self) -> Tuple['Expression', ...]:
        return self._args

    @property
    def arity(self) -> int:
        return len(self._args)

    @property
    def is_leaf(self) -> bool:
        return not self._args

    @property
    def signature(self) -> str:
        return signature(self._name, len(self._args))

    def __setattr__(self, key, value):
        if hasattr(self, '_hash'):
            raise AttributeError("Expression is immutable")
        object.__setattr__(self, key, value)

    def __eq__(self, other):
        if self is other:
            return True
        if isinstance(other, Expression):
            return (self._hash == other._hash
                    and self._name == other._name
                    and self._args == other._args)
        return NotImplemented

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        if not self._args:
            return f"Expression({self._name!r})"
        return f"Expression({self._name!r}, {list(self._args)!r})"

    def __str__(self) -> str:
        from .chatter import format_expression
        return format_expression(self)


def leaf(name: str) -> Expression:
    """Build a zero-argument expression."""
    return Expression(name)


class Pattern:
    """
    The left-hand side of a mapping: a name and a flat list of parameters.

    Parameters are plain strings scoped to the mapping that owns the
    pattern; patterns never nest.

    Example:
        Pattern("f", ["x", "y"]).signature   # => "f#2"
    """

    __slots__ = ('_name', '_params', '_hash')

    def __init__(self, name: str, params: Iterable[str] = ()):
        if not isinstance(name, str):
            raise TypeError(f"Pattern name must be a string, got {type(name).__name__}")
        params = tuple(params)
        for param in params:
            if not isinstance(param, str):
                raise TypeError(f"Pattern parameter must be a string, got {type(param).__name__}")
        self._name = name
        self._params = params
        self._hash = hash((name, params))

    @property
    def name(self) -> str:
        return self._name

    @property
    def params(self) -> Tuple[str, ...]:
        return self._params

    @property
    def arity(self) -> int:
        return len(self._params)

    @property
    def signature(self) -> str:
        return signature(self._name, len(self._params))

    def __setattr__(self, key, value):
        if hasattr(self, '_hash'):
            raise AttributeError("Pattern is immutable")
        object.__setattr__(self, key, value)

    def __eq__(self, other):
        if isinstance(other, Pattern):
            return self._name == other._name and self._params == other._params
        return NotImplemented

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"Pattern({self._name!r}, {list(self._params)!r})"

    def __str__(self) -> str:
        from .chatter import format_pattern
        return format_pattern(self)


class Mapping:
    """
    A rewrite rule: ``pattern => skeleton``.

    Leaves of the skeleton named after one of the pattern's parameters are
    substitution variables; everything else is copied literally.
    """

    __slots__ = ('_pattern', '_skeleton', '_hash')

    def __init__(self, pattern: Pattern, skeleton: Expression):
        if not isinstance(pattern, Pattern):
            raise TypeError(f"Mapping pattern must be a Pattern, got {type(pattern).__name__}")
        if not isinstance(skeleton, Expression):
            raise TypeError(f"Mapping skeleton must be an Expression, got {type(skeleton).__name__}")
        self._pattern = pattern
        self._skeleton = skeleton
        self._hash = hash((pattern, skeleton))

    @property
    def pattern(self) -> Pattern:
        return self._pattern

    @property
    def skeleton(self) -> Expression:
        return self._skeleton

    @property
    def signature(self) -> str:
        return self._pattern.signature

    def __setattr__(self, key, value):
        if hasattr(self, '_hash'):
            raise AttributeError("Mapping is immutable")
        object.__setattr__(self, key, value)

    def __eq__(self, other):
        if isinstance(other, Mapping):
            return self._pattern == other._pattern and self._skeleton == other._skeleton
        return NotImplemented

    def __hash__(self) -> int:
        return self._hash

    def __repr__(self) -> str:
        return f"Mapping({self._pattern!r}, {self._skeleton!r})"

    def __str__(self) -> str:
        from .chatter import format_mapping
        return format_mapping(self)
