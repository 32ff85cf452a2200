"""
Chatter: the text notation for magpie expressions, patterns and mappings.

Chatter lets expressions and rules be written as strings instead of being
built by hand:

    name        := one or more characters except whitespace, '(' and ')'
    expression  := name | name '(' expression* ')'
    params      := '(' name* ')'
    pattern     := name | name params
    mapping     := pattern '=>' expression

Examples:
    parse_expression("f(x g(a b) y)")
    parse_pattern("f(x y)")
    parse_mapping("f(x y) => g(y x)")

Rendering is the inverse. A leaf expression renders as its bare name, but a
pattern always renders with parentheses:

    format_expression(parse_expression("t"))  -> "t"
    format_pattern(parse_pattern("t"))        -> "t()"

Parse failures raise ParseError. The try_parse_* variants return a Parsed
or ParseFailure value instead, which is falsy on failure:

    if result := try_parse_expression(text):
        print(result.value)
    else:
        print(result.error)

The parser and the renderers recurse once per nesting level, so input
nested deeper than the interpreter recursion limit (about 1000 by default)
raises RecursionError rather than ParseError.
"""

import re
from collections import deque
from typing import Deque, List, Optional, Union

from .terms import Expression, Mapping, Pattern

ARROW = "=>"

_TOKEN_SPLIT = re.compile(r'(\s+|[()])')


class ParseError(ValueError):
    """
    Raised when chatter text is malformed.

    Attributes:
        expected: Description of the token that was expected
        found: The offending token, or None if the input ended early
        source: Where the text came from (a file name), if known
        line: Line number within source, if known
    """

    def __init__(self, expected: str, found: Optional[str] = None,
                 source: Optional[str] = None, line: Optional[int] = None):
        self.expected = expected
        self.found = found
        self.source = source
        self.line = line
        super().__init__(self._message())

    @property
    def at_end(self) -> bool:
        """True if the input ended before the expected token."""
        return self.found is None

    def _message(self) -> str:
        if self.found is None:
            message = f"Expected {self.expected} but found the end of the stream"
        else:
            message = f"Expected {self.expected} but found {self.found}"
        if self.line is not None:
            return f"{self.source or '<text>'}:{self.line}: {message}"
        return message

    def located(self, source: Optional[str], line: int) -> 'ParseError':
        """Return a copy of this error annotated with its position in a file."""
        return ParseError(self.expected, self.found, source=source, line=line)


def tokenize(text: str) -> List[str]:
    """
    Split chatter text into tokens.

    Parentheses are always tokens of their own; whitespace separates
    tokens and is discarded.

    Example:
        tokenize("f(x g(y))") -> ["f", "(", "x", "g", "(", "y", ")", ")"]
    """
    return [tok for tok in _TOKEN_SPLIT.split(text) if tok and not tok.isspace()]


def is_name(token: str) -> bool:
    """Check whether a token can be used as a name."""
    return bool(token) and not any(
        c.isspace() or c in "()" for c in token)


class _Parser:
    """Recursive-descent parser over one token queue."""

    def __init__(self, text: str):
        self._queue: Deque[str] = deque(tokenize(text))

    def expression(self) -> Expression:
        name = self._name("a name")
        if not self._has("("):
            return Expression(name)

        self._expect("(")
        args = []
        while not self._has(")"):
            if not self._queue:
                raise self._error("a name or ')'")
            args.append(self.expression())
        self._expect(")")
        return Expression(name, args)

    def pattern(self) -> Pattern:
        name = self._name("a name")
        if not self._has("("):
            return Pattern(name)

        self._expect("(")
        params = []
        while not self._has(")"):
            params.append(self._name("a name or ')'"))
        self._expect(")")
        return Pattern(name, params)

    def end(self, expected: str = "the end of the stream") -> None:
        if self._queue:
            raise self._error(expected)

    def _name(self, expected: str) -> str:
        if self._queue and is_name(self._queue[0]):
            return self._queue.popleft()
        raise self._error(expected)

    def _has(self, token: str) -> bool:
        return bool(self._queue) and self._queue[0] == token

    def _expect(self, token: str) -> str:
        if self._has(token):
            return self._queue.popleft()
        raise self._error(f"'{token}'")

    def _error(self, expected: str) -> ParseError:
        return ParseError(expected, self._queue[0] if self._queue else None)


def parse_expression(text: str) -> Expression:
    """
    Parse chatter text into an Expression.

    Examples:
        "t"            -> Expression("t")
        "f(t)"         -> Expression("f", [Expression("t")])
        "f()"          -> Expression("f")
        "f("           -> ParseError: Expected a name or ')' but found the end of the stream

    Raises:
        ParseError: If the text is not exactly one expression
    """
    parser = _Parser(text)
    expression = parser.expression()
    parser.end()
    return expression


def parse_pattern(text: str) -> Pattern:
    """
    Parse chatter text into a Pattern.

    Parameters are bare names; nested structure is rejected.

    Raises:
        ParseError: If the text is not exactly one pattern
    """
    parser = _Parser(text)
    pattern = parser.pattern()
    parser.end()
    return pattern


def parse_mapping(text: str) -> Mapping:
    """
    Parse a rule of the form ``pattern => expression``.

    The text is split at the first '=>', so the arrow need not be
    surrounded by spaces.

    Example:
        parse_mapping("f(x) => g(x)")

    Raises:
        ParseError: If the text is not exactly one mapping
    """
    left, arrow, right = text.partition(ARROW)
    parser = _Parser(left)
    pattern = parser.pattern()
    parser.end(f"'{ARROW}'")
    if not arrow:
        raise ParseError(f"'{ARROW}'")
    return Mapping(pattern, parse_expression(right))


def format_expression(expression: Expression) -> str:
    """
    Render an expression as chatter.

    Examples:
        Expression("t")                       -> "t"
        Expression("f", [t, Expression("g")]) -> "f(t g)"
    """
    if not expression.args:
        return expression.name
    inner = " ".join(format_expression(arg) for arg in expression.args)
    return f"{expression.name}({inner})"


def format_pattern(pattern: Pattern) -> str:
    """Render a pattern as chatter, always with a parameter list."""
    return f"{pattern.name}({' '.join(pattern.params)})"


def format_mapping(mapping: Mapping) -> str:
    """Render a mapping as ``pattern => skeleton``."""
    return f"{format_pattern(mapping.pattern)} {ARROW} {format_expression(mapping.skeleton)}"


# ============================================================
# Result-returning parsers
# ============================================================

class Parsed:
    """
    A successful parse. Always truthy.

    Attributes:
        value: The parsed Expression, Pattern or Mapping
    """

    __slots__ = ('value',)

    def __init__(self, value):
        self.value = value

    def __bool__(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    def unwrap(self):
        """Return the parsed value."""
        return self.value

    def __eq__(self, other):
        if isinstance(other, Parsed):
            return self.value == other.value
        return False

    def __repr__(self) -> str:
        return f"Parsed({self.value!r})"


class ParseFailure:
    """
    A failed parse. Always falsy.

    Attributes:
        error: The ParseError describing the failure
    """

    __slots__ = ('error',)

    def __init__(self, error: ParseError):
        self.error = error

    def __bool__(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    def unwrap(self):
        """Raise the stored ParseError."""
        raise self.error

    def __repr__(self) -> str:
        return f"ParseFailure({str(self.error)!r})"


ParseResult = Union[Parsed, ParseFailure]


def try_parse_expression(text: str) -> ParseResult:
    """Parse an expression, returning Parsed or ParseFailure."""
    try:
        return Parsed(parse_expression(text))
    except ParseError as e:
        return ParseFailure(e)


def try_parse_pattern(text: str) -> ParseResult:
    """Parse a pattern, returning Parsed or ParseFailure."""
    try:
        return Parsed(parse_pattern(text))
    except ParseError as e:
        return ParseFailure(e)


def try_parse_mapping(text: str) -> ParseResult:
    """Parse a mapping, returning Parsed or ParseFailure."""
    try:
        return Parsed(parse_mapping(text))
    except ParseError as e:
        return ParseFailure(e)
