"""
Rule engine and rule file loader for magpie.

Rule files (.rules) hold one mapping per line:

    # Comment
    f(x) => g(x)
    swap(a b) => pair(b a)
    :include more.rules

Example:
    from magpie import RewriteEngine

    engine = RewriteEngine.from_text('''
        f(x) => g(x)
        g(x) => h(x)
    ''')

    engine("f(t)")                          # => h(t)
    result, trace = engine("f(t)", trace=True)
    print(trace.format("chain"))

Rules are ordered. When two rules share a signature the later one wins;
engine.duplicates() lists every rule shadowed this way.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set, Tuple, Union

from .chatter import ParseError, format_mapping, parse_expression, parse_mapping, parse_pattern
from .rewriter import transform
from .terms import Expression, Mapping, Pattern

logger = logging.getLogger(__name__)

INCLUDE_DIRECTIVE = ":include"


def load_mappings_from_text(
    text: str,
    base_path: Optional[Path] = None,
    source: Optional[str] = None,
    _included_files: Optional[Set[Path]] = None
) -> List[Mapping]:
    """
    Load mappings from rule text.

    Supports comments (#) and file includes (:include path/to/file.rules).

    Args:
        text: Rule text
        base_path: Base path for resolving relative :include paths
        source: Name used in error messages
        _included_files: Internal tracking for circular include detection

    Returns:
        List of mappings in file order, includes expanded in place

    Raises:
        ParseError: If a line is not a valid mapping
        ValueError: On a circular include
        FileNotFoundError: If an included file does not exist
    """
    mappings = []

    if _included_files is None:
        _included_files = set()

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()

        if not line or line.startswith('#'):
            continue

        if line.startswith(INCLUDE_DIRECTIVE + ' '):
            include_path_str = line[len(INCLUDE_DIRECTIVE):].strip()
            if base_path:
                include_path = base_path / include_path_str
            else:
                include_path = Path(include_path_str)

            abs_path = include_path.resolve()
            if abs_path in _included_files:
                raise ValueError(f"Circular include detected: {include_path}")
            if not include_path.exists():
                raise FileNotFoundError(f"Include file not found: {include_path}")

            mappings.extend(load_mappings_from_file(include_path, _included_files=_included_files))
            continue

        try:
            mappings.append(parse_mapping(line))
        except ParseError as e:
            raise e.located(source, lineno) from None

    return mappings


def load_mappings_from_file(
    path: Union[str, Path],
    _included_files: Optional[Set[Path]] = None
) -> List[Mapping]:
    """
    Load mappings from a rule file.

    :include directives are resolved relative to the containing file.
    A file may be included more than once, but not from inside itself.
    """
    path = Path(path)
    if _included_files is None:
        _included_files = set()

    # Only files on the current include chain are tracked
    key = path.resolve()
    _included_files.add(key)
    try:
        mappings = load_mappings_from_text(
            path.read_text(),
            base_path=path.parent,
            source=str(path),
            _included_files=_included_files
        )
    finally:
        _included_files.discard(key)
    logger.info("Loaded %d mapping(s) from %s", len(mappings), path)
    return mappings


def _as_expression(expr: Union[str, Expression]) -> Expression:
    if isinstance(expr, str):
        return parse_expression(expr)
    return expr


class RewriteEngine:
    """
    An ordered rule set that rewrites expressions.

    Expressions may be given as Expression objects or chatter text; the
    result is always an Expression.

    Example:
        engine = RewriteEngine().add("f(x)", "g(x)").add("g(x)", "h(x)")
        engine("f(t)")   # => Expression("h", [Expression("t")])
    """

    def __init__(self, max_steps: Optional[int] = None):
        """
        Initialize a RewriteEngine.

        Args:
            max_steps: Step limit passed to every transform call.
                Default: None (run until fixed point or cycle).
        """
        self._mappings: List[Mapping] = []
        self.max_steps = max_steps

    def load_text(self, text: str) -> 'RewriteEngine':
        """Load rules from rule text."""
        self._mappings.extend(load_mappings_from_text(text))
        return self

    def load_file(self, path: Union[str, Path]) -> 'RewriteEngine':
        """Load rules from a .rules file."""
        self._mappings.extend(load_mappings_from_file(path))
        return self

    def add(self, pattern: Union[str, Pattern],
            skeleton: Union[str, Expression]) -> 'RewriteEngine':
        """Add a single rule."""
        if isinstance(pattern, str):
            pattern = parse_pattern(pattern)
        return self.add_mapping(Mapping(pattern, _as_expression(skeleton)))

    def add_mapping(self, mapping: Mapping) -> 'RewriteEngine':
        """Add an already-built mapping."""
        self._mappings.append(mapping)
        return self

    def clear(self) -> 'RewriteEngine':
        """Remove all rules."""
        self._mappings = []
        return self

    def mappings(self) -> List[Mapping]:
        """Get all loaded rules, in order."""
        return self._mappings.copy()

    def list_mappings(self) -> List[str]:
        """List all rules in chatter form."""
        return [format_mapping(m) for m in self._mappings]

    def to_text(self, name: Optional[str] = None) -> str:
        """
        Export rules as rule text.

        Args:
            name: Optional name to include as a comment header

        Returns:
            Text accepted by load_text().
        """
        lines = []
        if name:
            lines.append(f"# {name}")
            lines.append("")
        lines.extend(self.list_mappings())
        return "\n".join(lines)

    def duplicates(self) -> List[Tuple[Mapping, Mapping]]:
        """
        Find rules hidden by a later rule with the same signature.

        Returns:
            (shadowed, winner) pairs, in the order the shadowing happens.
        """
        latest = {}
        pairs = []
        for mapping in self._mappings:
            previous = latest.get(mapping.signature)
            if previous is not None and previous != mapping:
                pairs.append((previous, mapping))
            latest[mapping.signature] = mapping
        return pairs

    def transform(self, expr: Union[str, Expression], trace: bool = False):
        """
        Rewrite an expression with the loaded rules.

        Args:
            expr: Expression or chatter text
            trace: If True, return (result, RewriteTrace)

        Returns:
            Rewritten expression, or (expression, trace) if trace=True
        """
        return transform(_as_expression(expr), self._mappings,
                         trace=trace, max_steps=self.max_steps)

    def __call__(self, expr: Union[str, Expression], **kwargs):
        """Make engine callable: engine(expr) is shorthand for engine.transform(expr)."""
        return self.transform(expr, **kwargs)

    def __len__(self) -> int:
        return len(self._mappings)

    def __iter__(self):
        """Iterate over rules."""
        return iter(self._mappings)

    def __contains__(self, sig: str) -> bool:
        """Check if any rule has the signature: 'f#1' in engine."""
        return any(m.signature == sig for m in self._mappings)

    def __repr__(self) -> str:
        return f"RewriteEngine({len(self._mappings)} rules)"

    @classmethod
    def from_text(cls, text: str, max_steps: Optional[int] = None) -> 'RewriteEngine':
        """Create engine from rule text."""
        return cls(max_steps=max_steps).load_text(text)

    @classmethod
    def from_file(cls, path: Union[str, Path], max_steps: Optional[int] = None) -> 'RewriteEngine':
        """Create engine from a rule file."""
        return cls(max_steps=max_steps).load_file(path)

    @classmethod
    def from_mappings(cls, mappings: List[Mapping],
                      max_steps: Optional[int] = None) -> 'RewriteEngine':
        """Create engine from a list of mappings."""
        engine = cls(max_steps=max_steps)
        for mapping in mappings:
            engine.add_mapping(mapping)
        return engine

    def copy(self) -> 'RewriteEngine':
        """Create a copy of this engine."""
        return RewriteEngine.from_mappings(self._mappings, max_steps=self.max_steps)

    def __or__(self, other: 'RewriteEngine') -> 'RewriteEngine':
        """
        Combine two engines: engine1 | engine2.

        other's rules come after this engine's, so they win shared signatures.
        """
        combined = self.copy()
        for mapping in other:
            combined.add_mapping(mapping)
        return combined
