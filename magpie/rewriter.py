"""
Core rewriter for magpie.

A rewriting run repeatedly applies one bottom-up rewrite step to an
expression until either

    - a step returns the same tree it was given (fixed point), or
    - the current tree equals one produced earlier in the run (cycle).

Within a step every child is rewritten before its parent. Mappings are
matched by signature (name and arity) only:

    from magpie import transform, parse_expression, parse_mapping

    rules = [parse_mapping("f(x) => g(x)")]
    transform(parse_expression("f(X(x f(7)))"), rules)   # => g(X(x g(7)))

There is no built-in step limit. A rule set whose trees keep growing
without repeating never halts unless max_steps is given.

Rewriting, substitution and structural equality recurse once per level of
nesting, so trees nested deeper than the interpreter recursion limit
(about 1000 by default) raise RecursionError. Raise the limit with
sys.setrecursionlimit() before working with such trees.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from .terms import Expression, Mapping

logger = logging.getLogger(__name__)

# Halt reasons
FIXED_POINT = "fixed-point"
CYCLE = "cycle"

MappingIndex = Dict[str, Mapping]
DuplicateHandler = Callable[[Mapping, Mapping], None]


class ArityMismatch(RuntimeError):
    """
    A mapping was applied to an expression with a different number of
    arguments than its pattern has parameters.

    Signature matching makes this unreachable for indexes built by
    index_mappings; it guards hand-built or corrupted indexes.
    """

    def __init__(self, mapping: Mapping, arg_count: int):
        self.mapping = mapping
        self.arg_count = arg_count
        super().__init__(
            f"Size mismatch: {mapping} takes {mapping.pattern.arity} "
            f"argument(s) but was applied to {arg_count}")


class RewriteLimitExceeded(RuntimeError):
    """Raised when a run takes more than max_steps steps."""

    def __init__(self, expression: Expression, steps: int):
        self.expression = expression
        self.steps = steps
        super().__init__(f"No fixed point or cycle after {steps} step(s)")


def index_mappings(mappings: Iterable[Mapping],
                   on_duplicate: Optional[DuplicateHandler] = None) -> MappingIndex:
    """
    Index mappings by signature.

    When two mappings share a signature the later one wins. Shadowing a
    different mapping is logged as a warning and reported to on_duplicate
    as (shadowed, winner).
    """
    index: MappingIndex = {}
    for mapping in mappings:
        key = mapping.signature
        previous = index.get(key)
        if previous is not None and previous != mapping:
            logger.warning("Mapping %s shadows %s (signature %s)", mapping, previous, key)
            if on_duplicate is not None:
                on_duplicate(previous, mapping)
        index[key] = mapping
    return index


def substitute(skeleton: Expression, bindings: Dict[str, Expression]) -> Expression:
    """
    Instantiate a skeleton with bound parameter values.

    Bound leaves are replaced by their values as-is; the values are not
    searched for further parameters.

    Example:
        substitute(g(x h(y)), {"x": a, "y": b(c)}) -> g(a h(b(c)))
    """
    if skeleton.is_leaf:
        return bindings.get(skeleton.name, skeleton)
    return Expression(skeleton.name, [substitute(arg, bindings) for arg in skeleton.args])


def transform_once(expression: Expression, index: MappingIndex,
                   applied: Optional[List[Mapping]] = None) -> Expression:
    """
    Apply one bottom-up rewrite step.

    Children are rewritten first. The node is then matched against the
    index using its name and the number of rewritten children.

    Args:
        expression: Expression to rewrite
        index: Signature index from index_mappings
        applied: If given, each mapping that fires is appended to it

    Raises:
        ArityMismatch: If the indexed mapping's parameter count differs
            from the argument count
    """
    args = [transform_once(arg, index, applied) for arg in expression.args]

    mapping = index.get(expression.signature)
    if mapping is None:
        return Expression(expression.name, args)

    params = mapping.pattern.params
    if len(params) != len(args):
        raise ArityMismatch(mapping, len(args))

    if applied is not None:
        applied.append(mapping)
    return substitute(mapping.skeleton, dict(zip(params, args)))


class RewriteStep:
    """A single step of a rewriting run."""

    def __init__(self, index: int, before: Expression, after: Expression,
                 applied: List[Mapping]):
        self.index = index
        self.before = before
        self.after = after
        self.applied = applied

    def __repr__(self) -> str:
        rules = ", ".join(str(m) for m in self.applied)
        return f"{self.index}. {self.before} → {self.after} [{rules}]"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "index": self.index,
            "before": str(self.before),
            "after": str(self.after),
            "applied": [str(m) for m in self.applied],
        }


class RewriteTrace:
    """
    A record of a rewriting run.

    Provides multiple formatting options:
        - Default repr: verbose multi-line format
        - format("compact"): single line with step count and halt reason
        - format("chain"): expression transformations as a chain
        - format("rules"): just the rules applied, in order
        - to_dict(): JSON-serializable dictionary
    """

    def __init__(self, initial: Optional[Expression] = None):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Expression] = initial
        self.final: Optional[Expression] = None
        self.halt: Optional[str] = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Format the trace in different styles.

        Args:
            style: One of "verbose", "compact", "chain", "rules"

        Returns:
            Formatted string representation of the trace.
        """
        if style == "compact":
            return f"{self.initial} --[{len(self.steps)} step(s), {self.halt}]--> {self.final}"

        elif style == "rules":
            rules = self.rules_applied()
            return " -> ".join(rules) if rules else "(no rules applied)"

        elif style == "chain":
            parts = [str(self.initial)]
            for step in self.steps:
                parts.append("  -->")
                parts.append(str(step.after))
            return "\n".join(parts)

        elif style == "verbose":
            return repr(self)

        raise ValueError(f"Unknown trace style: {style}. "
                         f"Valid options: verbose, compact, chain, rules")

    def __repr__(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for step in self.steps:
            lines.append(f"  {step!r}")
        lines.append(f"Final: {self.final} ({self.halt})")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self):
        """Iterate over rewrite steps."""
        return iter(self.steps)

    def __bool__(self) -> bool:
        """True if any rewriting was done."""
        return len(self.steps) > 0

    def to_dict(self) -> Dict:
        """Convert trace to dictionary for JSON serialization."""
        return {
            "initial": str(self.initial),
            "final": str(self.final),
            "halt": self.halt,
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rules_applied(self) -> List[str]:
        """Rules fired over the whole run, in order of application."""
        return [str(m) for step in self.steps for m in step.applied]

    def rule_counts(self) -> Dict[str, int]:
        """Count how many times each rule was applied."""
        counts: Dict[str, int] = {}
        for name in self.rules_applied():
            counts[name] = counts.get(name, 0) + 1
        return counts

    def summary(self) -> str:
        """Get a brief summary of the run."""
        if not self.steps:
            return f"No rewriting performed ({self.halt})"
        counts = self.rule_counts()
        if not counts:
            return f"{len(self.steps)} steps, no rules applied ({self.halt})"
        most_used = max(counts.items(), key=lambda x: x[1])
        return (f"{len(self.steps)} steps using {len(counts)} unique rules, "
                f"halted at {self.halt}. Most used: {most_used[0]} ({most_used[1]}x)")


def transform(expression: Expression, mappings: Iterable[Mapping],
              trace: bool = False, max_steps: Optional[int] = None,
              on_duplicate: Optional[DuplicateHandler] = None):
    """
    Rewrite an expression until it reaches a fixed point or a cycle.

    On a cycle the tree that closed the cycle is returned.

    Args:
        expression: Expression to rewrite
        mappings: Ordered rules; for shared signatures the last one wins
        trace: If True, return (result, RewriteTrace)
        max_steps: Maximum number of steps that change the tree, or None
            for no limit. The final step that finds a fixed point is not
            counted, so a run needing exactly max_steps rewrites succeeds.
        on_duplicate: Called with (shadowed, winner) for each shadowed mapping

    Returns:
        The rewritten expression, or (expression, trace) if trace=True

    Raises:
        ArityMismatch: If a mapping is applied with the wrong arity
        RewriteLimitExceeded: If max_steps steps pass without halting
    """
    index = index_mappings(mappings, on_duplicate=on_duplicate)
    trace_obj = RewriteTrace(expression) if trace else None

    seen = set()
    current = expression
    steps = 0
    halt = CYCLE
    while current not in seen:
        seen.add(current)
        applied: Optional[List[Mapping]] = [] if trace else None
        following = transform_once(current, index, applied)
        if following == current:
            halt = FIXED_POINT
            break

        if max_steps is not None and steps >= max_steps:
            raise RewriteLimitExceeded(current, steps)
        steps += 1

        logger.debug("Step %d: %s -> %s", steps, current, following)
        if trace_obj is not None:
            trace_obj.add_step(RewriteStep(steps, current, following, applied))
        current = following

    logger.debug("Halted at %s after %d step(s): %s", halt, steps, current)
    if trace_obj is not None:
        trace_obj.final = current
        trace_obj.halt = halt
        return current, trace_obj
    return current
