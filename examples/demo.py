#!/usr/bin/env python3
"""
magpie Feature Demonstration

Runs the classic f -> g -> h sample rules over a few inputs and shows
fixed points, cycles, traces and rule files.
"""

from pathlib import Path
from magpie import (
    Expression, Pattern, Mapping, RewriteEngine,
    transform, parse_expression, parse_mapping, try_parse_expression,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_hand_built():
    """Build rules and inputs without the notation."""
    section("Hand-built Terms")

    x = Expression("x")
    map1 = Mapping(Pattern("f", ["x"]), Expression("g", [x]))
    map2 = Mapping(Pattern("g", ["x"]), Expression("h", [x]))
    map3 = Mapping(Pattern("h", ["x"]), Expression("f", [x]))

    input0 = Expression("f", [Expression("t")])
    input1 = Expression("f", [
        Expression("X", [Expression("x"), Expression("f", [Expression("7")])]),
    ])
    input2 = Expression("z")

    runs = [
        (input0, []),
        (input0, [map1]),
        (input0, [map1, map2]),
        (input0, [map1, map2, map3]),
        (input1, [map1, map2, map3]),
        (input2, [map1, map2, map3]),
    ]

    for expr, mappings in runs:
        print(f"  {expr} with {len(mappings)} rule(s) => {transform(expr, mappings)}")


def demo_notation():
    """Parse rules and expressions from chatter text."""
    section("Chatter Notation")

    rules = [parse_mapping("f(x) => g(x)")]
    for text in ["f(t)", "f(X(x f(7)))", "swap(a b)"]:
        print(f"  {text} => {transform(parse_expression(text), rules)}")

    for text in ["f(", "f(a))", "(a)"]:
        result = try_parse_expression(text)
        print(f"  {text!r}: {result.error}")


def demo_tracing():
    """Show how a run halts."""
    section("Tracing")

    engine = RewriteEngine.from_text('''
        f(x) => g(x)
        g(x) => h(x)
        h(x) => f(x)
    ''')

    result, trace = engine("f(t)", trace=True)
    print(trace.format("chain"))
    print(f"  halted at {trace.halt}: {result}")
    print(f"  {trace.summary()}")


def demo_rule_file():
    """Load the sample rule file shipped next to this script."""
    section("Rule Files")

    path = Path(__file__).parent / "cycle.rules"
    engine = RewriteEngine.from_file(path)
    for line in engine.list_mappings():
        print(f"  {line}")
    print(f"  f(t) => {engine('f(t)')}")


if __name__ == "__main__":
    demo_hand_built()
    demo_notation()
    demo_tracing()
    demo_rule_file()
