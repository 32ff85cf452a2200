#!/usr/bin/env python3
"""
magpie Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    magpie                              # Start REPL
    magpie script.magpie                # Run script
    magpie -e "f(t)"                    # Transform one expression
    magpie -r cycle.rules               # REPL with rules preloaded
    magpie -r cycle.rules -e "f(t)"     # One-shot with rules
    echo "f(t)" | magpie -r cycle.rules # Filter mode

Script Format (.magpie files):
    #!/usr/bin/env magpie
    :load cycle.rules

    f(x) => g(x)

    f(t)
    f(X(x f(7)))

REPL Commands:
    :help              Show help
    :load FILE         Load rules from file
    :rules             List loaded rules
    :clear             Clear all rules
    :trace on|off      Toggle tracing
    :steps N|none      Set or remove the step limit
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

from . import __version__
from .chatter import ARROW, ParseError, format_expression, parse_expression, parse_mapping
from .engine import RewriteEngine
from .rewriter import ArityMismatch, RewriteLimitExceeded

logger = logging.getLogger(__name__)

# Try to import readline for better REPL experience
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

# Errors reported to the user instead of aborting the REPL
USER_ERRORS = (ParseError, ArityMismatch, RewriteLimitExceeded, OSError, ValueError)


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    return text.count('(') - text.count(')')


def configure_logging(verbosity: int) -> None:
    """Send log records to stderr: WARNING by default, -v for INFO, -vv for DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


class MagpieREPL:
    """Interactive REPL for magpie."""

    def __init__(self):
        self.engine = RewriteEngine()
        self.trace = False
        self.running = True
        self.multi_line_buffer = ""

        if HAS_READLINE:
            self.history_file = Path.home() / ".magpie_history"
            try:
                readline.read_history_file(self.history_file)
            except OSError:
                pass
            readline.set_history_length(1000)

    def save_history(self):
        """Save readline history."""
        if HAS_READLINE:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                logger.debug("Could not save history to %s: %s", self.history_file, e)

    def run_command(self, line: str) -> Tuple[bool, Optional[str]]:
        """
        Handle a REPL command (starts with :).

        Returns (ok, message); ok is False when the command failed.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return False, "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else ""

        if cmd == "help":
            return True, self.help_text()

        elif cmd == "quit" or cmd == "exit" or cmd == "q":
            self.running = False
            return True, None

        elif cmd == "load":
            if not arg:
                return False, "Usage: :load FILENAME"
            try:
                path = Path(arg)
                before = len(self.engine)
                self.engine.load_file(path)
                return True, f"Loaded {len(self.engine) - before} rules from {path}"
            except USER_ERRORS as e:
                return False, f"Error loading {arg}: {e}"

        elif cmd == "rules":
            rules = self.engine.list_mappings()
            if not rules:
                return True, "No rules loaded"
            return True, "\n".join(rules)

        elif cmd == "clear":
            self.engine.clear()
            return True, "Cleared all rules"

        elif cmd == "trace":
            if arg.lower() in ("on", "true", "1"):
                self.trace = True
                return True, "Tracing enabled"
            elif arg.lower() in ("off", "false", "0"):
                self.trace = False
                return True, "Tracing disabled"
            else:
                self.trace = not self.trace
                return True, f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "steps":
            if arg.lower() in ("none", "off", ""):
                self.engine.max_steps = None
                return True, "Step limit removed"
            try:
                limit = int(arg)
            except ValueError:
                return False, f"Error: step limit must be a number or 'none', got {arg}"
            if limit < 0:
                return False, "Error: step limit must not be negative"
            self.engine.max_steps = limit
            return True, f"Step limit set to: {limit}"

        else:
            return False, f"Unknown command: {cmd}. Type :help for help."

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        return self.run_command(line)[1]

    def help_text(self) -> str:
        """Return help text."""
        return """magpie REPL Commands:
  :help              Show this help
  :load FILE         Load rules from a .rules file
  :rules             List all loaded rules
  :clear             Clear all rules
  :trace on|off      Toggle tracing
  :steps N|none      Set or remove the step limit
  :quit              Exit

Syntax:
  f(x y) => g(y x)                         Define a rule
  f(a g(b))                                Transform an expression
"""

    def execute_line(self, line: str) -> Tuple[bool, Optional[str]]:
        """
        Process a single line of input.

        Returns (ok, message); ok is False when the line failed. The
        message is the text to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#"):
            return True, None

        if line.startswith(":"):
            return self.run_command(line)

        try:
            if ARROW in line:
                self.engine.add_mapping(parse_mapping(line))
                return True, "Added 1 rule"

            expr = parse_expression(line)
            if self.trace:
                result, trace = self.engine(expr, trace=True)
                output = format_expression(result)
                if trace.steps:
                    return True, f"{output}\n{trace.format('chain')}\n({trace.halt})"
                return True, f"{output}\n({trace.halt})"
            return True, format_expression(self.engine(expr))

        except USER_ERRORS as e:
            return False, f"Error: {e}"

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        return self.execute_line(line)[1]

    def run(self):
        """Run the REPL loop."""
        print("magpie - term rewriting")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else "magpie> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += " " + line
                else:
                    self.multi_line_buffer = line

                # More open parens than close - continue reading
                if count_parens(self.multi_line_buffer) > 0:
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs magpie scripts."""

    def __init__(self):
        self.repl = MagpieREPL()

    def run_script(self, path: Path, quiet: bool = False) -> int:
        """
        Run a script file.

        Args:
            path: Path to the script
            quiet: If True, don't print expression results

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()

            # Skip empty lines, comments, and shebang
            if not line or line.startswith("#"):
                continue

            # :load paths are relative to the script
            if line.startswith(":load "):
                line = f":load {path.parent / line[6:].strip()}"

            ok, result = self.repl.execute_line(line)
            if not ok:
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            if not result:
                continue
            if line.startswith(":") or ARROW in line:
                # Don't print command and rule confirmations in script mode
                continue
            if not quiet:
                print(result)

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Process a single expression or rule.

        Returns:
            Exit code (0 for success)
        """
        ok, result = self.repl.execute_line(expr_str)
        if not ok:
            print(result, file=sys.stderr)
            return 1
        if result:
            print(result)
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin and transform them.

        Returns:
            Exit code (0 for success)
        """
        for line in sys.stdin:
            ok, result = self.repl.execute_line(line)
            if not ok:
                print(result, file=sys.stderr)
                return 1
            if result:
                print(result)

        return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="magpie",
        description="magpie - term rewriting over chatter expressions",
        epilog="Examples:\n"
               "  magpie                            Start REPL\n"
               "  magpie script.magpie              Run script\n"
               "  magpie -e 'f(t)'                  Transform an expression\n"
               "  magpie -r cycle.rules             REPL with rules\n"
               "  echo 'f(t)' | magpie -r cycle.rules  Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.magpie)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Load rules from file (can be specified multiple times)"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Transform a single expression"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Enable tracing"
    )

    parser.add_argument(
        "-n", "--max-steps",
        type=int,
        default=None,
        help="Fail if no fixed point or cycle is reached after this many steps"
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (suppress non-essential output)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log rule loading (-v) and every rewrite step (-vv) to stderr"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args()
    configure_logging(args.verbose)

    if args.max_steps is not None and args.max_steps < 0:
        parser.error("--max-steps must not be negative")

    runner = ScriptRunner()
    runner.repl.trace = args.trace
    runner.repl.engine.max_steps = args.max_steps

    for rules_file in args.rules:
        try:
            runner.repl.engine.load_file(Path(rules_file))
            if not args.quiet:
                print(f"Loaded rules from {rules_file}", file=sys.stderr)
        except USER_ERRORS as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(runner.run_script(Path(args.script), quiet=args.quiet))

    elif args.expr:
        sys.exit(runner.run_expression(args.expr))

    elif not sys.stdin.isatty():
        sys.exit(runner.run_stdin())

    else:
        runner.repl.run()


if __name__ == "__main__":
    main()
