"""Tests for CLI module."""

import subprocess
import sys
from pathlib import Path
import pytest

from magpie.cli import MagpieREPL, ScriptRunner, count_parens

CYCLE_RULES = "f(x) => g(x)\ng(x) => h(x)\nh(x) => f(x)\n"


class TestREPLCommands:
    """Tests for REPL command handling."""

    def test_help_command(self):
        """Help command returns help text."""
        repl = MagpieREPL()
        result = repl.handle_command(":help")
        assert "help" in result.lower()
        assert "load" in result.lower()

    def test_trace_command(self):
        """Trace command toggles tracing."""
        repl = MagpieREPL()
        assert repl.trace == False

        result = repl.handle_command(":trace on")
        assert repl.trace == True
        assert "enabled" in result.lower()

        result = repl.handle_command(":trace off")
        assert repl.trace == False
        assert "disabled" in result.lower()

    def test_trace_toggle(self):
        """Trace command without arg toggles."""
        repl = MagpieREPL()
        repl.handle_command(":trace")
        assert repl.trace == True
        repl.handle_command(":trace")
        assert repl.trace == False

    def test_steps_command(self):
        """Steps command sets and clears the limit."""
        repl = MagpieREPL()
        assert "5" in repl.handle_command(":steps 5")
        assert repl.engine.max_steps == 5
        repl.handle_command(":steps none")
        assert repl.engine.max_steps is None

    def test_steps_invalid(self):
        """Steps command rejects non-numbers."""
        repl = MagpieREPL()
        assert repl.handle_command(":steps lots").startswith("Error")
        assert repl.handle_command(":steps -1").startswith("Error")

    def test_clear_command(self):
        """Clear command removes all rules."""
        repl = MagpieREPL()
        repl.process_line("f(x) => x")
        assert len(repl.engine) == 1

        repl.handle_command(":clear")
        assert len(repl.engine) == 0

    def test_rules_command(self):
        """Rules command lists rules."""
        repl = MagpieREPL()
        assert "No rules" in repl.handle_command(":rules")
        repl.process_line("f(x)=>g(x)")
        assert repl.handle_command(":rules") == "f(x) => g(x)"

    def test_load_command(self, tmp_path):
        """Load command reads a rule file."""
        path = tmp_path / "cycle.rules"
        path.write_text(CYCLE_RULES)
        repl = MagpieREPL()
        result = repl.handle_command(f":load {path}")
        assert "Loaded 3 rules" in result
        assert repl.process_line("f(t)") == "f(t)"

    def test_load_missing_file(self, tmp_path):
        """Load command reports missing files."""
        repl = MagpieREPL()
        result = repl.handle_command(f":load {tmp_path / 'missing.rules'}")
        assert result.startswith("Error loading")

    def test_quit_command(self):
        """Quit command sets running to False."""
        repl = MagpieREPL()
        assert repl.running == True
        repl.handle_command(":quit")
        assert repl.running == False

    def test_unknown_command(self):
        """Unknown commands are reported."""
        repl = MagpieREPL()
        assert repl.handle_command(":frobnicate").startswith("Unknown command")


class TestREPLProcessLine:
    """Tests for REPL line processing."""

    def test_empty_line(self):
        """Empty line returns None."""
        repl = MagpieREPL()
        assert repl.process_line("") is None
        assert repl.process_line("   ") is None

    def test_comment_line(self):
        """Comment line returns None."""
        repl = MagpieREPL()
        assert repl.process_line("# comment") is None

    def test_rule_definition(self):
        """Rule definition adds rule."""
        repl = MagpieREPL()
        result = repl.process_line("f(x) => g(x)")
        assert "Added" in result
        assert len(repl.engine) == 1

    def test_expression_transformed(self):
        """Expression is transformed."""
        repl = MagpieREPL()
        repl.process_line("f(x) => g(x)")
        assert repl.process_line("f(X(x f(7)))") == "g(X(x g(7)))"

    def test_expression_unchanged(self):
        """Expression that doesn't match returns unchanged."""
        repl = MagpieREPL()
        assert repl.process_line("f(x)") == "f(x)"

    def test_parse_error(self):
        """Malformed input is reported, not raised."""
        repl = MagpieREPL()
        result = repl.process_line("f(a))")
        assert result.startswith("Error:")
        assert "end of the stream" in result

    def test_bad_rule(self):
        """Malformed rules are reported."""
        repl = MagpieREPL()
        assert repl.process_line("f(g(x)) => x").startswith("Error:")
        assert len(repl.engine) == 0

    def test_step_limit_error(self):
        """Exceeding the step limit is reported."""
        repl = MagpieREPL()
        repl.process_line("f(x) => f(s(x))")
        repl.handle_command(":steps 3")
        assert "after 3 step(s)" in repl.process_line("f(t)")

    def test_trace_output(self):
        """Tracing appends the chain and the halt reason."""
        repl = MagpieREPL()
        for line in CYCLE_RULES.splitlines():
            repl.process_line(line)
        repl.handle_command(":trace on")
        result = repl.process_line("f(t)")
        lines = result.splitlines()
        assert lines[0] == "f(t)"
        assert "g(t)" in lines
        assert lines[-1] == "(cycle)"

    def test_execute_line_reports_success(self):
        """Results that merely look like errors still succeed."""
        repl = MagpieREPL()
        assert repl.execute_line("Error(x)") == (True, "Error(x)")
        assert repl.execute_line("Unknown") == (True, "Unknown")
        assert repl.execute_line("# comment") == (True, None)

    def test_execute_line_reports_failure(self):
        """Failed lines and commands are flagged."""
        repl = MagpieREPL()
        ok, message = repl.execute_line("f(")
        assert not ok
        assert message.startswith("Error:")
        assert repl.execute_line(":nonsense")[0] is False
        assert repl.execute_line(":steps lots")[0] is False
        assert repl.execute_line(":steps 2") == (True, "Step limit set to: 2")


class TestCountParens:
    """Tests for multi-line paren counting."""

    def test_balanced(self):
        """Balanced input is complete."""
        assert count_parens("f(a g(b))") == 0

    def test_open(self):
        """Unclosed input needs more lines."""
        assert count_parens("f(a g(b)") == 1


class TestScriptRunner:
    """Tests for script execution."""

    def test_run_expression(self, capsys):
        """Run single expression."""
        runner = ScriptRunner()
        runner.repl.process_line("f(x) => g(x)")
        assert runner.run_expression("f(t)") == 0
        assert capsys.readouterr().out.strip() == "g(t)"

    def test_run_expression_error(self, capsys):
        """Parse errors give exit code 1."""
        runner = ScriptRunner()
        assert runner.run_expression("f(") == 1
        assert "Expected" in capsys.readouterr().err

    def test_run_script(self, tmp_path, capsys):
        """Scripts define rules, load files and print results."""
        (tmp_path / "cycle.rules").write_text(CYCLE_RULES)
        script = tmp_path / "demo.magpie"
        script.write_text(
            "#!/usr/bin/env magpie\n"
            ":load cycle.rules\n"
            "swap(a b) => pair(b a)\n"
            "\n"
            "f(t)\n"
            "swap(1 2)\n"
        )
        runner = ScriptRunner()
        assert runner.run_script(script) == 0
        assert capsys.readouterr().out.splitlines() == ["f(t)", "pair(2 1)"]

    def test_run_script_quiet(self, tmp_path, capsys):
        """Quiet scripts print nothing."""
        script = tmp_path / "q.magpie"
        script.write_text("a => b\na\n")
        assert ScriptRunner().run_script(script, quiet=True) == 0
        assert capsys.readouterr().out == ""

    def test_run_script_error_line(self, tmp_path, capsys):
        """Script errors report the line number."""
        script = tmp_path / "bad.magpie"
        script.write_text("a => b\n\nf(\n")
        assert ScriptRunner().run_script(script) == 1
        assert "bad.magpie:3:" in capsys.readouterr().err

    def test_run_script_missing(self, tmp_path, capsys):
        """Missing scripts give exit code 1."""
        assert ScriptRunner().run_script(tmp_path / "none.magpie") == 1

    def test_run_expression_error_like_result(self, capsys):
        """A valid result named Error is printed with exit code 0."""
        runner = ScriptRunner()
        assert runner.run_expression("Error(x)") == 0
        captured = capsys.readouterr()
        assert captured.out.strip() == "Error(x)"
        assert captured.err == ""

    def test_run_script_unknown_leaf(self, tmp_path, capsys):
        """A leaf named Unknown is an ordinary result."""
        script = tmp_path / "leaf.magpie"
        script.write_text("Unknown\nError(x) => Unknown\nError(y)\n")
        assert ScriptRunner().run_script(script) == 0
        assert capsys.readouterr().out.splitlines() == ["Unknown", "Unknown"]

    def test_run_script_failed_command(self, tmp_path, capsys):
        """A failing command stops the script."""
        script = tmp_path / "cmd.magpie"
        script.write_text("a => b\n:steps lots\na\n")
        assert ScriptRunner().run_script(script) == 1
        captured = capsys.readouterr()
        assert "cmd.magpie:2:" in captured.err
        assert captured.out == ""


class TestCLIIntegration:
    """Integration tests using subprocess."""

    def test_help_flag(self):
        """--help flag works."""
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "--help"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "magpie" in result.stdout

    def test_version_flag(self):
        """--version flag works."""
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "--version"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_expr_without_rules(self):
        """-e without rules echoes the expression."""
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-e", "f(t)"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.strip() == "f(t)"

    def test_rules_and_expr(self, tmp_path):
        """-r loads rules for -e."""
        rules = tmp_path / "cycle.rules"
        rules.write_text("f(x) => g(x)\n")
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-q", "-r", str(rules), "-e", "f(X(x f(7)))"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.strip() == "g(X(x g(7)))"

    def test_bad_rules_file(self, tmp_path):
        """A broken rules file exits with 1."""
        rules = tmp_path / "bad.rules"
        rules.write_text("f(x) g(x)\n")
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-r", str(rules), "-e", "f(t)"],
            capture_output=True, text=True
        )
        assert result.returncode == 1
        assert "bad.rules:1:" in result.stderr

    def test_stdin_mode(self, tmp_path):
        """Filter mode transforms each stdin line."""
        rules = tmp_path / "cycle.rules"
        rules.write_text(CYCLE_RULES)
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-q", "-r", str(rules)],
            input="f(t)\nz\n",
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.splitlines() == ["f(t)", "z"]

    def test_max_steps_flag(self, tmp_path):
        """--max-steps stops runaway rule sets."""
        rules = tmp_path / "grow.rules"
        rules.write_text("f(x) => f(s(x))\n")
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-q", "-n", "4", "-r", str(rules), "-e", "f(t)"],
            capture_output=True, text=True
        )
        assert result.returncode == 1
        assert "after 4 step(s)" in result.stderr

    def test_verbose_logs_steps(self, tmp_path):
        """-vv logs rewrite steps to stderr."""
        rules = tmp_path / "r.rules"
        rules.write_text("f(x) => g(x)\n")
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-vv", "-q", "-r", str(rules), "-e", "f(t)"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert "Step 1: f(t) -> g(t)" in result.stderr
        assert result.stdout.strip() == "g(t)"

    def test_error_named_result(self):
        """-e 'Error(x)' prints the expression and exits 0."""
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-e", "Error(x)"],
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.strip() == "Error(x)"

    def test_stdin_unknown_leaf(self):
        """Filter mode passes through a leaf named Unknown."""
        result = subprocess.run(
            [sys.executable, "-m", "magpie.cli", "-q"],
            input="Unknown\nError(x)\n",
            capture_output=True, text=True
        )
        assert result.returncode == 0
        assert result.stdout.splitlines() == ["Unknown", "Error(x)"]
