"""Tests for output formatting utilities."""

import json
from unittest.mock import patch

import pytest
import yaml

from authdeploy.core.output import OutputFormat, OutputFormatter, format_duration


class TestFormatDuration:
    """Tests for format_duration utility."""

    def test_seconds(self):
        assert format_duration(30) == "30.0s"

    def test_minutes(self):
        assert format_duration(90) == "1.5m"

    def test_hours(self):
        assert format_duration(7200) == "2.0h"


class TestOutputFormatter:
    """Tests for OutputFormatter class."""

    def test_quiet_mode_suppresses_output(self, capsys):
        formatter = OutputFormatter(quiet=True, color=False)
        formatter.print("test message")
        formatter.print_status("status message")
        formatter.print_warning("warning message")
        formatter.print_success("success message")
        captured = capsys.readouterr()
        assert "test message" not in captured.out
        assert "status message" not in captured.out
        assert "warning message" not in captured.out

    def test_error_always_prints(self, capsys):
        formatter = OutputFormatter(quiet=True, color=False)
        formatter.print_error("error message")
        captured = capsys.readouterr()
        assert "error message" in captured.err

    def test_status_lines(self, capsys):
        formatter = OutputFormatter(color=False)
        formatter.print_status("Installing ArgoCD...")
        formatter.print_success("ArgoCD is ready")
        formatter.print_warning("Hostname pending")
        out = capsys.readouterr().out
        assert "ℹ Installing ArgoCD..." in out
        assert "✓ ArgoCD is ready" in out
        assert "⚠ Warning: Hostname pending" in out

    def test_json_output(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.JSON, color=False)
        data = {"AUTHENTIK_POSTGRESQL__NAME": "authentik", "attempts": 3}
        formatter.print_data(data)
        assert json.loads(capsys.readouterr().out) == data

    def test_yaml_output(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.YAML, color=False)
        data = {"name": "test", "value": 123}
        formatter.print_data(data)
        assert yaml.safe_load(capsys.readouterr().out) == data

    def test_raw_output_dict(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.RAW, color=False)
        formatter.print_data({"name": "test"})
        assert "name: test" in capsys.readouterr().out

    def test_checklist(self, capsys):
        formatter = OutputFormatter(color=False)
        formatter.print_checklist([("terraform", True), ("helm", False)], title="Prerequisites")
        out = capsys.readouterr().out
        assert "Prerequisites" in out
        assert "✓ terraform" in out
        assert "○ helm" in out


class TestConfirm:
    """Confirmation accepts only exact tokens."""

    def test_default_accepts_y(self):
        formatter = OutputFormatter(color=False)
        for reply, expected in [("y", True), ("Y", True), ("yes", False), ("n", False), ("", False)]:
            with patch.object(formatter, "prompt", return_value=reply):
                assert formatter.confirm("Continue?") is expected

    def test_custom_token(self):
        formatter = OutputFormatter(color=False)
        with patch.object(formatter, "prompt", return_value="yes") as prompt:
            assert formatter.confirm("Destroy?", accepted=("yes",))
        assert "Type 'yes' to confirm" in prompt.call_args.args[0]

    def test_eof_reads_as_empty(self):
        formatter = OutputFormatter(color=False)
        with patch("builtins.input", side_effect=EOFError):
            assert formatter.prompt("Continue?") == ""
            assert formatter.confirm("Continue?") is False

    def test_interrupt_propagates(self):
        formatter = OutputFormatter(color=False)
        with patch("builtins.input", side_effect=KeyboardInterrupt):
            with pytest.raises(KeyboardInterrupt):
                formatter.prompt("Continue?")
