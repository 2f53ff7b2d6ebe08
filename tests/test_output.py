"""Tests for the output formatting system and log routing.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- print_table in JSON and plain modes
- Secret masking
- configure_logging
"""

from __future__ import annotations

import json
import logging

import pytest
from rich.logging import RichHandler

from forumkey.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    configure_logging,
    get_output,
    mask_secret,
    reset_output,
    set_output,
)


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("forumkey.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("forumkey.output._is_tty", lambda: True)


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert OutputManager(format=OutputFormat.AUTO, no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


class TestStdoutStderrDiscipline:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("https://forum/x")
        captured = capfd.readouterr()
        assert captured.out == "https://forum/x\n"
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error", "suggest"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("a message")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "a message" in captured.err


class TestQuietAndVerbose:
    def test_quiet_suppresses_info(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("hidden")
        mgr.success("hidden")
        mgr.suggest("hidden")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_errors_and_warnings(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.warning("careful")
        mgr.error("broken")
        err = capfd.readouterr().err
        assert "Warning: careful" in err
        assert "Error: broken" in err

    def test_debug_only_when_verbose(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("nope")
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("yes")
        err = capfd.readouterr().err
        assert "nope" not in err
        assert "[debug] yes" in err


class TestBracketsInMessages:
    """Messages are shown literally, never parsed as Rich markup."""

    @pytest.fixture()
    def colored(self, monkeypatch, non_tty):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        return lambda: OutputManager(format=OutputFormat.PLAIN, no_color=False, verbose=True)

    def test_error_with_closing_tag(self, capfd, colored):
        colored().error("expected http(s)://host[/path], got 'x'")
        err = capfd.readouterr().err
        assert "Error: expected http(s)://host[/path], got 'x'" in err

    @pytest.mark.parametrize("method", ["info", "success", "warning", "suggest", "debug"])
    def test_other_levels(self, capfd, colored, method):
        getattr(colored(), method)("[bold]not styled[/bold] [/x]")
        assert "[bold]not styled[/bold] [/x]" in capfd.readouterr().err

    def test_debug_label_survives_with_color(self, capfd, colored):
        colored().debug("yes")
        assert "[debug] yes" in capfd.readouterr().err

    def test_module_helper(self, capfd, colored):
        from forumkey.output import error

        set_output(colored())
        error("host[/path]")
        assert "Error: host[/path]" in capfd.readouterr().err


class TestTables:
    def test_json_table(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON, no_color=True)
        mgr.print_table(["Field", "Value"], [["Server", "https://forum.example.com"]])
        records = json.loads(capfd.readouterr().out)
        assert records == [{"Field": "Server", "Value": "https://forum.example.com"}]

    def test_plain_table(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(["Field", "Value"], [["Logged In", "yes"]])
        assert capfd.readouterr().out == "Field\tValue\nLogged In\tyes\n"


class TestMaskSecret:
    def test_long_value(self):
        assert mask_secret("abcdefghijklmnop") == "abcdefgh..."

    def test_short_value(self):
        assert mask_secret("abc") == "***"


class TestConfigureLogging:
    def test_installs_single_rich_handler(self):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        configure_logging(verbose=False, console=mgr.stderr_console)
        configure_logging(verbose=True, console=mgr.stderr_console)
        logger = logging.getLogger("forumkey")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_quiet_by_default(self):
        configure_logging(console=OutputManager(no_color=True).stderr_console)
        assert logging.getLogger("forumkey").level == logging.WARNING


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        assert isinstance(get_output(), OutputManager)

    def test_set_output(self):
        mgr = OutputManager(format=OutputFormat.JSON)
        set_output(mgr)
        assert get_output() is mgr
