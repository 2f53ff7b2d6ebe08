"""Terminal output and log routing.

Two streams, two jobs (see https://clig.dev/#output):

* stdout carries results a script may want to capture: the authorization
  URL printed by ``auth login``, status tables, ``--json`` records.
* stderr carries everything addressed to the person at the keyboard:
  progress, hints, warnings, errors and :mod:`logging` records.

Formatting follows the destination. ``AUTO`` means Rich styling when
stdout is a terminal and plain text when it is piped; ``NO_COLOR``,
``TERM=dumb`` and ``--no-color`` switch colour off everywhere.

:func:`~forumkey.app.main_callback` builds one :class:`OutputManager` per
invocation and installs it with :func:`set_output`; command code then
uses the module-level shortcuts (:func:`info`, :func:`error`, ...).
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.json import JSON
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` is resolved on construction."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Holds the output preferences of one CLI invocation.

    Args:
        format: Rendering for stdout data.
        no_color: Strip colour and markup from everything.
        quiet: Drop info, success and suggestion messages.
        verbose: Show debug messages.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        if format is OutputFormat.AUTO:
            format = OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
        self._format = format
        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def stderr_console(self) -> Console:
        """Console writing to stderr; log records are rendered here too."""
        return self._stderr

    # -- stdout ----------------------------------------------------------

    def print_data(self, text: str) -> None:
        """Write *text* and a newline to stdout, unstyled."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render a JSON-compatible record to stdout."""
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format is OutputFormat.RICH:
            self._stdout.print(JSON(text))
        elif self._format is OutputFormat.JSON:
            self.print_data(text)
        elif isinstance(data, dict):
            for key, value in data.items():
                self.print_data(f"{key}\t{value}")
        elif isinstance(data, list):
            for item in data:
                self.print_data(str(item))
        else:
            self.print_data(str(data))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format is OutputFormat.JSON:
            self.print_data(
                json.dumps([dict(zip(headers, row)) for row in rows], indent=2, ensure_ascii=False)
            )
            return
        if self._format is OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return
        table = Table(*headers, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # -- stderr ----------------------------------------------------------

    def _emit(self, message: str, label: str = "", style: str = "") -> None:
        """Write one diagnostic line to stderr.

        *message* is printed literally: text such as ``host[/path]`` or a
        URL with brackets is escaped before the style tags are added, so
        it can never be read as Rich markup.

        Args:
            message: The text to show.
            label: Prefix such as ``"Error: "``; styled with the message.
            style: Rich style for the label (or the whole line when there
                is no label). Ignored in no-colour mode.
        """
        if self._no_color:
            print(f"{label}{message}", file=sys.stderr, flush=True)
            return
        text = escape(message)
        if style and label:
            self._stderr.print(f"[{style}]{escape(label)}[/{style}]{text}")
        elif style:
            self._stderr.print(f"[{style}]{text}[/{style}]")
        else:
            self._stderr.print(text)

    def info(self, message: str) -> None:
        """Print a progress or informational message to stderr.

        Suppressed by ``--quiet``.

        Args:
            message: The text to show.
        """
        if not self._quiet:
            self._emit(message)

    def success(self, message: str) -> None:
        """Print a green confirmation to stderr. Suppressed by ``--quiet``.

        Args:
            message: The text to show.
        """
        if not self._quiet:
            self._emit(message, style="green")

    def suggest(self, message: str) -> None:
        """Print a dimmed hint about what to run next. Suppressed by ``--quiet``.

        Args:
            message: The suggested next step, e.g. ``"forumkey auth test"``.
        """
        if not self._quiet:
            self._emit(f"→ {message}", style="dim")

    def warning(self, message: str) -> None:
        """Print a yellow ``Warning:`` line to stderr. Shown even with ``--quiet``.

        Args:
            message: The text to show.
        """
        self._emit(message, label="Warning: ", style="yellow")

    def error(self, message: str) -> None:
        """Print a bold red ``Error:`` line to stderr. Never suppressed.

        Args:
            message: The text to show. Brackets and other markup
                characters are printed as-is.
        """
        self._emit(message, label="Error: ", style="bold red")

    def debug(self, message: str) -> None:
        """Print a dimmed ``[debug]`` line to stderr, only with ``--verbose``.

        Args:
            message: The text to show.
        """
        if self._verbose:
            self._emit(f"[debug] {message}", style="dim")


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``NO_COLOR`` (any value, even empty) or ``TERM=dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def mask_secret(value: str, visible: int = 8) -> str:
    """Shorten a key to a prefix that is safe to show on screen."""
    if len(value) <= visible:
        return "*" * len(value)
    return f"{value[:visible]}..."


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Route records from every ``forumkey.*`` logger to stderr via Rich.

    Calling it again replaces the previous handler. Only warnings and
    errors get through unless *verbose* is set.
    """
    logger = logging.getLogger("forumkey")
    for old in list(logger.handlers):
        logger.removeHandler(old)
    handler = RichHandler(
        console=console or get_output().stderr_console,
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


# -- process-wide instance ---------------------------------------------------

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one lazily.

    Returns:
        The :class:`OutputManager` installed by :func:`set_output`, or an
        ``AUTO``-format manager if nothing was installed yet.
    """
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the process-wide manager.

    Args:
        output: The manager every module-level helper will delegate to.
    """
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (tests use this between runs)."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    """Render a record to stdout via the installed manager.

    Args:
        data: Any JSON-compatible value.
    """
    get_output().format_response(data)


def print_data(text: str) -> None:
    """Write raw text to stdout via the installed manager.

    Args:
        text: The line to print, e.g. the authorization URL.
    """
    get_output().print_data(text)


def info(message: str) -> None:
    """Print an informational message to stderr via the installed manager.

    Args:
        message: The text to show.
    """
    get_output().info(message)


def success(message: str) -> None:
    """Print a success message to stderr via the installed manager.

    Args:
        message: The text to show.
    """
    get_output().success(message)


def suggest(message: str) -> None:
    """Print a next-step hint to stderr via the installed manager.

    Args:
        message: The suggested next step.
    """
    get_output().suggest(message)


def warning(message: str) -> None:
    """Print a warning to stderr via the installed manager.

    Args:
        message: The text to show.
    """
    get_output().warning(message)


def error(message: str) -> None:
    """Print an error to stderr via the installed manager.

    Args:
        message: The text to show.
    """
    get_output().error(message)


def debug(message: str) -> None:
    """Print a debug message to stderr via the installed manager.

    Args:
        message: The text to show; dropped unless ``--verbose`` is active.
    """
    get_output().debug(message)
