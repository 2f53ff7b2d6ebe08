"""Typer application and console entry point.

``forumkey`` has two command groups, ``auth`` and ``config``. Global
flags (server, output format, verbosity) are handled once in
:func:`main_callback` and handed to the commands through ``ctx.obj``.

:func:`main` is what the ``forumkey`` console script runs. A
:class:`~forumkey.exceptions.ForumkeyError` that escapes a command is
printed and turned into its exit code; anything else leaves a traceback
in ``<data_dir>/logs`` so the terminal only shows where to find it.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from types import FrameType
from typing import Optional

import typer

from forumkey import __version__
from forumkey.commands.auth import auth_app
from forumkey.commands.config import config_app
from forumkey.exit_codes import EXIT_GENERIC_FAILURE
from forumkey.output import OutputFormat, OutputManager, configure_logging, error, set_output

_EXIT_INTERRUPTED = 128 + signal.SIGINT


app = typer.Typer(
    name="forumkey",
    help="Obtain and manage forum User API Keys.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(auth_app, name="auth", help="Log in, log out, and inspect stored keys.")
app.add_typer(config_app, name="config", help="Show and change global settings.")


def _print_version(requested: bool) -> None:
    if requested:
        typer.echo(f"forumkey {__version__}")
        raise typer.Exit()


def _pick_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Print the version."
    ),
    server: Optional[str] = typer.Option(
        None, "--server", "-s", help="Forum base URL. Beats FORUMKEY_SERVER and config files."
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit data as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Emit data as tab-separated text."),
    no_color: bool = typer.Option(False, "--no-color", help="Never use colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print data, warnings and errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print debug messages and logs."),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Set up output and logging, then record the shared flags for the sub-command."""
    output = OutputManager(
        format=_pick_format(json_output, plain_output),
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)
    configure_logging(verbose=verbose, console=output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj.update(server=server, force=force, verbose=verbose)


def _on_sigint(signum: int, frame: Optional[FrameType]) -> None:
    sys.stderr.write("\nInterrupted.\n")
    sys.exit(_EXIT_INTERRUPTED)


def _save_traceback(exc: BaseException) -> Path:
    """Write *exc*'s traceback under the data directory and return the file."""
    from forumkey.config import get_data_dir

    logs = get_data_dir() / "logs"
    logs.mkdir(parents=True, exist_ok=True)
    path = logs / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    path.write_text("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    return path


def main() -> None:
    """Run the CLI. Always ends in :class:`SystemExit`."""
    from forumkey.exceptions import ForumkeyError

    signal.signal(signal.SIGINT, _on_sigint)
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nInterrupted.\n")
        sys.exit(_EXIT_INTERRUPTED)
    except ForumkeyError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error; traceback saved to {_save_traceback(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
