"""``forumkey config`` -- inspect and edit the user's ``config.json``.

Only the global file is touched here; ``./forumkey.json`` is meant to be
edited by hand and checked into the site that uses it.
"""

from __future__ import annotations

from typing import Any

import typer

from forumkey.exceptions import ConfigError, ForumkeyError, InvalidUsageError
from forumkey.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _parent_of(data: dict[str, Any], dotted: str) -> tuple[dict[str, Any], str]:
    """Find the dict holding the leaf of *dotted* (``request.timeout`` -> ``data["request"]``)."""
    *path, leaf = dotted.split(".")
    node = data
    for part in path:
        child = node.get(part)
        if not isinstance(child, dict):
            raise InvalidUsageError(f"Unknown config key: {dotted}")
        node = child
    if leaf not in node or isinstance(node[leaf], dict):
        raise InvalidUsageError(f"Unknown config key: {dotted}")
    return node, leaf


def _coerce(dotted: str, current: Any, raw: str) -> Any:
    """Convert *raw* to the type of the value it replaces."""
    from forumkey.config import canonical_server

    if dotted == "default_server":
        try:
            return canonical_server(raw)
        except ConfigError as exc:
            raise InvalidUsageError(str(exc)) from exc
    if isinstance(current, bool):
        return raw.strip().lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(raw)
        except ValueError:
            raise InvalidUsageError(f"{dotted} takes a whole number, got '{raw}'") from None
    return raw


@config_app.command("show")
def config_show() -> None:
    """Print the global configuration.

    Example::

        forumkey --json config show
    """
    from forumkey.config import get_config_dir, load_global_config

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name; nested ones use dots, e.g. 'request.timeout'."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one setting.

    Booleans accept true/false, yes/no, 1/0. ``default_server`` is saved
    in canonical form.

    Example::

        forumkey config set default_server https://forum.example.com
        forumkey config set client_id my-blog
        forumkey config set open_browser false
    """
    from forumkey.config import load_global_config, save_global_config
    from forumkey.models import GlobalConfig

    try:
        data = load_global_config().model_dump(mode="json")
        parent, leaf = _parent_of(data, key)
        parent[leaf] = _coerce(key, parent[leaf], value)
        try:
            updated = GlobalConfig.model_validate(data)
        except ValueError as exc:
            raise InvalidUsageError(f"Rejected value for {key}: {exc}") from exc
    except ForumkeyError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    save_global_config(updated)
    success(f"Set {key} = {parent[leaf]}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Restore every setting to its default.

    Stored keys are kept. Asks first unless ``--force`` is given.
    """
    from forumkey.config import save_global_config
    from forumkey.models import GlobalConfig

    if not (ctx.obj or {}).get("force") and not typer.confirm("Reset all settings to defaults?"):
        info("Cancelled.")
        raise typer.Exit()
    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
