"""Where forumkey keeps its files, and which forum it talks to.

* **Directories** -- :func:`get_config_dir` holds ``config.json``;
  :func:`get_data_dir` holds credentials, the pending private key and
  crash logs. Linux and the BSDs follow the XDG Base Directory layout;
  elsewhere both live under ``~/.forumkey``.
* **Writes** -- :func:`atomic_write` replaces a file in one rename, and
  can create it owner-only from the first byte.
* **Server identity** -- :func:`canonical_server` turns whatever URL the
  user typed into the string credentials are filed under.
* **Resolution** -- :func:`resolve_config` layers CLI flags, environment
  variables, ``./forumkey.json`` and the user config.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

from forumkey.exceptions import ConfigError
from forumkey.models import GlobalConfig

_APP_NAME = "forumkey"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "forumkey.json"
_PROJECT_KEYS = ("client_id", "auth_redirect")


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(xdg_var: str, xdg_default: tuple[str, ...], fallback: tuple[str, ...]) -> Path:
    if _is_xdg_platform():
        base = os.environ.get(xdg_var) or Path.home().joinpath(*xdg_default)
        path = Path(base) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """``$XDG_CONFIG_HOME/forumkey`` (default ``~/.config/forumkey``), or ``~/.forumkey``.

    The directory is created if missing.
    """
    return _app_dir("XDG_CONFIG_HOME", (".config",), ())


def get_data_dir() -> Path:
    """``$XDG_DATA_HOME/forumkey`` (default ``~/.local/share/forumkey``), or ``~/.forumkey/data``.

    The directory is created if missing.
    """
    return _app_dir("XDG_DATA_HOME", (".local", "share"), ("data",))


def atomic_write(path: Path, data: str, private: bool = False) -> None:
    """Replace *path* with *data* so readers see the old or the new file, never half of one.

    The content goes to a sibling temp file which is then renamed over
    *path*. The temp file is removed if anything fails on the way.

    Args:
        path: Destination file. Missing parent directories are created.
        data: Text to write, UTF-8 encoded.
        private: Keep the file ``0o600`` from creation on. Used for
            credentials and key material; other files get ``0o644``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        # mkstemp creates 0o600; widen to the usual mode unless the content is secret.
        os.chmod(tmp_name, 0o600 if private else 0o644)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def load_global_config() -> GlobalConfig:
    """Read ``config.json`` from :func:`get_config_dir`; defaults if it does not exist.

    Raises:
        ConfigError: The file is not JSON or does not match
            :class:`~forumkey.models.GlobalConfig`.
    """
    path = get_config_dir() / _CONFIG_FILENAME
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    text = json.dumps(config.model_dump(mode="json"), indent=2) + "\n"
    atomic_write(get_config_dir() / _CONFIG_FILENAME, text)


def load_project_config() -> Optional[dict[str, Any]]:
    """Read ``./forumkey.json`` if present.

    A site that embeds forum comments can pin ``default_server``,
    ``client_id`` and ``auth_redirect`` here for everyone working in it.

    Raises:
        ConfigError: The file is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    data = _read_json(path, "project config")
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def canonical_server(url: str) -> str:
    """Normalise a forum URL into the identity its credential is stored under.

    Scheme and host are lowercased, trailing slashes, query and fragment
    dropped. A forum installed in a sub-folder keeps its path.

    Example::

        >>> canonical_server("HTTPS://Forum.Example.com/community/")
        'https://forum.example.com/community'

    Raises:
        ConfigError: *url* is not an absolute ``http`` or ``https`` URL.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(f"Invalid server URL '{url}': expected http(s)://host[/path]")
    return urlunsplit((scheme, parts.netloc.lower(), parts.path.rstrip("/"), "", ""))


def resolve_config(
    cli_server: Optional[str] = None,
    cli_client_id: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[str]]:
    """Work out the effective settings and forum for this invocation.

    Each setting takes the first value found in:

    1. CLI flags
    2. ``FORUMKEY_SERVER`` / ``FORUMKEY_CLIENT_ID``
    3. ``./forumkey.json``
    4. the user's ``config.json``
    5. built-in defaults

    Returns:
        ``(config, server)``. ``config.client_id`` and
        ``config.auth_redirect`` are already resolved; ``server`` is
        canonical, or ``None`` if no layer names one.

    Raises:
        ConfigError: A config file is unreadable, or the chosen server is
            not a valid URL.
    """
    config = load_global_config()
    server = config.default_server

    project = load_project_config() or {}
    server = project.get("default_server") or server
    for key in _PROJECT_KEYS:
        if project.get(key):
            setattr(config, key, project[key])

    server = os.environ.get("FORUMKEY_SERVER") or server
    config.client_id = os.environ.get("FORUMKEY_CLIENT_ID") or config.client_id

    if cli_server is not None:
        server = cli_server
    if cli_client_id is not None:
        config.client_id = cli_client_id
    if cli_format is not None:
        config.output.format = cli_format

    return config, canonical_server(server) if server else None


def require_server(server: Optional[str]) -> str:
    """Return *server*, or explain how to configure one."""
    if not server:
        raise ConfigError(
            "No forum server configured. Pass --server, set FORUMKEY_SERVER, "
            "or run: forumkey config set default_server https://forum.example.com"
        )
    return server
