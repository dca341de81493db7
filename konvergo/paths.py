"""Application names and locations of data, cache, log and resource files."""

from __future__ import annotations

import contextlib
import logging
import os
import sys
from pathlib import Path

import platformdirs

log = logging.getLogger(__name__)


def main_name() -> str:
    """Return the name of the main application binary for this platform."""
    if sys.platform == "darwin":
        return "Plex Media Player"
    if sys.platform in ("win32", "cygwin"):
        return "PlexMediaPlayer"
    return "plexmediaplayer"


def helper_name() -> str:
    """Return the name of the helper binary for this platform."""
    if sys.platform == "darwin":
        return "PMP Helper"
    if sys.platform in ("win32", "cygwin"):
        return "PMPHelper"
    return "pmphelper"


def _application_dir() -> str:
    if sys.argv and sys.argv[0]:
        return os.path.dirname(os.path.abspath(sys.argv[0]))
    return os.getcwd()


def resource_dir(
    file: str = "",
    app_dir: str | os.PathLike[str] | None = None,
    prefix: str | os.PathLike[str] | None = None,
) -> str:
    """Locate a resource file.

    Looks next to the application, in ``../Resources``, in
    ``PREFIX/share/plexmediaplayer`` and in ``PREFIX/plexmediaplayer``; falls
    back to the application directory.
    """
    app = str(app_dir if app_dir is not None else _application_dir()) + "/"
    pre = str(prefix if prefix is not None else sys.prefix)
    candidates = (
        app,
        app + "../Resources/",
        pre + "/share/plexmediaplayer/",
        pre + "/plexmediaplayer/",
    )
    for base in candidates:
        if os.path.exists(base + file):
            return base + file
    return app + file


def _writable_location(base: str) -> Path:
    root = Path(base).absolute()
    target = root / main_name()
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError:
        log.warning("Failed to create directory: %s", root)
        return Path.cwd()
    return target


def _join(directory: Path, file: str) -> str:
    return str(directory / file) if file else str(directory)


def data_dir(file: str = "") -> str:
    """Return the per-user data directory, or ``file`` inside it."""
    return _join(_writable_location(platformdirs.user_data_dir()), file)


def cache_dir(file: str = "") -> str:
    """Return the per-user cache directory, or ``file`` inside it."""
    return _join(_writable_location(platformdirs.user_cache_dir()), file)


def log_dir(file: str = "") -> str:
    """Return the log directory, or ``file`` inside it, creating the directory."""
    if sys.platform == "darwin":
        directory = Path.home() / "Library" / "Logs" / main_name()
    else:
        directory = _writable_location(platformdirs.user_data_dir()) / "logs"
    with contextlib.suppress(OSError):
        directory.mkdir(parents=True, exist_ok=True)
    return _join(directory, file)


def socket_name(server_name: str) -> str:
    """Return the per-user local socket name for ``server_name``."""
    user = os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"
    name = f"pmp_{server_name}_{user}.sock"
    return f"/tmp/{name}" if os.name == "posix" else name


def sounds_path(sound: str) -> str:
    """Return the absolute path of a sound file in the data directory."""
    local = Path(data_dir("sounds/" + sound))
    if local.exists():
        return str(local.resolve())
    log.warning("Can't find sound: %s", sound)
    raise FileNotFoundError(f"can't find sound: {sound}")


def web_client_path(
    mode: str = "tv",
    app_dir: str | os.PathLike[str] | None = None,
    prefix: str | os.PathLike[str] | None = None,
) -> str:
    """Return the index page of the web client for ``mode``."""
    return resource_dir(f"web-client/{mode}/index.html", app_dir=app_dir, prefix=prefix)