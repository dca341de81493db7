"""General helpers: platform detection, text sanitising, JSON and file utilities."""

from __future__ import annotations

import contextlib
import enum
import functools
import ipaddress
import json
import os
import re
import socket
import sys
import tempfile
import uuid
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any


class FatalError(Exception):
    """An error the application cannot recover from."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Platform(enum.IntFlag):
    """Platforms the player runs on, usable as a bit mask."""

    UNKNOWN = 0
    OSX = 1 << 0
    LINUX = 1 << 1
    OE_X86 = 1 << 2
    OE_RPI = 1 << 3
    WINDOWS = 1 << 4
    OE = OE_RPI | OE_X86
    ANY = OSX | WINDOWS | LINUX | OE


def platform_any_except(mask: int) -> Platform:
    """Return every platform except those in ``mask``."""
    return Platform(int(Platform.ANY) & ~int(mask))


def current_platform() -> Platform:
    """Return the platform the interpreter is running on."""
    if sys.platform == "darwin":
        return Platform.OSX
    if sys.platform.startswith("linux"):
        return Platform.LINUX
    if sys.platform in ("win32", "cygwin"):
        return Platform.WINDOWS
    return Platform.UNKNOWN


_HTTP_SEPARATORS = frozenset("()<>@,;:\\\"/[]?={}'")


def sanitize_for_http_separators(text: str) -> str:
    """Drop HTTP separator characters and replace non-ASCII characters with ``_``."""
    return "".join(
        "_" if ord(char) > 127 else char
        for char in text
        if char not in _HTTP_SEPARATORS
    )


_COMMENT_LINE = re.compile(rb"\s*//")


def open_json_document(path: str | os.PathLike[str]) -> Any:
    """Load a JSON file, ignoring lines that start with a ``//`` comment.

    Raises ``OSError`` if the file cannot be read and ``ValueError`` if the
    remaining text is not valid JSON.
    """
    with open(path, "rb") as fp:
        kept = [line for line in fp if not _COMMENT_LINE.match(line)]
    return json.loads(b"".join(kept))


def safely_write_file(filename: str | os.PathLike[str], data: bytes | str) -> None:
    """Write ``data`` to ``filename`` atomically via a temporary file."""
    target = Path(filename)
    payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    try:
        with os.fdopen(fd, "wb") as fp:
            fp.write(payload)
            fp.flush()
            os.fsync(fp.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def current_user_id(connections: Mapping[str, Any] | None) -> str:
    """Return the id of the first user in a ``connections`` settings section."""
    if not connections:
        return ""
    users = connections.get("users")
    if not users:
        return ""
    user = users[0]
    if not isinstance(user, Mapping):
        return ""
    user_id = user.get("id")
    return "" if user_id is None else str(user_id)


def client_uuid(settings: MutableMapping[str, Any]) -> str:
    """Return the stored client UUID, creating and storing one if missing."""
    stored = settings.get("clientUUID")
    if stored:
        return str(stored)
    new_uuid = str(uuid.uuid4())
    settings["clientUUID"] = new_uuid
    return new_uuid


def primary_ipv4_address() -> str:
    """Return the first non-loopback, non-multicast IPv4 address of this host."""
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError:
        return ""
    for *_, sockaddr in infos:
        try:
            address = ipaddress.IPv4Address(sockaddr[0])
        except ValueError:
            continue
        if not address.is_loopback and not address.is_multicast:
            return str(address)
    return ""


@functools.lru_cache(maxsize=None)
def computer_name() -> str:
    """Return the host name of this machine, looked up once."""
    return socket.gethostname()


def is_process_alive(pid: int) -> bool:
    """Return whether a process with ``pid`` exists and can be signalled."""
    if os.name != "posix":
        return False
    try:
        os.kill(pid, 0)
    except (OSError, OverflowError):
        return False
    return True