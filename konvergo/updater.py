"""Checking for, downloading and verifying application updates."""

from __future__ import annotations

import hashlib
import logging
import os
import time
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any

from konvergo.updates import READY_FILE, UpdateManager

log = logging.getLogger(__name__)

BASE_URL = "https://plex.tv"
CHECK_URL = BASE_URL + "/updater/products/{}/check.xml"
ALLOWED_REDIRECT_PREFIXES = (
    "https://nightlies.plex.tv",
    "https://downloads.plex.tv",
    "https://plex.tv",
)
CHECK_INTERVAL = 3 * 60 * 60
REQUIRED_FIELDS = ("version", "manifestURL", "manifestHash", "fileURL", "fileHash", "fileName")
MANIFEST_FILE = "manifest.xml.bz2"

_CHUNK = 8192
_PACKAGE_ATTRIBUTES = ("delta", "manifest", "manifestHash", "file", "fileHash", "fileName")

Fetch = Callable[[str], Iterable[bytes]]


def is_allowed_redirect(url: str) -> bool:
    """Return whether a download may be redirected to ``url``."""
    return url.startswith(ALLOWED_REDIRECT_PREFIXES)


class _RestrictedRedirectHandler(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):  # type: ignore[override]
        log.debug("Redirect: %s", newurl)
        if not is_allowed_redirect(newurl):
            log.warning("Refusing redirect to: %s", newurl)
            return None
        log.debug("Redirecting to: %s", newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)


_OPENER = urllib.request.build_opener(_RestrictedRedirectHandler)


def _http_fetch(url: str) -> Iterator[bytes]:
    with _OPENER.open(url, timeout=60) as response:
        while chunk := response.read(_CHUNK):
            yield chunk


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def final_url(path: str, token: str = "") -> str:
    """Return ``path`` on the update host, carrying ``token`` if one is given."""
    query = f"X-Plex-Token={token}" if token else ""
    return urllib.parse.urlunsplit(("https", "plex.tv", path, query, ""))


def check_url(system_info: Mapping[str, Any], channel: str, token: str = "") -> str:
    """Return the URL that asks the update service for a newer release."""
    try:
        product = int(system_info.get("productid", 0))
    except (TypeError, ValueError):
        product = 0
    items = [
        ("version", _text(system_info.get("version"))),
        ("build", _text(system_info.get("build"))),
        ("distribution", _text(system_info.get("dist"))),
        ("channel", _text(channel)),
    ]
    if token:
        items.append(("X-Plex-Token", token))
    return CHECK_URL.format(product) + "?" + urllib.parse.urlencode(items)


def parse_update_data(data: bytes | str, token: str = "") -> dict[str, Any]:
    """Extract the newest release from a ``check.xml`` answer.

    A delta package is preferred over a full one. Returns an empty dict if
    the document cannot be parsed or lists no release.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError:
        log.error("Failed to parse check.xml data!")
        return {}

    releases: list[dict[str, Any]] = []
    for release_element in root:
        if release_element.tag != "Release":
            continue
        release: dict[str, Any] = {
            "version": release_element.get("version", ""),
            "fixed": release_element.get("fixed", "Nothing"),
            "new": release_element.get("new", "Nothing"),
        }
        for package_element in release_element:
            if package_element.tag != "Package":
                continue
            package = {name: package_element.get(name, "") for name in _PACKAGE_ATTRIBUTES}
            key = "delta_package" if package["delta"] == "true" else "full_package"
            release[key] = package
        releases.append(release)

    if not releases:
        log.debug("No updates found!")
        return {}

    release = releases[-1]
    info = dict(release.get("delta_package") or release.get("full_package") or {})
    info["version"] = release["version"]
    info["fixed"] = release["fixed"]
    info["new"] = release["new"]
    info["fileURL"] = final_url(info.get("file", ""), token)
    info["manifestURL"] = final_url(info.get("manifest", ""), token)
    log.debug("%s", info)
    return info


class UpdateFile:
    """One file of an update, downloaded to ``local_path`` and checked by SHA-1."""

    def __init__(
        self,
        url: str,
        local_path: str | os.PathLike[str],
        expected_hash: str = "",
        *,
        fetch: Fetch | None = None,
    ) -> None:
        self.url = url
        self.local_path = Path(local_path)
        self.expected_hash = expected_hash
        self.downloading = False
        self._fetch = fetch if fetch is not None else _http_fetch

    def hash_file(self) -> str:
        """Return the hex SHA-1 of the local file, or an empty string if unreadable."""
        digest = hashlib.sha1()
        try:
            with open(self.local_path, "rb") as fp:
                while chunk := fp.read(_CHUNK):
                    digest.update(chunk)
        except OSError:
            return ""
        return digest.hexdigest()

    def is_ready(self) -> bool:
        """Return whether the local file is complete and matches the expected hash."""
        if self.downloading or not self.local_path.is_file():
            return False
        file_hash = self.hash_file()
        return bool(file_hash) and file_hash == self.expected_hash

    def download(self) -> None:
        """Download ``url`` into ``local_path``; raise ``OSError`` on failure."""
        log.info("Downloading update: %s to: %s", self.url, self.local_path)
        self.downloading = True
        started = time.monotonic()
        try:
            with open(self.local_path, "wb") as fp:
                for chunk in self._fetch(self.url):
                    fp.write(chunk)
        finally:
            self.downloading = False
        log.debug("Update downloaded, took: %.0f seconds", time.monotonic() - started)


class Updater:
    """Ask the update service for a release and download its files.

    Once the package (and its manifest, if there is one) are present and
    verified, a ready marker is written for the update manager to find and
    ``on_download_complete`` is called with the version.
    """

    def __init__(
        self,
        manager: UpdateManager | None = None,
        *,
        fetch: Fetch | None = None,
        token: str = "",
        enabled: bool = True,
        on_download_complete: Callable[[str], Any] | None = None,
        on_download_error: Callable[[str], Any] | None = None,
    ) -> None:
        self.manager = manager if manager is not None else UpdateManager()
        self.token = token
        self.enabled = enabled
        self.version = ""
        self.update_info: dict[str, Any] = {}
        self.manifest: UpdateFile | None = None
        self.file: UpdateFile | None = None
        self.has_manifest = False
        self.last_update_check: float | None = None
        self._fetch = fetch if fetch is not None else _http_fetch
        self._on_complete = on_download_complete
        self._on_error = on_download_error

    @property
    def is_downloading(self) -> bool:
        return any(u is not None and u.downloading for u in (self.manifest, self.file))

    def _error(self, message: str) -> None:
        if self._on_error is not None:
            self._on_error(message)

    def check_for_update(self, system_info: Mapping[str, Any], channel: str) -> dict[str, Any]:
        """Ask for a newer release and download it; return what was found."""
        if not self.enabled:
            return {}
        url = check_url(system_info, channel, self.token)
        log.debug("Checking for updates at: %s", url)
        self.last_update_check = time.monotonic()
        try:
            data = b"".join(self._fetch(url))
        except (OSError, ValueError) as exc:
            log.error("Error downloading: %s - %s", url, exc)
            self._error(str(exc))
            return {}

        info = parse_update_data(data, self.token)
        if info:
            try:
                self.start_update_download(info)
            except ValueError:
                pass
        return info

    def _download(self, update: UpdateFile) -> bool:
        try:
            update.download()
        except (OSError, ValueError) as exc:
            log.error("Error downloading: %s - %s", update.url, exc)
            self._error(str(exc))
            return False
        log.debug("File %s download completed", update.local_path)
        return True

    def start_update_download(self, update_info: Mapping[str, Any]) -> bool:
        """Download the files of ``update_info``; return True once they are verified.

        Raises ``ValueError`` if ``update_info`` lacks a required field.
        """
        if self.is_downloading:
            return False
        missing = [name for name in REQUIRED_FIELDS if name not in update_info]
        if missing:
            log.error("updateInfo was missing fields required to carry out this action.")
            raise ValueError(f"update info is missing: {', '.join(missing)}")

        self.update_info = dict(update_info)
        self.version = _text(update_info["version"])
        self.manifest = UpdateFile(
            _text(update_info["manifestURL"]),
            self.manager.get_path(MANIFEST_FILE, self.version, False),
            _text(update_info["manifestHash"]),
            fetch=self._fetch,
        )
        self.has_manifest = bool(self.manifest.url and self.manifest.expected_hash)
        self.file = UpdateFile(
            _text(update_info["fileURL"]),
            self.manager.get_path(_text(update_info["fileName"]), self.version, True),
            _text(update_info["fileHash"]),
            fetch=self._fetch,
        )

        directory = self.file.local_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            log.error("Failed to create update directory: %s", directory)
            self._error("Failed to create download directory")
            return False

        if self.file_complete():
            return True

        pending = []
        if self.has_manifest and not self.manifest.is_ready():
            pending.append(self.manifest)
        if not self.file.is_ready():
            pending.append(self.file)

        for update in pending:
            if not self._download(update):
                return False
            if self.file_complete():
                return True
        return False

    def file_complete(self) -> bool:
        """Mark the update ready if every needed file is verified."""
        if self.file is None or self.manifest is None:
            return False
        if not self.file.is_ready():
            return False
        if self.has_manifest and not self.manifest.is_ready():
            return False

        log.debug("Both files downloaded")
        ready = Path(self.manager.get_path(READY_FILE, self.version, False))
        try:
            ready.write_text("FOO")
        except OSError as exc:
            log.error("Failed to write %s: %s", ready, exc)

        if self._on_complete is not None:
            self._on_complete(self.version)
        self.file = None
        self.manifest = None
        return True