import sys
from pathlib import Path

import platformdirs
import pytest

from konvergo.paths import (
    cache_dir,
    data_dir,
    helper_name,
    log_dir,
    main_name,
    resource_dir,
    socket_name,
    sounds_path,
    web_client_path,
)


@pytest.fixture
def dirs(tmp_path, monkeypatch):
    data = tmp_path / "data"
    cache = tmp_path / "cache"
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(platformdirs, "user_data_dir", lambda *a, **k: str(data))
    monkeypatch.setattr(platformdirs, "user_cache_dir", lambda *a, **k: str(cache))
    return data, cache


@pytest.mark.parametrize(
    "name, main, helper",
    [
        ("linux", "plexmediaplayer", "pmphelper"),
        ("darwin", "Plex Media Player", "PMP Helper"),
        ("win32", "PlexMediaPlayer", "PMPHelper"),
    ],
)
def test_names(monkeypatch, name, main, helper):
    monkeypatch.setattr(sys, "platform", name)
    assert main_name() == main
    assert helper_name() == helper


def test_socket_name_uses_user(monkeypatch):
    monkeypatch.setenv("USER", "alice")
    assert socket_name("srv") == "/tmp/pmp_srv_alice.sock"


def test_socket_name_falls_back_to_username(monkeypatch):
    monkeypatch.delenv("USER", raising=False)
    monkeypatch.setenv("USERNAME", "bob")
    assert socket_name("srv").endswith("pmp_srv_bob.sock")


def test_socket_name_unknown_user(monkeypatch):
    monkeypatch.delenv("USER", raising=False)
    monkeypatch.delenv("USERNAME", raising=False)
    assert socket_name("srv").endswith("_unknown.sock")


def test_resource_dir_next_to_app(tmp_path):
    app = tmp_path / "app"
    app.mkdir()
    (app / "file.bin").write_bytes(b"x")
    assert resource_dir("file.bin", app_dir=app, prefix=tmp_path / "prefix") == str(app) + "/file.bin"


def test_resource_dir_in_resources(tmp_path):
    app = tmp_path / "app"
    app.mkdir()
    (tmp_path / "Resources").mkdir()
    (tmp_path / "Resources" / "file.bin").write_bytes(b"x")
    result = resource_dir("file.bin", app_dir=app, prefix=tmp_path / "prefix")
    assert result == str(app) + "/../Resources/file.bin"
    assert Path(result).exists()


def test_resource_dir_in_prefix_share(tmp_path):
    prefix = tmp_path / "prefix"
    share = prefix / "share" / "plexmediaplayer"
    share.mkdir(parents=True)
    (share / "file.bin").write_bytes(b"x")
    result = resource_dir("file.bin", app_dir=tmp_path / "app", prefix=prefix)
    assert result == str(prefix) + "/share/plexmediaplayer/file.bin"


def test_resource_dir_missing_falls_back_to_app(tmp_path):
    app = tmp_path / "app"
    result = resource_dir("missing.bin", app_dir=app, prefix=tmp_path / "prefix")
    assert result == str(app) + "/missing.bin"


def test_web_client_path(tmp_path):
    prefix = tmp_path / "prefix"
    page = prefix / "plexmediaplayer" / "web-client" / "desktop" / "index.html"
    page.parent.mkdir(parents=True)
    page.write_text("<html/>")
    result = web_client_path("desktop", app_dir=tmp_path / "app", prefix=prefix)
    assert Path(result) == page


def test_web_client_path_default_mode(tmp_path):
    app = tmp_path / "app"
    result = web_client_path(app_dir=app, prefix=tmp_path / "prefix")
    assert result == str(app) + "/web-client/tv/index.html"


def test_data_dir(dirs):
    data, _ = dirs
    assert data_dir() == str(data / "plexmediaplayer")
    assert (data / "plexmediaplayer").is_dir()
    assert data_dir("helper.conf") == str(data / "plexmediaplayer" / "helper.conf")


def test_cache_dir(dirs):
    _, cache = dirs
    assert cache_dir() == str(cache / "plexmediaplayer")
    assert cache_dir("crashdumps/old") == str(cache / "plexmediaplayer" / "crashdumps" / "old")


def test_log_dir(dirs):
    data, _ = dirs
    assert log_dir("x.log") == str(data / "plexmediaplayer" / "logs" / "x.log")
    assert (data / "plexmediaplayer" / "logs").is_dir()


def test_sounds_path_found(dirs):
    data, _ = dirs
    sound = data / "plexmediaplayer" / "sounds" / "click.wav"
    sound.parent.mkdir(parents=True)
    sound.write_bytes(b"RIFF")
    assert Path(sounds_path("click.wav")) == sound.resolve()


def test_sounds_path_missing(dirs):
    with pytest.raises(FileNotFoundError):
        sounds_path("nothing.wav")