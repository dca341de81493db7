"""Host-side support for a media player: paths, platform utilities, and update checking, downloading and staging."""

__version__ = "2.34.0"

__all__ = ["paths", "updater", "updates", "utils"]