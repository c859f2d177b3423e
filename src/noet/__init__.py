"""noet — drives an authenticated note.com browser session for a remote controller."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("noet")
except Exception:
    __version__ = "0.0.0"
