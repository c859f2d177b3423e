"""Settings package — exposes the cached ``get_settings`` accessor."""

from noet.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
