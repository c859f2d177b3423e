"""Configuration loader for noet using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (NOET_* with __ for nesting)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("NOET_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "NOET_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class BrowserSettings(BaseSettings):
    """Playwright persistent-context settings."""

    model_config = SettingsConfigDict(env_prefix="NOET_BROWSER__")

    headless: bool = False
    user_data_dir: str = "data/browser-profile"
    channel: str = ""
    timeout_ms: int = 30_000
    slow_mo_ms: int = 0


class StealthSettings(BaseSettings):
    """Anti-detection configuration."""

    model_config = SettingsConfigDict(env_prefix="NOET_STEALTH__")

    apply_stealth_scripts: bool = True
    randomize_viewport: bool = True
    locale: str = "ja-JP"
    timezone_id: str = "Asia/Tokyo"


class TimingSettings(BaseSettings):
    """Human-pacing and DOM probe bounds."""

    model_config = SettingsConfigDict(env_prefix="NOET_TIMING__")

    scale: float = Field(default=1.0, ge=0.0)
    min_command_interval_ms: int = Field(default=500, ge=0)
    probe_timeout_ms: int = Field(default=15_000, gt=0)
    upload_timeout_ms: int = Field(default=30_000, gt=0)
    typing_max_chars: int = Field(default=120, ge=0)


class SiteSettings(BaseSettings):
    """Locator profile selection."""

    model_config = SettingsConfigDict(env_prefix="NOET_SITE__")

    locators_path: str = ""


class TransportSettings(BaseSettings):
    """Controller-facing channels."""

    model_config = SettingsConfigDict(env_prefix="NOET_TRANSPORT__")

    native_enabled: bool = True
    native_host_name: str = "com.noet.host"
    native_host_path: str = ""
    websocket_enabled: bool = True
    websocket_url: str = "ws://127.0.0.1:9876"
    reconnect_base_sec: float = Field(default=1.0, gt=0.0)
    reconnect_factor: float = Field(default=1.0, ge=1.0)
    reconnect_max_sec: float = Field(default=30.0, gt=0.0)


class ControllerSettings(BaseSettings):
    """Controller-side WebSocket server used by ``noet call``."""

    model_config = SettingsConfigDict(env_prefix="NOET_CONTROLLER__")

    host: str = "127.0.0.1"
    port: int = 9876
    command_timeout_sec: float = 60.0
    connect_timeout_sec: float = 30.0


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root noet settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="NOET_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False
    log_level: str = "INFO"

    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    stealth: StealthSettings = Field(default_factory=StealthSettings)
    timing: TimingSettings = Field(default_factory=TimingSettings)
    site: SiteSettings = Field(default_factory=SiteSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    controller: ControllerSettings = Field(default_factory=ControllerSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        root = self.project_root
        if not Path(self.browser.user_data_dir).is_absolute():
            self.browser.user_data_dir = str(root / self.browser.user_data_dir)
        if self.site.locators_path and not Path(self.site.locators_path).is_absolute():
            self.site.locators_path = str(root / self.site.locators_path)
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
