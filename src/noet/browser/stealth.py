"""Browser anti-detection: context fingerprint and stealth init scripts.

The session reuses a real, logged-in profile, so the user-agent is left to
the browser itself (a UA that changes between runs on the same cookie jar
is a stronger signal than the default one). What varies is the window
size; locale and timezone are pinned to the account's region.

Usage::

    from noet.browser.stealth import build_context_options, apply_stealth_scripts

    options = build_context_options(settings)
    context = await pw.chromium.launch_persistent_context(user_data_dir, **options)
    await apply_stealth_scripts(context)
"""

from __future__ import annotations

import json
import logging
import random
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playwright.async_api import BrowserContext

    from noet.settings.config import Settings

logger = logging.getLogger(__name__)

# Common desktop viewport sizes (width x height)
_VIEWPORTS: list[dict[str, int]] = [
    {"width": 1920, "height": 1080},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
    {"width": 1366, "height": 768},
    {"width": 1280, "height": 800},
]

_DEFAULT_VIEWPORT: dict[str, int] = {"width": 1280, "height": 800}

# Injected via context.add_init_script(); __LANGUAGES__ is replaced per locale.
_STEALTH_SCRIPTS: str = """
// Remove navigator.webdriver flag
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });

// Mimic chrome.runtime (present in real Chrome)
if (!window.chrome) window.chrome = {};
if (!window.chrome.runtime) window.chrome.runtime = {};

// Patch navigator.plugins to look non-empty
Object.defineProperty(navigator, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
});

// Patch navigator.languages
Object.defineProperty(navigator, 'languages', {
    get: () => __LANGUAGES__,
});

// Prevent detection via permissions API
const originalQuery = window.navigator.permissions.query;
window.navigator.permissions.query = (parameters) =>
    parameters.name === 'notifications'
        ? Promise.resolve({ state: Notification.permission })
        : originalQuery(parameters);
"""


def build_context_options(settings: Settings, *, rng: random.Random | None = None) -> dict[str, Any]:
    """Build keyword arguments for ``launch_persistent_context``.

    Args:
        settings: Resolved noet settings.
        rng: Optional seeded random generator.

    Returns:
        A dict of Playwright launch/context options.
    """
    r = rng or random
    options: dict[str, Any] = {
        "headless": settings.browser.headless,
        "locale": settings.stealth.locale,
        "timezone_id": settings.stealth.timezone_id,
        "viewport": r.choice(_VIEWPORTS) if settings.stealth.randomize_viewport else dict(_DEFAULT_VIEWPORT),
        "args": ["--disable-blink-features=AutomationControlled"],
    }
    if settings.browser.channel:
        options["channel"] = settings.browser.channel
    if settings.browser.slow_mo_ms:
        options["slow_mo"] = settings.browser.slow_mo_ms
    logger.debug(
        "Context options: headless=%s viewport=%s locale=%s",
        options["headless"],
        options["viewport"],
        options["locale"],
    )
    return options


def stealth_script(locale: str) -> str:
    """Return the stealth init script with languages matching *locale*."""
    if not locale:
        languages = ["en-US", "en"]
    else:
        primary = locale.split("-")[0]
        languages = [locale, primary] if primary != locale else [locale]
    return _STEALTH_SCRIPTS.replace("__LANGUAGES__", json.dumps(languages))


async def apply_stealth_scripts(context: BrowserContext, locale: str) -> None:
    """Inject stealth JavaScript into every page of *context*.

    Call this before opening pages so the scripts run in every frame from
    the start.
    """
    await context.add_init_script(stealth_script(locale))
    logger.debug("Stealth scripts injected")
