"""Resilient page navigation with automatic wait-strategy fallback.

note.com keeps analytics and notification sockets open, so a page may never
reach ``networkidle``. ``resilient_goto`` waits for the full ``load`` event
first and falls back to ``domcontentloaded`` on timeout. Network-level
failures (DNS, refused connection) surface immediately as
``NavigationError``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from noet.exceptions import NavigationError

if TYPE_CHECKING:
    from playwright.async_api import Page, Response

logger = logging.getLogger(__name__)

# Playwright error substrings that indicate non-retryable navigation failures.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_ADDRESS_UNREACHABLE",
)

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["load", "domcontentloaded"]


async def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "load",
) -> Response | None:
    """Navigate to *url* with automatic wait-strategy fallback.

    Args:
        page: Playwright page instance.
        url: Target URL to navigate to.
        timeout_ms: Timeout per attempt in milliseconds.
        wait_until: Preferred initial wait strategy.

    Returns:
        The main-frame ``Response``, or ``None`` if none was produced.

    Raises:
        NavigationError: On a non-retryable network failure.
        PlaywrightTimeout: If all fallback strategies time out.
    """
    strategies = _build_fallback_chain(wait_until)

    last_error: PlaywrightTimeout | None = None
    for strategy in strategies:
        try:
            logger.debug("goto %s (wait_until=%s, timeout=%dms)", url, strategy, timeout_ms)
            return await page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightError as exc:
            error_msg = str(exc)
            for pattern in _NON_RETRYABLE_ERRORS:
                if pattern in error_msg:
                    reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                    logger.warning("Navigation to %s failed (non-retryable): %s", url, pattern)
                    raise NavigationError(url, reason) from exc
            if isinstance(exc, PlaywrightTimeout):
                logger.warning(
                    "Navigation to %s timed out with wait_until=%s, retrying with weaker strategy",
                    url,
                    strategy,
                )
                last_error = exc
            else:
                raise

    raise last_error  # type: ignore[misc]


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*."""
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]
