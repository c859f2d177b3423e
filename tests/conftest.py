"""noet test configuration — shared fixtures and a scripted fake page."""

from __future__ import annotations

import inspect
from typing import Any, Callable

import pytest


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from noet.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# Site profile and timing
# ---------------------------------------------------------------------------


@pytest.fixture()
def profile():
    """The packaged note.com locator profile."""
    from noet.site.loader import load_site_profile

    return load_site_profile()


@pytest.fixture()
def timing():
    """Pacing model with every delay scaled to zero."""
    from noet.browser.timing import HumanTiming

    return HumanTiming(0)


# ---------------------------------------------------------------------------
# Fake Playwright page
# ---------------------------------------------------------------------------

Handler = Callable[[Any], Any]


class FakeKeyboard:
    def __init__(self) -> None:
        self.pressed: list[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)


class FakePage:
    """Stands in for a Playwright ``Page``.

    ``evaluate`` is routed by script constant: register a handler per
    script in ``handlers``; unregistered scripts evaluate to ``None``.
    Handlers may be plain functions or coroutine functions and receive the
    evaluation argument.
    """

    def __init__(self, handlers: dict[str, Handler] | None = None, url: str = "about:blank") -> None:
        self.handlers: dict[str, Handler] = dict(handlers or {})
        self.url = url
        self.keyboard = FakeKeyboard()
        self.gotos: list[str] = []
        self.evaluations: list[tuple[str, Any]] = []
        self.close_calls = 0
        self.front_calls = 0

    def on(self, script: str, handler: Handler) -> FakePage:
        self.handlers[script] = handler
        return self

    def calls(self, script: str) -> list[Any]:
        """Arguments of every evaluation of *script*."""
        return [arg for s, arg in self.evaluations if s == script]

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 30_000) -> None:
        self.gotos.append(url)
        self.url = url
        return None

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluations.append((script, arg))
        handler = self.handlers.get(script)
        if handler is None:
            return None
        result = handler(arg)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def bring_to_front(self) -> None:
        self.front_calls += 1

    async def close(self) -> None:
        self.close_calls += 1


class FakeContext:
    """Hands out pre-built pages from ``new_page``."""

    def __init__(self, *pages: FakePage) -> None:
        self._pages = list(pages)
        self.opened: list[FakePage] = []

    async def new_page(self) -> FakePage:
        page = self._pages.pop(0) if self._pages else FakePage()
        self.opened.append(page)
        return page


@pytest.fixture()
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture()
def page_cls() -> type[FakePage]:
    """The ``FakePage`` class, for tests that need several pages."""
    return FakePage


@pytest.fixture()
def make_engine(profile, timing):
    """Build a ``FlowEngine`` over a real ``BrowserSession`` and fake pages.

    Returns ``(engine, context)``; pass the pages the flow should receive.
    """
    from noet.browser.session import BrowserSession
    from noet.flows.engine import FlowEngine
    from noet.settings.config import Settings

    def _make(*pages: FakePage, probe_timeout_ms: int = 50, upload_timeout_ms: int = 50):
        context = FakeContext(*pages)
        session = BrowserSession(Settings(), context=context)
        engine = FlowEngine(
            session,
            profile,
            timing,
            probe_timeout_ms=probe_timeout_ms,
            upload_timeout_ms=upload_timeout_ms,
        )
        return engine, context

    return _make


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests that require a real browser")
