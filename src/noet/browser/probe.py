"""DOM probe: poll a live page until a condition holds or a bound elapses.

The site gives no "done" events for asynchronous UI state (editor mounted,
menu opened, upload finished), so every such wait is a poll. A condition
is one of:

* a CSS selector string (element exists),
* a ``JsCondition`` (script evaluated in the page, truthy result wins),
* a zero-argument coroutine function (truthy result wins).

Evaluation errors while the page is navigating count as "not yet". A
timeout is reported as a failed ``StepResult`` naming the unmet condition.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union

from noet.browser.scripts import SELECTOR_EXISTS_JS, TARGET_EXISTS_JS
from noet.models.results import StepResult

if TYPE_CHECKING:
    from playwright.async_api import Page

    from noet.browser.timing import HumanTiming
    from noet.site.locators import Target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JsCondition:
    """A script evaluated in the page with one argument."""

    script: str
    arg: Any = None
    description: str = "page condition"


Condition = Union[str, JsCondition, Callable[[], Awaitable[Any]]]


def target_present(target: Target) -> JsCondition:
    """Condition that holds once any locator of *target* resolves."""
    return JsCondition(TARGET_EXISTS_JS, {"locators": target.to_js()}, target.description)


def _describe(condition: Condition) -> str:
    if isinstance(condition, str):
        return f"selector {condition!r}"
    if isinstance(condition, JsCondition):
        return condition.description
    return getattr(condition, "__name__", "condition")


async def _evaluate(page: Page, condition: Condition) -> Any:
    if isinstance(condition, str):
        return await page.evaluate(SELECTOR_EXISTS_JS, condition)
    if isinstance(condition, JsCondition):
        return await page.evaluate(condition.script, condition.arg)
    return await condition()


async def wait_for(
    page: Page,
    condition: Condition,
    timeout_ms: int,
    *,
    timing: HumanTiming,
    description: str = "",
) -> StepResult:
    """Poll *condition* until it is truthy or *timeout_ms* elapses.

    Args:
        page: Page to evaluate against.
        condition: Selector, ``JsCondition`` or coroutine function.
        timeout_ms: Upper bound for the whole wait.
        timing: Supplies the poll interval and the sleep.
        description: Overrides the condition's own description in the
            timeout message.

    Returns:
        ``StepResult.ok(value)`` with the first truthy value, or a failure
        ``"Timed out after <n>ms waiting for <description>"``.
    """
    desc = description or _describe(condition)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    polls = 0

    while True:
        polls += 1
        try:
            value = await _evaluate(page, condition)
        except Exception as exc:
            logger.debug("Probe %s: evaluation error (poll %d): %s", desc, polls, exc)
            value = None
        if value:
            logger.debug("Probe %s satisfied after %d poll(s)", desc, polls)
            return StepResult.ok(value, polls=polls)
        if loop.time() >= deadline:
            break
        await timing.sleep(timing.poll_interval())

    logger.warning("Probe timed out after %dms: %s", timeout_ms, desc)
    return StepResult.fail(f"Timed out after {timeout_ms}ms waiting for {desc}", code="TIMEOUT", polls=polls)
