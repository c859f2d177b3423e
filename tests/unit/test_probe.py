"""Tests for the DOM probe."""

from __future__ import annotations

import pytest

from noet.browser import scripts
from noet.browser.probe import JsCondition, target_present, wait_for


class TestWaitFor:
    @pytest.mark.anyio
    async def test_selector_condition(self, fake_page, timing) -> None:
        fake_page.on(scripts.SELECTOR_EXISTS_JS, lambda sel: sel == ".ProseMirror")

        result = await wait_for(fake_page, ".ProseMirror", 50, timing=timing)

        assert result.success
        assert result.details["polls"] == 1

    @pytest.mark.anyio
    async def test_succeeds_on_later_poll(self, fake_page, timing) -> None:
        answers = iter([None, False, {"ready": True}])
        fake_page.on("CHECK", lambda arg: next(answers))

        result = await wait_for(fake_page, JsCondition("CHECK"), 1000, timing=timing)

        assert result.success
        assert result.value == {"ready": True}
        assert result.details["polls"] == 3

    @pytest.mark.anyio
    async def test_callable_condition(self, fake_page, timing) -> None:
        calls = []

        async def ready():
            calls.append(1)
            return len(calls) >= 2

        result = await wait_for(fake_page, ready, 1000, timing=timing)
        assert result.success
        assert len(calls) == 2

    @pytest.mark.anyio
    async def test_timeout_names_condition(self, fake_page, timing) -> None:
        result = await wait_for(fake_page, JsCondition("NEVER", description="Tag input"), 30, timing=timing)

        assert not result.success
        assert result.error == "Timed out after 30ms waiting for Tag input"
        assert result.code == "TIMEOUT"
        assert result.details["polls"] >= 1

    @pytest.mark.anyio
    async def test_description_override(self, fake_page, timing) -> None:
        result = await wait_for(fake_page, ".x", 10, timing=timing, description="the editor")
        assert result.error.endswith("waiting for the editor")

    @pytest.mark.anyio
    async def test_evaluation_error_counts_as_not_yet(self, fake_page, timing) -> None:
        state = {"n": 0}

        def flaky(arg):
            state["n"] += 1
            if state["n"] == 1:
                raise RuntimeError("Execution context was destroyed")
            return True

        fake_page.on("FLAKY", flaky)
        result = await wait_for(fake_page, JsCondition("FLAKY"), 1000, timing=timing)
        assert result.success
        assert result.details["polls"] == 2

    @pytest.mark.anyio
    async def test_target_present(self, fake_page, timing, profile) -> None:
        fake_page.on(scripts.TARGET_EXISTS_JS, lambda arg: True)
        target = profile.target("tag_input")

        result = await wait_for(fake_page, target_present(target), 50, timing=timing)

        assert result.success
        assert fake_page.calls(scripts.TARGET_EXISTS_JS) == [{"locators": target.to_js()}]
