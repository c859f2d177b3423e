"""Tests for the step library against a scripted page."""

from __future__ import annotations

import base64

import pytest

from noet.browser import scripts
from noet.browser.steps import StepLibrary, step
from noet.models.results import StepResult

ASSET = "https://assets.st-note.com/production/uploads/images/1/picture.png"


@pytest.fixture()
def steps(fake_page, profile, timing) -> StepLibrary:
    return StepLibrary(fake_page, profile, timing, probe_timeout_ms=50, upload_timeout_ms=50)


def _clicked(arg):
    return {"clicked": True, "root_found": True, "label": arg["labels"][0]}


def _context_destroyed(arg):
    raise RuntimeError("Execution context was destroyed")


class TestStepDecorator:
    @pytest.mark.anyio
    async def test_exception_becomes_failure(self) -> None:
        @step("explode")
        async def explode() -> StepResult:
            raise RuntimeError("detached")

        result = await explode()
        assert not result.success
        assert result.error == "explode failed: detached"


class TestFillField:
    @pytest.mark.anyio
    async def test_fills_and_reports_ok(self, steps, fake_page) -> None:
        fake_page.on(scripts.FILL_FIELD_JS, lambda a: {"found": True, "editable": True})

        result = await steps.fill_field("title_input", "Hello")

        assert result.success
        arg = fake_page.calls(scripts.FILL_FIELD_JS)[0]
        assert arg["value"] == "Hello"
        assert arg["html"] is False
        assert arg["blur"] is True
        assert arg["locators"] == steps.profile.target("title_input").to_js()

    @pytest.mark.anyio
    async def test_missing_field_names_the_control(self, steps, fake_page) -> None:
        fake_page.on(scripts.FILL_FIELD_JS, lambda a: {"found": False})

        result = await steps.fill_field("title_input", "Hello")

        assert not result.success
        assert result.error == "Title input not found"

    @pytest.mark.anyio
    async def test_not_editable(self, steps, fake_page) -> None:
        fake_page.on(scripts.FILL_FIELD_JS, lambda a: {"found": True, "editable": False})
        result = await steps.fill_field("body_editor", "<p>x</p>", html=True)
        assert result.error == "Body editor is not editable"

    @pytest.mark.anyio
    async def test_enter_value_presses_enter(self, steps, fake_page) -> None:
        fake_page.on(scripts.FILL_FIELD_JS, lambda a: {"found": True, "editable": True})

        result = await steps.enter_value("tag_input", "python")

        assert result.success
        assert fake_page.keyboard.pressed == ["Enter"]
        assert fake_page.calls(scripts.FILL_FIELD_JS)[0]["blur"] is False

    @pytest.mark.anyio
    async def test_enter_value_skips_enter_when_missing(self, steps, fake_page) -> None:
        result = await steps.enter_value("tag_input", "python")
        assert result.error == "Tag input not found"
        assert fake_page.keyboard.pressed == []


class TestClicking:
    @pytest.mark.anyio
    async def test_click_by_text(self, steps, fake_page) -> None:
        fake_page.on(scripts.CLICK_TEXT_JS, _clicked)

        result = await steps.click_by_text("下書き保存")

        assert result.success
        assert result.value == "下書き保存"
        assert fake_page.calls(scripts.CLICK_TEXT_JS)[0] == {"labels": ["下書き保存"], "exact": False, "root": None}

    @pytest.mark.anyio
    async def test_click_by_text_missing(self, steps, fake_page) -> None:
        fake_page.on(scripts.CLICK_TEXT_JS, lambda a: {"clicked": False, "root_found": True})

        result = await steps.click_by_text(["公開に進む", "Publish"])

        assert result.error == "公開に進む button not found"
        assert result.details["root_found"] is True

    @pytest.mark.anyio
    async def test_click_target_missing(self, steps) -> None:
        result = await steps.click_target("header_image_button")
        assert result.error == "Header image button not found"

    @pytest.mark.anyio
    async def test_confirm_in_dialog(self, steps, fake_page) -> None:
        fake_page.on(scripts.CLICK_TEXT_JS, _clicked)

        result = await steps.confirm_dialog(["削除する", "削除"])

        assert result.success
        assert result.details["via"] == "dialog"
        assert fake_page.calls(scripts.CLICK_TEXT_JS)[0]["root"] == steps.profile.target("dialog").to_js()

    @pytest.mark.anyio
    async def test_confirm_falls_back_to_page_buttons(self, steps, fake_page) -> None:
        def click(arg):
            if arg["root"] is not None:
                return {"clicked": False, "root_found": False}
            return _clicked(arg)

        fake_page.on(scripts.CLICK_TEXT_JS, click)

        result = await steps.confirm_dialog(["削除する", "削除"])

        assert result.success
        assert result.details["via"] == "page"
        assert fake_page.calls(scripts.CLICK_TEXT_JS)[1]["exact"] is True

    @pytest.mark.anyio
    async def test_confirm_skips_controls_clicked_before(self, steps, fake_page) -> None:
        fake_page.on(scripts.CLICK_TEXT_JS, _clicked)

        await steps.click_by_text("削除", exact=True)
        await steps.confirm_dialog(["削除する", "削除"])

        menu_click, confirm_click = fake_page.calls(scripts.CLICK_TEXT_JS)
        assert "skip_clicked" not in menu_click
        assert confirm_click["skip_clicked"] is True

    @pytest.mark.anyio
    async def test_confirm_not_found(self, steps, fake_page) -> None:
        fake_page.on(scripts.CLICK_TEXT_JS, lambda a: {"clicked": False, "root_found": True})
        result = await steps.confirm_dialog(["削除する"])
        assert result.error == "削除する confirmation button not found"


class TestPageReads:
    @pytest.mark.anyio
    async def test_read_article_passes_profile_targets(self, steps, fake_page) -> None:
        fake_page.on(scripts.ARTICLE_PAGE_JS, lambda a: {"title": "Hello"})

        result = await steps.read_article()

        assert result.value == {"title": "Hello"}
        assert fake_page.calls(scripts.ARTICLE_PAGE_JS)[0]["title"] == steps.profile.target("article_title").to_js()

    @pytest.mark.anyio
    async def test_read_article_empty_page(self, steps) -> None:
        assert (await steps.read_article()).value == {}

    @pytest.mark.anyio
    async def test_read_auth_status_evaluation_error(self, steps, fake_page) -> None:
        fake_page.on(scripts.AUTH_STATUS_JS, _context_destroyed)
        result = await steps.read_auth_status()
        assert result.error == "read_auth_status failed: Execution context was destroyed"


class TestRows:
    ROWS = [
        {"title": "First", "href": "https://note.com/alice/n/n111", "text": "First 公開中", "date": ""},
        {"title": "Second", "href": "https://note.com/alice/n/n222", "text": "Second 下書き", "date": ""},
    ]

    @pytest.mark.anyio
    async def test_open_row_menu_clicks_matching_index(self, steps, fake_page) -> None:
        fake_page.on(scripts.LIST_ROWS_JS, lambda a: self.ROWS)
        fake_page.on(scripts.CLICK_TARGET_JS, lambda a: True)

        result = await steps.open_row_menu("n222")

        assert result.success
        assert result.value == 1
        assert fake_page.calls(scripts.CLICK_TARGET_JS)[0]["index"] == 1

    @pytest.mark.anyio
    async def test_open_row_menu_unknown_key(self, steps, fake_page) -> None:
        fake_page.on(scripts.LIST_ROWS_JS, lambda a: self.ROWS)

        result = await steps.open_row_menu("n999")

        assert result.error == "Article with key n999 not found"
        assert result.code == "NOT_FOUND"
        assert fake_page.calls(scripts.CLICK_TARGET_JS) == []

    @pytest.mark.anyio
    async def test_open_row_menu_button_gone(self, steps, fake_page) -> None:
        fake_page.on(scripts.LIST_ROWS_JS, lambda a: self.ROWS)
        fake_page.on(scripts.CLICK_TARGET_JS, lambda a: False)
        result = await steps.open_row_menu("n111")
        assert result.error == "More button not found"

    @pytest.mark.anyio
    async def test_read_rows_evaluation_error_is_failure(self, steps, fake_page) -> None:
        fake_page.on(scripts.LIST_ROWS_JS, _context_destroyed)

        result = await steps.read_rows()

        assert not result.success
        assert result.error == "read_rows failed: Execution context was destroyed"

    @pytest.mark.anyio
    async def test_open_row_menu_reports_read_failure(self, steps, fake_page) -> None:
        fake_page.on(scripts.LIST_ROWS_JS, _context_destroyed)
        result = await steps.open_row_menu("n111")
        assert result.error == "read_rows failed: Execution context was destroyed"
        assert fake_page.calls(scripts.CLICK_TARGET_JS) == []

    @pytest.mark.anyio
    async def test_add_magazine_messages(self, steps, fake_page) -> None:
        fake_page.on(scripts.MAGAZINE_ADD_JS, lambda a: {"found": False, "clicked": False})
        assert (await steps.add_magazine("Tech")).error == "Magazine Tech not found"

        fake_page.on(scripts.MAGAZINE_ADD_JS, lambda a: {"found": True, "clicked": False})
        assert (await steps.add_magazine("Tech")).error == "Add button for magazine Tech not found"

        fake_page.on(scripts.MAGAZINE_ADD_JS, lambda a: {"found": True, "clicked": True})
        assert (await steps.add_magazine("Tech")).success


class TestUploads:
    @pytest.mark.anyio
    async def test_upload_returns_hosted_url(self, steps, fake_page) -> None:
        sources = iter([[], ["blob:https://note.com/1"], [ASSET]])
        fake_page.on(scripts.IMAGE_SOURCES_JS, lambda a: next(sources))
        fake_page.on(scripts.UPLOAD_FILE_JS, lambda a: {"found": True, "mode": "drop"})

        result = await steps.upload_image(b"\x89PNG", "picture.png", "image/png")

        assert result.success
        assert result.value == ASSET
        upload = fake_page.calls(scripts.UPLOAD_FILE_JS)[0]
        assert base64.b64decode(upload["data"]) == b"\x89PNG"
        assert upload["filename"] == "picture.png"

    @pytest.mark.anyio
    async def test_previously_present_images_are_ignored(self, steps, fake_page) -> None:
        fake_page.on(scripts.IMAGE_SOURCES_JS, lambda a: [ASSET])
        fake_page.on(scripts.UPLOAD_FILE_JS, lambda a: {"found": True, "mode": "drop"})

        result = await steps.upload_image(b"x", "again.png", "image/png")

        assert not result.success
        assert result.error.startswith("Upload of again.png did not complete: Timed out after 50ms")
        assert result.code == "TIMEOUT"

    @pytest.mark.anyio
    async def test_upload_without_drop_target(self, steps, fake_page) -> None:
        fake_page.on(scripts.UPLOAD_FILE_JS, lambda a: {"found": False})
        result = await steps.upload_image(b"x", "a.png", "image/png")
        assert result.error == "Upload of a.png failed: image drop target not found"

    @pytest.mark.anyio
    async def test_header_image(self, steps, fake_page) -> None:
        header = "https://assets.st-note.com/production/uploads/images/2/header.jpeg"
        sources = iter([[], [header]])
        fake_page.on(scripts.IMAGE_SOURCES_JS, lambda a: next(sources))
        fake_page.on(scripts.CLICK_TARGET_JS, lambda a: True)
        fake_page.on(scripts.UPLOAD_FILE_JS, lambda a: {"found": True, "mode": "input"})

        result = await steps.upload_header_image(b"jpeg", "header.jpeg", "image/jpeg")

        assert result.success
        assert result.value == header
        assert fake_page.calls(scripts.IMAGE_SOURCES_JS)[0] == {"root": None}
        assert fake_page.calls(scripts.UPLOAD_FILE_JS)[0]["locators"] == steps.profile.target("header_image_input").to_js()

    @pytest.mark.anyio
    async def test_header_image_button_missing(self, steps, fake_page) -> None:
        fake_page.on(scripts.IMAGE_SOURCES_JS, lambda a: [])
        result = await steps.upload_header_image(b"jpeg", "header.jpeg", "image/jpeg")
        assert result.error == "Header image upload failed: Header image button not found"
