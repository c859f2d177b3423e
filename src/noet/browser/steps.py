"""Step library — atomic browser actions that report instead of raising.

Each public method performs one probe+action against the current page and
returns a ``StepResult``. A missing control is a failure value whose
message names the control ("Title input not found"); an unexpected
exception inside a step is converted to a failure value as well, so the
flow engine sees exactly one kind of outcome.

Every interaction is followed by a human pause from ``HumanTiming``.
"""

from __future__ import annotations

import base64
import functools
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar

from noet.browser.probe import target_present, wait_for
from noet.browser.scripts import (
    ARTICLE_PAGE_JS,
    AUTH_STATUS_JS,
    CLICK_TARGET_JS,
    CLICK_TEXT_JS,
    FILL_FIELD_JS,
    IMAGE_SOURCES_JS,
    LIST_ROWS_JS,
    MAGAZINE_ADD_JS,
    UPLOAD_FILE_JS,
)
from noet.models.results import StepResult

if TYPE_CHECKING:
    from playwright.async_api import Page

    from noet.browser.timing import HumanTiming
    from noet.site.locators import SiteProfile

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[StepResult]])


def step(name: str) -> Callable[[F], F]:
    """Decorator: convert any exception raised by a step into a failure."""

    def decorator(fn: F) -> F:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> StepResult:
            try:
                result = await fn(*args, **kwargs)
            except Exception as exc:
                logger.warning("Step %s raised: %s", name, exc, exc_info=True)
                return StepResult.fail(f"{name} failed: {exc}")
            if not result.success:
                logger.warning("Step %s failed: %s", name, result.error)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


class StepLibrary:
    """Catalog of atomic actions bound to one page.

    Args:
        page: The page owned by the current flow.
        profile: Locator profile for the site.
        timing: Human pacing model.
        probe_timeout_ms: Default bound for element waits.
        upload_timeout_ms: Bound for upload completion waits.
    """

    def __init__(
        self,
        page: Page,
        profile: SiteProfile,
        timing: HumanTiming,
        *,
        probe_timeout_ms: int = 15_000,
        upload_timeout_ms: int = 30_000,
    ) -> None:
        self.page = page
        self.profile = profile
        self.timing = timing
        self.probe_timeout_ms = probe_timeout_ms
        self.upload_timeout_ms = upload_timeout_ms

    # ------------------------------------------------------------------
    # Waits
    # ------------------------------------------------------------------

    @step("wait_for_target")
    async def wait_for_target(self, name: str, timeout_ms: int | None = None) -> StepResult:
        """Wait until the named profile target exists on the page."""
        target = self.profile.target(name)
        return await wait_for(
            self.page,
            target_present(target),
            timeout_ms or self.probe_timeout_ms,
            timing=self.timing,
        )

    @step("wait_for_url")
    async def wait_for_url(self, marker: str, timeout_ms: int | None = None) -> StepResult:
        """Wait until the page URL contains *marker*."""

        async def url_contains() -> str | None:
            return self.page.url if marker in self.page.url else None

        return await wait_for(
            self.page,
            url_contains,
            timeout_ms or self.probe_timeout_ms,
            timing=self.timing,
            description=f"URL containing {marker!r}",
        )

    @step("wait_for_url_change")
    async def wait_for_url_change(self, previous_url: str, timeout_ms: int | None = None) -> StepResult:
        """Wait until the page has navigated away from *previous_url*."""

        async def url_changed() -> str | None:
            return self.page.url if self.page.url != previous_url else None

        return await wait_for(
            self.page,
            url_changed,
            timeout_ms or self.probe_timeout_ms,
            timing=self.timing,
            description="navigation away from the current page",
        )

    # ------------------------------------------------------------------
    # Field input
    # ------------------------------------------------------------------

    @step("fill_field")
    async def fill_field(self, name: str, value: str, *, html: bool = False, blur: bool = True) -> StepResult:
        """Set the value of an input, textarea or contenteditable target.

        Fires the focus/input/change/blur events the editor's reactive
        framework listens for, then waits as long as typing would take.
        """
        target = self.profile.target(name)
        outcome = await self.page.evaluate(
            FILL_FIELD_JS,
            {"locators": target.to_js(), "value": value, "html": html, "blur": blur},
        )
        if not outcome or not outcome.get("found"):
            return StepResult.fail(f"{target.description} not found")
        if not outcome.get("editable", True):
            return StepResult.fail(f"{target.description} is not editable")
        await self.timing.typing(len(value))
        return StepResult.ok()

    @step("enter_value")
    async def enter_value(self, name: str, value: str) -> StepResult:
        """Fill a field and confirm it with an Enter keystroke (tag entry)."""
        filled = await self.fill_field(name, value, blur=False)
        if not filled:
            return filled
        await self.page.keyboard.press("Enter")
        await self.timing.action_pause()
        return StepResult.ok(value)

    # ------------------------------------------------------------------
    # Clicking
    # ------------------------------------------------------------------

    @step("click_by_text")
    async def click_by_text(
        self,
        labels: str | list[str],
        *,
        exact: bool = False,
        within: str | None = None,
        skip_clicked: bool = False,
    ) -> StepResult:
        """Click the first control whose visible text matches one of *labels*.

        Exact (trimmed) matches are preferred over substring matches; among
        equal matches the first in document order wins. With *within* the
        search is limited to the named profile target. With *skip_clicked*
        controls this page already clicked through this step are ignored.
        """
        labels = [labels] if isinstance(labels, str) else list(labels)
        args: dict[str, Any] = {"labels": labels, "exact": exact, "root": None}
        if within:
            args["root"] = self.profile.target(within).to_js()
        if skip_clicked:
            args["skip_clicked"] = True
        outcome = await self.page.evaluate(CLICK_TEXT_JS, args)
        if not outcome or not outcome.get("clicked"):
            return StepResult.fail(
                f"{labels[0]} button not found",
                root_found=bool(outcome and outcome.get("root_found")),
            )
        await self.timing.action_pause()
        return StepResult.ok(outcome.get("label", labels[0]))

    @step("click_target")
    async def click_target(self, name: str, *, index: int = 0) -> StepResult:
        """Click the *index*-th element matched by the named profile target."""
        target = self.profile.target(name)
        clicked = await self.page.evaluate(CLICK_TARGET_JS, {"locators": target.to_js(), "index": index})
        if not clicked:
            return StepResult.fail(f"{target.description} not found")
        await self.timing.action_pause()
        return StepResult.ok()

    @step("confirm_dialog")
    async def confirm_dialog(self, labels: list[str]) -> StepResult:
        """Confirm a destructive action.

        The confirmation renders either inside a modal or as an inline
        control depending on where the flow entered, so the modal is tried
        first and the whole page second. The menu item that opened the
        confirmation may still be on the page with the same label, so
        controls clicked earlier are skipped.
        """
        in_dialog = await self.click_by_text(labels, within="dialog", skip_clicked=True)
        if in_dialog:
            return StepResult.ok(in_dialog.value, via="dialog")
        logger.debug("No confirmation inside a dialog (%s); scanning page buttons", in_dialog.error)
        on_page = await self.click_by_text(labels, exact=True, skip_clicked=True)
        if on_page:
            return StepResult.ok(on_page.value, via="page")
        return StepResult.fail(f"{labels[0]} confirmation button not found")

    # ------------------------------------------------------------------
    # Page reads
    # ------------------------------------------------------------------

    @step("read_auth_status")
    async def read_auth_status(self) -> StepResult:
        p = self.profile
        status = await self.page.evaluate(
            AUTH_STATUS_JS,
            {
                "post_button": p.target("post_button").to_js(),
                "avatar": p.target("avatar").to_js(),
                "profile_link": p.target("profile_link").to_js(),
            },
        )
        return StepResult.ok(status or {})

    @step("read_article")
    async def read_article(self) -> StepResult:
        """Title, body HTML, hashtags and timestamp of a public article page."""
        p = self.profile
        raw = await self.page.evaluate(
            ARTICLE_PAGE_JS,
            {
                "title": p.target("article_title").to_js(),
                "body": p.target("article_body").to_js(),
                "hashtag": p.target("article_hashtag").to_js(),
                "time": p.target("article_time").to_js(),
            },
        )
        return StepResult.ok(raw or {})

    # ------------------------------------------------------------------
    # Article list rows
    # ------------------------------------------------------------------

    @step("read_rows")
    async def read_rows(self) -> StepResult:
        """Raw rows of the article list, in document order of their menus."""
        p = self.profile
        rows = await self.page.evaluate(
            LIST_ROWS_JS,
            {
                "more_actions": p.target("more_actions").to_js(),
                "row_title": p.target("row_title").to_js(),
                "article_link": p.target("article_link").to_js(),
                "row_date": p.target("row_date").to_js(),
                "ancestors": p.row_ancestors,
                "hops": p.row_parent_hops,
            },
        )
        return StepResult.ok(list(rows or []))

    @step("open_row_menu")
    async def open_row_menu(self, key: str) -> StepResult:
        """Find the list row for article *key* and open its action menu."""
        read = await self.read_rows()
        if not read:
            return read
        index = next(
            (i for i, row in enumerate(read.value) if self.profile.match_key(row.get("href", "")) == key),
            None,
        )
        if index is None:
            return StepResult.fail(f"Article with key {key} not found", code="NOT_FOUND")
        await self.timing.reading_pause()
        clicked = await self.click_target("more_actions", index=index)
        if not clicked:
            return StepResult.fail("More button not found")
        return StepResult.ok(index)

    # ------------------------------------------------------------------
    # Publish settings
    # ------------------------------------------------------------------

    @step("add_magazine")
    async def add_magazine(self, magazine: str) -> StepResult:
        """Click the add control on the magazine row named exactly *magazine*."""
        p = self.profile
        outcome = await self.page.evaluate(
            MAGAZINE_ADD_JS,
            {
                "item": p.target("magazine_item").to_js(),
                "name": p.target("magazine_name").to_js(),
                "add": p.target("magazine_add").to_js(),
                "magazine": magazine,
            },
        )
        if not outcome or not outcome.get("found"):
            return StepResult.fail(f"Magazine {magazine} not found")
        if not outcome.get("clicked"):
            return StepResult.fail(f"Add button for magazine {magazine} not found")
        await self.timing.action_pause()
        return StepResult.ok(magazine)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def _image_sources(self, root: str | None) -> list[str]:
        args = {"root": self.profile.target(root).to_js() if root else None}
        return list(await self.page.evaluate(IMAGE_SOURCES_JS, args) or [])

    async def _wait_for_hosted_image(self, before: list[str], root: str | None, label: str) -> StepResult:
        """Wait until a new asset-host image appears and no placeholder is left."""
        p = self.profile
        seen = set(before)

        async def hosted_image() -> str | None:
            sources = await self._image_sources(root)
            if any(src.startswith(scheme) for src in sources for scheme in p.placeholder_schemes):
                return None
            fresh = [src for src in sources if src not in seen and p.is_asset_url(src)]
            return fresh[-1] if fresh else None

        done = await wait_for(
            self.page,
            hosted_image,
            self.upload_timeout_ms,
            timing=self.timing,
            description=f"{label} to reach the asset host",
        )
        if not done:
            return StepResult.fail(f"Upload of {label} did not complete: {done.error}", code=done.code)
        return StepResult.ok(done.value)

    async def _set_file(self, name: str, data: bytes, filename: str, mime_type: str) -> dict[str, Any] | None:
        target = self.profile.target(name)
        return await self.page.evaluate(
            UPLOAD_FILE_JS,
            {
                "locators": target.to_js(),
                "data": base64.b64encode(data).decode("ascii"),
                "filename": filename,
                "mime_type": mime_type,
            },
        )

    @step("upload_image")
    async def upload_image(self, data: bytes, filename: str, mime_type: str) -> StepResult:
        """Drop an image into the body editor and wait for its hosted URL.

        Returns:
            ``StepResult.ok(url)`` with the asset-host URL of the image.
        """
        before = await self._image_sources("image_drop_target")
        outcome = await self._set_file("image_drop_target", data, filename, mime_type)
        if not outcome or not outcome.get("found"):
            return StepResult.fail(f"Upload of {filename} failed: image drop target not found")
        logger.info("Uploading image %s (%d bytes, %s)", filename, len(data), outcome.get("mode"))
        return await self._wait_for_hosted_image(before, "image_drop_target", filename)

    @step("upload_header_image")
    async def upload_header_image(self, data: bytes, filename: str, mime_type: str) -> StepResult:
        """Set the eyecatch image through the header image dialog."""
        before = await self._image_sources(None)
        opened = await self.click_target("header_image_button")
        if not opened:
            return StepResult.fail(f"Header image upload failed: {opened.error}")
        # Some layouts ask to choose between upload and gallery first.
        choice = await self.click_by_text(self.profile.text_variants("header_image_upload"))
        if not choice:
            logger.debug("No upload choice shown for the header image")

        outcome = await self._set_file("header_image_input", data, filename, mime_type)
        if not outcome or not outcome.get("found"):
            return StepResult.fail("Header image upload failed: header image file input not found")
        logger.info("Uploading header image %s (%d bytes)", filename, len(data))
        await self.timing.spa_render()

        # Crop dialog, when shown.
        confirmed = await self.click_by_text(self.profile.text_variants("header_image_confirm"), exact=True)
        if not confirmed:
            logger.debug("No crop confirmation shown for the header image")
        return await self._wait_for_hosted_image(before, None, f"header image {filename}")
