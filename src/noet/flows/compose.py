"""Editor stages shared by ``create_article`` and ``update_article``.

Once the editor is open both commands do the same thing: fill the title,
upload the header image and content images, rewrite the body's local image
references, fill the body, then either save a draft or go through the
publish-settings page. Every stage is gated by a step result; the first
failure aborts the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from noet.flows.content import decode_image, render_body, rewrite_local_paths
from noet.flows.context import require
from noet.models.article import ArticleImage, ImagePayload

if TYPE_CHECKING:
    from noet.browser.steps import StepLibrary
    from noet.flows.context import FlowContext
    from noet.models.article import ComposeParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedImage:
    """An image payload with its bytes already decoded."""

    payload: ImagePayload
    data: bytes


def prepare_images(params: ComposeParams) -> tuple[list[PreparedImage], PreparedImage | None]:
    """Decode every image before the browser is touched.

    Raises:
        InvalidParamsError: On any undecodable image.
    """
    images = [PreparedImage(img, decode_image(img)) for img in params.images]
    header = PreparedImage(params.header_image, decode_image(params.header_image)) if params.header_image else None
    return images, header


class Composer:
    """Drives the note.com editor for one command."""

    def __init__(self, steps: StepLibrary, ctx: FlowContext) -> None:
        self.steps = steps
        self.ctx = ctx

    async def fill(
        self,
        params: ComposeParams,
        images: list[PreparedImage],
        header: PreparedImage | None,
    ) -> None:
        """Fill title, images and body; leaves the editor ready to save."""
        steps = self.steps
        require(await steps.fill_field("title_input", params.title))
        await steps.timing.action_pause()

        if header is not None:
            result = require(
                await steps.upload_header_image(header.data, header.payload.filename, header.payload.mime_type)
            )
            self.ctx.header_image_url = result.value
            await steps.timing.action_pause()

        for image in images:
            result = require(
                await steps.upload_image(image.data, image.payload.filename, image.payload.mime_type)
            )
            self.ctx.uploaded_images.append(
                ArticleImage(
                    local_path=image.payload.local_path,
                    uploaded_url=result.value,
                    caption=image.payload.caption,
                )
            )
            await steps.timing.action_pause()

        body = rewrite_local_paths(params.body, self.ctx.path_mapping())
        self.ctx.artifacts["body"] = body
        html = render_body(body, params.body_format)
        require(await steps.fill_field("body_editor", html, html=True))
        await steps.timing.reading_pause()

    async def save_draft(self) -> None:
        steps = self.steps
        require(await steps.click_by_text(steps.profile.text_variants("draft_save")))
        await steps.timing.page_settle()

    async def publish(self, params: ComposeParams) -> str:
        """Go through the publish-settings page and return the published URL.

        The publish button opens a separate page (not a dialog); tags are
        entered one by one with Enter, magazines are added by exact name,
        then the final button labelled with the literal publish text is
        clicked.
        """
        steps = self.steps
        profile = steps.profile

        require(await steps.click_by_text(profile.text_variants("publish_proceed")))
        require(await steps.wait_for_url(profile.urls.publish_marker))
        require(await steps.wait_for_target("tag_input"))
        await steps.timing.page_settle()

        for tag in params.tags:
            require(await steps.enter_value("tag_input", tag))

        for magazine in params.magazines:
            require(await steps.add_magazine(magazine))

        before = steps.page.url
        require(await steps.click_by_text(profile.text("publish"), exact=True))
        # The article is live once this click lands.
        changed = await steps.wait_for_url_change(before)
        if not changed:
            logger.warning("Publish clicked but page did not navigate: %s", changed.error)
        await steps.timing.page_settle()
        url = steps.page.url
        logger.info("Published %s", url)
        return url

    def result(self, status: str, url: str | None = None) -> dict[str, Any]:
        """Terminal data shape of the compose flows."""
        return {
            "success": True,
            "status": status,
            "url": url,
            "uploaded_images": [img.model_dump() for img in self.ctx.uploaded_images],
            "header_image_url": self.ctx.header_image_url,
        }
