"""Flow engine — one linear, early-abort flow per browser command.

Each flow runs entirely inside one ``BrowserSession.with_page`` call, so the
page is closed on every exit path. Stages are gated by step results; the
first failed ``StepResult`` is raised as ``StepFailedError`` and reaches
the dispatcher unchanged. Nothing is retried here: publishing, saving and
deleting happen at most once per command.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from noet.browser.probe import wait_for
from noet.browser.steps import StepLibrary
from noet.exceptions import NotFoundError
from noet.flows.compose import Composer, prepare_images
from noet.flows.context import require
from noet.models.article import Article, ArticleStatus, ArticleSummary

if TYPE_CHECKING:
    from playwright.async_api import Page

    from noet.browser.session import BrowserSession
    from noet.browser.timing import HumanTiming
    from noet.flows.context import FlowContext
    from noet.models.article import (
        ComposeParams,
        DeleteArticleParams,
        GetArticleParams,
        ListArticlesParams,
        UpdateArticleParams,
    )
    from noet.site.locators import SiteProfile

logger = logging.getLogger(__name__)

ARTICLE_NOT_FOUND = "Article not found or page did not load"

# Logged-out pages never show the post button; do not wait the full bound.
_AUTH_PROBE_MAX_MS = 5_000


def row_status(text: str, profile: SiteProfile) -> ArticleStatus:
    """Derive a list row's status from its localized text."""
    if any(label in text for label in profile.status_labels.draft):
        return ArticleStatus.DRAFT
    if any(label in text for label in profile.status_labels.published):
        return ArticleStatus.PUBLISHED
    return ArticleStatus.UNKNOWN


def summarize_rows(rows: list[dict[str, Any]], profile: SiteProfile) -> list[ArticleSummary]:
    """Turn raw list rows into summaries, dropping rows with neither title nor key."""
    summaries: list[ArticleSummary] = []
    for row in rows:
        title = (row.get("title") or "").strip()
        key = profile.match_key(row.get("href") or "")
        if not title and not key:
            logger.debug("Skipping list row without title or key")
            continue
        summaries.append(
            ArticleSummary(
                key=key,
                title=title,
                status=row_status(row.get("text") or "", profile),
                date=(row.get("date") or "").strip(),
            )
        )
    return summaries


class FlowEngine:
    """Composes steps, probes and pauses into the browser command flows.

    Args:
        session: Browser session providing scoped pages.
        profile: Locator profile for note.com.
        timing: Human pacing model.
        probe_timeout_ms: Default bound for element waits.
        upload_timeout_ms: Bound for each image upload.
    """

    def __init__(
        self,
        session: BrowserSession,
        profile: SiteProfile,
        timing: HumanTiming,
        *,
        probe_timeout_ms: int = 15_000,
        upload_timeout_ms: int = 30_000,
    ) -> None:
        self.session = session
        self.profile = profile
        self.timing = timing
        self.probe_timeout_ms = probe_timeout_ms
        self.upload_timeout_ms = upload_timeout_ms

    def steps_for(self, page: Page) -> StepLibrary:
        return StepLibrary(
            page,
            self.profile,
            self.timing,
            probe_timeout_ms=self.probe_timeout_ms,
            upload_timeout_ms=self.upload_timeout_ms,
        )

    async def _run(
        self,
        ctx: FlowContext,
        url: str,
        operation: Callable[[StepLibrary], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        """Run *operation* on a fresh page at *url*, logging start and finish."""
        logger.info("Flow %s started (id=%s, debug=%s)", ctx.command, ctx.request_id, ctx.debug)
        start = time.monotonic()

        async def on_page(page: Page) -> dict[str, Any]:
            ctx.page = page
            return await operation(self.steps_for(page))

        try:
            result = await self.session.with_page(url, on_page, debug=ctx.debug)
        except Exception as exc:
            logger.warning(
                "Flow %s failed (id=%s) after %.1fs: %s",
                ctx.command,
                ctx.request_id,
                time.monotonic() - start,
                exc,
            )
            raise
        finally:
            ctx.page = None
        logger.info("Flow %s finished (id=%s) in %.1fs", ctx.command, ctx.request_id, time.monotonic() - start)
        return result

    # ------------------------------------------------------------------
    # Read-only flows
    # ------------------------------------------------------------------

    async def check_auth(self, ctx: FlowContext) -> dict[str, Any]:
        """Report whether the browser profile is logged in to note.com."""
        p = self.profile

        async def operation(steps: StepLibrary) -> dict[str, Any]:
            await self.timing.page_settle()

            async def logged_in_marker() -> dict[str, Any] | None:
                read = await steps.read_auth_status()
                status = read.value if read else None
                return status if status and (status["has_post_button"] or status["has_avatar"]) else None

            probe = await wait_for(
                steps.page,
                logged_in_marker,
                min(self.probe_timeout_ms, _AUTH_PROBE_MAX_MS),
                timing=self.timing,
                description="post button or avatar",
            )
            if not probe:
                return {"logged_in": False, "username": None}
            return {"logged_in": True, "username": p.match_username(probe.value.get("profile_href", ""))}

        return await self._run(ctx, p.url("home"), operation)

    async def _open_article_list(self, steps: StepLibrary) -> None:
        await self.timing.page_settle()
        await self.timing.spa_render()
        # An empty list never shows a menu control; that is not a failure.
        await steps.wait_for_target("more_actions")

    async def list_articles(self, ctx: FlowContext, params: ListArticlesParams) -> dict[str, Any]:
        """Read one page of the signed-in user's article list."""
        url = self.profile.url("articles")
        if params.page > 1:
            url = f"{url}?page={params.page}"

        async def operation(steps: StepLibrary) -> dict[str, Any]:
            await self._open_article_list(steps)
            rows = require(await steps.read_rows()).value
            articles = summarize_rows(rows, self.profile)
            return {
                "articles": [a.model_dump(mode="json") for a in articles],
                "count": len(articles),
                "page": params.page,
            }

        return await self._run(ctx, url, operation)

    async def get_article(self, ctx: FlowContext, params: GetArticleParams) -> dict[str, Any]:
        """Read a public article page.

        A page showing neither title nor body yields the typed not-found
        result instead of an error.
        """
        p = self.profile
        url = p.url("article", username=params.username, key=params.key)

        async def operation(steps: StepLibrary) -> dict[str, Any]:
            await self.timing.page_settle()
            await self.timing.reading_pause()
            await steps.wait_for_target("article_title")
            raw = require(await steps.read_article()).value
            title = raw.get("title", "")
            html = raw.get("html", "")
            if not title and not html:
                return {"success": False, "error": ARTICLE_NOT_FOUND}
            tags = [t.lstrip("#").strip() for t in raw.get("tags", [])]
            article = Article(
                key=params.key,
                title=title,
                body=html,
                tags=[t for t in tags if t],
                status=ArticleStatus.PUBLISHED,
                published_at=raw.get("published_at", ""),
                url=raw.get("url") or url,
            )
            return article.to_result()

        return await self._run(ctx, url, operation)

    # ------------------------------------------------------------------
    # Side-effecting flows
    # ------------------------------------------------------------------

    async def create_article(self, ctx: FlowContext, params: ComposeParams) -> dict[str, Any]:
        """Compose a new article and save it as a draft or publish it."""
        images, header = prepare_images(params)

        async def operation(steps: StepLibrary) -> dict[str, Any]:
            await self.timing.editor_init()
            require(await steps.wait_for_target("title_input"))
            composer = Composer(steps, ctx)
            await composer.fill(params, images, header)
            if params.draft:
                await composer.save_draft()
                return composer.result("draft", steps.page.url)
            url = await composer.publish(params)
            return composer.result("published", url)

        return await self._run(ctx, self.profile.url("composer"), operation)

    async def _open_row_action(self, steps: StepLibrary, key: str, action: str) -> None:
        """Open the row menu of article *key* and click the *action* item."""
        await self._open_article_list(steps)
        menu = await steps.open_row_menu(key)
        if menu.code == NotFoundError.code:
            raise NotFoundError(menu.error)
        require(menu)
        require(await steps.click_by_text(self.profile.text_variants(action), exact=True))

    async def update_article(self, ctx: FlowContext, params: UpdateArticleParams) -> dict[str, Any]:
        """Open an existing article in the editor, then compose as for create."""
        images, header = prepare_images(params)

        async def operation(steps: StepLibrary) -> dict[str, Any]:
            await self._open_row_action(steps, params.key, "edit")
            require(await steps.wait_for_target("title_input"))
            await self.timing.editor_init()
            composer = Composer(steps, ctx)
            await composer.fill(params, images, header)
            if params.draft:
                await composer.save_draft()
                return {**composer.result("draft", steps.page.url), "key": params.key}
            url = await composer.publish(params)
            return {**composer.result("updated", url), "key": params.key}

        return await self._run(ctx, self.profile.url("articles"), operation)

    async def delete_article(self, ctx: FlowContext, params: DeleteArticleParams) -> dict[str, Any]:
        """Delete an article through its row menu and the confirmation."""

        async def operation(steps: StepLibrary) -> dict[str, Any]:
            await self._open_row_action(steps, params.key, "delete")
            await self.timing.action_pause()
            require(await steps.confirm_dialog(self.profile.text_variants("delete_confirm")))
            await self.timing.page_settle()
            logger.info("Deleted article %s", params.key)
            return {"success": True, "key": params.key}

        return await self._run(ctx, self.profile.url("articles"), operation)
