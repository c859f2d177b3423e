"""Command dispatcher — the single boundary between transports and flows.

``dispatch`` is total: whatever the request looks like and whatever a flow
raises, it returns a wire response carrying the request's ``id``. The
dispatcher also owns the debug flag, which it hands to every flow through
its ``FlowContext`` rather than keeping it in a module global.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from pydantic import ValidationError

import noet
from noet.exceptions import InvalidParamsError, NoetError, UnknownCommandError
from noet.flows.context import FlowContext
from noet.models.article import (
    ComposeParams,
    DeleteArticleParams,
    GetArticleParams,
    ListArticlesParams,
    SetDebugModeParams,
    UpdateArticleParams,
    parse_params,
)
from noet.models.protocol import CommandName, CommandRequest, CommandResponse

if TYPE_CHECKING:
    from noet.browser.timing import RateLimiter
    from noet.flows.engine import FlowEngine

logger = logging.getLogger(__name__)

Handler = Callable[[FlowContext, dict[str, Any]], Awaitable[dict[str, Any]]]


class CommandDispatcher:
    """Maps command names to flows and every outcome to a response.

    Args:
        engine: Flow engine for the browser commands.
        debug_mode: Initial value of the debug flag.
        rate_limiter: Spacing enforced before each browser command.
    """

    def __init__(
        self,
        engine: FlowEngine,
        *,
        debug_mode: bool = False,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._engine = engine
        self._debug_mode = debug_mode
        self._rate_limiter = rate_limiter
        self._local: dict[str, Handler] = {
            CommandName.PING.value: self._ping,
            CommandName.SET_DEBUG_MODE.value: self._set_debug_mode,
            CommandName.GET_DEBUG_MODE.value: self._get_debug_mode,
        }
        self._browser: dict[str, Handler] = {
            CommandName.CHECK_AUTH.value: self._check_auth,
            CommandName.LIST_ARTICLES.value: self._list_articles,
            CommandName.GET_ARTICLE.value: self._get_article,
            CommandName.CREATE_ARTICLE.value: self._create_article,
            CommandName.UPDATE_ARTICLE.value: self._update_article,
            CommandName.DELETE_ARTICLE.value: self._delete_article,
        }

    @property
    def debug_mode(self) -> bool:
        return self._debug_mode

    @property
    def commands(self) -> list[str]:
        return sorted([*self._local, *self._browser])

    async def dispatch(self, raw: Any) -> dict[str, Any]:
        """Handle one decoded request and return the wire response.

        Never raises (except for task cancellation).
        """
        request_id = raw.get("id", "") if isinstance(raw, dict) else ""
        try:
            request = CommandRequest.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed request (id=%s): %s", request_id, exc.errors()[:1])
            return CommandResponse.failure(
                _echo_id(request_id), InvalidParamsError.code, "Malformed request"
            ).to_wire()

        try:
            data = await self._handle(request)
        except NoetError as exc:
            logger.info("Command %s (id=%s) failed: [%s] %s", request.command, request.id, exc.code, exc)
            return CommandResponse.failure(request.id, exc.code, str(exc)).to_wire()
        except Exception as exc:
            logger.exception("Command %s (id=%s) raised unexpectedly", request.command, request.id)
            code = getattr(exc, "code", None)
            return CommandResponse.failure(
                request.id, code if isinstance(code, str) and code else "UNKNOWN", str(exc) or type(exc).__name__
            ).to_wire()
        return CommandResponse.success(request.id, data).to_wire()

    async def _handle(self, request: CommandRequest) -> dict[str, Any]:
        ctx = FlowContext(request_id=request.id, command=request.command, debug=self._debug_mode)
        handler = self._local.get(request.command)
        if handler is not None:
            return await handler(ctx, request.params)

        handler = self._browser.get(request.command)
        if handler is None:
            raise UnknownCommandError(request.command)
        return await handler(ctx, request.params)

    async def _pace(self) -> None:
        if self._rate_limiter is not None:
            waited = await self._rate_limiter.wait()
            if waited:
                logger.debug("Rate limiter held command for %.2fs", waited)

    # ------------------------------------------------------------------
    # Local commands (no browser)
    # ------------------------------------------------------------------

    async def _ping(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        return {"version": noet.__version__, "host": "noet"}

    async def _set_debug_mode(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        parsed = parse_params(SetDebugModeParams, params)
        self._debug_mode = parsed.enabled
        logger.info("Debug mode %s", "enabled" if parsed.enabled else "disabled")
        return {"debug_mode": self._debug_mode}

    async def _get_debug_mode(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        return {"debug_mode": self._debug_mode}

    # ------------------------------------------------------------------
    # Browser commands
    # ------------------------------------------------------------------

    async def _check_auth(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        await self._pace()
        return await self._engine.check_auth(ctx)

    async def _list_articles(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        parsed = parse_params(ListArticlesParams, params)
        await self._pace()
        return await self._engine.list_articles(ctx, parsed)

    async def _get_article(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        parsed = parse_params(GetArticleParams, params)
        await self._pace()
        return await self._engine.get_article(ctx, parsed)

    async def _create_article(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        parsed = parse_params(ComposeParams, params)
        await self._pace()
        return await self._engine.create_article(ctx, parsed)

    async def _update_article(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        parsed = parse_params(UpdateArticleParams, params)
        await self._pace()
        return await self._engine.update_article(ctx, parsed)

    async def _delete_article(self, ctx: FlowContext, params: dict[str, Any]) -> dict[str, Any]:
        parsed = parse_params(DeleteArticleParams, params)
        await self._pace()
        return await self._engine.delete_article(ctx, parsed)


def _echo_id(value: Any) -> str | int:
    return value if isinstance(value, (str, int)) and not isinstance(value, bool) else ""
