"""Command dispatch: request validation, flow routing and error mapping."""

from noet.dispatch.dispatcher import CommandDispatcher

__all__ = ["CommandDispatcher"]
