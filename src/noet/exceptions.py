"""noet exception hierarchy.

Every exception carries a protocol ``code``; the command dispatcher turns
whatever escapes a flow into ``{"code": exc.code, "message": str(exc)}``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from noet.models.results import StepResult


class NoetError(Exception):
    """Base exception for all noet-specific errors."""

    code: str = "UNKNOWN"


class InvalidParamsError(NoetError):
    """Raised when command parameters are missing or malformed."""

    code = "INVALID_PARAMS"


class NotFoundError(NoetError):
    """Raised when the targeted article cannot be located."""

    code = "NOT_FOUND"


class UnknownCommandError(NoetError):
    """Raised for a command name the dispatcher has no handler for."""

    def __init__(self, command: str) -> None:
        self.command = command
        super().__init__(f"Unknown command: {command}")


class StepFailedError(NoetError):
    """Raised by a flow when one of its steps reports failure.

    The message is the step's own error text, unchanged.

    Attributes:
        result: The failed step result.
    """

    code = "STEP_FAILED"

    def __init__(self, result: StepResult) -> None:
        self.result = result
        if result.code:
            self.code = result.code
        super().__init__(result.error or "Step failed")


class NavigationError(NoetError):
    """Raised when navigation fails for a reason that retrying cannot fix."""

    code = "NAVIGATION_FAILED"

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class TransportError(NoetError):
    """Raised inside a transport adapter for channel-level failures."""

    code = "TRANSPORT"


class FrameError(TransportError):
    """Raised when one message cannot be framed for the channel.

    The channel itself is still usable; only that message is lost.
    """
