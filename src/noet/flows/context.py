"""Per-invocation flow state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from noet.exceptions import StepFailedError
from noet.models.article import ArticleImage
from noet.models.results import StepResult

if TYPE_CHECKING:
    from playwright.async_api import Page

    from noet.models.protocol import RequestId


@dataclass
class FlowContext:
    """State owned by one command invocation; never shared across commands.

    ``debug`` is the value of the dispatcher's debug flag at the time the
    command was received and decides whether the page stays open.
    """

    request_id: RequestId
    command: str
    debug: bool = False
    page: Page | None = None
    uploaded_images: list[ArticleImage] = field(default_factory=list)
    header_image_url: str | None = None
    artifacts: dict[str, Any] = field(default_factory=dict)

    def path_mapping(self) -> dict[str, str]:
        """``local_path -> uploaded_url`` for every uploaded content image."""
        return {img.local_path: img.uploaded_url for img in self.uploaded_images if img.local_path}


def require(result: StepResult) -> StepResult:
    """Return *result* if it succeeded, else abort the flow with it."""
    if not result.success:
        raise StepFailedError(result)
    return result
