"""Article domain object and per-command parameter models.

Parameters are validated before any tab is opened; a validation failure is
reported to the controller as ``INVALID_PARAMS``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, Field, StrictBool, ValidationError, field_validator, model_validator

from noet.exceptions import InvalidParamsError

SUPPORTED_IMAGE_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})

ParamsT = TypeVar("ParamsT", bound=BaseModel)


class ArticleStatus(str, Enum):
    """Publication state as shown in the article list."""

    DRAFT = "draft"
    PUBLISHED = "published"
    UNKNOWN = "unknown"


class BodyFormat(str, Enum):
    MARKDOWN = "markdown"
    HTML = "html"


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class ImagePayload(BaseModel):
    """An image sent by the controller, base64-encoded.

    ``local_path`` is the placeholder the body was authored against; it is
    irrelevant for the header image.
    """

    data: str = Field(..., min_length=1, repr=False)
    mime_type: str
    filename: str
    local_path: str = ""
    caption: str = ""

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        v = v.strip().lower()
        if v == "image/jpg":
            v = "image/jpeg"
        if v not in SUPPORTED_IMAGE_TYPES:
            raise ValueError(f"Unsupported image type: {v}")
        return v


class ArticleImage(BaseModel):
    """An image after upload: where it came from and where it now lives."""

    local_path: str = ""
    uploaded_url: str
    caption: str = ""


# ---------------------------------------------------------------------------
# Domain object
# ---------------------------------------------------------------------------


class Article(BaseModel):
    """A note.com article as seen by one command; never persisted."""

    key: str | None = None
    title: str = ""
    body: str = ""
    body_format: BodyFormat = BodyFormat.HTML
    tags: list[str] = Field(default_factory=list)
    status: ArticleStatus = ArticleStatus.UNKNOWN
    magazines: list[str] = Field(default_factory=list)
    images: list[ArticleImage] = Field(default_factory=list)
    published_at: str = ""
    url: str = ""

    def to_result(self) -> dict[str, Any]:
        """Shape returned by ``get_article``."""
        return {
            "success": True,
            "key": self.key,
            "title": self.title,
            "html": self.body,
            "tags": list(self.tags),
            "published_at": self.published_at,
            "url": self.url,
        }


class ArticleSummary(BaseModel):
    """One row of the article list view."""

    key: str | None = None
    title: str = ""
    status: ArticleStatus = ArticleStatus.UNKNOWN
    date: str = ""


# ---------------------------------------------------------------------------
# Command parameters
# ---------------------------------------------------------------------------


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v and v not in seen:
            seen.add(v)
            out.append(v)
    return out


class ListArticlesParams(BaseModel):
    username: str | None = None
    page: int = Field(default=1, ge=1)


class GetArticleParams(BaseModel):
    username: str = ""
    key: str = ""

    @model_validator(mode="after")
    def require_username_and_key(self) -> "GetArticleParams":
        self.username = self.username.strip()
        self.key = self.key.strip()
        if not self.username or not self.key:
            raise ValueError("username and key are required")
        return self


class ComposeParams(BaseModel):
    """Parameters shared by ``create_article`` and ``update_article``."""

    title: str = Field(..., min_length=1)
    body: str = ""
    body_format: BodyFormat = BodyFormat.MARKDOWN
    tags: list[str] = Field(default_factory=list)
    magazines: list[str] = Field(default_factory=list)
    draft: bool = False
    images: list[ImagePayload] = Field(default_factory=list)
    header_image: ImagePayload | None = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Strip whitespace and a leading ``#``; drop blanks and duplicates."""
        return _dedupe([t.strip().lstrip("#").strip() for t in v])

    @field_validator("magazines")
    @classmethod
    def normalize_magazines(cls, v: list[str]) -> list[str]:
        return _dedupe([m.strip() for m in v])


class UpdateArticleParams(ComposeParams):
    key: str = Field(..., min_length=1)


class DeleteArticleParams(BaseModel):
    key: str = Field(..., min_length=1)


class SetDebugModeParams(BaseModel):
    enabled: StrictBool


def parse_params(model: type[ParamsT], params: dict[str, Any]) -> ParamsT:
    """Validate *params* against *model*, raising ``InvalidParamsError`` on failure."""
    try:
        return model.model_validate(params)
    except ValidationError as exc:
        raise InvalidParamsError(_format_validation_error(exc)) from exc


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "invalid parameters"
