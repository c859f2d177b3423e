"""Locator profile models — which selectors and labels match which UI targets.

The profile is data, not code: when the site's markup drifts, the JSON file
changes and the flows stay the same. Each logical ``Target`` holds a
prioritized list of ``Locator`` strategies; the first one that resolves on
the live page wins.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

REQUIRED_TARGETS: frozenset[str] = frozenset(
    {
        "post_button",
        "avatar",
        "profile_link",
        "more_actions",
        "article_link",
        "row_title",
        "row_date",
        "article_title",
        "article_body",
        "article_hashtag",
        "article_time",
        "title_input",
        "body_editor",
        "header_image_button",
        "header_image_input",
        "image_drop_target",
        "tag_input",
        "magazine_item",
        "magazine_name",
        "magazine_add",
        "dialog",
    }
)

REQUIRED_TEXTS: frozenset[str] = frozenset(
    {
        "publish_proceed",
        "publish",
        "draft_save",
        "edit",
        "delete",
        "delete_confirm",
        "header_image_upload",
        "header_image_confirm",
    }
)


class LocatorStrategy(str, Enum):
    """How a locator's ``value`` is interpreted."""

    CSS = "css"
    PLACEHOLDER = "placeholder"
    ARIA_LABEL = "aria_label"
    TEXT = "text"


class Locator(BaseModel):
    """One way of finding an element."""

    strategy: LocatorStrategy = LocatorStrategy.CSS
    value: str = Field(..., min_length=1)
    exact: bool = False

    def to_js(self) -> dict[str, Any]:
        return {"strategy": self.strategy.value, "value": self.value, "exact": self.exact}


class Target(BaseModel):
    """A logical UI element with fallback locators, tried in order."""

    description: str
    locators: list[Locator] = Field(..., min_length=1)

    def to_js(self) -> list[dict[str, Any]]:
        return [loc.to_js() for loc in self.locators]


class SiteUrls(BaseModel):
    """URL templates; ``{base}``, ``{username}``, ``{key}`` are substituted."""

    home: str = "{base}/"
    articles: str = "{base}/notes"
    composer: str = "{base}/notes/new"
    article: str = "{base}/{username}/n/{key}"
    publish_marker: str = "/publish"


class StatusLabels(BaseModel):
    """Localized status text scanned for in list rows."""

    draft: list[str] = Field(default_factory=lambda: ["下書き"])
    published: list[str] = Field(default_factory=lambda: ["公開中"])


class SiteProfile(BaseModel):
    """Complete page-structure knowledge for one site."""

    name: str
    version: str = "1"
    base_url: str
    asset_hosts: list[str] = Field(..., min_length=1)
    placeholder_schemes: list[str] = Field(default_factory=lambda: ["blob:", "data:"])
    urls: SiteUrls = Field(default_factory=SiteUrls)
    targets: dict[str, Target]
    texts: dict[str, list[str]]
    status_labels: StatusLabels = Field(default_factory=StatusLabels)
    row_ancestors: list[str] = Field(default_factory=list)
    row_parent_hops: int = Field(default=3, ge=1, le=10)
    username_pattern: str = r"note\.com/([^/?#]+)"
    key_pattern: str = r"/n/([^/?#]+)"

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("username_pattern", "key_pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            compiled = re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regex: {e}") from e
        if compiled.groups < 1:
            raise ValueError("pattern needs one capture group")
        return v

    @field_validator("texts", mode="before")
    @classmethod
    def listify_texts(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: [val] if isinstance(val, str) else val for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def require_known_targets(self) -> "SiteProfile":
        missing = sorted(REQUIRED_TARGETS - self.targets.keys())
        if missing:
            raise ValueError(f"Missing locator targets: {', '.join(missing)}")
        missing_texts = sorted(REQUIRED_TEXTS - self.texts.keys())
        if missing_texts:
            raise ValueError(f"Missing text labels: {', '.join(missing_texts)}")
        return self

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def target(self, name: str) -> Target:
        return self.targets[name]

    def text(self, name: str) -> str:
        """Primary label for *name*."""
        return self.texts[name][0]

    def text_variants(self, name: str) -> list[str]:
        return list(self.texts[name])

    def url(self, name: str, **values: str) -> str:
        template: str = getattr(self.urls, name)
        return template.format(base=self.base_url, **values)

    def is_asset_url(self, url: str) -> bool:
        return any(host in url for host in self.asset_hosts)

    def match_username(self, href: str) -> str | None:
        m = re.search(self.username_pattern, href or "")
        return m.group(1) if m else None

    def match_key(self, href: str) -> str | None:
        m = re.search(self.key_pattern, href or "")
        return m.group(1) if m else None
