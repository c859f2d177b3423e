"""Collect the local images a Markdown article references.

Each ``![caption](path)`` pointing at a local file becomes an image
payload whose ``local_path`` is the reference exactly as written, so the
agent can rewrite it to the uploaded URL.
"""

from __future__ import annotations

import base64
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from noet.exceptions import InvalidParamsError

logger = logging.getLogger(__name__)

_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")

MIME_TYPES: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

_HOSTED_MARKERS = ("st-note.com",)


@dataclass(frozen=True)
class ImageReference:
    caption: str
    path: str


def extract_image_references(markdown: str) -> list[ImageReference]:
    """All image references in document order, remote ones included."""
    return [ImageReference(caption=m.group(1), path=m.group(2).strip()) for m in _IMAGE_RE.finditer(markdown)]


def guess_mime_type(path: Path) -> str:
    try:
        return MIME_TYPES[path.suffix.lower()]
    except KeyError:
        raise InvalidParamsError(f"Unsupported image format: {path.suffix or path.name}") from None


def collect_images(markdown_path: Path, markdown: str) -> list[dict[str, Any]]:
    """Build ``images`` payloads for every local image in *markdown*.

    Remote URLs and images already hosted on note.com are skipped, as are
    references whose file does not exist (with a warning).
    """
    base_dir = markdown_path.resolve().parent
    images: list[dict[str, Any]] = []
    seen: set[str] = set()

    for ref in extract_image_references(markdown):
        if ref.path.startswith(("http://", "https://")) or any(m in ref.path for m in _HOSTED_MARKERS):
            continue
        if ref.path in seen:
            continue
        image_path = Path(ref.path) if Path(ref.path).is_absolute() else base_dir / ref.path
        if not image_path.is_file():
            logger.warning("Image file not found: %s (referenced as %s)", image_path, ref.path)
            continue
        seen.add(ref.path)
        images.append(
            {
                "local_path": ref.path,
                "filename": image_path.name,
                "caption": ref.caption,
                "mime_type": guess_mime_type(image_path),
                "data": base64.b64encode(image_path.read_bytes()).decode("ascii"),
            }
        )
    return images


def header_image_payload(path: Path) -> dict[str, Any]:
    """Payload for ``header_image`` from a local file."""
    if not path.is_file():
        raise InvalidParamsError(f"Header image not found: {path}")
    return {
        "filename": path.name,
        "mime_type": guess_mime_type(path),
        "data": base64.b64encode(path.read_bytes()).decode("ascii"),
    }
