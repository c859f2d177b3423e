"""Article body preparation: image decoding, path rewriting, rendering."""

from __future__ import annotations

import base64
import binascii
import logging

import markdown

from noet.exceptions import InvalidParamsError
from noet.models.article import SUPPORTED_IMAGE_TYPES, BodyFormat, ImagePayload

logger = logging.getLogger(__name__)

_MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]


def decode_image(payload: ImagePayload) -> bytes:
    """Decode the base64 data of *payload*.

    Raises:
        InvalidParamsError: If the data is not valid base64, is empty, or
            the MIME type is unsupported.
    """
    if payload.mime_type not in SUPPORTED_IMAGE_TYPES:
        raise InvalidParamsError(f"Unsupported image type: {payload.mime_type}")
    data = payload.data
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidParamsError(f"Image {payload.filename}: invalid base64 data") from exc
    if not raw:
        raise InvalidParamsError(f"Image {payload.filename}: empty data")
    return raw


def rewrite_local_paths(body: str, mapping: dict[str, str]) -> str:
    """Replace every occurrence of each local path in *body* with its URL.

    Longer paths are replaced first so that a path which is a prefix of
    another (``img/a.png`` vs ``img/a.png.bak``) cannot corrupt it.
    """
    for local_path in sorted(mapping, key=len, reverse=True):
        if not local_path:
            continue
        count = body.count(local_path)
        if count:
            body = body.replace(local_path, mapping[local_path])
            logger.debug("Rewrote %d reference(s) to %s", count, local_path)
    return body


def render_body(body: str, body_format: BodyFormat = BodyFormat.MARKDOWN) -> str:
    """Return the HTML placed into the editor."""
    if body_format == BodyFormat.HTML:
        return body
    return markdown.markdown(body, extensions=_MARKDOWN_EXTENSIONS)
