"""Tests for body preparation: image decoding, path rewriting, rendering."""

from __future__ import annotations

import base64

import pytest

from noet.exceptions import InvalidParamsError
from noet.flows.content import decode_image, render_body, rewrite_local_paths
from noet.models.article import BodyFormat, ImagePayload


def _image(data: str) -> ImagePayload:
    return ImagePayload(data=data, mime_type="image/png", filename="pic.png")


class TestDecodeImage:
    def test_plain_base64(self) -> None:
        assert decode_image(_image(base64.b64encode(b"\x89PNG").decode())) == b"\x89PNG"

    def test_data_url_prefix(self) -> None:
        payload = "data:image/png;base64," + base64.b64encode(b"png").decode()
        assert decode_image(_image(payload)) == b"png"

    def test_invalid_base64(self) -> None:
        with pytest.raises(InvalidParamsError, match="pic.png: invalid base64"):
            decode_image(_image("@@@"))

    def test_empty_after_prefix(self) -> None:
        with pytest.raises(InvalidParamsError, match="empty data"):
            decode_image(_image("data:image/png;base64,"))


class TestRewriteLocalPaths:
    def test_replaces_every_occurrence(self) -> None:
        body = "![a](img/a.png) and again img/a.png"
        assert rewrite_local_paths(body, {"img/a.png": "https://x/a.png"}) == (
            "![a](https://x/a.png) and again https://x/a.png"
        )

    def test_longer_path_first(self) -> None:
        body = "![a](img/a.png) ![b](img/a.png.orig)"
        mapping = {"img/a.png": "https://x/1", "img/a.png.orig": "https://x/2"}
        assert rewrite_local_paths(body, mapping) == "![a](https://x/1) ![b](https://x/2)"

    def test_empty_mapping(self) -> None:
        assert rewrite_local_paths("text", {}) == "text"


class TestRenderBody:
    def test_markdown(self) -> None:
        html = render_body("## Title\n\n- one\n- two\n")
        assert "<h2>Title</h2>" in html
        assert "<li>one</li>" in html

    def test_markdown_tables(self) -> None:
        html = render_body("| a | b |\n|---|---|\n| 1 | 2 |\n")
        assert "<table>" in html

    def test_html_passthrough(self) -> None:
        assert render_body("<p>raw</p>", BodyFormat.HTML) == "<p>raw</p>"
