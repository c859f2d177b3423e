"""Unit tests for the protocol, parameter and result models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from noet.exceptions import InvalidParamsError, StepFailedError
from noet.models.article import (
    Article,
    ComposeParams,
    DeleteArticleParams,
    GetArticleParams,
    ImagePayload,
    ListArticlesParams,
    SetDebugModeParams,
    UpdateArticleParams,
    parse_params,
)
from noet.models.protocol import CommandRequest, CommandResponse, ResponseStatus
from noet.models.results import StepResult


# ===================================================================
# Protocol
# ===================================================================


class TestCommandRequest:
    def test_params_default_to_empty(self) -> None:
        req = CommandRequest.model_validate({"id": "1", "command": "ping"})
        assert req.params == {}

    def test_null_params_become_empty(self) -> None:
        req = CommandRequest.model_validate({"id": "1", "command": "ping", "params": None})
        assert req.params == {}

    def test_integer_id_kept(self) -> None:
        req = CommandRequest.model_validate({"id": 7, "command": "ping"})
        assert req.id == 7

    def test_missing_command_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CommandRequest.model_validate({"id": "1"})


class TestCommandResponse:
    def test_success_wire_shape(self) -> None:
        wire = CommandResponse.success("abc", {"x": 1}).to_wire()
        assert wire == {"id": "abc", "status": "success", "data": {"x": 1}}

    def test_failure_wire_shape(self) -> None:
        wire = CommandResponse.failure("abc", "NOT_FOUND", "gone").to_wire()
        assert wire == {"id": "abc", "status": "error", "error": {"code": "NOT_FOUND", "message": "gone"}}

    def test_none_values_inside_data_survive(self) -> None:
        wire = CommandResponse.success("1", {"logged_in": False, "username": None}).to_wire()
        assert wire["data"] == {"logged_in": False, "username": None}

    def test_both_payloads_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CommandResponse(
                id="1",
                status=ResponseStatus.SUCCESS,
                data={},
                error={"code": "X", "message": "y"},
            )

    def test_neither_payload_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CommandResponse(id="1", status=ResponseStatus.ERROR)

    def test_status_must_match_payload(self) -> None:
        with pytest.raises(ValidationError):
            CommandResponse(id="1", status=ResponseStatus.ERROR, data={})


# ===================================================================
# Parameters
# ===================================================================


class TestParams:
    def test_get_article_requires_both(self) -> None:
        with pytest.raises(InvalidParamsError, match="username and key are required"):
            parse_params(GetArticleParams, {"username": "alice", "key": ""})

    def test_get_article_strips(self) -> None:
        p = parse_params(GetArticleParams, {"username": " alice ", "key": "n1 "})
        assert (p.username, p.key) == ("alice", "n1")

    def test_list_page_must_be_positive(self) -> None:
        with pytest.raises(InvalidParamsError, match="page"):
            parse_params(ListArticlesParams, {"page": 0})

    def test_list_defaults(self) -> None:
        p = parse_params(ListArticlesParams, {})
        assert p.page == 1
        assert p.username is None

    def test_compose_requires_title(self) -> None:
        with pytest.raises(InvalidParamsError, match="title"):
            parse_params(ComposeParams, {"body": "x"})

    def test_compose_blank_title_rejected(self) -> None:
        with pytest.raises(InvalidParamsError, match="title must not be blank"):
            parse_params(ComposeParams, {"title": "   "})

    def test_tags_normalized(self) -> None:
        p = parse_params(ComposeParams, {"title": "t", "tags": ["#python", " python", "note", "", "#"]})
        assert p.tags == ["python", "note"]

    def test_magazines_deduped(self) -> None:
        p = parse_params(ComposeParams, {"title": "t", "magazines": ["A", " A", "B"]})
        assert p.magazines == ["A", "B"]

    def test_update_requires_key(self) -> None:
        with pytest.raises(InvalidParamsError, match="key"):
            parse_params(UpdateArticleParams, {"title": "t"})

    def test_delete_requires_key(self) -> None:
        with pytest.raises(InvalidParamsError):
            parse_params(DeleteArticleParams, {})

    def test_debug_mode_requires_real_bool(self) -> None:
        with pytest.raises(InvalidParamsError):
            parse_params(SetDebugModeParams, {"enabled": "yes"})
        assert parse_params(SetDebugModeParams, {"enabled": True}).enabled is True


class TestImagePayload:
    def test_jpg_alias(self) -> None:
        img = ImagePayload(data="AAAA", mime_type="image/JPG", filename="a.jpg")
        assert img.mime_type == "image/jpeg"

    def test_unsupported_type(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported image type"):
            ImagePayload(data="AAAA", mime_type="image/bmp", filename="a.bmp")

    def test_data_not_in_repr(self) -> None:
        img = ImagePayload(data="SECRETDATA", mime_type="image/png", filename="a.png")
        assert "SECRETDATA" not in repr(img)


class TestArticle:
    def test_to_result_shape(self) -> None:
        article = Article(key="n1", title="T", body="<p>b</p>", tags=["x"], published_at="2024", url="u")
        result = article.to_result()
        assert result == {
            "success": True,
            "key": "n1",
            "title": "T",
            "html": "<p>b</p>",
            "tags": ["x"],
            "published_at": "2024",
            "url": "u",
        }


# ===================================================================
# Step results
# ===================================================================


class TestStepResult:
    def test_ok_is_truthy(self) -> None:
        assert StepResult.ok("v")
        assert StepResult.ok("v").value == "v"

    def test_fail_is_falsy(self) -> None:
        r = StepResult.fail("Title input not found")
        assert not r
        assert r.to_dict() == {"success": False, "error": "Title input not found"}

    def test_details_flatten_into_dict(self) -> None:
        assert StepResult.ok(via="dialog").to_dict() == {"success": True, "via": "dialog"}

    def test_step_failed_error_carries_message_and_code(self) -> None:
        err = StepFailedError(StepResult.fail("Article with key n9 not found", code="NOT_FOUND"))
        assert str(err) == "Article with key n9 not found"
        assert err.code == "NOT_FOUND"

    def test_step_failed_error_default_code(self) -> None:
        assert StepFailedError(StepResult.fail("x")).code == "STEP_FAILED"
