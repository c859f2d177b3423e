"""Command protocol shared by every transport.

Request::

    {"id": "...", "command": "get_article", "params": {...}}

Response (exactly one of ``data`` / ``error``)::

    {"id": "...", "status": "success", "data": {...}}
    {"id": "...", "status": "error", "error": {"code": "...", "message": "..."}}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field, field_validator, model_validator

RequestId = Union[str, int]


class CommandName(str, Enum):
    """Commands the dispatcher understands."""

    PING = "ping"
    CHECK_AUTH = "check_auth"
    LIST_ARTICLES = "list_articles"
    GET_ARTICLE = "get_article"
    CREATE_ARTICLE = "create_article"
    UPDATE_ARTICLE = "update_article"
    DELETE_ARTICLE = "delete_article"
    SET_DEBUG_MODE = "set_debug_mode"
    GET_DEBUG_MODE = "get_debug_mode"


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class CommandRequest(BaseModel):
    """Inbound request from the controller."""

    id: RequestId = ""
    command: str
    params: dict[str, Any] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class ErrorInfo(BaseModel):
    code: str
    message: str


class CommandResponse(BaseModel):
    """Outbound response; ``id`` is the request's id, echoed verbatim."""

    id: RequestId = ""
    status: ResponseStatus
    data: dict[str, Any] | None = None
    error: ErrorInfo | None = None

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> "CommandResponse":
        if (self.data is None) == (self.error is None):
            raise ValueError("exactly one of data/error must be set")
        if self.status == ResponseStatus.SUCCESS and self.data is None:
            raise ValueError("success response requires data")
        if self.status == ResponseStatus.ERROR and self.error is None:
            raise ValueError("error response requires error")
        return self

    @classmethod
    def success(cls, request_id: RequestId, data: dict[str, Any]) -> CommandResponse:
        return cls(id=request_id, status=ResponseStatus.SUCCESS, data=data)

    @classmethod
    def failure(cls, request_id: RequestId, code: str, message: str) -> CommandResponse:
        return cls(
            id=request_id,
            status=ResponseStatus.ERROR,
            error=ErrorInfo(code=code, message=message),
        )

    def to_wire(self) -> dict[str, Any]:
        """Plain dict for JSON framing, without the absent payload key."""
        out: dict[str, Any] = {"id": self.id, "status": self.status.value}
        if self.error is not None:
            out["error"] = self.error.model_dump()
        else:
            out["data"] = self.data
        return out
