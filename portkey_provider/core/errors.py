from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import openai


@dataclass
class GatewayError(Exception):
    status_code: int
    message: str
    code: str | None = None
    param: str | None = None

    def __str__(self) -> str:
        return self.message

    def to_error(self) -> dict[str, Any]:
        if self.status_code == 429:
            error_type = "rate_limit_error"
        elif self.status_code >= 500:
            error_type = "server_error"
        else:
            error_type = "invalid_request_error"

        return {
            "message": self.message,
            "type": error_type,
            "param": self.param,
            "code": self.code,
        }


class UnsupportedFunctionalityError(GatewayError):
    """A requested feature has no representation in the target wire format."""

    def __init__(self, functionality: str) -> None:
        super().__init__(
            status_code=400,
            message=f"'{functionality}' functionality not supported.",
            code="unsupported_functionality",
            param=functionality,
        )
        self.functionality = functionality


class UnsupportedToolChoiceError(GatewayError):
    def __init__(self, tool_choice: str) -> None:
        super().__init__(
            status_code=400,
            message=f"Unsupported tool choice type: {tool_choice}",
            code="unsupported_tool_choice",
            param="tool_choice",
        )
        self.tool_choice = tool_choice


class InvalidPromptError(GatewayError):
    def __init__(self, message: str) -> None:
        super().__init__(
            status_code=400,
            message=message,
            code="invalid_prompt",
            param="prompt",
        )


class InvalidResponseDataError(GatewayError):
    """The upstream stream broke the incremental tool-call contract."""

    def __init__(self, data: Any, message: str) -> None:
        super().__init__(
            status_code=502,
            message=f"Invalid response data: {message}",
            code="invalid_response_data",
        )
        self.data = data


class NoChoiceError(GatewayError):
    def __init__(self) -> None:
        super().__init__(
            status_code=502,
            message="No choice in response.",
            code="no_choice",
        )


def map_upstream_error(exc: Exception) -> GatewayError:
    """Map transport (openai SDK) exceptions to gateway errors."""

    if isinstance(exc, GatewayError):
        return exc

    if isinstance(exc, openai.APITimeoutError):
        return GatewayError(
            status_code=504,
            message=f"Upstream request timed out: {exc}",
            code="upstream_timeout",
        )

    if isinstance(exc, openai.APIConnectionError):
        return GatewayError(
            status_code=502,
            message=f"Could not reach upstream: {exc}",
            code="upstream_unreachable",
        )

    if isinstance(exc, openai.APIStatusError):
        return GatewayError(
            status_code=exc.status_code,
            message=_upstream_message(exc),
            code=getattr(exc, "code", None) or "upstream_error",
            param=getattr(exc, "param", None),
        )

    return GatewayError(
        status_code=500,
        message=f"Unexpected server error: {exc}",
        code="internal_error",
    )


def _upstream_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        return json.dumps(body, ensure_ascii=False)
    return exc.message
