from __future__ import annotations

import json
import logging
import math
from typing import Any, AsyncIterator, assert_never

from fastapi.responses import JSONResponse, StreamingResponse

from portkey_provider.core.errors import map_upstream_error
from portkey_provider.core.types import (
    CallWarning,
    FinishEvent,
    GenerationRequest,
    GenerationResult,
    LogProb,
    ModelSettings,
    StreamEvent,
    TextDeltaEvent,
    ToolCallDeltaEvent,
    ToolCallEvent,
)

logger = logging.getLogger(__name__)

WARNINGS_HEADER = "X-Portkey-Provider-Warnings"


class GenerateRequest(GenerationRequest):
    model: str
    stream: bool = False
    settings: ModelSettings | None = None


async def generation_response(language_model: Any, payload: GenerateRequest):
    if payload.stream:
        result = await language_model.do_stream(payload)
        headers = warning_headers(result.warnings)
        headers["Cache-Control"] = "no-cache"

        return StreamingResponse(
            _sse_events(result.stream),
            media_type="text/event-stream",
            headers=headers,
        )

    result = await language_model.do_generate(payload)
    return JSONResponse(
        content=result_payload(result),
        headers=warning_headers(result.warnings),
    )


def warning_headers(warnings: list[CallWarning]) -> dict[str, str]:
    if not warnings:
        return {}

    value = " | ".join(_dedupe_preserve_order([warning.describe() for warning in warnings]))
    if len(value) > 2048:
        value = value[:2045] + "..."
    return {WARNINGS_HEADER: value}


def result_payload(result: GenerationResult) -> dict[str, Any]:
    return {
        "text": result.text,
        "tool_calls": (
            [event_payload(tool_call) for tool_call in result.tool_calls]
            if result.tool_calls is not None
            else None
        ),
        "finish_reason": result.finish_reason.value,
        "usage": result.usage.to_payload(),
        "logprobs": _logprobs_payload(result.logprobs),
        "warnings": [_warning_payload(warning) for warning in result.warnings],
        "raw_call": {
            "raw_prompt": result.raw_call.raw_prompt,
            "raw_settings": result.raw_call.raw_settings,
        },
    }


def event_payload(event: StreamEvent) -> dict[str, Any]:
    if isinstance(event, TextDeltaEvent):
        return {"type": event.type, "text": event.text}
    if isinstance(event, ToolCallDeltaEvent):
        return {
            "type": event.type,
            "tool_call_id": event.tool_call_id,
            "tool_name": event.tool_name,
            "args_text_delta": event.args_text_delta,
        }
    if isinstance(event, ToolCallEvent):
        return {
            "type": event.type,
            "tool_call_id": event.tool_call_id,
            "tool_name": event.tool_name,
            "args": event.args,
        }
    if isinstance(event, FinishEvent):
        return {
            "type": event.type,
            "finish_reason": event.finish_reason.value,
            "usage": event.usage.to_payload(),
            "logprobs": _logprobs_payload(event.logprobs),
        }
    assert_never(event)


async def _sse_events(stream: AsyncIterator[StreamEvent]) -> AsyncIterator[bytes]:
    try:
        async for event in stream:
            yield _sse_data(event_payload(event))
    except Exception as exc:
        mapped = map_upstream_error(exc)
        logger.warning("Stream aborted: %s", mapped.message)
        yield _sse_data({"error": mapped.to_error()})

    yield b"data: [DONE]\n\n"


def _logprobs_payload(logprobs: list[LogProb] | None) -> list[dict[str, Any]] | None:
    if logprobs is None:
        return None
    return [
        {
            "token": logprob.token,
            "logprob": _finite(logprob.logprob),
            "top_logprobs": [
                {"token": token, "logprob": _finite(value)} for token, value in logprob.top_logprobs
            ],
        }
        for logprob in logprobs
    ]


def _finite(value: float | None) -> float | None:
    if value is None or math.isnan(value):
        return None
    return value


def _warning_payload(warning: CallWarning) -> dict[str, Any]:
    return {"type": warning.type, "setting": warning.setting, "details": warning.details}


def _sse_data(payload: dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def _dedupe_preserve_order(items: list[str]) -> list[str]:
    seen: set[str] = set()
    deduped: list[str] = []

    for item in items:
        if item in seen:
            continue
        seen.add(item)
        deduped.append(item)

    return deduped
