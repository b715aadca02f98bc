from __future__ import annotations

import inspect
import json
import math
from typing import Any, TypeVar

from pydantic import BaseModel

from .types import FinishReason, LogProb, Usage

WireModel = TypeVar("WireModel", bound=BaseModel)

_FINISH_REASONS = {
    "stop": FinishReason.STOP,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
    "function_call": FinishReason.TOOL_CALLS,
    "tool_calls": FinishReason.TOOL_CALLS,
}


def map_finish_reason(finish_reason: str | None) -> FinishReason:
    if finish_reason is None:
        return FinishReason.UNKNOWN
    return _FINISH_REASONS.get(finish_reason, FinishReason.OTHER)


def map_usage(usage: Any, default: float = math.nan) -> Usage:
    """Read prompt/completion token counts, each one independently optional."""

    if usage is None:
        return Usage(prompt_tokens=default, completion_tokens=default)

    prompt_tokens = getattr(usage, "prompt_tokens", None)
    completion_tokens = getattr(usage, "completion_tokens", None)
    return Usage(
        prompt_tokens=default if prompt_tokens is None else prompt_tokens,
        completion_tokens=default if completion_tokens is None else completion_tokens,
    )


def map_chat_logprobs(logprobs: Any) -> list[LogProb] | None:
    content = getattr(logprobs, "content", None)
    if content is None:
        return None

    return [
        LogProb(
            token=item.token,
            logprob=item.logprob,
            top_logprobs=[(top.token, top.logprob) for top in item.top_logprobs or []],
        )
        for item in content
    ]


def map_completion_logprobs(logprobs: Any) -> list[LogProb] | None:
    tokens = getattr(logprobs, "tokens", None)
    if tokens is None:
        return None

    token_logprobs = logprobs.token_logprobs or []
    top_logprobs = logprobs.top_logprobs
    mapped: list[LogProb] = []

    for index, token in enumerate(tokens):
        top = top_logprobs[index] if top_logprobs and index < len(top_logprobs) else None
        mapped.append(
            LogProb(
                token=token,
                logprob=token_logprobs[index] if index < len(token_logprobs) else math.nan,
                top_logprobs=list((top or {}).items()),
            )
        )

    return mapped


def coerce_wire(model: type[WireModel], raw: Any) -> WireModel:
    """Validate an SDK response object or a plain mapping into a wire schema."""

    if isinstance(raw, model):
        return raw
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    return model.model_validate(raw)


def is_parsable_json(text: str) -> bool:
    try:
        json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return False
    return True


def _reject_constant(name: str) -> float:
    raise ValueError(f"{name} is not valid JSON")


async def release_stream(chunks: Any) -> None:
    """Close an upstream chunk source so its HTTP response goes back to the pool."""

    close = getattr(chunks, "aclose", None) or getattr(chunks, "close", None)
    if close is None:
        return
    result = close()
    if inspect.isawaitable(result):
        await result
