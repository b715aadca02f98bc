from __future__ import annotations

import logging
from typing import Any

from .types import CallWarning, GenerationRequest, ModelSettings, RawCall

logger = logging.getLogger(__name__)


def sampling_args(request: GenerationRequest, settings: ModelSettings) -> dict[str, Any]:
    """Sampling parameters with per-model defaults filled in where the request is silent."""

    return {
        "max_tokens": _prefer(request.max_tokens, settings.max_tokens),
        "temperature": _prefer(request.temperature, settings.temperature),
        "top_p": _prefer(request.top_p, settings.top_p),
        "frequency_penalty": _prefer(request.frequency_penalty, settings.frequency_penalty),
        "presence_penalty": _prefer(request.presence_penalty, settings.presence_penalty),
        "seed": request.seed,
    }


def merge_stop_sequences(*groups: list[str] | None) -> list[str] | None:
    stop: list[str] = []
    for group in groups:
        stop.extend(group or [])
    return stop or None


def top_k_warnings(request: GenerationRequest) -> list[CallWarning]:
    if request.top_k is None:
        return []
    return [CallWarning(type="unsupported-setting", setting="topK")]


def without_none(args: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in args.items() if value is not None}


def request_body(
    model_id: str,
    settings: ModelSettings,
    args: dict[str, Any],
    *,
    stream: bool,
) -> dict[str, Any]:
    """Final body handed to the transport: model, pass-through settings, then args."""

    body: dict[str, Any] = {"model": model_id}
    body.update(settings.model_extra or {})
    body.update(args)
    body["stream"] = stream
    logger.debug(
        "Dispatching %s call to %s with settings %s",
        "streaming" if stream else "blocking",
        model_id,
        sorted(key for key in body if key not in {"messages", "prompt"}),
    )
    return body


def split_raw_call(args: dict[str, Any], prompt_key: str) -> RawCall:
    raw_settings = {key: value for key, value in args.items() if key != prompt_key}
    return RawCall(raw_prompt=args.get(prompt_key), raw_settings=raw_settings)


def log_warnings(model_id: str, warnings: list[CallWarning]) -> None:
    for warning in warnings:
        logger.debug("Call to %s degraded: %s", model_id, warning.describe())


def _prefer(value: Any, default: Any) -> Any:
    return default if value is None else value
