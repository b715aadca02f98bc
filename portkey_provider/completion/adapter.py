from __future__ import annotations

import logging
from typing import Any, AsyncIterable, AsyncIterator, assert_never

from portkey_provider.core.arguments import (
    log_warnings,
    merge_stop_sequences,
    request_body,
    sampling_args,
    split_raw_call,
    top_k_warnings,
    without_none,
)
from portkey_provider.core.errors import (
    NoChoiceError,
    UnsupportedFunctionalityError,
    map_upstream_error,
)
from portkey_provider.core.mapping import (
    coerce_wire,
    map_completion_logprobs,
    map_finish_reason,
    map_usage,
    release_stream,
)
from portkey_provider.core.types import (
    PROVIDER_NAME,
    ArgsResult,
    FinishEvent,
    FinishReason,
    GenerationRequest,
    GenerationResult,
    LogProb,
    ModelSettings,
    ObjectJsonMode,
    ObjectToolMode,
    RegularMode,
    StreamEvent,
    StreamResult,
    TextDeltaEvent,
    Usage,
)

from .prompt import convert_to_completion_prompt
from .schemas import Completion

logger = logging.getLogger(__name__)


def get_completion_args(
    request: GenerationRequest,
    settings: ModelSettings | None = None,
) -> ArgsResult:
    settings = settings or ModelSettings()
    mode = request.mode

    if isinstance(mode, RegularMode):
        if mode.tools:
            raise UnsupportedFunctionalityError("tools")
        if mode.tool_choice is not None:
            raise UnsupportedFunctionalityError("toolChoice")
    elif isinstance(mode, ObjectJsonMode):
        raise UnsupportedFunctionalityError("object-json mode")
    elif isinstance(mode, ObjectToolMode):
        raise UnsupportedFunctionalityError("object-tool mode")
    else:
        assert_never(mode)

    if request.response_format is not None and request.response_format.type != "text":
        raise UnsupportedFunctionalityError("responseFormat")

    warnings = top_k_warnings(request)
    completion_prompt = convert_to_completion_prompt(request.prompt, request.input_format)

    args: dict[str, Any] = {
        **sampling_args(request, settings),
        "prompt": completion_prompt.prompt,
        "stop": merge_stop_sequences(
            completion_prompt.stop_sequences,
            request.stop_sequences,
            settings.stop,
        ),
        "stream": False,
    }
    return ArgsResult(args=without_none(args), warnings=warnings)


async def transform_completion_stream(
    chunks: AsyncIterable[Any],
) -> AsyncIterator[StreamEvent]:
    finish_reason = FinishReason.UNKNOWN
    usage = Usage(prompt_tokens=0, completion_tokens=0)
    logprobs: list[LogProb] | None = None

    try:
        async for raw_chunk in chunks:
            chunk = coerce_wire(Completion, raw_chunk)

            if chunk.usage is not None:
                usage = map_usage(chunk.usage, default=0)

            choice = chunk.choices[0] if chunk.choices else None
            if choice is None:
                continue

            if choice.finish_reason is not None:
                finish_reason = map_finish_reason(choice.finish_reason)

            if choice.text is not None:
                yield TextDeltaEvent(text=choice.text)

            mapped_logprobs = map_completion_logprobs(choice.logprobs)
            if mapped_logprobs:
                if logprobs is None:
                    logprobs = []
                logprobs.extend(mapped_logprobs)
    finally:
        await release_stream(chunks)

    logger.info("Completion stream finished (reason=%s)", finish_reason)
    yield FinishEvent(finish_reason=finish_reason, usage=usage, logprobs=logprobs)


class PortkeyCompletionLanguageModel:
    specification_version = "v1"
    default_object_generation_mode = "json"

    def __init__(
        self,
        model_id: str,
        client: Any,
        settings: ModelSettings | None = None,
        provider_name: str | None = None,
    ) -> None:
        self.model_id = model_id
        self.client = client
        self.settings = settings or ModelSettings()
        self.provider = f"{PROVIDER_NAME}-{provider_name}" if provider_name else PROVIDER_NAME

    async def do_generate(self, request: GenerationRequest) -> GenerationResult:
        prepared = get_completion_args(request, self.settings)
        log_warnings(self.model_id, prepared.warnings)
        body = request_body(self.model_id, self.settings, prepared.args, stream=False)

        try:
            raw_response = await self.client.completions.create(**body)
        except Exception as exc:
            raise map_upstream_error(exc) from exc

        response = coerce_wire(Completion, raw_response)
        if not response.choices:
            raise NoChoiceError()
        choice = response.choices[0]

        return GenerationResult(
            text=choice.text,
            finish_reason=map_finish_reason(choice.finish_reason),
            usage=map_usage(response.usage, default=0),
            logprobs=map_completion_logprobs(choice.logprobs),
            raw_call=split_raw_call(prepared.args, "prompt"),
            warnings=prepared.warnings,
        )

    async def do_stream(self, request: GenerationRequest) -> StreamResult:
        prepared = get_completion_args(request, self.settings)
        log_warnings(self.model_id, prepared.warnings)
        body = request_body(self.model_id, self.settings, prepared.args, stream=True)

        try:
            chunks = await self.client.completions.create(**body)
        except Exception as exc:
            raise map_upstream_error(exc) from exc

        return StreamResult(
            stream=transform_completion_stream(chunks),
            raw_call=split_raw_call(prepared.args, "prompt"),
            warnings=prepared.warnings,
        )
