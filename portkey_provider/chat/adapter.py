from __future__ import annotations

import logging
import uuid
from typing import Any, AsyncIterable, AsyncIterator, NoReturn, assert_never

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
    InvalidResponseDataError,
    NoChoiceError,
    UnsupportedToolChoiceError,
    map_upstream_error,
)
from portkey_provider.core.mapping import (
    coerce_wire,
    is_parsable_json,
    map_chat_logprobs,
    map_finish_reason,
    map_usage,
    release_stream,
)
from portkey_provider.core.types import (
    PROVIDER_NAME,
    ArgsResult,
    CallWarning,
    FinishEvent,
    FinishReason,
    FunctionTool,
    GenerationRequest,
    GenerationResult,
    ModelSettings,
    ObjectJsonMode,
    ObjectToolMode,
    PendingToolCall,
    RegularMode,
    StreamEvent,
    StreamResult,
    TextDeltaEvent,
    ToolCallDeltaEvent,
    ToolCallEvent,
    Usage,
)

from .prompt import convert_to_chat_messages
from .schemas import ChatCompletion, ChatCompletionChunk, ChatToolCall

logger = logging.getLogger(__name__)

JSON_OBJECT_FORMAT = {"type": "json_object"}


def get_chat_completion_args(
    request: GenerationRequest,
    settings: ModelSettings | None = None,
) -> ArgsResult:
    settings = settings or ModelSettings()
    warnings = top_k_warnings(request)

    response_format = request.response_format
    if (
        response_format is not None
        and response_format.type == "json"
        and response_format.json_schema_definition is not None
    ):
        warnings.append(
            CallWarning(
                type="unsupported-setting",
                setting="responseFormat",
                details="JSON response format schema is not supported",
            )
        )

    args: dict[str, Any] = {
        **sampling_args(request, settings),
        "stop": merge_stop_sequences(request.stop_sequences, settings.stop),
        "response_format": (
            JSON_OBJECT_FORMAT
            if response_format is not None and response_format.type == "json"
            else None
        ),
        "messages": convert_to_chat_messages(request.prompt),
    }

    mode = request.mode
    if isinstance(mode, RegularMode):
        args.update(_prepare_tools(mode))
    elif isinstance(mode, ObjectJsonMode):
        args["response_format"] = JSON_OBJECT_FORMAT
    elif isinstance(mode, ObjectToolMode):
        args["tool_choice"] = {"type": "function", "function": {"name": mode.tool.name}}
        args["tools"] = [_wire_tool(mode.tool)]
    else:
        assert_never(mode)

    args["stream"] = False
    return ArgsResult(args=without_none(args), warnings=warnings)


def _prepare_tools(mode: RegularMode) -> dict[str, Any]:
    if not mode.tools:
        return {"tools": None, "tool_choice": None}

    tools = [_wire_tool(tool) for tool in mode.tools]
    tool_choice = mode.tool_choice

    if tool_choice is None:
        return {"tools": tools, "tool_choice": None}

    if tool_choice.type in {"auto", "none", "required"}:
        return {"tools": tools, "tool_choice": tool_choice.type}

    if tool_choice.type == "tool":
        return {
            "tools": tools,
            "tool_choice": {
                "type": "function",
                "function": {"name": tool_choice.tool_name},
            },
        }

    raise UnsupportedToolChoiceError(tool_choice.type)


def _wire_tool(tool: FunctionTool) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        },
    }


async def transform_chat_stream(chunks: AsyncIterable[Any]) -> AsyncIterator[StreamEvent]:
    """Decode chat completion chunks into canonical stream events.

    Tool calls arrive split across chunks and are keyed by their index. The
    first fragment for an index must carry the id and function name; later
    fragments only extend the arguments text. A ``tool-call`` event is emitted
    every time the accumulated arguments parse as JSON, so the last one per id
    is authoritative.

    A chunk without a delta ends decoding. Exactly one ``finish`` event closes
    the stream.
    """

    tool_calls: dict[int, PendingToolCall] = {}
    finish_reason = FinishReason.UNKNOWN
    usage = Usage()

    try:
        async for raw_chunk in chunks:
            chunk = coerce_wire(ChatCompletionChunk, raw_chunk)

            if chunk.usage is not None:
                usage = map_usage(chunk.usage)

            choice = chunk.choices[0] if chunk.choices else None

            if choice is not None and choice.finish_reason is not None:
                finish_reason = map_finish_reason(choice.finish_reason)

            if choice is None or choice.delta is None:
                break

            delta = choice.delta

            if delta.content is not None:
                yield TextDeltaEvent(text=delta.content)

            for tool_call_delta in delta.tool_calls or []:
                for event in _apply_tool_call_delta(tool_calls, tool_call_delta):
                    yield event
    finally:
        await release_stream(chunks)

    logger.info(
        "Chat stream finished (reason=%s, tool_calls=%d)",
        finish_reason,
        len(tool_calls),
    )
    yield FinishEvent(finish_reason=finish_reason, usage=usage)


def _apply_tool_call_delta(
    tool_calls: dict[int, PendingToolCall],
    tool_call_delta: ChatToolCall,
) -> list[StreamEvent]:
    if tool_call_delta.index is None:
        return []

    function = tool_call_delta.function
    fragment = (function.arguments if function is not None else None) or ""
    tool_call = tool_calls.get(tool_call_delta.index)

    if tool_call is None:
        if tool_call_delta.type != "function":
            _reject(tool_call_delta, "Expected 'function' type.")
        if tool_call_delta.id is None:
            _reject(tool_call_delta, "Expected 'id' to be a string.")
        if function is None or function.name is None:
            _reject(tool_call_delta, "Expected 'function.name' to be a string.")

        tool_call = PendingToolCall(id=tool_call_delta.id, name=function.name)
        tool_calls[tool_call_delta.index] = tool_call

    tool_call.arguments += fragment
    events: list[StreamEvent] = [
        ToolCallDeltaEvent(
            tool_call_id=tool_call.id,
            tool_name=tool_call.name,
            args_text_delta=fragment,
        )
    ]

    if is_parsable_json(tool_call.arguments):
        events.append(
            ToolCallEvent(
                tool_call_id=tool_call.id,
                tool_name=tool_call.name,
                args=tool_call.arguments,
            )
        )

    return events


def _reject(tool_call_delta: ChatToolCall, message: str) -> NoReturn:
    logger.warning(
        "Rejecting tool call fragment at index %s: %s",
        tool_call_delta.index,
        message,
    )
    raise InvalidResponseDataError(data=tool_call_delta.model_dump(), message=message)


class PortkeyChatLanguageModel:
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
        prepared = get_chat_completion_args(request, self.settings)
        log_warnings(self.model_id, prepared.warnings)
        body = request_body(self.model_id, self.settings, prepared.args, stream=False)

        try:
            raw_response = await self.client.chat.completions.create(**body)
        except Exception as exc:
            raise map_upstream_error(exc) from exc

        response = coerce_wire(ChatCompletion, raw_response)
        choice = response.choices[0] if response.choices else None
        if choice is None or choice.message is None:
            raise NoChoiceError()

        message = choice.message
        tool_calls = None
        if message.tool_calls is not None:
            tool_calls = [
                ToolCallEvent(
                    tool_call_id=tool_call.id or f"portkey-tool-call-{uuid.uuid4().hex}",
                    tool_name=(tool_call.function.name if tool_call.function else None) or "",
                    args=(tool_call.function.arguments if tool_call.function else None) or "",
                )
                for tool_call in message.tool_calls
            ]

        return GenerationResult(
            text=message.content,
            tool_calls=tool_calls,
            finish_reason=map_finish_reason(choice.finish_reason),
            usage=map_usage(response.usage),
            logprobs=map_chat_logprobs(choice.logprobs),
            raw_call=split_raw_call(prepared.args, "messages"),
            warnings=prepared.warnings,
        )

    async def do_stream(self, request: GenerationRequest) -> StreamResult:
        prepared = get_chat_completion_args(request, self.settings)
        log_warnings(self.model_id, prepared.warnings)
        body = request_body(self.model_id, self.settings, prepared.args, stream=True)

        try:
            chunks = await self.client.chat.completions.create(**body)
        except Exception as exc:
            raise map_upstream_error(exc) from exc

        return StreamResult(
            stream=transform_chat_stream(chunks),
            raw_call=split_raw_call(prepared.args, "messages"),
            warnings=prepared.warnings,
        )
