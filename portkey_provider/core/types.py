from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Any, AsyncIterator, Literal

from pydantic import BaseModel, ConfigDict, Field

PROVIDER_NAME = "portkey"


class FinishReason(StrEnum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content-filter"
    TOOL_CALLS = "tool-calls"
    ERROR = "error"
    OTHER = "other"
    UNKNOWN = "unknown"


# Request side


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str

    model_config = ConfigDict(frozen=True)


class ImagePart(BaseModel):
    """Image given either as a URL string or as inline bytes."""

    type: Literal["image"] = "image"
    image: str | bytes
    mime_type: str | None = None

    model_config = ConfigDict(frozen=True)


class ToolCallPart(BaseModel):
    type: Literal["tool-call"] = "tool-call"
    tool_call_id: str
    tool_name: str
    args: Any = None

    model_config = ConfigDict(frozen=True)


class ToolResultPart(BaseModel):
    type: Literal["tool-result"] = "tool-result"
    tool_call_id: str
    tool_name: str
    result: Any = None

    model_config = ConfigDict(frozen=True)


class SystemMessage(BaseModel):
    role: Literal["system"] = "system"
    content: str

    model_config = ConfigDict(frozen=True)


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: list[Annotated[TextPart | ImagePart, Field(discriminator="type")]]

    model_config = ConfigDict(frozen=True)


class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: list[Annotated[TextPart | ToolCallPart, Field(discriminator="type")]]

    model_config = ConfigDict(frozen=True)


class ToolMessage(BaseModel):
    role: Literal["tool"] = "tool"
    content: list[ToolResultPart]

    model_config = ConfigDict(frozen=True)


Message = Annotated[
    SystemMessage | UserMessage | AssistantMessage | ToolMessage,
    Field(discriminator="role"),
]


class FunctionTool(BaseModel):
    type: Literal["function"] = "function"
    name: str
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class ToolChoice(BaseModel):
    # Open string so unknown tags surface as UnsupportedToolChoiceError.
    type: str
    tool_name: str | None = None

    model_config = ConfigDict(frozen=True)


class RegularMode(BaseModel):
    type: Literal["regular"] = "regular"
    tools: list[FunctionTool] | None = None
    tool_choice: ToolChoice | None = None

    model_config = ConfigDict(frozen=True)


class ObjectJsonMode(BaseModel):
    type: Literal["object-json"] = "object-json"
    json_schema_definition: dict[str, Any] | None = Field(default=None, alias="schema")
    name: str | None = None
    description: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ObjectToolMode(BaseModel):
    type: Literal["object-tool"] = "object-tool"
    tool: FunctionTool

    model_config = ConfigDict(frozen=True)


GenerationMode = Annotated[
    RegularMode | ObjectJsonMode | ObjectToolMode,
    Field(discriminator="type"),
]


class ResponseFormat(BaseModel):
    type: Literal["text", "json"]
    json_schema_definition: dict[str, Any] | None = Field(default=None, alias="schema")
    name: str | None = None
    description: str | None = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class GenerationRequest(BaseModel):
    mode: GenerationMode = Field(default_factory=RegularMode)
    input_format: Literal["prompt", "messages"] = "messages"
    prompt: list[Message]

    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    seed: int | None = None
    stop_sequences: list[str] | None = None
    response_format: ResponseFormat | None = None

    model_config = ConfigDict(frozen=True)


class ModelSettings(BaseModel):
    """Per-model defaults; explicit request fields take precedence."""

    max_tokens: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None

    model_config = ConfigDict(frozen=True, extra="allow")


# Result side


@dataclass(frozen=True, slots=True)
class CallWarning:
    type: Literal["unsupported-setting", "other"]
    setting: str | None = None
    details: str | None = None

    def describe(self) -> str:
        if self.type == "unsupported-setting":
            text = f"Unsupported setting '{self.setting}'"
            return f"{text}: {self.details}" if self.details else f"{text}."
        return self.details or "Unspecified warning."


@dataclass(slots=True)
class Usage:
    prompt_tokens: float = math.nan
    completion_tokens: float = math.nan

    def to_payload(self) -> dict[str, int | None]:
        return {
            "prompt_tokens": _known_count(self.prompt_tokens),
            "completion_tokens": _known_count(self.completion_tokens),
        }


@dataclass(slots=True)
class LogProb:
    token: str
    logprob: float
    top_logprobs: list[tuple[str, float]] = field(default_factory=list)


@dataclass(slots=True)
class PendingToolCall:
    id: str
    name: str
    arguments: str = ""


@dataclass(frozen=True, slots=True)
class TextDeltaEvent:
    text: str
    type: Literal["text-delta"] = "text-delta"


@dataclass(frozen=True, slots=True)
class ToolCallDeltaEvent:
    tool_call_id: str
    tool_name: str
    args_text_delta: str
    type: Literal["tool-call-delta"] = "tool-call-delta"


@dataclass(frozen=True, slots=True)
class ToolCallEvent:
    tool_call_id: str
    tool_name: str
    args: str
    type: Literal["tool-call"] = "tool-call"


@dataclass(frozen=True, slots=True)
class FinishEvent:
    finish_reason: FinishReason
    usage: Usage
    logprobs: list[LogProb] | None = None
    type: Literal["finish"] = "finish"


StreamEvent = TextDeltaEvent | ToolCallDeltaEvent | ToolCallEvent | FinishEvent


@dataclass(slots=True)
class RawCall:
    raw_prompt: Any
    raw_settings: dict[str, Any]


@dataclass(slots=True)
class GenerationResult:
    finish_reason: FinishReason
    usage: Usage
    raw_call: RawCall
    warnings: list[CallWarning]
    text: str | None = None
    tool_calls: list[ToolCallEvent] | None = None
    logprobs: list[LogProb] | None = None


@dataclass(slots=True)
class StreamResult:
    stream: AsyncIterator[StreamEvent]
    raw_call: RawCall
    warnings: list[CallWarning]


@dataclass(slots=True)
class ArgsResult:
    args: dict[str, Any]
    warnings: list[CallWarning]


def _known_count(value: float) -> int | None:
    if value is None or math.isnan(value):
        return None
    return int(value)
