from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ChatUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    model_config = ConfigDict(extra="allow")


class ChatTopLogProb(BaseModel):
    token: str
    logprob: float

    model_config = ConfigDict(extra="allow")


class ChatTokenLogProb(BaseModel):
    token: str
    logprob: float
    top_logprobs: list[ChatTopLogProb] | None = None

    model_config = ConfigDict(extra="allow")


class ChatLogProbs(BaseModel):
    content: list[ChatTokenLogProb] | None = None

    model_config = ConfigDict(extra="allow")


class ChatFunctionCall(BaseModel):
    name: str | None = None
    arguments: str | None = None

    model_config = ConfigDict(extra="allow")


class ChatToolCall(BaseModel):
    index: int | None = None
    id: str | None = None
    type: str | None = None
    function: ChatFunctionCall | None = None

    model_config = ConfigDict(extra="allow")


class ChatMessage(BaseModel):
    role: str | None = None
    content: str | None = None
    tool_calls: list[ChatToolCall] | None = None

    model_config = ConfigDict(extra="allow")


class ChatChoice(BaseModel):
    index: int | None = None
    message: ChatMessage | None = None
    finish_reason: str | None = None
    logprobs: ChatLogProbs | None = None

    model_config = ConfigDict(extra="allow")


class ChatCompletion(BaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[ChatChoice] = []
    usage: ChatUsage | None = None

    model_config = ConfigDict(extra="allow")


class ChatChunkChoice(BaseModel):
    index: int | None = None
    delta: ChatMessage | None = None
    finish_reason: str | None = None
    logprobs: ChatLogProbs | None = None

    model_config = ConfigDict(extra="allow")


class ChatCompletionChunk(BaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[ChatChunkChoice] = []
    usage: ChatUsage | None = None

    model_config = ConfigDict(extra="allow")
