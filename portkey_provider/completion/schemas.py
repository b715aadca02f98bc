from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CompletionUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    model_config = ConfigDict(extra="allow")


class CompletionLogProbs(BaseModel):
    tokens: list[str] | None = None
    token_logprobs: list[float | None] | None = None
    top_logprobs: list[dict[str, float] | None] | None = None

    model_config = ConfigDict(extra="allow")


class CompletionChoice(BaseModel):
    index: int | None = None
    text: str | None = None
    finish_reason: str | None = None
    logprobs: CompletionLogProbs | None = None

    model_config = ConfigDict(extra="allow")


class Completion(BaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[CompletionChoice] = []
    usage: CompletionUsage | None = None

    model_config = ConfigDict(extra="allow")
