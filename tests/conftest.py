from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from portkey_provider.core.types import GenerationRequest


class FakeCompletions:
    """Stands in for ``client.chat.completions`` / ``client.completions``."""

    def __init__(self, response: Any) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if isinstance(self.response, Exception):
            raise self.response
        if kwargs.get("stream"):
            return _iterate(self.response)
        return self.response


class FakeClient:
    def __init__(self, response: Any) -> None:
        self.completions = FakeCompletions(response)
        self.chat = SimpleNamespace(completions=self.completions)


async def _iterate(chunks: list[Any]):
    for chunk in chunks:
        yield chunk


class ClosableStream:
    """Chunk source that records whether the consumer released it."""

    def __init__(self, chunks: list[Any], error: Exception | None = None) -> None:
        self.chunks = list(chunks)
        self.error = error
        self.consumed = 0
        self.closed = False

    def __aiter__(self) -> ClosableStream:
        return self

    async def __anext__(self) -> Any:
        if self.consumed < len(self.chunks):
            self.consumed += 1
            return self.chunks[self.consumed - 1]
        if self.error is not None:
            raise self.error
        raise StopAsyncIteration

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def fake_client():
    return FakeClient


@pytest.fixture()
def chunk_stream():
    return _iterate


@pytest.fixture()
def closable_stream():
    return ClosableStream


@pytest.fixture()
def drain():
    async def _drain(stream) -> list[Any]:
        return [event async for event in stream]

    def _run(stream) -> list[Any]:
        return asyncio.run(_drain(stream))

    return _run


@pytest.fixture()
def make_request():
    def _make(prompt: list[dict[str, Any]] | None = None, **fields: Any) -> GenerationRequest:
        if prompt is None:
            prompt = [{"role": "user", "content": [{"type": "text", "text": "Hello"}]}]
        return GenerationRequest.model_validate({"prompt": prompt, **fields})

    return _make
