from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from portkey_provider.completion.adapter import get_completion_args, transform_completion_stream
from portkey_provider.completion.prompt import convert_to_completion_prompt
from portkey_provider.core.errors import InvalidPromptError, UnsupportedFunctionalityError
from portkey_provider.core.types import (
    FinishEvent,
    FinishReason,
    GenerationRequest,
    LogProb,
    ModelSettings,
    TextDeltaEvent,
)


def _conversation():
    return [
        {"role": "system", "content": "S"},
        {"role": "user", "content": [{"type": "text", "text": "A"}]},
        {"role": "assistant", "content": [{"type": "text", "text": "B"}]},
    ]


def test_plain_prompt_input_passes_through(make_request):
    request = make_request(input_format="prompt")

    converted = convert_to_completion_prompt(request.prompt, request.input_format)

    assert converted.prompt == "Hello"
    assert converted.stop_sequences is None


def test_single_user_message_in_messages_format_is_flattened(make_request):
    request = make_request(input_format="messages")

    converted = convert_to_completion_prompt(request.prompt, request.input_format)

    assert converted.prompt == "user:\nHello\n\nassistant:\n"
    assert converted.stop_sequences == ["\nuser:"]


def test_conversation_is_flattened_with_role_labels(make_request):
    request = make_request(_conversation())

    converted = convert_to_completion_prompt(request.prompt, request.input_format)

    assert converted.prompt == "S\n\nuser:\nA\n\nassistant:\nB\n\nassistant:\n"
    assert converted.stop_sequences == ["\nuser:"]


def test_custom_role_labels(make_request):
    request = make_request(_conversation())

    converted = convert_to_completion_prompt(
        request.prompt, request.input_format, user="Human", assistant="AI"
    )

    assert converted.prompt == "S\n\nHuman:\nA\n\nAI:\nB\n\nAI:\n"
    assert converted.stop_sequences == ["\nHuman:"]


def test_late_system_message_is_rejected(make_request):
    prompt = _conversation() + [{"role": "system", "content": "again"}]
    request = make_request(prompt)

    with pytest.raises(InvalidPromptError):
        convert_to_completion_prompt(request.prompt, request.input_format)


@pytest.mark.parametrize(
    ("message", "functionality"),
    [
        (
            {"role": "user", "content": [{"type": "image", "image": "https://example.test/a.png"}]},
            "images",
        ),
        (
            {
                "role": "assistant",
                "content": [
                    {"type": "tool-call", "tool_call_id": "c1", "tool_name": "f", "args": {}}
                ],
            },
            "tool-call messages",
        ),
        (
            {
                "role": "tool",
                "content": [
                    {"type": "tool-result", "tool_call_id": "c1", "tool_name": "f", "result": 1}
                ],
            },
            "tool messages",
        ),
    ],
)
def test_parts_without_text_form_fail_fast(make_request, message, functionality):
    request = make_request([message])

    with pytest.raises(UnsupportedFunctionalityError) as exc_info:
        convert_to_completion_prompt(request.prompt, request.input_format)

    assert exc_info.value.functionality == functionality


def test_synthesized_stop_sequence_comes_first(make_request):
    request = make_request(_conversation(), stop_sequences=["###"])

    prepared = get_completion_args(request, ModelSettings(stop=["END"], temperature=0.4))

    assert prepared.args == {
        "prompt": "S\n\nuser:\nA\n\nassistant:\nB\n\nassistant:\n",
        "stop": ["\nuser:", "###", "END"],
        "temperature": 0.4,
        "stream": False,
    }


def test_plain_prompt_without_stop_sequences_omits_stop(make_request):
    prepared = get_completion_args(make_request(input_format="prompt"))

    assert prepared.args == {"prompt": "Hello", "stream": False}


def test_top_k_warns_in_completion_mode(make_request):
    prepared = get_completion_args(make_request(top_k=5))

    assert [warning.setting for warning in prepared.warnings] == ["topK"]
    assert "top_k" not in prepared.args


@pytest.mark.parametrize(
    ("fields", "functionality"),
    [
        ({"mode": {"type": "regular", "tools": [{"name": "f"}]}}, "tools"),
        ({"mode": {"type": "regular", "tool_choice": {"type": "auto"}}}, "toolChoice"),
        ({"mode": {"type": "object-json"}}, "object-json mode"),
        ({"mode": {"type": "object-tool", "tool": {"name": "f"}}}, "object-tool mode"),
        ({"response_format": {"type": "json"}}, "responseFormat"),
    ],
)
def test_capability_gaps_fail_before_dispatch(make_request, fields, functionality):
    with pytest.raises(UnsupportedFunctionalityError) as exc_info:
        get_completion_args(make_request(**fields))

    assert exc_info.value.functionality == functionality
    assert exc_info.value.status_code == 400


def test_completion_stream_accumulates_text_and_logprobs(chunk_stream, drain):
    chunks = [
        {
            "choices": [
                {
                    "index": 0,
                    "text": "Hel",
                    "logprobs": {
                        "tokens": ["Hel"],
                        "token_logprobs": [-0.1],
                        "top_logprobs": [{"Hel": -0.1, "He": -2.5}],
                    },
                }
            ]
        },
        {
            "choices": [
                {
                    "index": 0,
                    "text": "lo",
                    "finish_reason": "stop",
                    "logprobs": {"tokens": ["lo"], "token_logprobs": [-0.2], "top_logprobs": None},
                }
            ],
            "usage": {"prompt_tokens": 4, "completion_tokens": 2},
        },
    ]

    events = drain(transform_completion_stream(chunk_stream(chunks)))

    assert events[:2] == [TextDeltaEvent(text="Hel"), TextDeltaEvent(text="lo")]
    finish = events[2]
    assert isinstance(finish, FinishEvent)
    assert finish.finish_reason is FinishReason.STOP
    assert finish.usage.prompt_tokens == 4
    assert finish.usage.completion_tokens == 2
    assert finish.logprobs == [
        LogProb(token="Hel", logprob=-0.1, top_logprobs=[("Hel", -0.1), ("He", -2.5)]),
        LogProb(token="lo", logprob=-0.2, top_logprobs=[]),
    ]


def test_completion_stream_defaults_to_zero_usage(chunk_stream, drain):
    chunks = [{"choices": [{"index": 0, "text": "x"}]}, {"choices": []}]

    events = drain(transform_completion_stream(chunk_stream(chunks)))

    finish = events[-1]
    assert finish.finish_reason is FinishReason.UNKNOWN
    assert finish.usage.prompt_tokens == 0
    assert finish.usage.completion_tokens == 0
    assert finish.logprobs is None


def test_completion_stream_keeps_reading_past_empty_choices(chunk_stream, drain):
    chunks = [{"choices": []}, {"choices": [{"index": 0, "text": "late"}]}]

    events = drain(transform_completion_stream(chunk_stream(chunks)))

    assert events[0] == TextDeltaEvent(text="late")


def test_generation_request_is_immutable(make_request):
    request = make_request()

    with pytest.raises(ValidationError):
        request.temperature = 1.0

    assert isinstance(request, GenerationRequest)


def test_completion_stream_transport_error_propagates_without_finish(closable_stream):
    stream = closable_stream(
        [{"choices": [{"index": 0, "text": "partial"}]}], error=ConnectionError("reset")
    )
    seen = []

    async def consume():
        async for event in transform_completion_stream(stream):
            seen.append(event)

    with pytest.raises(ConnectionError):
        asyncio.run(consume())

    assert seen == [TextDeltaEvent(text="partial")]
    assert not any(isinstance(event, FinishEvent) for event in seen)
    assert stream.closed is True


def test_completion_stream_releases_upstream_when_exhausted(closable_stream, drain):
    stream = closable_stream([{"choices": [{"index": 0, "text": "done", "finish_reason": "stop"}]}])

    events = drain(transform_completion_stream(stream))

    assert stream.closed is True
    assert events[-1].finish_reason is FinishReason.STOP
