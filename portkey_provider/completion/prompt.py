from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, assert_never

from portkey_provider.core.errors import InvalidPromptError, UnsupportedFunctionalityError
from portkey_provider.core.types import (
    AssistantMessage,
    ImagePart,
    Message,
    SystemMessage,
    TextPart,
    ToolCallPart,
    ToolMessage,
    UserMessage,
)


@dataclass(slots=True)
class CompletionPrompt:
    prompt: str
    stop_sequences: list[str] | None = None


def convert_to_completion_prompt(
    prompt: list[Message],
    input_format: Literal["prompt", "messages"],
    *,
    user: str = "user",
    assistant: str = "assistant",
) -> CompletionPrompt:
    """Flatten a conversation into one text prompt for completion endpoints.

    A single plain-text user turn given as ``prompt`` input passes through
    untouched. Anything else is rendered as labelled turns ending with an open
    assistant turn, plus a stop sequence that halts before the next user turn.
    """

    if input_format == "prompt" and _is_plain_user_text(prompt):
        return CompletionPrompt(prompt=prompt[0].content[0].text)

    if not prompt:
        raise InvalidPromptError("Prompt must contain at least one message.")

    text = ""
    remaining = list(prompt)

    if isinstance(remaining[0], SystemMessage):
        text += f"{remaining[0].content}\n\n"
        remaining = remaining[1:]

    for message in remaining:
        if isinstance(message, SystemMessage):
            raise InvalidPromptError(
                f"Unexpected system message in prompt: {message.content}"
            )
        elif isinstance(message, UserMessage):
            text += f"{user}:\n{_user_text(message)}\n\n"
        elif isinstance(message, AssistantMessage):
            text += f"{assistant}:\n{_assistant_text(message)}\n\n"
        elif isinstance(message, ToolMessage):
            raise UnsupportedFunctionalityError("tool messages")
        else:
            assert_never(message)

    text += f"{assistant}:\n"

    return CompletionPrompt(prompt=text, stop_sequences=[f"\n{user}:"])


def _is_plain_user_text(prompt: list[Message]) -> bool:
    return (
        len(prompt) == 1
        and isinstance(prompt[0], UserMessage)
        and len(prompt[0].content) == 1
        and isinstance(prompt[0].content[0], TextPart)
    )


def _user_text(message: UserMessage) -> str:
    parts: list[str] = []
    for part in message.content:
        if isinstance(part, TextPart):
            parts.append(part.text)
        elif isinstance(part, ImagePart):
            raise UnsupportedFunctionalityError("images")
        else:
            assert_never(part)
    return "".join(parts)


def _assistant_text(message: AssistantMessage) -> str:
    parts: list[str] = []
    for part in message.content:
        if isinstance(part, TextPart):
            parts.append(part.text)
        elif isinstance(part, ToolCallPart):
            raise UnsupportedFunctionalityError("tool-call messages")
        else:
            assert_never(part)
    return "".join(parts)
