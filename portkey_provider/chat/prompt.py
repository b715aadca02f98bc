from __future__ import annotations

import base64
import json
from typing import Any, assert_never

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

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


def convert_to_chat_messages(prompt: list[Message]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []

    for message in prompt:
        if isinstance(message, SystemMessage):
            messages.append({"role": "system", "content": message.content})
        elif isinstance(message, UserMessage):
            messages.append(_user_message(message))
        elif isinstance(message, AssistantMessage):
            messages.append(_assistant_message(message))
        elif isinstance(message, ToolMessage):
            for tool_result in message.content:
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": tool_result.tool_call_id,
                        "content": json.dumps(tool_result.result),
                    }
                )
        else:
            assert_never(message)

    return messages


def _user_message(message: UserMessage) -> dict[str, Any]:
    content = message.content
    if len(content) == 1 and isinstance(content[0], TextPart):
        return {"role": "user", "content": content[0].text}

    parts: list[dict[str, Any]] = []
    for part in content:
        if isinstance(part, TextPart):
            parts.append({"type": "text", "text": part.text})
        elif isinstance(part, ImagePart):
            parts.append({"type": "image_url", "image_url": {"url": image_url(part)}})
        else:
            assert_never(part)

    return {"role": "user", "content": parts}


def _assistant_message(message: AssistantMessage) -> dict[str, Any]:
    text = ""
    tool_calls: list[dict[str, Any]] = []

    for part in message.content:
        if isinstance(part, TextPart):
            text += part.text
        elif isinstance(part, ToolCallPart):
            tool_calls.append(
                {
                    "id": part.tool_call_id,
                    "type": "function",
                    "function": {
                        "name": part.tool_name,
                        "arguments": json.dumps(part.args),
                    },
                }
            )
        else:
            assert_never(part)

    wire: dict[str, Any] = {"role": "assistant", "content": text}
    if tool_calls:
        wire["tool_calls"] = tool_calls
    return wire


def image_url(part: ImagePart) -> str:
    if isinstance(part.image, str):
        return part.image

    encoded = base64.b64encode(part.image).decode("ascii")
    return f"data:{part.mime_type or DEFAULT_IMAGE_MIME_TYPE};base64,{encoded}"
