from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

from portkey_provider.chat.adapter import PortkeyChatLanguageModel
from portkey_provider.completion.adapter import PortkeyCompletionLanguageModel
from portkey_provider.config import Settings

from .types import ModelSettings

logger = logging.getLogger(__name__)

# The gateway authenticates through x-portkey-api-key; the OpenAI client still
# insists on a non-empty bearer token.
PLACEHOLDER_API_KEY = "portkey"


@dataclass
class PortkeyProvider:
    client: Any
    provider_name: str | None = None

    def __call__(
        self, model_id: str, settings: ModelSettings | None = None
    ) -> PortkeyChatLanguageModel:
        return self.chat_model(model_id, settings)

    def chat_model(
        self, model_id: str, settings: ModelSettings | None = None
    ) -> PortkeyChatLanguageModel:
        return PortkeyChatLanguageModel(
            model_id,
            self.client,
            settings,
            provider_name=self.provider_name,
        )

    language_model = chat_model

    def completion_model(
        self, model_id: str, settings: ModelSettings | None = None
    ) -> PortkeyCompletionLanguageModel:
        return PortkeyCompletionLanguageModel(
            model_id,
            self.client,
            settings,
            provider_name=self.provider_name,
        )


def build_default_headers(settings: Settings) -> dict[str, str]:
    headers = {
        name: value
        for name, value in (
            ("x-portkey-api-key", settings.api_key),
            ("x-portkey-provider", settings.provider),
            ("x-portkey-virtual-key", settings.virtual_key),
            ("x-portkey-config", settings.config),
        )
        if value
    }

    custom_headers = {name.lower(): value for name, value in settings.custom_headers.items()}
    authorization = custom_headers.get("authorization")
    if authorization is not None and not authorization.startswith("Bearer"):
        custom_headers["authorization"] = f"Bearer {authorization}"

    return {**custom_headers, **headers}


def create_portkey(settings: Settings) -> PortkeyProvider:
    client = AsyncOpenAI(
        api_key=PLACEHOLDER_API_KEY,
        base_url=settings.base_url,
        default_headers=build_default_headers(settings),
        timeout=settings.timeout_seconds,
        max_retries=settings.max_retries,
    )
    logger.info(
        "Created Portkey client for %s (provider=%s)",
        settings.base_url,
        settings.provider or "default",
    )
    return PortkeyProvider(client=client, provider_name=settings.provider)
