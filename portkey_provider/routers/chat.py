from __future__ import annotations

from fastapi import APIRouter, Depends

from portkey_provider.core.provider import PortkeyProvider
from portkey_provider.dependencies import get_provider

from .responses import GenerateRequest, generation_response

router = APIRouter(prefix="/v1", tags=["chat"])


@router.post("/chat/generate")
async def chat_generate(
    payload: GenerateRequest,
    provider: PortkeyProvider = Depends(get_provider),
):
    language_model = provider.chat_model(payload.model, payload.settings)
    return await generation_response(language_model, payload)
