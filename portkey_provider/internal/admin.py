from __future__ import annotations

from fastapi import APIRouter, Depends

from portkey_provider.config import Settings, get_settings

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    return {
        "status": "ok",
        "gateway": settings.base_url,
        "provider": settings.provider or "default",
    }
