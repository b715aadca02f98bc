from __future__ import annotations

import logging

from fastapi import FastAPI

from portkey_provider.config import get_settings
from portkey_provider.dependencies import register_exception_handlers
from portkey_provider.internal import admin
from portkey_provider.routers import chat, completion


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="portkey-provider",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    register_exception_handlers(app)

    app.include_router(chat.router)
    app.include_router(completion.router)
    app.include_router(admin.router)

    return app


app = create_app()
