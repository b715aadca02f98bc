from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from portkey_provider.config import get_settings
from portkey_provider.core.errors import GatewayError
from portkey_provider.core.provider import PortkeyProvider, create_portkey

logger = logging.getLogger(__name__)


@lru_cache
def get_provider() -> PortkeyProvider:
    return create_portkey(get_settings())


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def handle_gateway_error(
        request: Request,
        exc: GatewayError,
    ) -> JSONResponse:
        logger.info(
            "%s %s failed with %s: %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.to_error()},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        first_error = exc.errors()[0]["msg"] if exc.errors() else "Invalid request"

        compat_error = GatewayError(
            status_code=400,
            message=first_error,
            code="invalid_request",
        )
        return JSONResponse(
            status_code=compat_error.status_code,
            content={"error": compat_error.to_error()},
        )
