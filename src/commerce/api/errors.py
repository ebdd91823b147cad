"""HTTP mapping for commerce errors."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from commerce.errors import CommerceError

logger = structlog.get_logger(__name__)


async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    """Protean's handlers for ValidationError and friends, plus the commerce taxonomy."""
    register_exception_handlers(app)
    app.add_exception_handler(CommerceError, commerce_error_handler)
