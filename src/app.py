"""Marketline FastAPI application.

Storefront, merchant, webhook and maintenance routes on one server. Commands
are processed synchronously inside the request; every request runs inside
the commerce domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - unset/"test" → memory stores, event_processing = "sync"
#   - "production" → PostgreSQL, event_processing = "async" (handlers run on the Engine)
import uuid

from commerce.api import ROUTERS, register_error_handlers  # noqa: E402
from commerce.domain import commerce  # noqa: E402
from commerce.utils.logging import add_context, clear_context, get_logger  # noqa: E402
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

commerce.init()

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketline API",
    description="Multi-tenant commerce: carts, checkout reservations, payment settlement and orders",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the commerce domain context and bind a request id for each request."""
    clear_context()
    add_context(request_id=request.headers.get("x-request-id") or uuid.uuid4().hex, path=request.url.path)
    with commerce.domain_context():
        response = await call_next(request)
    logger.info("Request handled", method=request.method, status_code=response.status_code)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

for router in ROUTERS:
    app.include_router(router)

register_error_handlers(app)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": commerce.name})
