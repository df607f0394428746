"""Marketplace FastAPI application.

Web server for the multi-vendor order pipeline. Commands are processed
synchronously per request inside the marketplace domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - unset/"test" → event_processing = "sync"  (handlers fire in the request)
#   - "production" → event_processing = "async" (handlers fire via the Engine)
import marketplace.utils.logging  # noqa: F401
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from marketplace.domain import marketplace

marketplace.init()

# Paths served outside the domain context
_PASSTHROUGH_PREFIXES = ("/health", "/docs", "/redoc", "/openapi.json")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Marketplace API",
    description="Multi-vendor order pipeline: checkout, payments and fulfilment",
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
    """Push the marketplace domain context for every API request."""
    if request.url.path.startswith(_PASSTHROUGH_PREFIXES):
        return await call_next(request)
    with marketplace.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from marketplace.api import (  # noqa: E402
    admin_router,
    fulfillment_router,
    order_router,
    register_marketplace_exception_handlers,
    supplier_router,
    webhook_router,
)

app.include_router(order_router)
app.include_router(supplier_router)
app.include_router(admin_router)
app.include_router(webhook_router)
app.include_router(fulfillment_router)
register_marketplace_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "marketplace": {"name": marketplace.name},
            },
        }
    )
