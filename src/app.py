"""Kitstore FastAPI application.

Serves the cart & pricing engine over HTTP. Every request under the
shopping routes runs inside the shopping domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV selects the config overlay; CART_STORAGE selects where carts live.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from shopping.domain import shopping
from shopping.utils.logging import bind_session, clear_context, configure_logging

configure_logging()
shopping.init()

_DOMAIN_PREFIXES = ("/carts", "/shipping")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Kitstore API",
    description="Football jersey storefront — cart & pricing engine",
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
    """Push the shopping domain context and bind the session to the log context."""
    path = request.url.path
    if not path.startswith(_DOMAIN_PREFIXES):
        # Health check, docs, etc.
        return await call_next(request)

    parts = path.strip("/").split("/")
    if parts[0] == "carts" and len(parts) > 1:
        bind_session(parts[1])
    try:
        with shopping.domain_context():
            return await call_next(request)
    finally:
        clear_context()


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from shopping.api.routes import cart_router, shipping_router  # noqa: E402

app.include_router(cart_router)
app.include_router(shipping_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {
                "shopping": {"name": shopping.name},
            },
        }
    )
