"""Quotations FastAPI application.

Processes quotation commands synchronously via HTTP. Every request runs
inside the quotations domain context and carries a request id in its logs.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - "test"       → event_processing = "sync"  (email handler fires in UoW)
#   - "production" → event_processing = "async" (email handler fires via Engine)
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quotations.domain import quotations
from quotations.utils.logging import add_context, clear_context

quotations.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Quotations API",
    description="Quotation placement and fulfillment-group mutations",
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
    """Push the quotations domain context and bind a request id for logging."""
    if not request.url.path.startswith("/quotations"):
        return await call_next(request)

    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    add_context(request_id=request_id)
    try:
        with quotations.domain_context():
            response = await call_next(request)
    finally:
        clear_context()
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from quotations.api import register_exception_handlers, router as quotations_router  # noqa: E402

app.include_router(quotations_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"quotations": {"name": quotations.name}}})
