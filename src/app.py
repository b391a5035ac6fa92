"""ParcelSync FastAPI application.

Web server for warehouse operations, inbound partner sync and delivery
administration. Every request runs inside the tracking domain context; the
delivery worker drains the outbound queue in a background thread for the
lifetime of the app.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied (see pyproject.toml).
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers
from tracking.domain import tracking
from tracking.utils.logging import configure_logging

configure_logging()
tracking.init()

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Delivery worker lifecycle
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    from tracking.delivery.worker import DeliveryWorker

    with tracking.domain_context():
        worker = DeliveryWorker(domain=tracking)
    worker.start()
    logger.info("ParcelSync started", environment=worker.queue.settings.environment)
    try:
        yield
    finally:
        worker.stop()
        logger.info("ParcelSync stopped")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="ParcelSync API",
    description="Parcel tracking, partner sync and outbound webhook delivery",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the tracking domain context for each request."""
    with tracking.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from tracking.api import (  # noqa: E402
    customer_router,
    delivery_router,
    manifest_router,
    package_router,
    partner_router,
)

app.include_router(package_router)
app.include_router(manifest_router)
app.include_router(customer_router)
app.include_router(delivery_router)
app.include_router(partner_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": {"name": tracking.name}})
