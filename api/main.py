"""
FastAPI application for placing orders.

This application provides:
1. POST /api/orders - place an order (publishes one OrderPlaced event)
2. GET /api/orders/{order_id}/progress - per-lane progress of an order
3. GET /health

Run with:
    uv run uvicorn api.main:app --reload

or ``python cli.py serve``. Configuration comes from the environment (see
shared/config.py); with the default in-memory broker the events stay in this
process, use ``python cli.py demo`` to see the whole flow.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from broker import build_broker
from pipeline.progress import ProgressObserver, SimulatedProgressFeed
from pipeline.publisher import EventPublisher
from shared.config import PipelineConfig
from shared.errors import OrderValidationError, PublishError
from shared.models import OrderRequest

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("orders_api")


# Response models
class PlaceOrderResponse(BaseModel):
    """Confirmation returned for a published order."""
    ok: bool = True
    order_id: str = Field(..., alias="orderId")
    published_to: str = Field(..., alias="publishedTo")

    model_config = ConfigDict(populate_by_name=True)


class ProgressResponse(BaseModel):
    order_id: str = Field(..., alias="orderId")
    lanes: dict[str, str]
    complete: bool

    model_config = ConfigDict(populate_by_name=True)


# Module-level instances (would use proper DI in production)
_config: Optional[PipelineConfig] = None
_publisher: Optional[EventPublisher] = None
_progress: Optional[ProgressObserver] = None
_progress_feed: Optional[SimulatedProgressFeed] = None
_simulate_progress: bool = True


def get_config() -> PipelineConfig:
    """Get the pipeline configuration (loaded from the environment once)."""
    global _config
    if _config is None:
        _config = PipelineConfig.from_env()
    return _config


def get_publisher() -> EventPublisher:
    """Get the event publisher for the configured broker."""
    global _publisher
    if _publisher is None:
        config = get_config()
        _publisher = EventPublisher(build_broker(config), config)
    return _publisher


def get_progress() -> ProgressObserver:
    """Get the progress observer."""
    global _progress
    if _progress is None:
        _progress = ProgressObserver()
    return _progress


def get_progress_feed() -> Optional[SimulatedProgressFeed]:
    """Timer-driven progress, or None when real consumers report progress."""
    global _progress_feed
    if _progress_feed is None and _simulate_progress:
        _progress_feed = SimulatedProgressFeed(get_progress())
    return _progress_feed


def reset_api_state(
    config: Optional[PipelineConfig] = None,
    publisher: Optional[EventPublisher] = None,
    progress: Optional[ProgressObserver] = None,
    simulate_progress: bool = True,
) -> None:
    """Reset API state (for testing and for the in-process demo)."""
    global _config, _publisher, _progress, _progress_feed, _simulate_progress
    if _progress_feed is not None:
        _progress_feed.cancel()
    _config = config
    _publisher = publisher
    _progress = progress
    _progress_feed = None
    _simulate_progress = simulate_progress


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting order API")
    yield
    if _progress_feed is not None:
        _progress_feed.cancel()
    logger.info("Shutting down")


app = FastAPI(
    title="Order Fan-out Demo",
    description="Place an order; one event fans out to payment, shipping and analytics queues.",
    version="1.0.0",
    lifespan=lifespan,
)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return _error(400, f"{field}: {message}" if field else message)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "order-fanout"}


# =============================================================================
# Orders
# =============================================================================

@app.post("/api/orders", response_model=PlaceOrderResponse, tags=["Orders"])
@app.post("/orders", response_model=PlaceOrderResponse, include_in_schema=False)
def place_order(
    request: Optional[OrderRequest] = None,
    publisher: EventPublisher = Depends(get_publisher),
    progress: ProgressObserver = Depends(get_progress),
):
    """
    Place an order.

    Publishes exactly one OrderPlaced event. Only a publish problem is
    reported to the caller; everything that happens downstream in the
    queues is retried by the workers on their own.
    """
    try:
        receipt = publisher.publish(request)
    except OrderValidationError as e:
        return _error(400, str(e))
    except PublishError as e:
        logger.error(f"Publish error: {e}")
        return _error(500, str(e))

    feed = get_progress_feed()
    if feed is not None:
        feed.start(receipt.order_id)
    else:
        progress.start(receipt.order_id)

    return PlaceOrderResponse(order_id=receipt.order_id, published_to=receipt.topic)


@app.get("/api/orders/{order_id}/progress", response_model=ProgressResponse, tags=["Orders"])
def order_progress(order_id: str, progress: ProgressObserver = Depends(get_progress)):
    """Lane statuses (idle / processing / done) for an order."""
    lanes = progress.snapshot(order_id)
    if lanes is None:
        raise HTTPException(status_code=404, detail=f"Order not found: {order_id}")
    return ProgressResponse(order_id=order_id, lanes=lanes, complete=progress.is_complete(order_id))
