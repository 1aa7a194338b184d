"""
FastAPI Application - Live Order Book API

Streams normalized, depth-limited order books from multiple venues.

Supported Venues:
    - OKX (spot)
    - Bybit (spot)
    - Deribit (futures)

Features:
    - Live order book push over WebSocket ({status, snapshot} on every change)
    - Instrument discovery
    - Order impact simulation against a live book

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from typing import List
from contextlib import asynccontextmanager
import asyncio

from core.venue_manager import venue_manager
from core.schemas import BookUpdate, ImpactReport, Instrument, SimulatedOrder
from core.logging import logger
from core.config import settings, validate_configuration
from services.book_service import get_book_service
from services.impact import calculate_impact, consumed_levels, executed_levels


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    logger.info("=== Application Starting ===")
    try:
        validate_configuration()
        logger.info("=== Started Successfully ===")
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        raise

    yield

    # Shutdown
    logger.info("=== Shutting Down ===")
    await book_service.shutdown_all()
    logger.info("=== Shutdown Complete ===")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Depthbook Live Order Book API",
    description=(
        "Real-time, depth-limited order books normalized across venues.\n\n"
        "**Supported Venues:** OKX, Bybit, Deribit\n\n"
        "## REST Endpoints\n"
        "- `GET /venues` - List supported venues\n"
        "- `GET /{venue}/instruments` - Tradable instruments\n"
        "- `POST /{venue}/{instrument_id}/impact` - Simulate an order against the live book\n"
        "- `GET /health` - Health check\n\n"
        "## WebSocket Streams\n"
        "Pattern: `ws://{host}/ws/{venue}/{instrument_id}/book`\n"
        "- Example: `ws://localhost:8000/ws/okx/BTC-USDT/book`\n"
        "\n"
        "Every message is a BookUpdate: connection status plus the latest snapshot.\n"
        "The snapshot is stale whenever status is not `connected`."
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS (allow your frontend origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

book_service = get_book_service()  # Global subscription registry


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """API information and available venues."""
    return {
        "name": "Depthbook Live Order Book API",
        "version": "1.0.0",
        "status": "operational",
        "docs": "/docs",
        "venues": venue_manager.list_venues()
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Health check with the status of every live subscription."""
    subscriptions = [
        {
            "id": handle.id,
            "venue": handle.venue.value,
            "instrument_id": handle.instrument_id,
            "status": handle.engine.status.value,
        }
        for handle in book_service.list_subscriptions()
    ]
    degraded = any(sub["status"] == "error" for sub in subscriptions)
    return {
        "status": "degraded" if degraded else "healthy",
        "subscriptions": subscriptions
    }


@app.get("/venues", tags=["System"])
async def list_venues():
    """List all supported venues and their endpoints."""
    return {
        "venues": [
            {"name": name, "ws_url": venue_manager.get_venue(name).ws_url}
            for name in venue_manager.list_venues()
        ]
    }


# ============================================
# Market Data Endpoints
# ============================================

@app.get("/{venue}/instruments", response_model=List[Instrument], tags=["Market Data"])
async def get_instruments(venue: str):
    """
    List tradable instruments.

    Examples:
        GET /okx/instruments
        GET /deribit/instruments
    """
    try:
        connector = venue_manager.get_venue(venue)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return await connector.fetch_instruments()


@app.post("/{venue}/{instrument_id}/impact", response_model=ImpactReport, tags=["Simulation"])
async def simulate_order(venue: str, instrument_id: str, order: SimulatedOrder):
    """
    Evaluate a hypothetical order against the latest snapshot of a live subscription.

    Example:
        POST /okx/BTC-USDT/impact
        {"side": "Buy", "type": "Market", "quantity": "2.5"}
    """
    try:
        venue_manager.get_venue(venue)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))

    handle = book_service.find_live(venue, instrument_id)
    if handle is None:
        raise HTTPException(
            status_code=409,
            detail=f"No live order book for {venue}/{instrument_id}. Open a book stream first."
        )

    snapshot = handle.engine.latest_snapshot
    return ImpactReport(
        venue=handle.venue,
        instrument_id=instrument_id,
        status=handle.engine.status,
        snapshot_timestamp=snapshot.timestamp,
        metrics=calculate_impact(order, snapshot),
        consumed_levels=consumed_levels(order, snapshot),
        executed_levels=executed_levels(order, snapshot),
    )


# ============================================
# WebSocket Endpoints
# ============================================

@app.websocket("/ws/{venue}/{instrument_id}/book")
async def websocket_book(websocket: WebSocket, venue: str, instrument_id: str):
    """
    Live order book of one instrument.

    Examples:
        ws://localhost:8000/ws/okx/BTC-USDT/book
        ws://localhost:8000/ws/bybit/BTCUSDT/book
        ws://localhost:8000/ws/deribit/BTC-PERPETUAL/book

    Every message is a JSON-serialized BookUpdate.
    The subscription is torn down when the client disconnects.
    """
    await websocket.accept()
    logger.info(f"WS connected: {venue}/{instrument_id}/book")

    try:
        connector = venue_manager.get_venue(venue)
    except ValueError as e:
        await websocket.close(code=1008, reason=str(e))
        return

    queue: asyncio.Queue = asyncio.Queue(maxsize=100)

    def enqueue(update: BookUpdate) -> None:
        # Slow clients skip intermediate updates; the newest one always gets through
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(update)

    async def push_updates() -> None:
        while True:
            update = await queue.get()
            await websocket.send_json(update.model_dump(mode="json"))

    handle = book_service.subscribe(connector.venue, instrument_id, listener=enqueue)
    sender = asyncio.create_task(push_updates())
    try:
        # Client messages carry nothing; reading them is how a disconnect is noticed
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"WS disconnected: {venue}/{instrument_id}/book")
                break
    except WebSocketDisconnect:
        logger.info(f"WS disconnected: {venue}/{instrument_id}/book")
    except Exception as e:
        logger.error(f"WS error {venue}/{instrument_id}/book: {e}")
    finally:
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        await book_service.unsubscribe(handle)
        logger.info(f"WS ended: {venue}/{instrument_id}/book")


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    detail = getattr(exc, "detail", None) or "Not found"
    return JSONResponse(status_code=404, content={"detail": detail, "path": str(request.url)})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
