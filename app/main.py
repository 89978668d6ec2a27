"""
FastAPI Application - Market Data Display Service

Serves the market data display built on top of the reconnecting feed client.
The service subscribes to settings.feed_url, renders every new value and
exposes the rendered view over REST and WebSocket.

Endpoints:
    - GET  /              - Service information
    - GET  /health        - Feed connectivity and reconnect state
    - GET  /display       - Current rendered view
    - POST /display/send  - Forward a JSON message through the feed
    - WS   /ws/display    - Push every new rendered view

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8080
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings, validate_configuration
from core.logging import logger
from core.schemas import DisplayView
from services.market_display import DISPLAY_TOPIC, get_market_display_service


# ============================================
# Lifespan Management
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("=== Application Starting ===")
    validate_configuration()
    try:
        await get_market_display_service().start()
        logger.info("=== Started Successfully ===")
    except Exception as svc_err:
        logger.error(f"MarketDisplayService failed to start: {svc_err}")

    yield

    logger.info("=== Shutting Down ===")
    try:
        await get_market_display_service().stop()
    except Exception as svc_stop_err:
        logger.error(f"Error stopping MarketDisplayService: {svc_stop_err}")
    logger.info("=== Shutdown Complete ===")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="Market Data Display",
    description=(
        "Live market data rendered from a reconnecting WebSocket feed.\n\n"
        "- `GET /display` - Current view (status, alert, cards)\n"
        "- `POST /display/send` - Send a JSON message upstream\n"
        "- `WS /ws/display` - Receive every new view as JSON\n"
    ),
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


# ============================================
# System Endpoints
# ============================================

@app.get("/", tags=["System"])
async def root():
    """Service information."""
    return {
        "name": "Market Data Display",
        "version": "1.0.0",
        "docs": "/docs",
        "feed_url": get_market_display_service().feed.url
    }


@app.get("/health", tags=["System"])
async def health_check():
    """Feed connectivity; degraded whenever the feed is not open."""
    snapshot = get_market_display_service().feed.snapshot()
    return {
        "status": "healthy" if snapshot.is_connected else "degraded",
        "state": snapshot.state.value,
        "error": snapshot.error,
        "error_kind": snapshot.error_kind.value if snapshot.error_kind else None,
        "reconnect_count": snapshot.reconnect_count
    }


# ============================================
# Display Endpoints
# ============================================

@app.get("/display", response_model=DisplayView, tags=["Display"])
async def get_display():
    """Current rendered view of the market data feed."""
    return get_market_display_service().view


@app.post("/display/send", tags=["Display"])
async def send_to_feed(message: Any = Body(...)):
    """
    Forward a JSON message through the feed.

    Returns 409 when the feed is not connected; nothing is transmitted then.
    """
    service = get_market_display_service()
    connected = service.feed.is_connected
    await service.send(message)

    if not connected:
        raise HTTPException(status_code=409, detail=service.feed.error or "WebSocket is not connected")

    return {"sent": True}


@app.websocket("/ws/display")
async def websocket_display(websocket: WebSocket):
    """
    Push the rendered view to the client on every change.

    The first message is the current view.
    """
    await websocket.accept()
    logger.info("WS connected: display")
    event_bus = get_market_display_service().event_bus
    queue = event_bus.subscribe(DISPLAY_TOPIC)
    try:
        while True:
            view = await queue.get()
            await websocket.send_json(view)
    except WebSocketDisconnect:
        logger.info("WS disconnected: display")
    except Exception as e:
        logger.error(f"WS error display: {e}")
        try:
            await websocket.close(code=1011, reason="Internal error")
        except RuntimeError:
            pass
    finally:
        event_bus.unsubscribe(DISPLAY_TOPIC, queue)
        logger.info("WS ended: display")


# ============================================
# Error Handlers
# ============================================

@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Handle 404 errors."""
    return JSONResponse(status_code=404, content={"detail": "Not found", "path": str(request.url)})


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Handle 500 errors."""
    logger.error(f"Internal error: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
