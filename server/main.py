"""FastAPI WebSocket server for the Kabo card game."""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from handlers import ConnectionContext, dispatch, handle_player_leave
from logging_config import setup_logging
from room import RoomManager

# Initialize Sentry if configured
if config.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.starlette import StarletteIntegration

    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        traces_sample_rate=0.1 if config.ENVIRONMENT == "production" else 1.0,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
    )
    logging.getLogger(__name__).info("Sentry error tracking initialized")

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


room_manager = RoomManager()


async def _close_all_websockets():
    """Close all active WebSocket connections gracefully."""
    for room in list(room_manager.rooms.values()):
        for player in room.players.values():
            if player.websocket:
                try:
                    await player.websocket.close(code=1001, reason="Server shutting down")
                except Exception as e:
                    logger.debug(f"Close failed for {player.id}: {e}")
    logger.info("All WebSocket connections closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    from routers.health import set_health_dependencies
    set_health_dependencies(room_manager=room_manager)

    logger.info(f"Kabo server started (environment={config.ENVIRONMENT})")
    yield

    logger.info("Shutdown initiated...")
    await _close_all_websockets()
    room_manager.rooms.clear()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Kabo Card Game",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Routers
# =============================================================================

from routers.health import router as health_router

app.include_router(health_router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    await websocket.accept()

    connection_id = str(uuid.uuid4())
    logger.debug(f"WebSocket connected as {connection_id}")

    ctx = ConnectionContext(websocket=websocket, player_id=connection_id)

    # Shared dependencies passed to every handler
    handler_deps = dict(
        room_manager=room_manager,
    )

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except (ValueError, KeyError, TypeError):
                # Invalid JSON text, or a binary frame
                await websocket.send_json({
                    "type": "ack",
                    "action": None,
                    "request_id": None,
                    "ok": False,
                    "error": "Malformed message",
                    "category": "invalid_argument",
                })
                continue
            await dispatch(data, ctx, **handler_deps)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket {connection_id} disconnected")
    finally:
        # Any exit from the loop frees the seat
        if ctx.current_room:
            await handle_player_leave(ctx.current_room, ctx.player_id, room_manager=room_manager)
            ctx.current_room = None


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting Kabo server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
