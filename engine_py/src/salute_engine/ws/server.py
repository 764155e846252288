"""
FastAPI WebSocket server for the Salute game.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..config import ServerConfig
from ..coordinator import RoomCoordinator
from ..persistence import create_repository
from ..rate_limit import FixedWindowRateLimiter
from .connections import ConnectionRegistry
from .router import ClientSession, MessageRouter

logger = logging.getLogger(__name__)

SERVICE_NAME = "Salute Game Server"
VERSION = "1.0.0"


def sweep_expired_rooms(app: FastAPI) -> List[str]:
    """Purge expired rooms and closed rate-limit windows. Returns the removed room codes."""
    config: ServerConfig = app.state.config
    router: MessageRouter = app.state.router

    expired = app.state.coordinator.cleanup_expired_rooms(config.room_retention_seconds)
    for room_code in expired:
        router.forget_room(room_code)
    router.rate_limiter.cleanup()
    return expired


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the expiry sweep in the background while the app is up."""
    interval = app.state.config.cleanup_interval_seconds

    async def _cleanup_loop():
        while True:
            await asyncio.sleep(interval)
            try:
                sweep_expired_rooms(app)
            except Exception:
                logger.exception("Error during room cleanup")

    task = asyncio.create_task(_cleanup_loop())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


def client_ip(websocket: WebSocket, trust_proxy_headers: bool = False) -> str:
    """Peer address, or the first x-forwarded-for hop when running behind a trusted proxy."""
    forwarded = websocket.headers.get("x-forwarded-for") if trust_proxy_headers else None
    if forwarded:
        return forwarded.split(",")[0].strip()
    if websocket.client:
        return websocket.client.host
    return "unknown"


def create_app(config: Optional[ServerConfig] = None,
               coordinator: Optional[RoomCoordinator] = None,
               rate_limiter: Optional[FixedWindowRateLimiter] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Server configuration (defaults to ServerConfig())
        coordinator: Room coordinator; built from config.database_url when omitted
        rate_limiter: Rate limiter; built from the config's limits when omitted

    Returns:
        Configured FastAPI app with /, /health and /ws routes
    """
    config = config or ServerConfig()
    if coordinator is None:
        coordinator = RoomCoordinator(repository=create_repository(config.database_url))
    registry = ConnectionRegistry()
    router = MessageRouter(
        coordinator,
        registry,
        rate_limiter or FixedWindowRateLimiter(config.rate_limit_rules()),
        config.default_room_settings(),
    )

    app = FastAPI(title=SERVICE_NAME, version=VERSION, lifespan=lifespan)
    app.state.config = config
    app.state.coordinator = coordinator
    app.state.registry = registry
    app.state.router = router

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"message": SERVICE_NAME, "version": VERSION}

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "rooms": len(coordinator.store),
            "connections": registry.count(),
        }

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Main WebSocket endpoint."""
        await websocket.accept()
        session = ClientSession(handle=websocket, ip=client_ip(websocket, config.trust_proxy_headers))
        logger.info(f"WebSocket connection accepted from {session.ip} ({session.session_id})")

        try:
            while True:
                raw = await websocket.receive_text()
                await router.handle_message(session, raw)
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected ({session.session_id})")
        except Exception as e:
            logger.error(f"WebSocket error ({session.session_id}): {e}")
        finally:
            await router.disconnect(session)

    return app
