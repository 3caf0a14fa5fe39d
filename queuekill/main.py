"""
QueueKill — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, `realtime/` and `core/`
packages.

``app`` is the FastAPI application; ``asgi_app`` wraps it with the
Socket.IO server and is what the process serves.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from queuekill.api.api import api_router
from queuekill.api.endpoints.auth import limiter
from queuekill.core.config import settings
from queuekill.core.exceptions import register_exception_handlers
from queuekill.db.base import Base
from queuekill.db.session import engine

# Ensure all models are imported so metadata.create_all can see them
from queuekill.models.queue import Queue, QueueEntry  # noqa: F401
from queuekill.models.restaurant import Restaurant  # noqa: F401
from queuekill.models.user import User  # noqa: F401
from queuekill.realtime.notifier import QueueNotifier
from queuekill.realtime.registry import RoomRegistry
from queuekill.realtime.sockets import create_socket_server, register_socket_handlers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    logger.info("🚀 %s v%s started (%s)", settings.PROJECT_NAME, settings.VERSION, settings.ENVIRONMENT)
    yield
    await engine.dispose()
    logger.info("Database connection closed")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Restaurant virtual queue management",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Rate limiting (login)
    application.state.limiter = limiter

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Real-time: the registry is owned by the notifier and the socket handlers
    registry = RoomRegistry()
    sio = create_socket_server()
    register_socket_handlers(sio, registry)
    application.state.sio = sio
    application.state.notifier = QueueNotifier(sio, registry)

    # Mount API
    application.include_router(api_router, prefix=settings.API_PREFIX)

    @application.get("/", include_in_schema=False)
    async def root() -> dict:
        return {
            "success": True,
            "message": "QueueKill API",
            "version": settings.VERSION,
            "docs": f"{settings.API_PREFIX}/health",
        }

    return application


app = create_app()
asgi_app = socketio.ASGIApp(app.state.sio, other_asgi_app=app)
