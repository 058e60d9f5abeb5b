"""
Construction Dashboard - FastAPI Application
Today's plans, delayed workflows, weather, progress and project map
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from datetime import datetime, timezone
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.database import init_db
from app.config import settings
from app.core.exceptions import IntegrationError
from app.core.logger import configure_logging
from app.services.dashboard_loader import DashboardLoader
from app.services.plans_listener import PlansChangeListener
from app.websockets.connection_manager import manager
from app.api import websocket
from app.api.routes import auth, dashboard, health, web

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting %s...", settings.app_name)

    try:
        init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}")

    loader = DashboardLoader()
    loader.add_listener(manager.broadcast_snapshot)
    app.state.dashboard_loader = loader

    listener = None
    if settings.realtime_enabled:
        listener = PlansChangeListener(loader)
        try:
            await listener.start()
            logger.info("Realtime listener subscribed to %s", settings.realtime_table)
        except IntegrationError as e:
            logger.error("Realtime listener failed to start: %s", e)
            listener = None
    app.state.plans_listener = listener

    logger.info(f"API running on {settings.app_env} environment")
    yield

    if listener is not None:
        await listener.stop()
    logger.info("Shutting down %s...", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Construction project management dashboard",
    version="1.0.0",
    debug=settings.app_debug,
    lifespan=lifespan,
)

# Respect forwarded proto/host so OAuth redirect_to keeps the public origin.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(
    dashboard.router, prefix=f"{settings.api_v1_prefix}/dashboard", tags=["Dashboard"]
)
app.include_router(websocket.router, tags=["WebSocket"])
app.include_router(web.router, tags=["Web"])
