"""
Marketplace API - Main API Server
FastAPI application behind the marketplace single-page client.

Features:
- Authentication (sign-up, sign-in with login throttling, Google sign-in)
- User management (profile, update, delete, own listings)
- Listings (create, view, update, delete)
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file BEFORE other imports
load_dotenv()

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.loader import AppConfig, get_config
from src.api.routes import include_routers
from src.middleware.auth_middleware import AuthMiddleware
from src.middleware.request_id_middleware import RequestIdMiddleware
from src.services.auth_service import AuthService
from src.services.login_throttle import LoginThrottle
from src.tools.supabase_tool import SupabaseTool, StoreError, execute_async
from src.utils.error_handler import register_exception_handlers
from src.utils.structured_logger import setup_structured_logging

logger = logging.getLogger(__name__)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


async def sweep_login_throttle(throttle: LoginThrottle, interval: float):
    """Periodically drop expired ban records."""
    while True:
        await asyncio.sleep(interval)
        throttle.purge_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    logger.info("Starting Marketplace API...")

    sweep_task = None
    interval = app.state.config.throttle_sweep_interval
    if interval > 0:
        sweep_task = asyncio.create_task(sweep_login_throttle(app.state.login_throttle, interval))
        logger.info(f"Login throttle sweep every {interval}s")

    yield

    if sweep_task:
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
    logger.info("Shutting down...")


def create_app(
    config: Optional[AppConfig] = None,
    db: Optional[SupabaseTool] = None,
    throttle: Optional[LoginThrottle] = None,
    configure_logging: bool = True
) -> FastAPI:
    """Build the application and its per-process services."""
    config = config or get_config()

    if configure_logging:
        setup_structured_logging(
            level=config.log_level,
            json_output=config.log_json,
            access_log_file=config.access_log_file
        )

    app = FastAPI(
        title=config.app_name,
        description="Classifieds marketplace API: accounts and listings",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.config = config
    app.state.db = db if db is not None else SupabaseTool(config)
    app.state.auth_service = AuthService(config, app.state.db)
    if throttle is None:
        throttle = LoginThrottle(
            max_failures=config.throttle_max_failures,
            ban_seconds=config.throttle_ban_seconds
        )
    app.state.login_throttle = throttle

    # ==================== Middleware Setup ====================
    # Middleware runs in REVERSE order of addition (last added runs first).

    app.add_middleware(
        AuthMiddleware,
        verify_token=app.state.auth_service.verify_session_token,
        cookie_name=config.cookie_name
    )

    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    register_exception_handlers(app)

    # ==================== Health Endpoints ====================

    @app.get("/")
    async def root():
        """Root endpoint - API info"""
        return {
            "name": config.app_name,
            "version": "1.0.0",
            "status": "running",
            "timestamp": _utcnow()
        }

    @app.get("/health")
    async def health_check():
        """Basic health check endpoint for load balancers"""
        return {"status": "healthy", "timestamp": _utcnow()}

    @app.get("/health/live")
    async def liveness_check():
        """Liveness check - the process is serving requests"""
        return {"status": "alive", "timestamp": _utcnow()}

    @app.get("/health/ready")
    async def readiness_check(request: Request):
        """Readiness check - the database answers a trivial query"""
        store = request.app.state.db
        try:
            await execute_async(store.ping)
            checks = {"database": "healthy"}
            ready = True
        except StoreError as e:
            logger.warning(f"Readiness check failed: {e}")
            checks = {"database": "unhealthy"}
            ready = False

        return JSONResponse(
            status_code=200 if ready else 503,
            content={
                "status": "ready" if ready else "not_ready",
                "checks": checks,
                "timestamp": _utcnow()
            }
        )

    include_routers(app)

    return app


app = create_app()


# ==================== Run Server ====================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 3000))
    host = os.getenv("HOST", "127.0.0.1")

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(app, host=host, port=port, log_level="info")
