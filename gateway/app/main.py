"""
FastAPI Gateway Application Factory
===================================

Entry point for the gateway that sits between the frontend and the backend
server process.

Architecture:
    Frontend → Gateway (this service) → Tunnel → Backend server

Routers:
    - /health       : Liveness check (no authentication)
    - /api/files    : Directory listing and creation (shared secret)
    - /api/file     : File contents (shared secret)
    - /api/chat     : Chat streaming, status and model selection (shared secret)
    - /api/terminal : Command execution, status, reconnect, diagnostics (shared secret)

Environment Variables:
    - TUNNEL_URL: Backend base URL (required)
    - TUNNEL_SHARED_SECRET: Bearer secret sent to the backend (required)
    - GATEWAY_SHARED_SECRET: Bearer secret expected from clients (required)
    - GATEWAY_HOST / GATEWAY_PORT: Listen address (default 0.0.0.0:3020)
    - BASE_DIR: Base directory served by the backend (informational)
    - ALLOWED_ORIGINS: Comma-separated CORS origins (default: *)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn --factory gateway.app.main:create_app --reload --port 3020

    Production:
        python -m gateway.app.main
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from gateway.app.config import (
    ConfigurationError,
    Settings,
    describe_secret,
    get_settings,
    validate_configuration,
)
from gateway.app.models import HealthResponse, utc_timestamp
from gateway.app.proxy import api_router
from gateway.app.tunnel import TunnelClient

SERVICE_NAME = "tunnel-gateway"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: configure logging and report the resolved configuration
    (secret presence only). Shutdown: log completion.
    """
    settings: Settings = app.state.settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("gateway.main")

    config_status = validate_configuration(settings)
    for warning in config_status["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    logger.info(
        "Starting gateway service",
        extra={
            "tunnel_url": settings.tunnel_url_str,
            "tunnel_secret": describe_secret(settings.TUNNEL_SHARED_SECRET),
            "gateway_secret": describe_secret(settings.GATEWAY_SHARED_SECRET),
            "base_dir": settings.BASE_DIR,
            "port": settings.GATEWAY_PORT,
        }
    )

    yield

    logger.info("Gateway service shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Validated configuration and tunnel client on ``app.state``
        - CORS middleware
        - Open /health and gated /api routes
        - Exception handlers

    Args:
        settings: Settings to use; loaded from the environment when omitted

    Returns:
        FastAPI: Configured application instance

    Raises:
        ConfigurationError: If required configuration is missing
    """
    settings = settings or get_settings()

    config_status = validate_configuration(settings)
    if not config_status["valid"]:
        raise ConfigurationError(
            "Invalid gateway configuration: " + "; ".join(config_status["errors"])
        )

    app = FastAPI(
        title="Tunnel Gateway",
        description="Authenticated gateway forwarding file, chat and terminal requests to a backend server",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.tunnel_client = TunnelClient(settings.backend_config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Health check endpoint
    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """
        Liveness check for orchestrators. Never requires a credential.
        """
        return HealthResponse(status="ok", timestamp=utc_timestamp())

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "endpoints": {
                "health": "/health",
                "files": "/api/files",
                "file": "/api/file",
                "chat": "/api/chat",
                "terminal": "/api/terminal",
                "diagnostics": "/api/terminal/test",
            }
        }

    # Gated forwarding routes
    app.include_router(api_router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Log unhandled errors and return a standardized error response.
        """
        logger = logging.getLogger("gateway.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None
            }
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
