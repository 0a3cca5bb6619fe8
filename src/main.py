"""Main application entry point for the menu display service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os

from fastapi import FastAPI
from supabase import AsyncClient

from menu_display_service.handlers.api_handler import create_app
from menu_display_service.models.sync_models import SyncMode
from menu_display_service.observability import configure_logging, setup_observability
from menu_display_service.services.admin_session import AdminSessionRegistry
from menu_display_service.services.change_feed import MenuChangeFeed
from menu_display_service.services.display_service import DEFAULT_IDLE_TIMEOUT_SECONDS, DisplayService
from menu_display_service.services.logo_storage import DEFAULT_LOGO_BUCKET, LogoStorage
from menu_display_service.services.menu_gateway import MenuGateway
from menu_display_service.synchronizers.polling_synchronizer import DEFAULT_POLL_INTERVAL_MS

logger = logging.getLogger(__name__)


def get_supabase_client() -> AsyncClient:
    """Create the Supabase client from environment configuration.

    The service role key is preferred; the anon key works for read-only
    deployments that rely on row-level security.

    Returns:
        Supabase async client

    Raises:
        ValueError: If the URL or both keys are missing
    """
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")

    if not url or not key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_ANON_KEY) must be set in environment"
        )

    logger.info(f"Supabase client configured - URL: {url}")
    return AsyncClient(url, key)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the Supabase client
    3. Creates the gateway, storage and change feed
    4. Creates the admin and display services
    5. Creates FastAPI app with admin and display endpoints
    6. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    # Configure structured logging
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing menu display service...")

    client = get_supabase_client()
    gateway = MenuGateway(client)
    logo_storage = LogoStorage(client, bucket=os.getenv("LOGO_BUCKET", DEFAULT_LOGO_BUCKET))
    change_feed = MenuChangeFeed(client)

    sync_mode = SyncMode(os.getenv("DISPLAY_SYNC_MODE", SyncMode.POLLING.value))
    poll_interval_ms = int(os.getenv("DISPLAY_POLL_INTERVAL_MS", str(DEFAULT_POLL_INTERVAL_MS)))
    idle_timeout_seconds = float(os.getenv("DISPLAY_IDLE_TIMEOUT_SECONDS", str(DEFAULT_IDLE_TIMEOUT_SECONDS)))

    display_service = DisplayService(
        gateway=gateway,
        change_feed=change_feed,
        mode=sync_mode,
        poll_interval_ms=poll_interval_ms,
        idle_timeout_seconds=idle_timeout_seconds,
    )
    admin_registry = AdminSessionRegistry(gateway=gateway, logo_storage=logo_storage)

    logger.info(f"Display sync mode: {sync_mode.value}, poll interval: {poll_interval_ms}ms")

    app = create_app(
        admin_registry=admin_registry,
        display_service=display_service,
        gateway=gateway,
        public_base_url=os.getenv("PUBLIC_BASE_URL", "http://localhost:8001"),
    )

    setup_observability(app)

    logger.info("Menu display service initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
