"""
FastAPI server for the Bhumi Consultancy API.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import Settings, get_settings, setup_logging
from core.api import BhumiAPI
from core.database import DatabaseManager
from core.notifications import ContactNotifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle."""
    api: BhumiAPI = app.state.api

    logger.info("Starting API server...")
    api.db_manager.create_tables()
    logger.info("Database ready")

    yield

    logger.info("Stopping API server...")
    await api.notifier.close()
    api.db_manager.dispose()


def create_app(settings: Optional[Settings] = None,
               db_manager: Optional[DatabaseManager] = None,
               notifier: Optional[ContactNotifier] = None,
               configure_logging: bool = True) -> FastAPI:
    """
    Creates the FastAPI application.

    Args:
        settings: Settings, read from the environment when omitted
        db_manager: Database manager, built from settings when omitted
        notifier: Contact notifier, built from settings when omitted
        configure_logging: Whether to configure root logging from settings

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()

    if configure_logging:
        setup_logging(settings)

    db_manager = db_manager or DatabaseManager(settings.database_url)

    api = BhumiAPI(db_manager, settings, notifier=notifier, lifespan=lifespan)
    app = api.app

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Code"],
    )

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api_server:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
    )
