"""
Bookmark Manager API
FastAPI application with Firebase integration
"""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bookmark_manager.core.config import settings
from bookmark_manager.core.exceptions import ConfigurationException
from bookmark_manager.core.firebase_config import initialize_firebase
from bookmark_manager.api.v1.router import api_router
from bookmark_manager.services.controller import BookmarkApp

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_firebase_controller() -> BookmarkApp:
    """Default controller wired to Firebase Authentication and Firestore"""
    if not initialize_firebase():
        raise ConfigurationException("Firebase not configured. Please set environment variables.")
    logger.info("✅ Firebase initialized")
    return BookmarkApp.from_settings(settings)


def create_app(controller_factory: Optional[Callable[[], BookmarkApp]] = None) -> FastAPI:
    factory = controller_factory or build_firebase_controller

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management"""
        # Startup
        logger.info("🚀 Starting Bookmark Manager...")
        logger.debug(f"Debug mode: {settings.DEBUG}")

        controller = factory()
        app.state.controller = controller
        await controller.start()
        logger.info("✅ Session check complete")

        yield

        # Shutdown
        logger.info("🛑 Shutting down Bookmark Manager...")
        await controller.close()

    app = FastAPI(
        title="Bookmark Manager API",
        description="Personal bookmarks with live updates, backed by Firebase",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    allowed_origins = list(settings.ALLOWED_ORIGINS)
    if settings.DEBUG:
        logger.warning("⚠️  CORS wildcard enabled - DEBUG mode. Disable in production!")
        allowed_origins.append("*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "message": "Bookmark Manager is running"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info",
        access_log=True,
        log_config=None  # Use our custom logging config
    )
