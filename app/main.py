from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import uvicorn
import logging

from .config import Settings, get_settings
from .database import Database
from .api.v1.router import api_router
from .integrations.page_fetcher import create_page_fetcher
from .services.live_feed import LiveFeedHub
from .services.llm_provider import LLMProvider
from .utils.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings: Settings = app.state.settings

    # Startup
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting {settings.app_name} (collection namespace: {settings.app_id})")

    database = Database(settings)
    await database.connect()

    app.state.database = database
    app.state.feed = LiveFeedHub()
    app.state.llm = LLMProvider(settings)
    app.state.page_fetcher = create_page_fetcher(settings)

    try:
        yield
    finally:
        # Shutdown
        logger.info(f"Shutting down {settings.app_name}")
        await app.state.feed.close()
        await app.state.page_fetcher.close()
        await app.state.llm.close()
        await database.disconnect()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Feature request tracker with AI-assisted triage",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )
    app.state.settings = settings

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        state = app.state
        integrations = []
        if hasattr(state, "llm"):
            integrations = [state.page_fetcher, *state.llm.integrations]

        return {
            "status": "healthy",
            "version": settings.app_version,
            "llm_provider": state.llm.provider if hasattr(state, "llm") else None,
            "integrations": {i.config.name: i.metrics.model_dump(mode="json") for i in integrations},
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
