from typing import AsyncGenerator, Optional
from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import Settings
from .models.base import Base
from .utils.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Owns the async engine and session factory for one application instance.

    Created and disposed by the application lifespan; handed to background
    work explicitly instead of living in module globals.
    """

    def __init__(self, settings: Settings):
        self.url = settings.database_url
        self.echo = settings.database_echo
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self, create_tables: bool = True) -> None:
        """Create engine and session factory, optionally creating tables"""
        self.engine = create_async_engine(self.url, echo=self.echo, future=True)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        if create_tables:
            # Import all models so they're registered
            from .models import ai_operation, comment, feature_request, user, wishlist  # noqa: F401

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        logger.info("Database connected")

    async def disconnect(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Database disconnected")

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")
        return self.session_factory()


# Dependency to get database session
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
