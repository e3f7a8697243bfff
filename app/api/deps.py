from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..database import get_db
from ..services.enrichment_service import EnrichmentService
from ..services.request_service import RequestService
from ..services.wishlist_service import WishlistService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_request_service(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> RequestService:
    return RequestService(db, request.app.state.settings, request.app.state.feed)


def get_wishlist_service(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> WishlistService:
    return WishlistService(db, request.app.state.settings, request.app.state.feed)


def get_enrichment_service(request: Request) -> EnrichmentService:
    state = request.app.state
    return EnrichmentService(state.database, state.llm, state.settings, state.feed)
