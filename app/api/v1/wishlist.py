"""
Wishlist API Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, HttpUrl

from ...agents.product_agent import ProductAgent
from ...core.auth import Identity, decode_identity, get_current_identity
from ...core.collections import public_wishlist_path, user_wishlist_path
from ...services.wishlist_service import WishlistItemNotFoundError, WishlistService
from ..deps import get_wishlist_service
from ..live import stream_collection

router = APIRouter()


class WishlistItemCreate(BaseModel):
    original_url: HttpUrl
    is_public: bool = False
    product_name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = None


class WishlistItemResponse(BaseModel):
    id: str
    owner_id: str
    product_name: str
    description: str
    image_url: str
    original_url: str
    is_public: bool
    created_at: datetime

    class Config:
        from_attributes = True


@router.post("", response_model=WishlistItemResponse, status_code=201)
async def add_item(
    payload: WishlistItemCreate,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    service: WishlistService = Depends(get_wishlist_service)
):
    """
    Add a product to the caller's wishlist.

    Fields left empty are extracted from the product page; when the page or
    the model is unavailable the item is still saved with details derived
    from the URL.
    """
    state = request.app.state
    agent = ProductAgent(state.llm, state.page_fetcher)

    return await service.add_item(
        owner_id=identity.user_id,
        original_url=str(payload.original_url),
        is_public=payload.is_public,
        product_name=payload.product_name,
        description=payload.description,
        image_url=payload.image_url,
        agent=agent
    )


@router.get("", response_model=List[WishlistItemResponse])
async def list_items(
    identity: Identity = Depends(get_current_identity),
    service: WishlistService = Depends(get_wishlist_service)
):
    return await service.list_items(identity.user_id)


@router.get("/public/{owner_id}", response_model=List[WishlistItemResponse])
async def list_public_items(
    owner_id: str,
    identity: Identity = Depends(get_current_identity),
    service: WishlistService = Depends(get_wishlist_service)
):
    """Items a user has shared publicly"""
    return await service.list_public_items(owner_id)


@router.delete("/{item_id}", response_model=dict)
async def delete_item(
    item_id: str,
    identity: Identity = Depends(get_current_identity),
    service: WishlistService = Depends(get_wishlist_service)
):
    try:
        await service.delete_item(identity.user_id, item_id)
    except WishlistItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"message": "Wishlist item deleted successfully", "item_id": item_id}


async def _stream(websocket: WebSocket, collection: str, load_items) -> None:
    state = websocket.app.state

    async def load_snapshot():
        async with state.database.session() as db:
            items = await load_items(WishlistService(db, state.settings))
            return [WishlistItemResponse.model_validate(i).model_dump(mode="json") for i in items]

    await stream_collection(websocket, state.feed, collection, load_snapshot, "items")


@router.websocket("/live")
async def live_wishlist(websocket: WebSocket, token: Optional[str] = None):
    """Live view of the caller's own wishlist; requires a session token"""

    settings = websocket.app.state.settings
    identity = decode_identity(token, settings) if token else None
    if identity is None:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    await _stream(
        websocket,
        user_wishlist_path(settings.app_id, identity.user_id),
        lambda service: service.list_items(identity.user_id)
    )


@router.websocket("/public/{owner_id}/live")
async def live_public_wishlist(websocket: WebSocket, owner_id: str):
    await websocket.accept()
    settings = websocket.app.state.settings
    await _stream(
        websocket,
        public_wishlist_path(settings.app_id),
        lambda service: service.list_public_items(owner_id)
    )
