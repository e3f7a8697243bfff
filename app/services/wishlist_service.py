from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..agents.product_agent import ProductAgent
from ..config import Settings
from ..core.collections import public_wishlist_path, user_wishlist_path
from ..models.ai_operation import AIOperation
from ..models.wishlist import WishlistItem
from ..services.live_feed import LiveFeedHub
from ..utils.logging import get_logger

logger = get_logger(__name__)


class WishlistItemNotFoundError(LookupError):
    pass


class WishlistService:
    """Per-user wishlists with optional public copies"""

    def __init__(self, db: AsyncSession, settings: Settings, feed: Optional[LiveFeedHub] = None):
        self.db = db
        self.settings = settings
        self.feed = feed
        self.public_collection = public_wishlist_path(settings.app_id)

    def user_collection(self, user_id: str) -> str:
        return user_wishlist_path(self.settings.app_id, user_id)

    def _notify(self, *collections: str) -> None:
        if self.feed is None:
            return
        for collection in collections:
            self.feed.notify(collection)

    async def add_item(
        self,
        owner_id: str,
        original_url: str,
        is_public: bool = False,
        product_name: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        agent: Optional[ProductAgent] = None
    ) -> WishlistItem:
        """
        Add a product by URL. Missing details are extracted from the page when
        an agent is given, otherwise derived from the URL.
        """
        if not (product_name and description and image_url) and agent is not None:
            extraction = await agent.extract(original_url)
            self.db.add(AIOperation.from_stage(extraction))
            product = extraction.value
            product_name = product_name or product.product_name
            description = description or product.description
            image_url = image_url or product.image_url

        product_name = product_name or original_url
        description = description or ""
        image_url = image_url or "/placeholder-product.jpg"

        item = WishlistItem(
            collection=self.user_collection(owner_id),
            owner_id=owner_id,
            product_name=product_name,
            description=description,
            image_url=image_url,
            original_url=original_url,
            is_public=is_public
        )
        self.db.add(item)

        if is_public:
            self.db.add(WishlistItem(
                collection=self.public_collection,
                owner_id=owner_id,
                product_name=product_name,
                description=description,
                image_url=image_url,
                original_url=original_url,
                is_public=True
            ))

        try:
            await self.db.commit()
            await self.db.refresh(item)
        except Exception as e:
            logger.error(f"Error adding product: {str(e)}")
            await self.db.rollback()
            raise

        logger.info(f"Added wishlist item {item.id} for user {owner_id}")
        if is_public:
            self._notify(item.collection, self.public_collection)
        else:
            self._notify(item.collection)
        return item

    async def list_items(self, owner_id: str) -> List[WishlistItem]:
        stmt = select(WishlistItem).where(
            WishlistItem.collection == self.user_collection(owner_id)
        ).order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_public_items(self, owner_id: str) -> List[WishlistItem]:
        stmt = select(WishlistItem).where(
            WishlistItem.collection == self.public_collection,
            WishlistItem.owner_id == owner_id
        ).order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_item(self, owner_id: str, item_id: str) -> None:
        """Delete from the owner's list; the public copy is left in place"""
        stmt = select(WishlistItem).where(
            WishlistItem.id == item_id,
            WishlistItem.collection == self.user_collection(owner_id)
        )
        result = await self.db.execute(stmt)
        item = result.scalar_one_or_none()
        if item is None:
            raise WishlistItemNotFoundError(f"Wishlist item {item_id} not found")

        await self.db.delete(item)
        await self.db.commit()
        self._notify(self.user_collection(owner_id))
