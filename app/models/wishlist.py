from sqlalchemy import Column, String, Text, Boolean
from .base import BaseModel


class WishlistItem(BaseModel):
    __tablename__ = "wishlist_items"

    # artifacts/{app_id}/users/{user_id}/wishlist or artifacts/{app_id}/public/data/wishlists
    collection = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)

    product_name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    image_url = Column(String, nullable=False)
    original_url = Column(String, nullable=False)
    is_public = Column(Boolean, default=False)
