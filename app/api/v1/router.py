from fastapi import APIRouter
from .auth import router as auth_router
from .requests import router as requests_router
from .wishlist import router as wishlist_router

api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(requests_router, prefix="/requests", tags=["requests"])
api_router.include_router(wishlist_router, prefix="/wishlist", tags=["wishlist"])
