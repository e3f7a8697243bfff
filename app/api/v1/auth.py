from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings
from ...core.auth import (
    AuthenticatedUser,
    Identity,
    create_anonymous_token,
    create_user_token,
    get_current_admin,
    get_current_identity,
)
from ...database import get_db
from ...models.base import new_id
from ...models.user import User
from ...utils.logging import get_logger
from ..deps import get_app_settings

logger = get_logger(__name__)

router = APIRouter()


class TokenRequest(BaseModel):
    email: EmailStr


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str


class IdentityResponse(BaseModel):
    user_id: str
    name: str
    role: str
    email: Optional[str] = None
    is_operator: bool
    is_guest: bool


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    role: str = Field("external", pattern="^(admin|manager|developer|tester|external)$")


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str
    role: str
    is_active: bool

    class Config:
        from_attributes = True


@router.post("/anonymous", response_model=TokenResponse)
async def sign_in_anonymously(settings: Settings = Depends(get_app_settings)):
    """Issue a guest session with its own id"""

    guest_id = f"guest-{new_id()}"
    return TokenResponse(
        access_token=create_anonymous_token(guest_id, settings),
        user_id=guest_id
    )


@router.post("/token", response_model=TokenResponse)
async def issue_token(
    payload: TokenRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
):
    """Issue a session for a registered, active user"""

    result = await db.execute(select(User).where(User.email == payload.email))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Unknown or inactive user")

    logger.info(f"Issued token for user {user.id}")
    return TokenResponse(access_token=create_user_token(user, settings), user_id=user.id)


@router.get("/me", response_model=IdentityResponse)
async def get_me(identity: Identity = Depends(get_current_identity)):
    return IdentityResponse(
        user_id=identity.user_id,
        name=identity.name,
        role=identity.role,
        email=identity.email,
        is_operator=identity.is_operator,
        is_guest=not isinstance(identity, AuthenticatedUser)
    )


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    payload: UserCreate,
    admin: AuthenticatedUser = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Register a user (admins only)"""

    existing = await db.execute(select(User).where(User.email == payload.email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="User already exists")

    user = User(email=payload.email, full_name=payload.full_name, role=payload.role)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Admin {admin.user_id} created user {user.id} ({user.role})")
    return user
