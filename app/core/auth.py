from dataclasses import dataclass
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from ..config import Settings
from ..models.user import User
from ..utils.logging import get_logger

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)

OPERATOR_ROLES = ("admin", "manager")

# Shared identity used when no valid session is presented
GUEST_ID = "guest"


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    name: str
    role: str
    email: Optional[str] = None

    @property
    def is_operator(self) -> bool:
        return self.role in OPERATOR_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class Guest:
    user_id: str = GUEST_ID
    name: str = "Guest"
    role: str = "external"
    email: Optional[str] = None

    is_operator = False
    is_admin = False


Identity = Union[AuthenticatedUser, Guest]


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None):
    """Create JWT access token"""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    return encoded_jwt


def create_user_token(user: User, settings: Settings) -> str:
    return create_access_token(
        {"sub": user.id, "name": user.full_name, "role": user.role, "email": user.email},
        settings
    )


def create_anonymous_token(guest_id: str, settings: Settings) -> str:
    return create_access_token(
        {"sub": guest_id, "name": "Guest", "role": "external", "anonymous": True},
        settings
    )


def decode_identity(token: str, settings: Settings) -> Optional[Identity]:
    """Decode a bearer token into an identity, or None when it is not valid"""

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None

    user_id = payload.get("sub")
    if not user_id:
        return None

    if payload.get("anonymous"):
        return Guest(user_id=user_id)

    return AuthenticatedUser(
        user_id=user_id,
        name=payload.get("name") or user_id,
        role=payload.get("role") or "external",
        email=payload.get("email")
    )


async def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Identity:
    """Resolve the caller; falls back to the shared Guest when allowed"""

    settings: Settings = request.app.state.settings

    identity = None
    if credentials is not None:
        identity = decode_identity(credentials.credentials, settings)

    if identity is not None:
        return identity

    if settings.allow_guest_access:
        return Guest()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_operator(
    identity: Identity = Depends(get_current_identity)
) -> AuthenticatedUser:
    """Dependency to ensure current user is an admin or manager"""

    if not identity.is_operator:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator privileges required"
        )

    return identity


def get_current_admin(
    identity: Identity = Depends(get_current_identity)
) -> AuthenticatedUser:
    """Dependency to ensure current user is an admin"""

    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )

    return identity
