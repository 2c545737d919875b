"""Authentication API routes.

Provides register, login, token refresh and profile endpoints.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.auth.jwt import (
    TokenPair,
    create_token_pair,
    decode_token,
    get_current_user,
    parse_user_id,
)
from homemates.auth.password import check_password, get_password_hash
from homemates.db.database import get_db
from homemates.db.models import User, UserType
from homemates_shared.schemas import is_e164, normalize_phone

logger = logging.getLogger("homemates-auth")

router = APIRouter(prefix="/auth", tags=["Authentication"])


# =============================================================================
# Request/Response Models
# =============================================================================


class RegisterRequest(BaseModel):
    """Request body for account registration."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    company_name: str | None = None
    phone: str | None = None
    user_type: UserType = UserType.OWNER


class LoginRequest(BaseModel):
    """Request body for login.

    ``phone_number`` holds either a phone number or an email address.
    """

    phone_number: str = Field(..., min_length=1)
    password: str
    user_type: UserType = UserType.TENANT


class RefreshRequest(BaseModel):
    """Request body for token refresh."""

    refresh_token: str


class UserResponse(BaseModel):
    """User data response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None
    name: str
    phone: str | None
    company_name: str | None
    user_type: str
    created_at: datetime


class AuthResponse(TokenPair):
    """Token pair plus the user profile."""

    user: UserResponse


def user_response(user: User) -> UserResponse:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name,
        phone=user.phone,
        company_name=user.company_name,
        user_type=user.user_type,
        created_at=user.created_at,
    )


def auth_response(user: User) -> AuthResponse:
    tokens = create_token_pair(user)
    return AuthResponse(**tokens.model_dump(), user=user_response(user))


# =============================================================================
# Routes
# =============================================================================


@router.post(
    "/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED
)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Create a new account and return tokens."""
    email = request.email.lower()
    phone = None
    if request.phone:
        phone = normalize_phone(request.phone, config.DEFAULT_COUNTRY_CODE)
        if phone is None or not is_e164(phone):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid phone number: {request.phone}",
            )

    conditions = [User.email == email]
    if phone:
        conditions.append(User.phone == phone)
    existing = await db.execute(select(User).where(or_(*conditions)))
    if existing.scalars().first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email or phone already registered",
        )

    user = User(
        email=email,
        phone=phone,
        name=request.name.strip(),
        company_name=request.company_name,
        user_type=request.user_type.value,
        password_hash=get_password_hash(request.password),
    )
    db.add(user)
    await db.flush()

    logger.info(f"Registered {user.user_type} account {user.id}")
    return auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate by phone number or email and return tokens.

    Returns 403 when the account exists but belongs to the other role.
    """
    identifier = request.phone_number.strip()
    if "@" in identifier:
        query = select(User).where(User.email == identifier.lower())
    else:
        phone = normalize_phone(identifier, config.DEFAULT_COUNTRY_CODE)
        query = select(User).where(User.phone == phone)

    user = (await db.execute(query)).scalar_one_or_none()

    if user is None or not user.password_hash:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    valid, new_hash = check_password(request.password, user.password_hash)
    if not valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    if new_hash:
        user.password_hash = new_hash

    if user.user_type != request.user_type.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This account is registered as {user.user_type}",
        )

    return auth_response(user)


@router.post("/refresh", response_model=TokenPair)
async def refresh_token(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a refresh token for a new token pair."""
    token_data = decode_token(request.refresh_token)

    if token_data.type != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    user = await db.get(User, parse_user_id(token_data.sub))
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return create_token_pair(user)


@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)):
    """Get current authenticated user's profile."""
    return user_response(user)

