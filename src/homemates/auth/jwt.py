"""JWT token creation and validation.

Provides access tokens (short-lived) carrying the profile claims the
dashboard reads, refresh tokens (long-lived), and signed OAuth state values.
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.db.database import get_db
from homemates.db.models import User

# JWT Configuration
SECRET_KEY = config.JWT_SECRET_KEY
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = config.ACCESS_TOKEN_EXPIRE_MINUTES
REFRESH_TOKEN_EXPIRE_DAYS = 7
OAUTH_STATE_EXPIRE_MINUTES = 10


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    type: str  # "access", "refresh" or "oauth_state"
    exp: datetime
    iat: datetime


class TokenPair(BaseModel):
    """Access and refresh token pair."""

    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until access token expires


# Security scheme for Swagger UI
security = HTTPBearer(auto_error=False)


def _encode(claims: dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {**claims, "type": token_type, "iat": now, "exp": now + expires_delta}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def profile_claims(user: User) -> dict[str, Any]:
    """Claims the dashboard decodes from the access token."""
    return {
        "sub": str(user.id),
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "phone": user.phone,
        "company_name": user.company_name,
        "user_type": user.user_type,
    }


def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    """Create a short-lived access token.

    Args:
        user: The authenticated user.
        expires_delta: Optional custom expiration time.

    Returns:
        Encoded JWT access token.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(profile_claims(user), "access", expires_delta)


def create_refresh_token(
    user_id: UUID | str, expires_delta: timedelta | None = None
) -> str:
    """Create a long-lived refresh token.

    Args:
        user_id: The user's UUID.
        expires_delta: Optional custom expiration time.

    Returns:
        Encoded JWT refresh token.
    """
    if expires_delta is None:
        expires_delta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode({"sub": str(user_id)}, "refresh", expires_delta)


def create_token_pair(user: User) -> TokenPair:
    """Create both access and refresh tokens for a user."""
    return TokenPair(
        token=create_access_token(user),
        refresh_token=create_refresh_token(user.id),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def create_oauth_state(user_id: UUID | str, tool_type: str) -> str:
    """Sign an OAuth state value naming the user and the tool being connected."""
    return _encode(
        {"sub": str(user_id), "tool_type": tool_type},
        "oauth_state",
        timedelta(minutes=OAUTH_STATE_EXPIRE_MINUTES),
    )


def decode_claims(token: str) -> dict[str, Any]:
    """Decode a token and return its raw claims.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {e!s}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def decode_token(token: str) -> TokenPayload:
    """Decode and validate a JWT token.

    Args:
        token: The JWT token to decode.

    Returns:
        TokenPayload with user ID and token metadata.

    Raises:
        HTTPException: If token is invalid or expired.
    """
    payload = decode_claims(token)
    try:
        return TokenPayload(
            sub=payload["sub"],
            type=payload["type"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        )
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: missing {e.args[0]}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def parse_user_id(sub: str) -> UUID:
    try:
        return UUID(sub)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency to get the current authenticated user.

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user

    Raises:
        HTTPException: 401 if not authenticated or token invalid.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token_data = decode_token(credentials.credentials)

    if token_data.type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == parse_user_id(token_data.sub)))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_user_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """FastAPI dependency to optionally get the current user.

    Returns None if not authenticated instead of raising an exception.
    Used by the public endpoints that guests and signed-in users share.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, db)
    except HTTPException:
        return None


async def require_owner(user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency that only admits owner accounts.

    Raises:
        HTTPException: 403 for tenant accounts.
    """
    if not user.is_owner:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Owner account required",
        )
    return user
