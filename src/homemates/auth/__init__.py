"""Authentication module.

Provides JWT-based authentication, password hashing, and auth routes.
"""

from homemates.auth.jwt import (
    create_access_token,
    create_oauth_state,
    create_refresh_token,
    decode_token,
    get_current_user,
    get_current_user_optional,
    require_owner,
)
from homemates.auth.password import check_password, get_password_hash
from homemates.auth.routes import router as auth_router

__all__ = [
    "auth_router",
    "create_access_token",
    "create_oauth_state",
    "create_refresh_token",
    "decode_token",
    "get_current_user",
    "get_current_user_optional",
    "get_password_hash",
    "require_owner",
    "check_password",
]
