"""Google tool integration API routes.

Connects an owner's Gmail or Calendar through the OAuth consent flow. The
``state`` parameter is a short-lived signed token naming the user and the
tool, checked again when the callback page posts the code.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates.auth.jwt import create_oauth_state, decode_claims, require_owner
from homemates.db.database import get_db
from homemates.db.models import IntegrationStatus, ToolIntegration, ToolType, User
from homemates.schemas import IntegrationOut
from homemates_shared.google_oauth import GoogleOAuthClient, get_google_oauth_client

logger = logging.getLogger("homemates-tools")

router = APIRouter(prefix="/tools", tags=["Tools"])


class IntegrationListResponse(BaseModel):
    integrations: list[IntegrationOut]


class IntegrationResponse(BaseModel):
    integration: IntegrationOut


class AuthUrlResponse(BaseModel):
    auth_url: str
    state: str


class ConnectRequest(BaseModel):
    code: str = Field(..., min_length=1)
    state: str | None = None


def check_state(state: str, user: User, tool_type: ToolType) -> None:
    """Reject a state that is invalid or was issued for another user or tool."""
    try:
        claims = decode_claims(state)
    except HTTPException as e:
        raise HTTPException(status_code=400, detail="Invalid OAuth state") from e

    if (
        claims.get("type") != "oauth_state"
        or claims.get("sub") != str(user.id)
        or claims.get("tool_type") != tool_type.value
    ):
        raise HTTPException(status_code=400, detail="OAuth state does not match this request")


async def _get_integration(
    db: AsyncSession, user: User, tool_type: ToolType
) -> ToolIntegration | None:
    return (
        await db.execute(
            select(ToolIntegration).where(
                ToolIntegration.user_id == user.id,
                ToolIntegration.tool_type == tool_type.value,
            )
        )
    ).scalar_one_or_none()


@router.get("", response_model=IntegrationListResponse)
async def list_integrations(
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(ToolIntegration)
        .where(ToolIntegration.user_id == owner.id)
        .order_by(ToolIntegration.created_at)
    )
    return IntegrationListResponse(
        integrations=[IntegrationOut.from_model(i) for i in result.scalars()]
    )


@router.get("/oauth/google", response_model=AuthUrlResponse)
async def google_auth_url(
    tool_type: ToolType,
    owner: User = Depends(require_owner),
    client: GoogleOAuthClient = Depends(get_google_oauth_client),
):
    """Build the Google consent URL for connecting a tool."""
    state = create_oauth_state(owner.id, tool_type.value)
    return AuthUrlResponse(auth_url=client.build_auth_url(tool_type.value, state), state=state)


@router.post("/{tool_type}/connect", response_model=IntegrationResponse)
async def connect_tool(
    tool_type: ToolType,
    request: ConnectRequest,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: GoogleOAuthClient = Depends(get_google_oauth_client),
):
    """Exchange the OAuth code and store the connection."""
    if request.state:
        check_state(request.state, owner, tool_type)
    else:
        logger.warning(f"Connecting {tool_type.value} for user {owner.id} without an OAuth state")

    tokens = await client.exchange_code(request.code)

    integration = await _get_integration(db, owner, tool_type)
    if integration is None:
        integration = ToolIntegration(user_id=owner.id, tool_type=tool_type.value)
        db.add(integration)

    integration.status = IntegrationStatus.CONNECTED.value
    integration.access_token = tokens.access_token
    # Google omits the refresh token on re-consent; keep the old one
    if tokens.refresh_token:
        integration.refresh_token = tokens.refresh_token
    integration.token_expires_at = tokens.expires_at
    integration.scopes = " ".join(tokens.scopes) or None
    integration.last_sync = datetime.now(timezone.utc)
    await db.flush()

    logger.info(f"Connected {tool_type.value} for user {owner.id}")
    return IntegrationResponse(integration=IntegrationOut.from_model(integration))


@router.delete("/{tool_type}")
async def disconnect_tool(
    tool_type: ToolType,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: GoogleOAuthClient = Depends(get_google_oauth_client),
):
    """Revoke the token (best effort) and mark the tool disconnected."""
    integration = await _get_integration(db, owner, tool_type)
    if integration is None or integration.status != IntegrationStatus.CONNECTED.value:
        raise HTTPException(status_code=404, detail=f"{tool_type.value} is not connected")

    token = integration.refresh_token or integration.access_token
    if token and not await client.revoke(token):
        logger.warning(f"Could not revoke {tool_type.value} token for user {owner.id}")

    integration.status = IntegrationStatus.DISCONNECTED.value
    integration.access_token = None
    integration.refresh_token = None
    integration.token_expires_at = None
    await db.flush()

    logger.info(f"Disconnected {tool_type.value} for user {owner.id}")
    return {"message": f"{tool_type.value} disconnected"}
