"""Voice agent API routes.

Owners register ElevenLabs agents with a local tone and personality. The
public router serves the inbound web widget configuration.
"""

import logging
import os
from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates.auth.jwt import require_owner
from homemates.brand_guide.routes import agent_personality
from homemates.db.database import get_db
from homemates.db.models import Agent, AgentTone, AgentType, BrandGuide, User
from homemates.schemas import AgentOut
from homemates_shared.elevenlabs import ElevenLabsClient, get_elevenlabs_client
from homemates_shared.errors import ProviderError, ProviderNotConfiguredError
from homemates_shared.schemas import ProviderAgent

logger = logging.getLogger("homemates-agents")

router = APIRouter(prefix="/agents", tags=["Agents"])
public_router = APIRouter(prefix="/public/agents", tags=["Agents"])


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class InboundAgentConfig:
    """Web widget settings for the tenant-facing inbound agent."""

    agent_id: str
    api_key: str
    cdn_version: str = "1.0.3"

    @classmethod
    def from_env(cls) -> "InboundAgentConfig":
        return cls(
            agent_id=os.getenv("INBOUND_AGENT_ID", ""),
            api_key=os.getenv("INBOUND_AGENT_API_KEY", ""),
            cdn_version=os.getenv("INBOUND_AGENT_CDN_VERSION", "1.0.3"),
        )

    def is_configured(self) -> bool:
        return bool(self.agent_id and self.api_key)


def get_inbound_agent_config() -> InboundAgentConfig:
    return InboundAgentConfig.from_env()


# =============================================================================
# Request/Response Models
# =============================================================================


class AgentCreateRequest(BaseModel):
    eleven_agent_id: str = Field(..., min_length=1)
    name: str | None = None
    description: str | None = None
    tone: AgentTone | None = None
    personality: str | None = None
    agent_type: AgentType = AgentType.OUTBOUND


class AgentResponse(BaseModel):
    agent: AgentOut


class AgentListResponse(BaseModel):
    agents: list[AgentOut]


class InboundWidgetConfig(BaseModel):
    agent_id: str
    api_key: str
    cdn_version: str
    variables: dict[str, str]


# =============================================================================
# Helpers
# =============================================================================


async def owner_agents(db: AsyncSession, owner: User) -> list[Agent]:
    result = await db.execute(
        select(Agent).where(Agent.owner_user_id == owner.id).order_by(Agent.created_at.desc())
    )
    return list(result.scalars())


async def provider_agents(client: ElevenLabsClient) -> dict[str, ProviderAgent]:
    """ElevenLabs agents by ID, or empty when the provider is unavailable."""
    try:
        return {agent.agent_id: agent for agent in await client.list_agents()}
    except (ProviderError, ProviderNotConfiguredError) as e:
        logger.warning(f"Listing agents without ElevenLabs details: {e!s}")
        return {}


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=AgentListResponse)
async def list_agents(
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """List the owner's agents with live ElevenLabs names where available."""
    agents = await owner_agents(db, owner)
    remote = await provider_agents(client) if agents else {}

    results = []
    for agent in agents:
        live = remote.get(agent.agent_id)
        results.append(
            AgentOut.from_model(
                agent,
                name=live.name if live else None,
                description=live.description if live else None,
            )
        )
    return AgentListResponse(agents=results)


@router.post("/create", response_model=AgentResponse, status_code=status.HTTP_201_CREATED)
async def create_agent(
    request: AgentCreateRequest,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """Add an existing ElevenLabs agent to the owner's account."""
    agent_id = request.eleven_agent_id.strip()
    if await db.get(Agent, (owner.id, agent_id)) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Agent {agent_id} is already added",
        )

    remote = await client.get_agent(agent_id)
    if remote is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Agent {agent_id} not found in ElevenLabs",
        )

    # Unset tone and personality fall back to the brand guide
    guide = await db.get(BrandGuide, owner.id)
    tone = request.tone or (AgentTone(guide.tone) if guide else AgentTone.FRIENDLY)
    personality = request.personality or (agent_personality(guide) if guide else None)

    agent = Agent(
        owner_user_id=owner.id,
        agent_id=agent_id,
        name=remote.name,
        custom_name=(request.name or "").strip() or None,
        description=request.description or remote.description,
        tone=tone.value,
        personality=personality,
        agent_type=request.agent_type.value,
    )
    db.add(agent)
    await db.flush()

    logger.info(f"Agent {agent_id} added for owner {owner.id}")
    return AgentResponse(agent=AgentOut.from_model(agent))


@router.delete("/{agent_id}")
async def delete_agent(
    agent_id: str,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Remove an agent from the owner's account (ElevenLabs is untouched)."""
    agent = await db.get(Agent, (owner.id, agent_id))
    if agent is None:
        raise HTTPException(status_code=404, detail="Agent not found")

    await db.delete(agent)
    logger.info(f"Agent {agent_id} removed for owner {owner.id}")
    return {"message": "Agent deleted"}


@public_router.get("/inbound", response_model=InboundWidgetConfig)
async def inbound_agent_config(
    callee_name: str | None = None,
    property_code: str | None = None,
    inbound: InboundAgentConfig = Depends(get_inbound_agent_config),
):
    """Configuration for the inbound agent widget on the tenant pages."""
    if not inbound.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Inbound agent not configured. Set INBOUND_AGENT_ID and INBOUND_AGENT_API_KEY",
        )

    variables = {}
    if callee_name:
        variables["callee_name"] = callee_name
    if property_code:
        variables["property_code"] = property_code

    return InboundWidgetConfig(
        agent_id=inbound.agent_id,
        api_key=inbound.api_key,
        cdn_version=inbound.cdn_version,
        variables=variables,
    )
