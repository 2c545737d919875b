"""Response models shared by the API routers.

Each model reads straight from its ORM row (``from_attributes``); JSON text
columns are decoded by the ``from_model`` constructors.
"""

import json
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from homemates.db.models import Agent, BrandGuide, Call, Dataset, Lead, ToolIntegration


def _loads(value: str | None, default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except ValueError:
        return default


class PropertyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    property_id: UUID
    property_code: str
    title: str
    address: str | None = None
    city: str | None = None
    locality: str | None = None
    rent: int | None = None
    available_from: date | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    area_sqft: int | None = None
    amenities: str | None = None
    furnishing: str | None = None
    status: str
    description: str | None = None
    photos: str | None = None
    owner_name: str | None = None
    owner_phone: str | None = None
    owner_user_id: UUID | None = None
    source: str
    created_at: datetime
    updated_at: datetime


class ScoredPropertyOut(PropertyOut):
    match_score: float


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: UUID
    name: str
    phone: str
    whatsapp_number: str | None = None
    email: str | None = None
    city: str | None = None
    localities: str | None = None
    budget_min: int | None = None
    budget_max: int | None = None
    bedrooms: int | None = None
    amenities: str | None = None
    preferences: str | None = None
    source: str | None = None
    consent_timestamp: datetime | None = None
    consent_scope: str | None = None
    created_at: datetime
    updated_at: datetime


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lead_id: UUID
    tenant_id: UUID
    property_id: UUID
    property_code: str
    channel: str
    transcript: str | None = None
    call_recording_url: str | None = None
    match_score: float
    status: str
    owner_user_id: UUID | None = None
    claimed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    tenant: TenantOut | None = None
    property: PropertyOut | None = None
    matching_properties_count: int = 0

    @classmethod
    def from_model(cls, lead: Lead, matching_properties_count: int = 0) -> "LeadOut":
        out = cls.model_validate(lead)
        out.matching_properties_count = matching_properties_count
        return out


class AgentOut(BaseModel):
    agent_id: str
    name: str
    custom_name: str | None = None
    description: str | None = None
    tone: str
    personality: str | None = None
    agent_type: str
    owner_user_id: UUID
    created_at: datetime

    @classmethod
    def from_model(
        cls, agent: Agent, name: str | None = None, description: str | None = None
    ) -> "AgentOut":
        """Build the response, preferring live ElevenLabs name/description."""
        return cls(
            agent_id=agent.agent_id,
            name=agent.custom_name or name or agent.name or agent.agent_id,
            custom_name=agent.custom_name,
            description=description or agent.description,
            tone=agent.tone,
            personality=agent.personality,
            agent_type=agent.agent_type,
            owner_user_id=agent.owner_user_id,
            created_at=agent.created_at,
        )


class CallOut(BaseModel):
    id: UUID
    conversation_id: str
    provider: str
    agent_id: str | None = None
    agent_name: str | None = None
    customer_name: str | None = None
    phone: str | None = None
    status: str
    duration: int | None = None
    audio_url: str | None = None
    transcript: list[dict[str, Any]] = Field(default_factory=list)
    summary: str | None = None
    sentiment_score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    tenant_id: UUID | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, call: Call) -> "CallOut":
        return cls(
            id=call.id,
            conversation_id=call.conversation_id,
            provider=call.provider,
            agent_id=call.agent_id,
            agent_name=call.agent_name,
            customer_name=call.customer_name,
            phone=call.phone,
            status=call.status,
            duration=call.duration,
            audio_url=call.audio_url,
            transcript=_loads(call.transcript_json, []),
            summary=call.summary,
            sentiment_score=call.sentiment_score,
            metadata=_loads(call.metadata_json, {}),
            error=call.error,
            tenant_id=call.tenant_id,
            started_at=call.started_at,
            ended_at=call.ended_at,
            created_at=call.created_at,
            updated_at=call.updated_at,
        )


class DatasetOut(BaseModel):
    id: UUID
    file_name: str
    file_url: str | None = None
    data_type: str
    row_count: int
    agent_id: str | None = None
    columns: list[str] = Field(default_factory=list)
    data_health: dict[str, Any] | None = None
    uploaded_at: datetime

    @classmethod
    def from_model(cls, dataset: Dataset) -> "DatasetOut":
        return cls(
            id=dataset.id,
            file_name=dataset.file_name,
            file_url=dataset.file_url,
            data_type=dataset.data_type,
            row_count=dataset.row_count,
            agent_id=dataset.agent_id,
            columns=_loads(dataset.columns_json, []),
            data_health=_loads(dataset.data_health_json, None),
            uploaded_at=dataset.uploaded_at,
        )


def dataset_records(dataset: Dataset) -> list[dict[str, Any]]:
    return _loads(dataset.records_json, [])


class BrandGuideOut(BaseModel):
    """Brand guide with public URLs in place of stored file paths."""

    owner_user_id: UUID
    tone: str
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    script_examples: str | None = None
    logo_url: str | None = None
    voice_note_url: str | None = None
    updated_at: datetime

    @classmethod
    def from_model(cls, guide: BrandGuide) -> "BrandGuideOut":
        base = f"/api/public/brand-guide/{guide.owner_user_id}"
        return cls(
            owner_user_id=guide.owner_user_id,
            tone=guide.tone,
            description=guide.description,
            keywords=[k for k in (guide.keywords or "").split(";") if k],
            script_examples=guide.script_examples,
            logo_url=f"{base}/logo" if guide.logo_path else None,
            voice_note_url=f"{base}/voice-note" if guide.voice_note_path else None,
            updated_at=guide.updated_at,
        )


class IntegrationOut(BaseModel):
    """A tool connection. Tokens are never serialized."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tool_type: str
    status: str
    scopes: list[str] = Field(default_factory=list)
    token_expires_at: datetime | None = None
    last_sync: datetime | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, integration: ToolIntegration) -> "IntegrationOut":
        return cls(
            id=integration.id,
            tool_type=integration.tool_type,
            status=integration.status,
            scopes=(integration.scopes or "").split(),
            token_expires_at=integration.token_expires_at,
            last_sync=integration.last_sync,
            created_at=integration.created_at,
        )
