"""SQLAlchemy models for users, listings, tenants, leads, agents and calls.

Status columns are plain strings holding the enum values below; the
allowed transitions for leads and calls are declared next to their enums.
"""

from datetime import date, datetime, timezone
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homemates.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================


class UserType(str, Enum):
    """Marketplace role."""

    TENANT = "tenant"
    OWNER = "owner"


class PropertyStatus(str, Enum):
    """Listing availability."""

    AVAILABLE = "available"
    BOOKED = "booked"
    INACTIVE = "inactive"


class PropertySource(str, Enum):
    """How a listing entered the system."""

    MANUAL = "manual"
    CSV = "csv"
    INGEST = "ingest"


class LeadStatus(str, Enum):
    """Lead pipeline status."""

    NEW = "new"
    CLAIMED = "claimed"
    CONTACTED = "contacted"
    CONVERTED = "converted"
    REJECTED = "rejected"


class LeadChannel(str, Enum):
    """Where the lead came from."""

    APP = "app"
    CALL = "call"
    UPLOAD = "upload"


class CallStatus(str, Enum):
    """Lifecycle of a provider call."""

    INITIATED = "initiated"
    RINGING = "ringing"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NO_ANSWER = "no_answer"
    BUSY = "busy"


class AgentTone(str, Enum):
    FRIENDLY = "friendly"
    FORMAL = "formal"
    LUXURY = "luxury"
    CONVERSATIONAL = "conversational"


class AgentType(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class DataType(str, Enum):
    """Kind of rows in an uploaded dataset."""

    LEADS = "leads"
    CUSTOMERS = "customers"
    FAQS = "faqs"
    OTHER = "other"
    LISTINGS = "listings"


class ToolType(str, Enum):
    GMAIL = "gmail"
    CALENDAR = "calendar"


class IntegrationStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


# =============================================================================
# Transition Tables
# =============================================================================

LEAD_TRANSITIONS: dict[LeadStatus, set[LeadStatus]] = {
    LeadStatus.NEW: {LeadStatus.CLAIMED, LeadStatus.CONTACTED, LeadStatus.REJECTED},
    LeadStatus.CLAIMED: {LeadStatus.CONTACTED, LeadStatus.CONVERTED, LeadStatus.REJECTED},
    LeadStatus.CONTACTED: {LeadStatus.CLAIMED, LeadStatus.CONVERTED, LeadStatus.REJECTED},
    LeadStatus.REJECTED: {LeadStatus.NEW},
    LeadStatus.CONVERTED: set(),
}

TERMINAL_CALL_STATUSES = frozenset(
    {CallStatus.COMPLETED, CallStatus.FAILED, CallStatus.NO_ANSWER, CallStatus.BUSY}
)

CALL_TRANSITIONS: dict[CallStatus, set[CallStatus]] = {
    CallStatus.INITIATED: {CallStatus.RINGING, CallStatus.IN_PROGRESS} | TERMINAL_CALL_STATUSES,
    CallStatus.RINGING: {CallStatus.IN_PROGRESS} | TERMINAL_CALL_STATUSES,
    CallStatus.IN_PROGRESS: {CallStatus.COMPLETED, CallStatus.FAILED},
    CallStatus.COMPLETED: set(),
    CallStatus.FAILED: set(),
    CallStatus.NO_ANSWER: set(),
    CallStatus.BUSY: set(),
}


# =============================================================================
# User Model
# =============================================================================


class User(Base):
    """Dashboard account for a tenant or an owner."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Authentication
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    phone: Mapped[str | None] = mapped_column(String(20), unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(255))

    # Profile
    name: Mapped[str] = mapped_column(String(255), default="")
    company_name: Mapped[str | None] = mapped_column(String(255))
    user_type: Mapped[str] = mapped_column(String(20), default=UserType.OWNER.value)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_users_email", "email"),
        Index("ix_users_phone", "phone"),
    )

    @property
    def is_owner(self) -> bool:
        return self.user_type == UserType.OWNER.value


# =============================================================================
# Listings
# =============================================================================


class Property(Base):
    """A rental listing."""

    __tablename__ = "properties"

    property_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    property_code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    city: Mapped[str | None] = mapped_column(String(100))
    locality: Mapped[str | None] = mapped_column(String(255))
    rent: Mapped[int | None] = mapped_column(Integer)
    available_from: Mapped[date | None] = mapped_column(Date)
    bedrooms: Mapped[int | None] = mapped_column(Integer)
    bathrooms: Mapped[int | None] = mapped_column(Integer)
    area_sqft: Mapped[int | None] = mapped_column(Integer)
    amenities: Mapped[str | None] = mapped_column(Text)  # ';'-separated
    furnishing: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20), default=PropertyStatus.AVAILABLE.value)
    description: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[str | None] = mapped_column(Text)

    # Ownership
    owner_name: Mapped[str | None] = mapped_column(String(255))
    owner_phone: Mapped[str | None] = mapped_column(String(20))
    owner_user_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    source: Mapped[str] = mapped_column(String(20), default=PropertySource.MANUAL.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_properties_city", "city"),
        Index("ix_properties_status", "status"),
        Index("ix_properties_owner_user_id", "owner_user_id"),
    )


class Tenant(Base):
    """A prospective tenant and their housing requirements."""

    __tablename__ = "tenants"

    tenant_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    whatsapp_number: Mapped[str | None] = mapped_column(String(20))
    email: Mapped[str | None] = mapped_column(String(255))

    # Requirements
    city: Mapped[str | None] = mapped_column(String(100))
    localities: Mapped[str | None] = mapped_column(Text)
    budget_min: Mapped[int | None] = mapped_column(Integer)
    budget_max: Mapped[int | None] = mapped_column(Integer)
    bedrooms: Mapped[int | None] = mapped_column(Integer)
    amenities: Mapped[str | None] = mapped_column(Text)
    preferences: Mapped[str | None] = mapped_column(Text)  # JSON

    # Consent
    source: Mapped[str | None] = mapped_column(String(50))
    consent_timestamp: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    consent_scope: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("ix_tenants_phone", "phone"),)


class Lead(Base):
    """A tenant-property match worked by owners."""

    __tablename__ = "leads"

    lead_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tenants.tenant_id", ondelete="CASCADE"), nullable=False
    )
    property_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("properties.property_id", ondelete="CASCADE"), nullable=False
    )
    property_code: Mapped[str] = mapped_column(String(50), nullable=False)

    channel: Mapped[str] = mapped_column(String(20), default=LeadChannel.APP.value)
    transcript: Mapped[str | None] = mapped_column(Text)
    call_recording_url: Mapped[str | None] = mapped_column(String(1000))
    match_score: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(20), default=LeadStatus.NEW.value)

    owner_user_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    tenant: Mapped["Tenant"] = relationship(lazy="selectin")
    property: Mapped["Property"] = relationship(lazy="selectin")

    __table_args__ = (
        UniqueConstraint("tenant_id", "property_id", name="uq_leads_tenant_property"),
        Index("ix_leads_status", "status"),
        Index("ix_leads_tenant_id", "tenant_id"),
        Index("ix_leads_property_id", "property_id"),
    )


# =============================================================================
# Voice Agents and Calls
# =============================================================================


class Agent(Base):
    """An owner's customization of an ElevenLabs agent."""

    __tablename__ = "agents"

    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )
    agent_id: Mapped[str] = mapped_column(String(100), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), default="")
    custom_name: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    tone: Mapped[str] = mapped_column(String(20), default=AgentTone.FRIENDLY.value)
    personality: Mapped[str | None] = mapped_column(Text)
    agent_type: Mapped[str] = mapped_column(String(20), default=AgentType.OUTBOUND.value)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_agents_agent_id", "agent_id"),)


class BrandGuide(Base):
    """An owner's brand voice, used as the default for new agents.

    Logo and voice note files live under UPLOAD_DIR; the paths are never
    sent to clients.
    """

    __tablename__ = "brand_guides"

    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), primary_key=True
    )
    tone: Mapped[str] = mapped_column(String(20), default=AgentTone.FRIENDLY.value)
    description: Mapped[str | None] = mapped_column(Text)
    keywords: Mapped[str | None] = mapped_column(Text)  # ";" separated
    script_examples: Mapped[str | None] = mapped_column(Text)

    logo_path: Mapped[str | None] = mapped_column(String(1000))
    logo_content_type: Mapped[str | None] = mapped_column(String(100))
    voice_note_path: Mapped[str | None] = mapped_column(String(1000))
    voice_note_content_type: Mapped[str | None] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class Call(Base):
    """A voice call placed or received through a provider."""

    __tablename__ = "calls"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    conversation_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)

    agent_id: Mapped[str | None] = mapped_column(String(100))
    agent_name: Mapped[str | None] = mapped_column(String(255))
    customer_name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))

    status: Mapped[str] = mapped_column(String(20), default=CallStatus.INITIATED.value)
    duration: Mapped[int | None] = mapped_column(Integer)  # seconds
    audio_url: Mapped[str | None] = mapped_column(String(1000))
    transcript_json: Mapped[str | None] = mapped_column(Text)
    summary: Mapped[str | None] = mapped_column(Text)
    sentiment_score: Mapped[float | None] = mapped_column(Float)
    metadata_json: Mapped[str | None] = mapped_column(Text)
    error: Mapped[str | None] = mapped_column(Text)

    tenant_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("tenants.tenant_id", ondelete="SET NULL")
    )
    owner_user_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_calls_conversation_id", "conversation_id"),
        Index("ix_calls_owner_user_id", "owner_user_id"),
        Index("ix_calls_status", "status"),
        Index("ix_calls_created_at", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return CallStatus(self.status) in TERMINAL_CALL_STATUSES


# =============================================================================
# Datasets and Tool Integrations
# =============================================================================


class Dataset(Base):
    """An uploaded or ingested table of rows."""

    __tablename__ = "datasets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_url: Mapped[str | None] = mapped_column(String(1000))
    data_type: Mapped[str] = mapped_column(String(20), nullable=False)
    row_count: Mapped[int] = mapped_column(Integer, default=0)
    agent_id: Mapped[str | None] = mapped_column(String(100))

    columns_json: Mapped[str | None] = mapped_column(Text)
    records_json: Mapped[str | None] = mapped_column(Text)
    data_health_json: Mapped[str | None] = mapped_column(Text)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("ix_datasets_owner_user_id", "owner_user_id"),)


class ToolIntegration(Base):
    """A user's OAuth connection to a Google tool."""

    __tablename__ = "tool_integrations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    tool_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=IntegrationStatus.DISCONNECTED.value
    )

    access_token: Mapped[str | None] = mapped_column(Text)
    refresh_token: Mapped[str | None] = mapped_column(Text)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scopes: Mapped[str | None] = mapped_column(Text)
    last_sync: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "tool_type", name="uq_tool_integrations_user_tool"),
        Index("ix_tool_integrations_user_id", "user_id"),
    )
