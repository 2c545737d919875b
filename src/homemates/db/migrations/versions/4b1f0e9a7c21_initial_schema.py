"""initial_schema

Revision ID: 4b1f0e9a7c21
Revises:
Create Date: 2026-10-19 09:12:41.318204

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4b1f0e9a7c21"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create initial database schema."""
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid, primary_key=True),
        # Authentication
        sa.Column("email", sa.String(255), unique=True),
        sa.Column("phone", sa.String(20), unique=True),
        sa.Column("password_hash", sa.String(255)),
        # Profile
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("company_name", sa.String(255)),
        sa.Column("user_type", sa.String(20), nullable=False),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_phone", "users", ["phone"])

    # Properties table
    op.create_table(
        "properties",
        sa.Column("property_id", sa.Uuid, primary_key=True),
        sa.Column("property_code", sa.String(50), unique=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500)),
        sa.Column("city", sa.String(100)),
        sa.Column("locality", sa.String(255)),
        sa.Column("rent", sa.Integer),
        sa.Column("available_from", sa.Date),
        sa.Column("bedrooms", sa.Integer),
        sa.Column("bathrooms", sa.Integer),
        sa.Column("area_sqft", sa.Integer),
        sa.Column("amenities", sa.Text),
        sa.Column("furnishing", sa.String(50)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("photos", sa.Text),
        # Ownership
        sa.Column("owner_name", sa.String(255)),
        sa.Column("owner_phone", sa.String(20)),
        sa.Column("owner_user_id", sa.Uuid, sa.ForeignKey("users.id")),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_properties_city", "properties", ["city"])
    op.create_index("ix_properties_status", "properties", ["status"])
    op.create_index("ix_properties_owner_user_id", "properties", ["owner_user_id"])

    # Tenants table
    op.create_table(
        "tenants",
        sa.Column("tenant_id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), unique=True, nullable=False),
        sa.Column("whatsapp_number", sa.String(20)),
        sa.Column("email", sa.String(255)),
        # Requirements
        sa.Column("city", sa.String(100)),
        sa.Column("localities", sa.Text),
        sa.Column("budget_min", sa.Integer),
        sa.Column("budget_max", sa.Integer),
        sa.Column("bedrooms", sa.Integer),
        sa.Column("amenities", sa.Text),
        sa.Column("preferences", sa.Text),
        # Consent
        sa.Column("source", sa.String(50)),
        sa.Column("consent_timestamp", sa.DateTime(timezone=True)),
        sa.Column("consent_scope", sa.String(255)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tenants_phone", "tenants", ["phone"])

    # Leads table
    op.create_table(
        "leads",
        sa.Column("lead_id", sa.Uuid, primary_key=True),
        sa.Column(
            "tenant_id",
            sa.Uuid,
            sa.ForeignKey("tenants.tenant_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "property_id",
            sa.Uuid,
            sa.ForeignKey("properties.property_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("property_code", sa.String(50), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("transcript", sa.Text),
        sa.Column("call_recording_url", sa.String(1000)),
        sa.Column("match_score", sa.Float, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("owner_user_id", sa.Uuid, sa.ForeignKey("users.id")),
        sa.Column("claimed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tenant_id", "property_id", name="uq_leads_tenant_property"),
    )
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_tenant_id", "leads", ["tenant_id"])
    op.create_index("ix_leads_property_id", "leads", ["property_id"])

    # Agents table
    op.create_table(
        "agents",
        sa.Column("owner_user_id", sa.Uuid, sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("agent_id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("custom_name", sa.String(255)),
        sa.Column("description", sa.Text),
        sa.Column("tone", sa.String(20), nullable=False),
        sa.Column("personality", sa.Text),
        sa.Column("agent_type", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_agents_agent_id", "agents", ["agent_id"])

    # Calls table
    op.create_table(
        "calls",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("conversation_id", sa.String(100), unique=True, nullable=False),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("agent_id", sa.String(100)),
        sa.Column("agent_name", sa.String(255)),
        sa.Column("customer_name", sa.String(255)),
        sa.Column("phone", sa.String(20)),
        # Outcome
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("duration", sa.Integer),
        sa.Column("audio_url", sa.String(1000)),
        sa.Column("transcript_json", sa.Text),
        sa.Column("summary", sa.Text),
        sa.Column("sentiment_score", sa.Float),
        sa.Column("metadata_json", sa.Text),
        sa.Column("error", sa.Text),
        sa.Column(
            "tenant_id",
            sa.Uuid,
            sa.ForeignKey("tenants.tenant_id", ondelete="SET NULL"),
        ),
        sa.Column("owner_user_id", sa.Uuid, sa.ForeignKey("users.id")),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("ended_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_calls_conversation_id", "calls", ["conversation_id"])
    op.create_index("ix_calls_owner_user_id", "calls", ["owner_user_id"])
    op.create_index("ix_calls_status", "calls", ["status"])
    op.create_index("ix_calls_created_at", "calls", ["created_at"])

    # Datasets table
    op.create_table(
        "datasets",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("owner_user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_url", sa.String(1000)),
        sa.Column("data_type", sa.String(20), nullable=False),
        sa.Column("row_count", sa.Integer, nullable=False),
        sa.Column("agent_id", sa.String(100)),
        sa.Column("columns_json", sa.Text),
        sa.Column("records_json", sa.Text),
        sa.Column("data_health_json", sa.Text),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_datasets_owner_user_id", "datasets", ["owner_user_id"])

    # Tool integrations table
    op.create_table(
        "tool_integrations",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("user_id", sa.Uuid, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tool_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        # OAuth tokens
        sa.Column("access_token", sa.Text),
        sa.Column("refresh_token", sa.Text),
        sa.Column("token_expires_at", sa.DateTime(timezone=True)),
        sa.Column("scopes", sa.Text),
        sa.Column("last_sync", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "tool_type", name="uq_tool_integrations_user_tool"),
    )
    op.create_index("ix_tool_integrations_user_id", "tool_integrations", ["user_id"])


def downgrade() -> None:
    """Drop all tables in reverse order."""
    op.drop_table("tool_integrations")
    op.drop_table("datasets")
    op.drop_table("calls")
    op.drop_table("agents")
    op.drop_table("leads")
    op.drop_table("tenants")
    op.drop_table("properties")
    op.drop_table("users")
