"""Tenant API routes.

Tenants register their requirements through the onboarding form without an
account; owners list them. Saving a tenant regenerates their leads.
"""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.auth.jwt import require_owner
from homemates.coerce import LooseInt, LooseText, join_list, split_list
from homemates.db.database import get_db
from homemates.db.models import LeadChannel, Tenant, User
from homemates.leads.matching import refresh_leads_for_tenant
from homemates.schemas import TenantOut
from homemates_shared.schemas import is_e164, normalize_phone

logger = logging.getLogger("homemates-tenants")

router = APIRouter(prefix="/tenants", tags=["Tenants"])


# =============================================================================
# Request/Response Models
# =============================================================================


class TenantRequest(BaseModel):
    """Onboarding form payload.

    ``bedrooms`` may arrive as ``"2 BHK"`` and budgets as ``''``.
    """

    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=1)
    whatsapp_number: LooseText = None
    email: LooseText = None
    city: LooseText = None
    localities: LooseText = None
    budget_min: LooseInt = None
    budget_max: LooseInt = None
    bedrooms: LooseInt = None
    amenities: LooseText = None
    preferences: LooseText = None
    source: LooseText = None
    consent_timestamp: datetime | None = None
    consent_scope: LooseText = None


class TenantResponse(BaseModel):
    tenant: TenantOut


class TenantSaveResponse(TenantResponse):
    leads_created: int


class TenantListResponse(BaseModel):
    tenants: list[TenantOut]


def normalized_or_400(phone: str) -> str:
    normalized = normalize_phone(phone, config.DEFAULT_COUNTRY_CODE)
    if normalized is None or not is_e164(normalized):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid phone number: {phone}",
        )
    return normalized


def tenant_fields(values: dict[str, Any]) -> dict[str, Any]:
    """Clean tenant values shared by the form and sheet imports."""
    fields = dict(values)
    if fields.get("whatsapp_number"):
        fields["whatsapp_number"] = normalize_phone(
            fields["whatsapp_number"], config.DEFAULT_COUNTRY_CODE
        )
    for key in ("localities", "amenities"):
        if key in fields:
            fields[key] = join_list(split_list(fields[key]))
    if fields.get("budget_max") is not None and fields.get("budget_min") is None:
        fields["budget_min"] = int(fields["budget_max"] * 0.8)
    return fields


async def upsert_tenant(
    db: AsyncSession,
    phone: str,
    fields: dict[str, Any],
    channel: LeadChannel = LeadChannel.APP,
) -> tuple[Tenant, int]:
    """Create or update the tenant with this (normalized) phone and match them.

    Returns:
        The tenant and the number of leads created.
    """
    tenant = (
        await db.execute(select(Tenant).where(Tenant.phone == phone))
    ).scalar_one_or_none()

    fields = tenant_fields(fields)
    if tenant is None:
        tenant = Tenant(phone=phone, **fields)
        if not tenant.city:
            tenant.city = config.DEFAULT_CITY
        db.add(tenant)
    else:
        for key, value in fields.items():
            if value is not None:
                setattr(tenant, key, value)
    await db.flush()

    created = await refresh_leads_for_tenant(db, tenant, channel)
    return tenant, created


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=TenantSaveResponse)
async def save_tenant(
    request: TenantRequest,
    db: AsyncSession = Depends(get_db),
):
    """Create or update a tenant by phone number and regenerate their leads."""
    phone = normalized_or_400(request.phone)
    fields = request.model_dump(exclude={"phone"})
    fields["name"] = fields["name"].strip()

    tenant, created = await upsert_tenant(db, phone, fields)
    logger.info(f"Saved tenant {tenant.tenant_id} ({created} new leads)")
    return TenantSaveResponse(tenant=TenantOut.model_validate(tenant), leads_created=created)


@router.get("", response_model=TenantListResponse)
async def list_tenants(
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """List all tenants, newest first."""
    result = await db.execute(select(Tenant).order_by(Tenant.created_at.desc()))
    return TenantListResponse(tenants=[TenantOut.model_validate(t) for t in result.scalars()])


@router.get("/phone/{phone}", response_model=TenantResponse)
async def get_tenant_by_phone(phone: str, db: AsyncSession = Depends(get_db)):
    """Look up a tenant by phone number in any common format."""
    normalized = normalize_phone(phone, config.DEFAULT_COUNTRY_CODE)
    tenant = None
    if normalized:
        tenant = (
            await db.execute(select(Tenant).where(Tenant.phone == normalized))
        ).scalar_one_or_none()
    if tenant is None:
        raise HTTPException(status_code=404, detail="Tenant not found")
    return TenantResponse(tenant=TenantOut.model_validate(tenant))
