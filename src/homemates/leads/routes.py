"""Lead pipeline API routes.

Owners list leads, claim them and move them through the status machine
declared in ``LEAD_TRANSITIONS``.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates.auth.jwt import require_owner
from homemates.db.database import get_db
from homemates.db.models import LEAD_TRANSITIONS, Lead, LeadStatus, User
from homemates.schemas import LeadOut

logger = logging.getLogger("homemates-leads")

router = APIRouter(prefix="/leads", tags=["Leads"])


# =============================================================================
# Request/Response Models
# =============================================================================


class LeadUpdateRequest(BaseModel):
    status: LeadStatus | None = None
    transcript: str | None = None
    call_recording_url: str | None = None


class ClaimRequest(BaseModel):
    """Legacy claim body; the authenticated user is always the claimer."""

    owner_user_id: str | None = None


class LeadResponse(BaseModel):
    lead: LeadOut


class LeadListResponse(BaseModel):
    leads: list[LeadOut]
    total: int


# =============================================================================
# Helpers
# =============================================================================


def can_transition(current: LeadStatus, target: LeadStatus) -> bool:
    return target == current or target in LEAD_TRANSITIONS[current]


def apply_status(lead: Lead, target: LeadStatus, owner: User) -> None:
    """Move a lead to ``target`` or raise 409 for an illegal transition."""
    current = LeadStatus(lead.status)
    if not can_transition(current, target):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move lead from {current.value} to {target.value}",
        )
    if target == current:
        return

    lead.status = target.value
    if target == LeadStatus.NEW:
        # Back in the pool for any owner
        lead.owner_user_id = None
        lead.claimed_at = None
    elif lead.owner_user_id is None:
        lead.owner_user_id = owner.id
        lead.claimed_at = datetime.now(timezone.utc)


def ensure_not_taken(lead: Lead, owner: User) -> None:
    if lead.owner_user_id is not None and lead.owner_user_id != owner.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Lead is already claimed by another owner",
        )


async def _get_lead(db: AsyncSession, lead_id: UUID) -> Lead:
    lead = (await db.execute(select(Lead).where(Lead.lead_id == lead_id))).scalar_one_or_none()
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


async def _lead_counts(db: AsyncSession, tenant_ids: set[UUID]) -> dict[UUID, int]:
    """Number of leads per tenant."""
    if not tenant_ids:
        return {}
    result = await db.execute(
        select(Lead.tenant_id, func.count(Lead.lead_id))
        .where(Lead.tenant_id.in_(tenant_ids))
        .group_by(Lead.tenant_id)
    )
    return {tenant_id: count for tenant_id, count in result.all()}


async def lead_out(db: AsyncSession, lead: Lead) -> LeadOut:
    counts = await _lead_counts(db, {lead.tenant_id})
    return LeadOut.from_model(lead, counts.get(lead.tenant_id, 0))


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=LeadListResponse)
async def list_leads(
    status_filter: LeadStatus | None = Query(None, alias="status"),
    tenant_id: UUID | None = None,
    property_id: UUID | None = None,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """List leads with their tenant and property, newest and best first."""
    query = select(Lead)
    if status_filter:
        query = query.where(Lead.status == status_filter.value)
    if tenant_id:
        query = query.where(Lead.tenant_id == tenant_id)
    if property_id:
        query = query.where(Lead.property_id == property_id)

    result = await db.execute(query.order_by(Lead.created_at.desc(), Lead.match_score.desc()))
    leads = list(result.scalars())
    counts = await _lead_counts(db, {lead.tenant_id for lead in leads})

    return LeadListResponse(
        leads=[LeadOut.from_model(lead, counts.get(lead.tenant_id, 0)) for lead in leads],
        total=len(leads),
    )


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: UUID,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Get one lead."""
    return LeadResponse(lead=await lead_out(db, await _get_lead(db, lead_id)))


@router.post("/{lead_id}/claim", response_model=LeadResponse)
async def claim_lead(
    lead_id: UUID,
    request: ClaimRequest | None = Body(None),
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Claim a lead for the authenticated owner.

    Claiming your own claimed lead again is a no-op.
    """
    lead = await _get_lead(db, lead_id)
    ensure_not_taken(lead, owner)

    if lead.status != LeadStatus.CLAIMED.value:
        apply_status(lead, LeadStatus.CLAIMED, owner)
    lead.owner_user_id = owner.id
    lead.claimed_at = lead.claimed_at or datetime.now(timezone.utc)
    await db.flush()

    logger.info(f"Lead {lead.lead_id} claimed by {owner.id}")
    return LeadResponse(lead=await lead_out(db, lead))


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    lead_id: UUID,
    request: LeadUpdateRequest,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Update a lead's status, transcript or recording URL."""
    lead = await _get_lead(db, lead_id)
    ensure_not_taken(lead, owner)

    if request.status is not None:
        apply_status(lead, request.status, owner)
    if request.transcript is not None:
        lead.transcript = request.transcript
    if request.call_recording_url is not None:
        lead.call_recording_url = request.call_recording_url
    await db.flush()

    return LeadResponse(lead=await lead_out(db, lead))
