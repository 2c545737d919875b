"""Tenant-to-property lead matching.

A property is scored against a tenant's requirements in [0, 1]:

    locality   0.35  any preferred locality appears in the property locality
    budget     0.30  full inside the range, linear falloff to 25% over max
    bedrooms   0.20  exact match, half credit when one off
    amenities  0.15  fraction of required amenities the property has

Requirements the tenant leaves empty give full credit. Properties that are
not available, are in another city, or cost more than 125% of the budget
score 0. Pairs scoring at least MATCH_THRESHOLD become leads.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates.coerce import split_list
from homemates.db.models import (
    Lead,
    LeadChannel,
    LeadStatus,
    Property,
    PropertyStatus,
    Tenant,
)

logger = logging.getLogger("homemates-matching")

MATCH_THRESHOLD = 0.5
BUDGET_TOLERANCE = 0.25

WEIGHTS = {
    "locality": 0.35,
    "budget": 0.30,
    "bedrooms": 0.20,
    "amenities": 0.15,
}


@dataclass
class MatchPreferences:
    """What a tenant (or a search query) asks for."""

    city: str | None = None
    localities: list[str] = field(default_factory=list)
    budget_min: int | None = None
    budget_max: int | None = None
    bedrooms: int | None = None
    amenities: list[str] = field(default_factory=list)

    @classmethod
    def from_tenant(cls, tenant: Tenant) -> "MatchPreferences":
        return cls(
            city=tenant.city,
            localities=split_list(tenant.localities),
            budget_min=tenant.budget_min,
            budget_max=tenant.budget_max,
            bedrooms=tenant.bedrooms,
            amenities=split_list(tenant.amenities),
        )


def _same_city(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return True
    return a.strip().lower() == b.strip().lower()


def _locality_score(prefs: MatchPreferences, prop: Property) -> float:
    if not prefs.localities:
        return 1.0
    locality = (prop.locality or "").lower()
    if not locality:
        return 0.0
    return 1.0 if any(wanted.lower() in locality for wanted in prefs.localities) else 0.0


def _budget_score(prefs: MatchPreferences, prop: Property) -> float:
    if prefs.budget_max is None:
        return 1.0
    if prop.rent is None:
        return 0.5
    if prop.rent <= prefs.budget_max:
        return 1.0
    over = (prop.rent - prefs.budget_max) / (prefs.budget_max * BUDGET_TOLERANCE)
    return max(0.0, 1.0 - over)


def _bedrooms_score(prefs: MatchPreferences, prop: Property) -> float:
    if prefs.bedrooms is None:
        return 1.0
    if prop.bedrooms is None:
        return 0.5
    diff = abs(prop.bedrooms - prefs.bedrooms)
    if diff == 0:
        return 1.0
    return 0.5 if diff == 1 else 0.0


def _amenities_score(prefs: MatchPreferences, prop: Property) -> float:
    if not prefs.amenities:
        return 1.0
    available = [a.lower() for a in split_list(prop.amenities)]
    found = sum(
        1 for wanted in prefs.amenities if any(wanted.lower() in have for have in available)
    )
    return found / len(prefs.amenities)


def score_match(prefs: MatchPreferences, prop: Property) -> float:
    """Score how well a property fits the preferences (0 to 1, 2 decimals)."""
    if prop.status != PropertyStatus.AVAILABLE.value:
        return 0.0
    if not _same_city(prefs.city, prop.city):
        return 0.0
    if (
        prefs.budget_max is not None
        and prop.rent is not None
        and prop.rent > prefs.budget_max * (1 + BUDGET_TOLERANCE)
    ):
        return 0.0

    score = (
        WEIGHTS["locality"] * _locality_score(prefs, prop)
        + WEIGHTS["budget"] * _budget_score(prefs, prop)
        + WEIGHTS["bedrooms"] * _bedrooms_score(prefs, prop)
        + WEIGHTS["amenities"] * _amenities_score(prefs, prop)
    )
    return round(score, 2)


# =============================================================================
# Lead Generation
# =============================================================================


def _is_untouched(lead: Lead) -> bool:
    return lead.status == LeadStatus.NEW.value and lead.owner_user_id is None


async def refresh_leads_for_tenant(
    db: AsyncSession, tenant: Tenant, channel: LeadChannel = LeadChannel.APP
) -> int:
    """Create or rescore leads between one tenant and every listing.

    Returns:
        Number of leads created.
    """
    prefs = MatchPreferences.from_tenant(tenant)

    query = select(Property).where(Property.status == PropertyStatus.AVAILABLE.value)
    if prefs.city:
        query = query.where(func.lower(Property.city) == prefs.city.strip().lower())
    properties = (await db.execute(query)).scalars().all()

    existing = {
        lead.property_id: lead
        for lead in (
            await db.execute(select(Lead).where(Lead.tenant_id == tenant.tenant_id))
        ).scalars()
    }

    created = 0
    for prop in properties:
        score = score_match(prefs, prop)
        lead = existing.get(prop.property_id)
        if lead is not None:
            if _is_untouched(lead):
                lead.match_score = score
            continue
        if score < MATCH_THRESHOLD:
            continue

        db.add(
            Lead(
                tenant_id=tenant.tenant_id,
                property_id=prop.property_id,
                property_code=prop.property_code,
                channel=channel.value,
                match_score=score,
            )
        )
        created += 1

    await db.flush()
    if created:
        logger.info(f"Created {created} lead(s) for tenant {tenant.tenant_id}")
    return created


async def refresh_leads_for_property(db: AsyncSession, prop: Property) -> int:
    """Create or rescore leads between one listing and every tenant.

    Returns:
        Number of leads created.
    """
    existing = {
        lead.tenant_id: lead
        for lead in (
            await db.execute(select(Lead).where(Lead.property_id == prop.property_id))
        ).scalars()
    }

    created = 0
    for tenant in (await db.execute(select(Tenant))).scalars():
        score = score_match(MatchPreferences.from_tenant(tenant), prop)
        lead = existing.get(tenant.tenant_id)
        if lead is not None:
            if _is_untouched(lead):
                lead.match_score = score
                lead.property_code = prop.property_code
            continue
        if score < MATCH_THRESHOLD:
            continue

        db.add(
            Lead(
                tenant_id=tenant.tenant_id,
                property_id=prop.property_id,
                property_code=prop.property_code,
                channel=LeadChannel.APP.value,
                match_score=score,
            )
        )
        created += 1

    await db.flush()
    if created:
        logger.info(f"Created {created} lead(s) for property {prop.property_code}")
    return created
