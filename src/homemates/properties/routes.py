"""Property listing API routes.

Browsing and matching are public; creating, editing and importing
listings requires an owner account.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.auth.jwt import require_owner
from homemates.coerce import LooseDate, LooseInt, LooseText, join_list, split_list, to_int
from homemates.db.database import get_db
from homemates.db.models import Property, PropertySource, PropertyStatus, User
from homemates.leads.matching import MatchPreferences, refresh_leads_for_property, score_match
from homemates.properties.importer import (
    ImportSummary,
    default_title,
    import_properties,
    next_property_code,
)
from homemates.schemas import PropertyOut, ScoredPropertyOut
from homemates.tabular import TableParseError, read_table, to_records
from homemates.uploads import read_spreadsheet_upload
from homemates_shared.schemas import normalize_phone

logger = logging.getLogger("homemates-properties")

router = APIRouter(prefix="/properties", tags=["Properties"])


# =============================================================================
# Request/Response Models
# =============================================================================


class PropertyFields(BaseModel):
    """Listing fields as the owner form sends them (numbers may be '')."""

    property_code: LooseText = None
    title: LooseText = None
    address: LooseText = None
    city: LooseText = None
    locality: LooseText = None
    rent: LooseInt = None
    available_from: LooseDate = None
    bedrooms: LooseInt = None
    bathrooms: LooseInt = None
    area_sqft: LooseInt = None
    amenities: LooseText = None
    furnishing: LooseText = None
    status: PropertyStatus | None = None
    description: LooseText = None
    photos: LooseText = None
    owner_name: LooseText = None
    owner_phone: LooseText = None


class PropertyResponse(BaseModel):
    property: PropertyOut


class PropertyListResponse(BaseModel):
    properties: list[PropertyOut]
    total: int


class PropertyMatchResponse(BaseModel):
    properties: list[ScoredPropertyOut]
    total: int


class ImportResponse(BaseModel):
    total: int
    created: int
    updated: int
    skipped: int
    errors: list[dict]


def _import_response(summary: ImportSummary) -> ImportResponse:
    return ImportResponse(
        total=summary.total,
        created=summary.created,
        updated=summary.updated,
        skipped=summary.skipped,
        errors=summary.errors,
    )


async def _get_property(db: AsyncSession, property_id: UUID) -> Property:
    prop = await db.get(Property, property_id)
    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


async def _ensure_code_free(db: AsyncSession, code: str, exclude: UUID | None = None) -> None:
    query = select(Property.property_id).where(Property.property_code == code)
    if exclude is not None:
        query = query.where(Property.property_id != exclude)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Property code {code} already exists",
        )


def _clean_amenities(value: str | None) -> str | None:
    return join_list(split_list(value))


def _clean_phone(value: str | None) -> str | None:
    return normalize_phone(value, config.DEFAULT_COUNTRY_CODE) if value else None


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=PropertyListResponse)
async def list_properties(
    city: str | None = None,
    status_filter: PropertyStatus | None = Query(None, alias="status"),
    locality: str | None = None,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List listings, newest first. City and locality ignore case."""
    query = select(Property)
    if city:
        query = query.where(func.lower(Property.city) == city.strip().lower())
    if status_filter:
        query = query.where(Property.status == status_filter.value)
    if locality:
        query = query.where(func.lower(Property.locality).contains(locality.strip().lower()))

    result = await db.execute(query.order_by(Property.created_at.desc()).limit(limit))
    properties = [PropertyOut.model_validate(p) for p in result.scalars()]
    return PropertyListResponse(properties=properties, total=len(properties))


@router.get("/match", response_model=PropertyMatchResponse)
async def match_properties(
    city: str | None = None,
    locality: str | None = None,
    bedrooms: str | None = None,
    budget_min: str | None = None,
    budget_max: str | None = None,
    amenities: str | None = None,
    min_score: float = Query(0.0, ge=0.0, le=1.0),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Score available listings against ad-hoc requirements.

    Results are sorted by score (highest first), then rent (lowest first).
    """
    prefs = MatchPreferences(
        city=city,
        localities=split_list(locality),
        budget_min=to_int(budget_min),
        budget_max=to_int(budget_max),
        bedrooms=to_int(bedrooms),
        amenities=split_list(amenities),
    )

    result = await db.execute(
        select(Property).where(Property.status == PropertyStatus.AVAILABLE.value)
    )
    scored = []
    for prop in result.scalars():
        score = score_match(prefs, prop)
        if score > 0 and score >= min_score:
            scored.append(
                ScoredPropertyOut(**PropertyOut.model_validate(prop).model_dump(), match_score=score)
            )

    scored.sort(key=lambda p: (-p.match_score, p.rent is None, p.rent or 0))
    scored = scored[:limit]
    return PropertyMatchResponse(properties=scored, total=len(scored))


@router.get("/{property_id}", response_model=PropertyResponse)
async def get_property(property_id: UUID, db: AsyncSession = Depends(get_db)):
    """Get one listing."""
    return PropertyResponse(property=PropertyOut.model_validate(await _get_property(db, property_id)))


@router.post("", response_model=PropertyResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    request: PropertyFields,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Create a listing and match it against existing tenants.

    A missing property code is generated from the locality.
    """
    if request.property_code:
        await _ensure_code_free(db, request.property_code)
        code = request.property_code
    else:
        code = await next_property_code(db, request.locality)

    prop = Property(
        property_code=code,
        title=request.title or default_title(request.bedrooms, request.locality),
        address=request.address,
        city=request.city or config.DEFAULT_CITY,
        locality=request.locality,
        rent=request.rent,
        available_from=request.available_from,
        bedrooms=request.bedrooms,
        bathrooms=request.bathrooms,
        area_sqft=request.area_sqft,
        amenities=_clean_amenities(request.amenities),
        furnishing=request.furnishing,
        status=(request.status or PropertyStatus.AVAILABLE).value,
        description=request.description,
        photos=request.photos,
        owner_name=request.owner_name or owner.name,
        owner_phone=_clean_phone(request.owner_phone) or owner.phone,
        owner_user_id=owner.id,
        source=PropertySource.MANUAL.value,
    )
    db.add(prop)
    await db.flush()

    leads = await refresh_leads_for_property(db, prop)
    logger.info(f"Property {prop.property_code} created by {owner.id} ({leads} new leads)")
    return PropertyResponse(property=PropertyOut.model_validate(prop))


@router.put("/{property_id}", response_model=PropertyResponse)
async def update_property(
    property_id: UUID,
    request: PropertyFields,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Update the fields present in the body, then re-run matching."""
    prop = await _get_property(db, property_id)
    if prop.owner_user_id not in (None, owner.id):
        raise HTTPException(status_code=403, detail="Property belongs to another owner")

    updates = request.model_dump(exclude_unset=True)
    if updates.get("property_code") and updates["property_code"] != prop.property_code:
        await _ensure_code_free(db, updates["property_code"], exclude=prop.property_id)
    if "status" in updates and updates["status"] is not None:
        updates["status"] = updates["status"].value
    if "amenities" in updates:
        updates["amenities"] = _clean_amenities(updates["amenities"])
    if "owner_phone" in updates:
        updates["owner_phone"] = _clean_phone(updates["owner_phone"])

    for key, value in updates.items():
        if key in ("property_code", "title", "status") and value is None:
            continue
        setattr(prop, key, value)
    prop.owner_user_id = owner.id
    await db.flush()

    await refresh_leads_for_property(db, prop)
    return PropertyResponse(property=PropertyOut.model_validate(prop))


@router.post("/upload", response_model=ImportResponse)
async def upload_properties(
    file: UploadFile = File(...),
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Upsert listings from an uploaded flats sheet (CSV or Excel)."""
    content = await read_spreadsheet_upload(file)
    try:
        frame = read_table(content, file.filename or "upload.csv")
    except TableParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    rows = to_records(frame)
    if not rows:
        raise HTTPException(status_code=400, detail="File has no rows")

    summary = await import_properties(db, rows, owner, PropertySource.CSV)
    return _import_response(summary)


@router.post("/import-database", response_model=ImportResponse)
async def import_database(
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Import the bundled ``flats.csv`` from DATA_DIR."""
    path = config.DATA_DIR / "flats.csv"
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"{path} not found")

    try:
        frame = read_table(path.read_bytes(), path.name)
    except TableParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    summary = await import_properties(db, to_records(frame), owner, PropertySource.CSV)
    return _import_response(summary)
