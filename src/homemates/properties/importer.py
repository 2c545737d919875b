"""Bulk import of listings from flats sheets.

Accepts the dashboard's ``flats.csv`` layout (Name, Mobile, Locality,
Budget, BHKtype, Amenities, SFT) as well as sheets using the property
field names directly. Rows are upserted by ``property_code``; rows without
a code are matched on owner phone, locality, bedrooms and rent.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.coerce import join_list, split_list, to_date, to_int, to_text
from homemates.db.models import Property, PropertySource, PropertyStatus, User
from homemates.leads.matching import refresh_leads_for_property
from homemates.tabular import pick
from homemates_shared.schemas import normalize_phone

logger = logging.getLogger("homemates-properties")

CODE_PREFIX_LENGTH = 3
DEFAULT_CODE_PREFIX = "PRP"


@dataclass
class ImportSummary:
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


def default_title(bedrooms: int | None, locality: str | None) -> str:
    size = f"{bedrooms} BHK" if bedrooms else "Flat"
    return f"{size} in {locality}" if locality else size


def property_fields_from_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map one sheet row to Property column values (None for missing)."""
    locality = to_text(pick(row, "locality", "area"))
    bedrooms = to_int(pick(row, "bedrooms", "bhktype", "bhk"))
    owner_phone = to_text(pick(row, "owner_phone", "mobile", "phone"))

    return {
        "property_code": to_text(pick(row, "property_code", "code")),
        "title": to_text(pick(row, "title")) or default_title(bedrooms, locality),
        "address": to_text(pick(row, "address")),
        "city": to_text(pick(row, "city")) or config.DEFAULT_CITY,
        "locality": locality,
        "rent": to_int(pick(row, "rent", "budget", "price")),
        "available_from": to_date(pick(row, "available_from")),
        "bedrooms": bedrooms,
        "bathrooms": to_int(pick(row, "bathrooms")),
        "area_sqft": to_int(pick(row, "area_sqft", "sft", "sqft", "area")),
        "amenities": join_list(split_list(pick(row, "amenities"))),
        "furnishing": to_text(pick(row, "furnishing")),
        "description": to_text(pick(row, "description")),
        "photos": to_text(pick(row, "photos")),
        "owner_name": to_text(pick(row, "owner_name", "name")),
        "owner_phone": normalize_phone(owner_phone, config.DEFAULT_COUNTRY_CODE)
        if owner_phone
        else None,
    }


def code_prefix(locality: str | None) -> str:
    letters = re.sub(r"[^A-Za-z]", "", locality or "").upper()
    return letters[:CODE_PREFIX_LENGTH] or DEFAULT_CODE_PREFIX


async def next_property_code(db: AsyncSession, locality: str | None) -> str:
    """Next free ``<PREFIX>-<NNN>`` code for a locality."""
    prefix = code_prefix(locality)
    codes = (
        await db.execute(
            select(Property.property_code).where(Property.property_code.like(f"{prefix}-%"))
        )
    ).scalars()

    highest = 0
    for code in codes:
        suffix = code[len(prefix) + 1 :]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}-{highest + 1:03d}"


async def _find_existing(db: AsyncSession, fields: dict[str, Any]) -> Property | None:
    if fields["property_code"]:
        query = select(Property).where(Property.property_code == fields["property_code"])
    elif fields["owner_phone"] and fields["locality"]:
        query = select(Property).where(
            Property.owner_phone == fields["owner_phone"],
            Property.locality == fields["locality"],
            Property.bedrooms == fields["bedrooms"],
            Property.rent == fields["rent"],
        )
    else:
        return None
    return (await db.execute(query)).scalars().first()


async def import_properties(
    db: AsyncSession,
    rows: list[dict[str, Any]],
    owner: User,
    source: PropertySource = PropertySource.CSV,
) -> ImportSummary:
    """Upsert listings from sheet rows and match them against tenants."""
    summary = ImportSummary(total=len(rows))
    touched: list[Property] = []

    for index, row in enumerate(rows, start=1):
        fields = property_fields_from_row(row)
        if not fields["locality"] and not to_text(pick(row, "title")):
            summary.skipped += 1
            continue

        existing = await _find_existing(db, fields)
        if existing is not None:
            if existing.owner_user_id not in (None, owner.id):
                summary.errors.append(
                    {"row": index, "error": f"{existing.property_code} belongs to another owner"}
                )
                continue
            for key, value in fields.items():
                if value is not None:
                    setattr(existing, key, value)
            existing.owner_user_id = owner.id
            summary.updated += 1
            touched.append(existing)
            continue

        if not fields["property_code"]:
            fields["property_code"] = await next_property_code(db, fields["locality"])
        prop = Property(
            **fields,
            status=PropertyStatus.AVAILABLE.value,
            owner_user_id=owner.id,
            source=source.value,
        )
        db.add(prop)
        await db.flush()
        summary.created += 1
        touched.append(prop)

    await db.flush()
    for prop in touched:
        await refresh_leads_for_property(db, prop)

    logger.info(
        f"Imported properties: {summary.created} created, {summary.updated} updated, "
        f"{summary.skipped} skipped, {len(summary.errors)} errors"
    )
    return summary
