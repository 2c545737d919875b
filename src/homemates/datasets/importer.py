"""Tenant import from uploaded lead sheets.

Reads the ``tenants.csv`` layout (Name, Mobile, Locality, Budget, BHKtype,
Must Need amenities, Others) or the tenant field names directly.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.coerce import to_int, to_text
from homemates.db.models import LeadChannel
from homemates.tabular import pick
from homemates.tenants.routes import upsert_tenant
from homemates_shared.schemas import is_e164, normalize_phone

logger = logging.getLogger("homemates-datasets")


@dataclass
class TenantImportSummary:
    imported: int = 0
    leads_created: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


def tenant_fields_from_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map one lead-sheet row to Tenant column values."""
    others = to_text(pick(row, "others", "notes", "preferences"))
    return {
        "name": to_text(pick(row, "name", "tenant_name")),
        "email": to_text(pick(row, "email")),
        "whatsapp_number": to_text(pick(row, "whatsapp_number", "whatsapp")),
        "city": to_text(pick(row, "city")),
        "localities": to_text(pick(row, "localities", "locality")),
        "budget_min": to_int(pick(row, "budget_min")),
        "budget_max": to_int(pick(row, "budget_max", "budget")),
        "bedrooms": to_int(pick(row, "bedrooms", "bhktype", "bhk")),
        "amenities": to_text(pick(row, "amenities", "must_need_amenities")),
        "preferences": json.dumps({"others": others}) if others else None,
        "source": "upload",
    }


async def import_tenants(db: AsyncSession, rows: list[dict[str, Any]]) -> TenantImportSummary:
    """Upsert each row with a valid phone as a tenant and match them into leads."""
    summary = TenantImportSummary()
    for index, row in enumerate(rows, start=1):
        raw_phone = to_text(pick(row, "phone", "mobile", "phone_number"))
        phone = normalize_phone(raw_phone, config.DEFAULT_COUNTRY_CODE)
        if phone is None or not is_e164(phone):
            summary.skipped += 1
            if raw_phone:
                summary.errors.append({"row": index, "error": f"Invalid phone: {raw_phone}"})
            continue

        fields = tenant_fields_from_row(row)
        if not fields["name"]:
            summary.skipped += 1
            summary.errors.append({"row": index, "error": "Missing name"})
            continue

        _, created = await upsert_tenant(db, phone, fields, LeadChannel.UPLOAD)
        summary.imported += 1
        summary.leads_created += created

    logger.info(
        f"Imported {summary.imported} tenant(s) from sheet "
        f"({summary.leads_created} leads, {summary.skipped} skipped)"
    )
    return summary
