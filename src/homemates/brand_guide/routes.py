"""Brand guide API routes.

Each owner keeps one brand guide: a tone, a description, keywords, sample
scripts and optional logo and voice note files. Agents added without a tone
or personality take them from the guide.
"""

import logging
from pathlib import Path
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.auth.jwt import require_owner
from homemates.coerce import join_list, split_list, to_text
from homemates.db.database import get_db
from homemates.db.models import AgentTone, BrandGuide, User
from homemates.schemas import BrandGuideOut
from homemates.uploads import read_asset_upload, remove_upload, store_upload

logger = logging.getLogger("homemates-brand-guide")

router = APIRouter(prefix="/brand-guide", tags=["Brand Guide"])
public_router = APIRouter(prefix="/public/brand-guide", tags=["Brand Guide"])

LOGO_TYPES = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}
VOICE_NOTE_TYPES = {".mp3": "audio/mpeg", ".wav": "audio/wav", ".m4a": "audio/mp4"}


class BrandGuideResponse(BaseModel):
    brand_guide: BrandGuideOut | None = None


# =============================================================================
# Helpers
# =============================================================================


def agent_personality(guide: BrandGuide) -> str | None:
    """Personality text for a new agent: the description plus keywords."""
    parts = []
    if guide.description:
        parts.append(guide.description)
    if guide.keywords:
        parts.append("Keywords: " + ", ".join(guide.keywords.split(";")))
    return "\n".join(parts) or None


async def _read_asset(
    file: UploadFile | None, media_types: dict[str, str], max_bytes: int, label: str
) -> tuple[bytes, str] | None:
    # Browsers send an empty part when no file was picked
    if file is None or not file.filename:
        return None
    return await read_asset_upload(file, media_types, max_bytes, label)


def _asset_response(guide: BrandGuide | None, path_attr: str, type_attr: str) -> FileResponse:
    path = getattr(guide, path_attr) if guide else None
    if not path or not Path(path).is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path, media_type=getattr(guide, type_attr))


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=BrandGuideResponse)
async def get_brand_guide(
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """The owner's brand guide, or null before one is saved."""
    guide = await db.get(BrandGuide, owner.id)
    return BrandGuideResponse(brand_guide=BrandGuideOut.from_model(guide) if guide else None)


@router.post("", response_model=BrandGuideResponse)
async def save_brand_guide(
    tone: AgentTone = Form(AgentTone.FRIENDLY),
    description: str | None = Form(None),
    keywords: str | None = Form(None),
    script_examples: str | None = Form(None),
    logo: UploadFile | None = File(None),
    voice_note: UploadFile | None = File(None),
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the brand guide.

    Text fields are overwritten on every save. Files are replaced only when a
    new one is sent; the previous file is then deleted.
    """
    new_logo = await _read_asset(logo, LOGO_TYPES, config.MAX_LOGO_BYTES, "logo")
    new_voice_note = await _read_asset(
        voice_note, VOICE_NOTE_TYPES, config.MAX_VOICE_NOTE_BYTES, "voice note"
    )

    guide = await db.get(BrandGuide, owner.id)
    if guide is None:
        guide = BrandGuide(owner_user_id=owner.id)
        db.add(guide)

    guide.tone = tone.value
    guide.description = to_text(description)
    guide.keywords = join_list(split_list(keywords))
    guide.script_examples = to_text(script_examples)

    stored: list[Path] = []
    replaced: list[str | None] = []
    try:
        if new_logo:
            content, media_type = new_logo
            stored.append(store_upload(content, logo.filename))
            replaced.append(guide.logo_path)
            guide.logo_path = str(stored[-1])
            guide.logo_content_type = media_type
        if new_voice_note:
            content, media_type = new_voice_note
            stored.append(store_upload(content, voice_note.filename))
            replaced.append(guide.voice_note_path)
            guide.voice_note_path = str(stored[-1])
            guide.voice_note_content_type = media_type
        await db.flush()
    except Exception:
        for path in stored:
            remove_upload(str(path))
        raise

    for old_path in replaced:
        remove_upload(old_path)

    logger.info(f"Brand guide saved for owner {owner.id} (tone={guide.tone})")
    return BrandGuideResponse(brand_guide=BrandGuideOut.from_model(guide))


@public_router.get("/{owner_id}/logo")
async def get_brand_logo(owner_id: UUID, db: AsyncSession = Depends(get_db)):
    """Serve the logo. Public so it can be used as an image source."""
    guide = await db.get(BrandGuide, owner_id)
    return _asset_response(guide, "logo_path", "logo_content_type")


@public_router.get("/{owner_id}/voice-note")
async def get_brand_voice_note(owner_id: UUID, db: AsyncSession = Depends(get_db)):
    guide = await db.get(BrandGuide, owner_id)
    return _asset_response(guide, "voice_note_path", "voice_note_content_type")
