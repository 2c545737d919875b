"""Call state tracking.

Applies provider status updates through ``CALL_TRANSITIONS``: terminal
calls never move, repeating the current status is a no-op, and anything
else out of order is logged and ignored. Completed calls for a known tenant
copy their transcript onto that tenant's open leads.
"""

import json
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from homemates.db.models import (
    CALL_TRANSITIONS,
    Call,
    CallStatus,
    Lead,
    LeadChannel,
    LeadStatus,
)
from homemates_shared.schemas import Conversation, TranscriptTurn

logger = logging.getLogger("homemates-calls")

# ElevenLabs analysis.call_successful -> sentiment score
SENTIMENT_BY_OUTCOME = {
    "success": 0.6,
    "failure": -0.6,
    "unknown": 0.0,
}

ELEVENLABS_STATUSES = {
    "initiated": CallStatus.INITIATED,
    "in-progress": CallStatus.IN_PROGRESS,
    "processing": CallStatus.IN_PROGRESS,
    "done": CallStatus.COMPLETED,
    "failed": CallStatus.FAILED,
}

RINGG_STATUSES = {
    "initiated": CallStatus.INITIATED,
    "queued": CallStatus.INITIATED,
    "ringing": CallStatus.RINGING,
    "in_progress": CallStatus.IN_PROGRESS,
    "ongoing": CallStatus.IN_PROGRESS,
    "answered": CallStatus.IN_PROGRESS,
    "completed": CallStatus.COMPLETED,
    "ended": CallStatus.COMPLETED,
    "failed": CallStatus.FAILED,
    "error": CallStatus.FAILED,
    "no_answer": CallStatus.NO_ANSWER,
    "not_answered": CallStatus.NO_ANSWER,
    "unanswered": CallStatus.NO_ANSWER,
    "busy": CallStatus.BUSY,
}

OPEN_LEAD_STATUSES = (
    LeadStatus.NEW.value,
    LeadStatus.CLAIMED.value,
    LeadStatus.CONTACTED.value,
)


def map_elevenlabs_status(value: str | None) -> CallStatus | None:
    return ELEVENLABS_STATUSES.get((value or "").strip().lower())


def map_ringg_status(value: str | None) -> CallStatus | None:
    key = (value or "").strip().lower().replace("-", "_").replace(" ", "_")
    return RINGG_STATUSES.get(key)


def can_transition(current: CallStatus, target: CallStatus) -> bool:
    return target in CALL_TRANSITIONS[current]


def apply_call_status(call: Call, target: CallStatus, now: datetime | None = None) -> bool:
    """Move a call to ``target`` if the status machine allows it.

    Returns:
        True if the status changed.
    """
    current = CallStatus(call.status)
    if target == current:
        return False
    if not can_transition(current, target):
        logger.info(
            f"Ignoring {current.value} -> {target.value} for call {call.conversation_id}"
        )
        return False

    now = now or datetime.now(timezone.utc)
    call.status = target.value
    if target == CallStatus.IN_PROGRESS and call.started_at is None:
        call.started_at = now
    if call.is_terminal and call.ended_at is None:
        call.ended_at = now
    return True


def sentiment_for(outcome: str | None) -> float | None:
    if outcome is None:
        return None
    return SENTIMENT_BY_OUTCOME.get(outcome.lower(), 0.0)


def transcript_text(turns: list[TranscriptTurn]) -> str:
    """Render transcript turns as ``role: message`` lines."""
    return "\n".join(f"{turn.role}: {turn.message}" for turn in turns if turn.message)


def apply_conversation(call: Call, conversation: Conversation) -> None:
    """Copy ElevenLabs conversation details onto a call record."""
    if conversation.transcript:
        call.transcript_json = json.dumps(
            [turn.model_dump() for turn in conversation.transcript]
        )
    if conversation.summary:
        call.summary = conversation.summary
    if conversation.duration_secs is not None:
        call.duration = conversation.duration_secs
    sentiment = sentiment_for(conversation.call_successful)
    if sentiment is not None:
        call.sentiment_score = sentiment
    if conversation.start_time and call.started_at is None:
        call.started_at = conversation.start_time
    if conversation.phone and not call.phone:
        call.phone = conversation.phone
    if conversation.agent_name and not call.agent_name:
        call.agent_name = conversation.agent_name
    if conversation.metadata:
        call.metadata_json = json.dumps(conversation.metadata, default=str)

    target = map_elevenlabs_status(conversation.status)
    if target is not None:
        ended_at = None
        if conversation.start_time and conversation.duration_secs is not None:
            ended_at = conversation.start_time + timedelta(seconds=conversation.duration_secs)
        apply_call_status(call, target, now=ended_at)


async def record_call_on_leads(db: AsyncSession, call: Call) -> int:
    """Attach a completed call's transcript to the tenant's open leads.

    ``new`` leads move to ``contacted``. Returns the number of leads updated.
    """
    if call.status != CallStatus.COMPLETED.value or call.tenant_id is None:
        return 0

    turns = [TranscriptTurn(**turn) for turn in json.loads(call.transcript_json or "[]")]
    text = transcript_text(turns) or call.summary
    leads = (
        await db.execute(
            select(Lead).where(
                Lead.tenant_id == call.tenant_id,
                Lead.status.in_(OPEN_LEAD_STATUSES),
            )
        )
    ).scalars()

    updated = 0
    for lead in leads:
        if text:
            lead.transcript = text
        if call.audio_url:
            lead.call_recording_url = call.audio_url
        lead.channel = LeadChannel.CALL.value
        if lead.status == LeadStatus.NEW.value:
            lead.status = LeadStatus.CONTACTED.value
        updated += 1

    if updated:
        logger.info(f"Call {call.conversation_id} recorded on {updated} lead(s)")
    return updated


async def expire_stale_calls(
    db: AsyncSession, stale_minutes: int, now: datetime | None = None
) -> int:
    """Mark calls stuck in initiated/ringing past the cutoff as no_answer."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=stale_minutes)
    result = await db.execute(
        update(Call)
        .where(
            Call.status.in_([CallStatus.INITIATED.value, CallStatus.RINGING.value]),
            Call.created_at < cutoff,
        )
        .values(status=CallStatus.NO_ANSWER.value, ended_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
