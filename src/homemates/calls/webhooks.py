"""Provider webhooks that advance call state.

ElevenLabs sends signed post-call events (``post_call_transcription`` and
``call_initiation_failure``). Ringg posts status updates carrying a shared
secret header. Both are idempotent: replays of an already-applied status
are no-ops.
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates.calls.routes import audio_url, find_tenant
from homemates.calls.tracking import (
    apply_call_status,
    apply_conversation,
    map_ringg_status,
    record_call_on_leads,
)
from homemates.coerce import to_seconds, to_text
from homemates.db.database import get_db
from homemates.db.models import Agent, Call, CallStatus
from homemates_shared.elevenlabs import ElevenLabsClient, get_elevenlabs_client
from homemates_shared.ringg import CALL_ID_KEY, RinggClient, get_ringg_client
from homemates_shared.schemas import CallProvider, TranscriptTurn

logger = logging.getLogger("homemates-webhooks")

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

INITIATION_FAILURES = {
    "busy": CallStatus.BUSY,
    "no-answer": CallStatus.NO_ANSWER,
    "no_answer": CallStatus.NO_ANSWER,
}


async def _load_json(request: Request) -> tuple[bytes, dict[str, Any]]:
    payload = await request.body()
    try:
        event = json.loads(payload or b"{}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    return payload, event


async def _call_by_conversation(db: AsyncSession, conversation_id: str) -> Call | None:
    return (
        await db.execute(select(Call).where(Call.conversation_id == conversation_id))
    ).scalar_one_or_none()


async def _call_for_elevenlabs_event(
    db: AsyncSession, conversation_id: str, agent_id: str | None
) -> Call | None:
    """Find the call for an event, creating it for inbound calls to known agents."""
    call = await _call_by_conversation(db, conversation_id)
    if call is not None or not agent_id:
        return call

    agent = (
        await db.execute(select(Agent).where(Agent.agent_id == agent_id).limit(1))
    ).scalar_one_or_none()
    if agent is None:
        return None

    call = Call(
        conversation_id=conversation_id,
        provider=CallProvider.ELEVENLABS.value,
        agent_id=agent_id,
        agent_name=agent.custom_name or agent.name,
        status=CallStatus.INITIATED.value,
        audio_url=audio_url(conversation_id),
        owner_user_id=agent.owner_user_id,
    )
    db.add(call)
    return call


@router.post("/elevenlabs")
async def elevenlabs_webhook(
    request: Request,
    signature: str | None = Header(None, alias="ElevenLabs-Signature"),
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """Handle ElevenLabs post-call webhooks.

    Processes:
    - post_call_transcription: transcript, summary, outcome and duration
    - call_initiation_failure: busy, no answer or provider failure
    """
    payload, event = await _load_json(request)
    if not client.verify_webhook_signature(payload, signature):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    event_type = event.get("type")
    data = event.get("data") or {}
    conversation_id = data.get("conversation_id")
    if not conversation_id:
        logger.warning(f"ElevenLabs {event_type} event without conversation_id")
        return {"received": True}

    call = await _call_for_elevenlabs_event(db, conversation_id, data.get("agent_id"))
    if call is None:
        logger.info(f"Ignoring ElevenLabs {event_type} for unknown conversation {conversation_id}")
        return {"received": True}

    if event_type == "post_call_transcription":
        conversation = client.parse_conversation(data)
        apply_conversation(call, conversation)
        if call.tenant_id is None:
            tenant = await find_tenant(
                db,
                tenant_id=conversation.dynamic_variables.get("tenant_id"),
                phone=call.phone,
            )
            if tenant is not None:
                call.tenant_id = tenant.tenant_id
                call.customer_name = call.customer_name or tenant.name
        await db.flush()
        await record_call_on_leads(db, call)

    elif event_type == "call_initiation_failure":
        reason = str(data.get("failure_reason") or "unknown")
        target = INITIATION_FAILURES.get(reason.lower(), CallStatus.FAILED)
        if apply_call_status(call, target):
            call.error = reason

    else:
        logger.info(f"Unhandled ElevenLabs event type: {event_type}")

    logger.info(f"ElevenLabs {event_type} applied to call {conversation_id} ({call.status})")
    return {"received": True}


def _ringg_transcript(value: Any) -> list[dict[str, Any]]:
    """Accept Ringg transcripts as plain text or a list of turns."""
    if isinstance(value, str):
        return [TranscriptTurn(role="transcript", message=value).model_dump()] if value.strip() else []
    turns = []
    for turn in value or []:
        if isinstance(turn, dict):
            turns.append(
                TranscriptTurn(
                    role=str(turn.get("role") or turn.get("speaker") or "unknown"),
                    message=to_text(turn.get("message") or turn.get("text") or turn.get("content")),
                    time_in_call_secs=to_seconds(
                        turn.get("time_in_call_secs") or turn.get("timestamp")
                    ),
                ).model_dump()
            )
    return turns


@router.post("/ringg")
async def ringg_webhook(
    request: Request,
    webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
    db: AsyncSession = Depends(get_db),
    client: RinggClient = Depends(get_ringg_client),
):
    """Handle Ringg call status updates."""
    if not client.verify_webhook_secret(webhook_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook secret",
        )

    _, event = await _load_json(request)
    data = event.get("data") if isinstance(event.get("data"), dict) else event

    call_id = data.get(CALL_ID_KEY) or data.get("call_id") or data.get("id")
    if not call_id:
        raise HTTPException(status_code=400, detail="Missing call ID")

    call = await _call_by_conversation(db, str(call_id))
    if call is None:
        logger.info(f"Ignoring Ringg update for unknown call {call_id}")
        return {"received": True}

    transcript = _ringg_transcript(data.get("transcript"))
    if transcript:
        call.transcript_json = json.dumps(transcript)
    if data.get("summary"):
        call.summary = str(data["summary"])
    if data.get("recording_url"):
        call.audio_url = str(data["recording_url"])
    duration = data.get("duration") or data.get("call_duration")
    if duration is not None:
        try:
            call.duration = int(float(duration))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric Ringg duration {duration!r}")

    if call.tenant_id is None:
        custom_args = data.get("custom_args_values") or {}
        tenant = await find_tenant(db, tenant_id=custom_args.get("tenant_id"), phone=call.phone)
        if tenant is not None:
            call.tenant_id = tenant.tenant_id

    raw_status = data.get("status") or data.get("call_status")
    target = map_ringg_status(raw_status)
    if target is None:
        logger.warning(f"Unknown Ringg status {raw_status!r} for call {call_id}")
    elif apply_call_status(call, target) and target == CallStatus.FAILED:
        call.error = str(data.get("error") or data.get("reason") or raw_status)

    await db.flush()
    await record_call_on_leads(db, call)

    logger.info(f"Ringg update applied to call {call_id} ({call.status})")
    return {"received": True}
