"""Call orchestration API routes.

Owners place ElevenLabs calls from the dashboard; the landing page places
Ringg calls without an account. Every call is persisted and later advanced
by provider webhooks (see ``homemates.calls.webhooks``).
"""

import logging
from typing import Any
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from homemates import config
from homemates.auth.jwt import get_current_user_optional, require_owner
from homemates.calls.store import store
from homemates.calls.tracking import (
    apply_call_status,
    apply_conversation,
    map_elevenlabs_status,
    record_call_on_leads,
    sentiment_for,
)
from homemates.db.database import get_db
from homemates.db.models import Agent, Call, CallStatus, Tenant, User
from homemates.schemas import CallOut
from homemates_shared.elevenlabs import ElevenLabsClient, get_elevenlabs_client
from homemates_shared.errors import ProviderError, ProviderNotConfiguredError
from homemates_shared.ringg import RinggClient, get_ringg_client
from homemates_shared.schemas import CallProvider, PhoneNumber, is_e164, normalize_phone

logger = logging.getLogger("homemates-calls")

router = APIRouter(prefix="/calls", tags=["Calls"])
public_router = APIRouter(prefix="/public/calls", tags=["Calls"])


# =============================================================================
# Request/Response Models
# =============================================================================


class InitiateCallRequest(BaseModel):
    """Dashboard call request.

    The agents page sends ``to_number`` and a phone number ID; the calls
    page sends ``phone_number`` only.
    """

    agent_id: str = Field(..., min_length=1)
    to_number: str | None = None
    phone_number: str | None = None
    agent_phone_number_id: str | None = None
    customer_name: str | None = None


class CallResult(BaseModel):
    conversation_id: str | None
    call_sid: str | None


class InitiateCallResponse(BaseModel):
    success: bool
    message: str
    call_result: CallResult
    call: CallOut


class OutboundCallRequest(BaseModel):
    """Landing page call request (Ringg)."""

    name: str = Field(..., min_length=1)
    mobile_number: str = Field(..., min_length=1)
    custom_args_values: dict[str, Any] = Field(default_factory=dict)


class OutboundCallResponse(BaseModel):
    call: dict[str, Any]
    call_id: str


class CallResponse(BaseModel):
    call: CallOut


class CallListResponse(BaseModel):
    calls: list[CallOut]
    total: int


class PhoneNumberListResponse(BaseModel):
    phone_numbers: list[PhoneNumber]


# =============================================================================
# Helpers
# =============================================================================


def normalized_or_400(phone: str | None) -> str:
    normalized = normalize_phone(phone, config.DEFAULT_COUNTRY_CODE)
    if normalized is None or not is_e164(normalized):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Phone must be a valid number in E.164 format (e.g., +919876543210). Invalid: {phone}",
        )
    return normalized


async def enforce_rate_limit(key: str) -> None:
    allowed = await store.check_rate_limit(
        key, config.RATE_LIMIT_WINDOW_SECONDS, config.RATE_LIMIT_MAX_REQUESTS
    )
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Rate limit exceeded. Max {config.RATE_LIMIT_MAX_REQUESTS} calls per {config.RATE_LIMIT_WINDOW_SECONDS} seconds.",
        )


def choose_phone_number(numbers: list[PhoneNumber], agent_id: str) -> PhoneNumber | None:
    """Pick the number to call from.

    Outbound-capable numbers first (all numbers when none are flagged);
    among those, one assigned to this agent, then an unassigned one, then
    any.
    """
    outbound = [n for n in numbers if n.supports_outbound is not False] or numbers
    for number in outbound:
        if number.assigned_agent and number.assigned_agent.agent_id == agent_id:
            return number
    for number in outbound:
        if number.assigned_agent is None:
            return number
    return outbound[0] if outbound else None


def telephony_for(number: PhoneNumber | None) -> str:
    if number and number.provider and "sip" in number.provider.lower():
        return "sip_trunk"
    return "twilio"


def audio_url(conversation_id: str) -> str:
    return f"/api/public/calls/{conversation_id}/audio"


async def find_tenant(db: AsyncSession, tenant_id: Any = None, phone: str | None = None) -> Tenant | None:
    """Resolve a call's tenant by explicit ID, falling back to phone number."""
    if tenant_id:
        try:
            tenant = await db.get(Tenant, UUID(str(tenant_id)))
        except ValueError:
            tenant = None
        if tenant is not None:
            return tenant
    if phone:
        normalized = normalize_phone(phone, config.DEFAULT_COUNTRY_CODE)
        return (
            await db.execute(select(Tenant).where(Tenant.phone == normalized))
        ).scalar_one_or_none()
    return None


def visible_to(owner: User):
    """Owners see their own calls plus calls placed without an account."""
    return or_(Call.owner_user_id == owner.id, Call.owner_user_id.is_(None))


async def sync_elevenlabs_calls(
    db: AsyncSession, client: ElevenLabsClient, owner: User
) -> int:
    """Import recent ElevenLabs conversations for the owner's agents.

    Best effort: provider failures are logged and the local list is used.
    Returns the number of calls created.
    """
    agents = (
        await db.execute(select(Agent).where(Agent.owner_user_id == owner.id))
    ).scalars().all()
    if not agents:
        return 0

    created = 0
    try:
        for agent in agents:
            for conversation in await client.list_conversations(agent_id=agent.agent_id):
                call = (
                    await db.execute(
                        select(Call).where(Call.conversation_id == conversation.conversation_id)
                    )
                ).scalar_one_or_none()
                if call is None:
                    call = Call(
                        conversation_id=conversation.conversation_id,
                        provider=CallProvider.ELEVENLABS.value,
                        agent_id=agent.agent_id,
                        agent_name=conversation.agent_name or agent.custom_name or agent.name,
                        status=CallStatus.INITIATED.value,
                        owner_user_id=owner.id,
                        audio_url=audio_url(conversation.conversation_id),
                        started_at=conversation.start_time,
                    )
                    db.add(call)
                    created += 1
                if conversation.duration_secs is not None:
                    call.duration = conversation.duration_secs
                sentiment = sentiment_for(conversation.call_successful)
                if sentiment is not None:
                    call.sentiment_score = sentiment
                target = map_elevenlabs_status(conversation.status)
                if target is not None:
                    apply_call_status(call, target)
    except (ProviderError, ProviderNotConfiguredError) as e:
        logger.warning(f"Skipping ElevenLabs call sync: {e!s}")

    await db.flush()
    if created:
        logger.info(f"Synced {created} ElevenLabs call(s) for owner {owner.id}")
    return created


async def _get_call(db: AsyncSession, conversation_id: str, owner: User) -> Call:
    call = (
        await db.execute(
            select(Call).where(Call.conversation_id == conversation_id, visible_to(owner))
        )
    ).scalar_one_or_none()
    if call is None:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


# =============================================================================
# Routes
# =============================================================================


@router.get("/phone-numbers", response_model=PhoneNumberListResponse)
async def list_phone_numbers(
    owner: User = Depends(require_owner),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """List the phone numbers imported into ElevenLabs."""
    return PhoneNumberListResponse(phone_numbers=await client.list_phone_numbers())


@router.post("/initiate", response_model=InitiateCallResponse)
async def initiate_call(
    request: InitiateCallRequest,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """Have one of the owner's agents call a number through ElevenLabs."""
    to_number = normalized_or_400(request.to_number or request.phone_number)

    agent = await db.get(Agent, (owner.id, request.agent_id))
    if agent is None:
        raise HTTPException(
            status_code=404,
            detail=f"Agent {request.agent_id} not found. Add it on the Agents page first.",
        )

    await enforce_rate_limit(f"user:{owner.id}")

    numbers = await client.list_phone_numbers()
    if request.agent_phone_number_id:
        number = next(
            (n for n in numbers if n.phone_number_id == request.agent_phone_number_id), None
        )
        phone_number_id = request.agent_phone_number_id
    else:
        number = choose_phone_number(numbers, agent.agent_id)
        if number is None:
            raise HTTPException(
                status_code=400,
                detail="No ElevenLabs phone number available for outbound calls",
            )
        phone_number_id = number.phone_number_id

    tenant = await find_tenant(db, phone=to_number)
    customer_name = (request.customer_name or "").strip() or (tenant.name if tenant else None)

    result = await client.initiate_outbound_call(
        agent_id=agent.agent_id,
        agent_phone_number_id=phone_number_id,
        to_number=to_number,
        dynamic_variables={"customer_name": customer_name} if customer_name else None,
        telephony=telephony_for(number),
    )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.message or "ElevenLabs rejected the call",
        )

    conversation_id = result.conversation_id or result.call_sid or f"pending-{uuid4().hex}"
    call = Call(
        conversation_id=conversation_id,
        provider=CallProvider.ELEVENLABS.value,
        agent_id=agent.agent_id,
        agent_name=agent.custom_name or agent.name,
        customer_name=customer_name,
        phone=to_number,
        status=CallStatus.INITIATED.value,
        audio_url=audio_url(conversation_id),
        tenant_id=tenant.tenant_id if tenant else None,
        owner_user_id=owner.id,
    )
    db.add(call)
    await db.flush()

    logger.info(f"Call {conversation_id} initiated by owner {owner.id} to {to_number}")
    return InitiateCallResponse(
        success=True,
        message=result.message or "Call initiated",
        call_result=CallResult(conversation_id=result.conversation_id, call_sid=result.call_sid),
        call=CallOut.from_model(call),
    )


@router.post("/outbound", response_model=OutboundCallResponse)
async def outbound_call(
    request: OutboundCallRequest,
    http_request: Request,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
    client: RinggClient = Depends(get_ringg_client),
):
    """Place a Ringg AI call to a tenant. Works without an account."""
    mobile_number = normalized_or_400(request.mobile_number)

    if user is not None:
        key = f"user:{user.id}"
    else:
        key = f"ip:{http_request.client.host if http_request.client else 'unknown'}"
    await enforce_rate_limit(key)

    tenant = await find_tenant(
        db, tenant_id=request.custom_args_values.get("tenant_id"), phone=mobile_number
    )
    custom_args = {"callee_name": request.name, **request.custom_args_values}

    result = await client.initiate_call(request.name, mobile_number, custom_args)
    call_id = str(result.call_id or uuid4())

    call = Call(
        conversation_id=call_id,
        provider=CallProvider.RINGG.value,
        agent_id=client.config.agent_id or None,
        customer_name=request.name,
        phone=mobile_number,
        status=CallStatus.INITIATED.value,
        tenant_id=tenant.tenant_id if tenant else None,
        owner_user_id=user.id if user and user.is_owner else None,
    )
    db.add(call)
    await db.flush()

    logger.info(f"Ringg call {call_id} placed to {mobile_number}")
    return OutboundCallResponse(call=result.payload, call_id=call_id)


@router.get("", response_model=CallListResponse)
async def list_calls(
    status_filter: CallStatus | None = Query(None, alias="status"),
    agent_id: str | None = None,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """List calls, newest first, after syncing recent ElevenLabs conversations."""
    await sync_elevenlabs_calls(db, client, owner)

    query = select(Call).where(visible_to(owner))
    if status_filter:
        query = query.where(Call.status == status_filter.value)
    if agent_id:
        query = query.where(Call.agent_id == agent_id)

    result = await db.execute(
        query.order_by(func.coalesce(Call.started_at, Call.created_at).desc())
    )
    calls = [CallOut.from_model(call) for call in result.scalars()]
    return CallListResponse(calls=calls, total=len(calls))


@router.get("/{conversation_id}", response_model=CallResponse)
async def get_call(
    conversation_id: str,
    owner: User = Depends(require_owner),
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """Get one call, fetching the ElevenLabs transcript if it is missing."""
    call = await _get_call(db, conversation_id, owner)

    if call.provider == CallProvider.ELEVENLABS.value and not call.transcript_json:
        try:
            conversation = await client.get_conversation(conversation_id)
        except (ProviderError, ProviderNotConfiguredError) as e:
            logger.warning(f"Could not fetch conversation {conversation_id}: {e!s}")
        else:
            apply_conversation(call, conversation)
            await record_call_on_leads(db, call)
            await db.flush()

    return CallResponse(call=CallOut.from_model(call))


@public_router.get("/{conversation_id}/audio")
async def get_call_audio(
    conversation_id: str,
    db: AsyncSession = Depends(get_db),
    client: ElevenLabsClient = Depends(get_elevenlabs_client),
):
    """Stream an ElevenLabs call recording.

    Public so the browser audio player can load it; the conversation ID is
    the only handle.
    """
    call = (
        await db.execute(select(Call).where(Call.conversation_id == conversation_id))
    ).scalar_one_or_none()
    if call is None or call.provider != CallProvider.ELEVENLABS.value:
        raise HTTPException(status_code=404, detail="Recording not found")

    audio = await client.get_conversation_audio(conversation_id)
    return Response(content=audio, media_type="audio/mpeg")
