"""ElevenLabs Conversational AI client.

Wraps the ConvAI REST endpoints the marketplace needs: agents, phone
numbers, outbound calls, conversations (call history) and post-call
webhook verification.

https://elevenlabs.io/docs/api-reference/conversational-ai
"""

import hashlib
import hmac
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

import httpx

from homemates_shared.errors import ProviderError, ProviderNotConfiguredError
from homemates_shared.schemas import (
    AssignedAgent,
    Conversation,
    OutboundCallResult,
    PhoneNumber,
    ProviderAgent,
    TranscriptTurn,
)

logger = logging.getLogger("elevenlabs-client")

PROVIDER = "ElevenLabs"

# Webhook timestamps older than this are rejected (replay protection)
WEBHOOK_TOLERANCE_SECONDS = 30 * 60


@dataclass
class ElevenLabsConfig:
    """Configuration for the ElevenLabs API."""

    api_key: str
    base_url: str = "https://api.elevenlabs.io"
    webhook_secret: str = ""
    timeout_seconds: float = 20.0

    @classmethod
    def from_env(cls) -> "ElevenLabsConfig":
        """Load ElevenLabs config from environment variables."""
        api_key = os.getenv("ELEVENLABS_API_KEY", "")
        if not api_key:
            logger.warning("ELEVENLABS_API_KEY not set - agent and call features will fail")

        return cls(
            api_key=api_key,
            base_url=os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io"),
            webhook_secret=os.getenv("ELEVENLABS_WEBHOOK_SECRET", ""),
        )

    def is_configured(self) -> bool:
        """Check if the API key is present."""
        return bool(self.api_key)


def _error_message(response: httpx.Response) -> str:
    """Pull the most useful error text out of an ElevenLabs error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    detail = body.get("detail", body) if isinstance(body, dict) else body
    if isinstance(detail, dict):
        return str(detail.get("message") or detail.get("status") or detail)
    return str(detail)


class ElevenLabsClient:
    """Async client for the ElevenLabs ConvAI API."""

    def __init__(
        self,
        config: ElevenLabsConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            config: API configuration. Loads from environment if not provided.
            transport: Optional httpx transport (used by tests).
        """
        self.config = config or ElevenLabsConfig.from_env()
        self._transport = transport

    def is_configured(self) -> bool:
        return self.config.is_configured()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if not self.config.is_configured():
            raise ProviderNotConfiguredError(PROVIDER, ["ELEVENLABS_API_KEY"])

        async with httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"xi-api-key": self.config.api_key},
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.request(method, path, params=params, json=json)
            except httpx.RequestError as e:
                logger.error(f"ElevenLabs request failed: {method} {path}: {e!s}")
                raise ProviderError(PROVIDER, f"Request failed: {e!s}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(
                f"ElevenLabs returned {response.status_code} for {method} {path}: {message}"
            )
            raise ProviderError(PROVIDER, message, status_code=response.status_code)

        return response

    # -------------------------------------------------------------------------
    # Agents
    # -------------------------------------------------------------------------

    async def list_agents(self) -> list[ProviderAgent]:
        """List the agents in the ElevenLabs workspace."""
        response = await self._request("GET", "/v1/convai/agents", params={"page_size": 100})
        return [
            ProviderAgent(
                agent_id=item["agent_id"],
                name=item.get("name") or item["agent_id"],
                created_at=Conversation.from_unix(item.get("created_at_unix_secs")),
            )
            for item in response.json().get("agents", [])
        ]

    async def get_agent(self, agent_id: str) -> ProviderAgent | None:
        """Fetch a single agent.

        Returns:
            The agent, or None if ElevenLabs does not know the ID.
        """
        try:
            response = await self._request("GET", f"/v1/convai/agents/{agent_id}")
        except ProviderError as e:
            if e.status_code in (404, 422):
                return None
            raise

        data = response.json()
        prompt = (
            data.get("conversation_config", {})
            .get("agent", {})
            .get("prompt", {})
            .get("prompt")
        )
        metadata = data.get("metadata") or {}
        return ProviderAgent(
            agent_id=data.get("agent_id", agent_id),
            name=data.get("name") or agent_id,
            description=prompt[:200] if prompt else None,
            created_at=Conversation.from_unix(metadata.get("created_at_unix_secs")),
        )

    # -------------------------------------------------------------------------
    # Phone numbers and outbound calls
    # -------------------------------------------------------------------------

    async def list_phone_numbers(self) -> list[PhoneNumber]:
        """List phone numbers imported into ElevenLabs."""
        response = await self._request("GET", "/v1/convai/phone-numbers")
        payload = response.json()
        items = payload.get("phone_numbers", []) if isinstance(payload, dict) else payload

        numbers = []
        for item in items:
            phone_number_id = item.get("phone_number_id") or item.get("id")
            if not phone_number_id:
                logger.warning(f"Skipping phone number without ID: {item}")
                continue

            assigned = item.get("assigned_agent")
            numbers.append(
                PhoneNumber(
                    phone_number_id=phone_number_id,
                    phone_number=item.get("phone_number") or item.get("phone") or "",
                    label=item.get("label"),
                    provider=item.get("provider"),
                    supports_outbound=item.get("supports_outbound"),
                    supports_inbound=item.get("supports_inbound"),
                    assigned_agent=AssignedAgent(
                        agent_id=assigned["agent_id"],
                        agent_name=assigned.get("agent_name"),
                    )
                    if assigned and assigned.get("agent_id")
                    else None,
                )
            )
        return numbers

    async def initiate_outbound_call(
        self,
        agent_id: str,
        agent_phone_number_id: str,
        to_number: str,
        dynamic_variables: dict[str, Any] | None = None,
        telephony: str = "twilio",
    ) -> OutboundCallResult:
        """Ask an agent to dial a number.

        Args:
            agent_id: ElevenLabs agent ID.
            agent_phone_number_id: ID of the ElevenLabs number to call from.
            to_number: Destination in E.164.
            dynamic_variables: Values substituted into the agent prompt.
            telephony: "twilio" or "sip_trunk", matching the number's provider.

        Returns:
            OutboundCallResult with the new conversation ID.
        """
        path = (
            "/v1/convai/sip-trunk/outbound-call"
            if telephony == "sip_trunk"
            else "/v1/convai/twilio/outbound-call"
        )
        body: dict[str, Any] = {
            "agent_id": agent_id,
            "agent_phone_number_id": agent_phone_number_id,
            "to_number": to_number,
        }
        if dynamic_variables:
            body["conversation_initiation_client_data"] = {
                "dynamic_variables": dynamic_variables
            }

        logger.info(f"Placing outbound call to {to_number} with agent {agent_id}")
        response = await self._request("POST", path, json=body)
        data = response.json()

        return OutboundCallResult(
            success=bool(data.get("success", True)),
            message=data.get("message"),
            conversation_id=data.get("conversation_id") or data.get("conversationId"),
            call_sid=data.get("callSid") or data.get("sip_call_id"),
            raw=data,
        )

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    async def list_conversations(
        self, agent_id: str | None = None, page_size: int = 30
    ) -> list[Conversation]:
        """List recent conversations, optionally for one agent."""
        params: dict[str, Any] = {"page_size": page_size}
        if agent_id:
            params["agent_id"] = agent_id

        response = await self._request("GET", "/v1/convai/conversations", params=params)
        return [
            Conversation(
                conversation_id=item["conversation_id"],
                agent_id=item.get("agent_id"),
                agent_name=item.get("agent_name"),
                status=item.get("status"),
                start_time=Conversation.from_unix(item.get("start_time_unix_secs")),
                duration_secs=item.get("call_duration_secs"),
                call_successful=item.get("call_successful"),
            )
            for item in response.json().get("conversations", [])
        ]

    async def get_conversation(self, conversation_id: str) -> Conversation:
        """Fetch full conversation details including transcript."""
        response = await self._request(
            "GET", f"/v1/convai/conversations/{conversation_id}"
        )
        return self.parse_conversation(response.json())

    async def get_conversation_audio(self, conversation_id: str) -> bytes:
        """Download the call recording (audio/mpeg)."""
        response = await self._request(
            "GET", f"/v1/convai/conversations/{conversation_id}/audio"
        )
        return response.content

    @staticmethod
    def parse_conversation(data: dict[str, Any]) -> Conversation:
        """Parse a conversation detail body or post-call webhook ``data`` block."""
        metadata = data.get("metadata") or {}
        analysis = data.get("analysis") or {}
        phone_call = metadata.get("phone_call") or {}
        client_data = data.get("conversation_initiation_client_data") or {}

        transcript = [
            TranscriptTurn(
                role=turn.get("role", "unknown"),
                message=turn.get("message"),
                time_in_call_secs=turn.get("time_in_call_secs"),
            )
            for turn in data.get("transcript") or []
        ]

        return Conversation(
            conversation_id=data["conversation_id"],
            agent_id=data.get("agent_id"),
            agent_name=data.get("agent_name"),
            status=data.get("status"),
            start_time=Conversation.from_unix(metadata.get("start_time_unix_secs")),
            duration_secs=metadata.get("call_duration_secs"),
            call_successful=analysis.get("call_successful"),
            transcript=transcript,
            summary=analysis.get("transcript_summary"),
            phone=phone_call.get("external_number"),
            dynamic_variables=client_data.get("dynamic_variables") or {},
            metadata=metadata,
        )

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    def verify_webhook_signature(
        self,
        body: bytes,
        signature_header: str | None,
        now: float | None = None,
    ) -> bool:
        """Verify an ``ElevenLabs-Signature`` header.

        The header looks like ``t=<unix>,v0=<hex hmac>`` where the HMAC is
        SHA-256 over ``"<t>.<raw body>"`` keyed by the webhook secret.

        Returns:
            True if the secret is not configured (development) or the
            signature is valid and fresh.
        """
        secret = self.config.webhook_secret
        if not secret:
            return True
        if not signature_header:
            return False

        parts = dict(
            part.split("=", 1) for part in signature_header.split(",") if "=" in part
        )
        timestamp = parts.get("t")
        signature = parts.get("v0")
        if not timestamp or not signature:
            return False

        try:
            sent_at = int(timestamp)
        except ValueError:
            return False

        current = now if now is not None else time.time()
        if current - sent_at > WEBHOOK_TOLERANCE_SECONDS:
            return False

        expected = hmac.new(
            secret.encode(),
            f"{timestamp}.".encode() + body,
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


_elevenlabs_client: ElevenLabsClient | None = None


def get_elevenlabs_client() -> ElevenLabsClient:
    """Get the ElevenLabs client singleton."""
    global _elevenlabs_client
    if _elevenlabs_client is None:
        _elevenlabs_client = ElevenLabsClient()
    return _elevenlabs_client
