"""Ringg AI outbound calling client.

Places individual outbound calls through a pre-configured Ringg agent.
Status updates arrive later through the Ringg webhook.
"""

import hmac
import logging
import os
from dataclasses import dataclass, field
from typing import Any

import httpx

from homemates_shared.errors import ProviderError, ProviderNotConfiguredError

logger = logging.getLogger("ringg-client")

PROVIDER = "Ringg"

# Key Ringg uses for the call identifier in its responses and webhooks
CALL_ID_KEY = "Unique Call ID"


@dataclass
class RinggConfig:
    """Configuration for the Ringg AI API."""

    api_key: str
    agent_id: str
    from_number_id: str = ""
    base_url: str = "https://prod-api.ringg.ai/ca/api/v0"
    webhook_secret: str = ""
    timeout_seconds: float = 20.0

    @classmethod
    def from_env(cls) -> "RinggConfig":
        """Load Ringg config from environment variables."""
        api_key = os.getenv("RINGG_API_KEY", "")
        agent_id = os.getenv("RINGG_AGENT_ID", "")

        if not api_key:
            logger.warning("RINGG_API_KEY not set - outbound tenant calls will fail")
        if not agent_id:
            logger.warning("RINGG_AGENT_ID not set - outbound tenant calls will fail")

        return cls(
            api_key=api_key,
            agent_id=agent_id,
            from_number_id=os.getenv("RINGG_FROM_NUMBER_ID", ""),
            base_url=os.getenv("RINGG_BASE_URL", "https://prod-api.ringg.ai/ca/api/v0"),
            webhook_secret=os.getenv("RINGG_WEBHOOK_SECRET", ""),
        )

    def is_configured(self) -> bool:
        """Check if all required config is present."""
        return bool(self.api_key and self.agent_id)


@dataclass
class RinggCallResult:
    """Result of placing a Ringg call."""

    call_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)


class RinggClient:
    """Async client for Ringg AI outbound calls."""

    def __init__(
        self,
        config: RinggConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or RinggConfig.from_env()
        self._transport = transport

    def is_configured(self) -> bool:
        return self.config.is_configured()

    async def initiate_call(
        self,
        name: str,
        mobile_number: str,
        custom_args_values: dict[str, Any] | None = None,
    ) -> RinggCallResult:
        """Place an outbound call.

        Args:
            name: Callee name, spoken by the agent.
            mobile_number: Destination number (E.164).
            custom_args_values: Extra variables exposed to the agent prompt.

        Returns:
            RinggCallResult with the Ringg call ID and the raw call payload.

        Raises:
            ProviderNotConfiguredError: If API key or agent are missing.
            ProviderError: If Ringg rejects the call.
        """
        if not self.config.is_configured():
            raise ProviderNotConfiguredError(PROVIDER, ["RINGG_API_KEY", "RINGG_AGENT_ID"])

        body: dict[str, Any] = {
            "name": name,
            "mobile_number": mobile_number,
            "agent_id": self.config.agent_id,
            "custom_args_values": custom_args_values or {},
        }
        if self.config.from_number_id:
            body["from_number_id"] = self.config.from_number_id

        logger.info(f"Placing Ringg call to {mobile_number}")

        async with httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"X-API-KEY": self.config.api_key},
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post("/calling/outbound/individual", json=body)
            except httpx.RequestError as e:
                logger.error(f"Ringg request failed: {e!s}")
                raise ProviderError(PROVIDER, f"Request failed: {e!s}") from e

        try:
            data = response.json()
        except ValueError:
            data = {"message": response.text}
        if not isinstance(data, dict):
            data = {"message": response.text}

        if response.is_error:
            message = str(data.get("message") or data.get("detail") or response.reason_phrase)
            logger.error(f"Ringg returned {response.status_code}: {message}")
            raise ProviderError(PROVIDER, message, status_code=response.status_code)

        # Ringg nests the call under "data" on success
        call = data.get("data") if isinstance(data.get("data"), dict) else data
        call_id = call.get(CALL_ID_KEY) or call.get("call_id") or call.get("id")
        if call_id and CALL_ID_KEY not in call:
            call = {**call, CALL_ID_KEY: call_id}

        return RinggCallResult(call_id=call_id, payload=call)

    def verify_webhook_secret(self, provided: str | None) -> bool:
        """Check the shared secret sent with status webhooks.

        Returns True when no secret is configured (development).
        """
        secret = self.config.webhook_secret
        if not secret:
            return True
        return bool(provided) and hmac.compare_digest(secret, provided)


_ringg_client: RinggClient | None = None


def get_ringg_client() -> RinggClient:
    """Get the Ringg client singleton."""
    global _ringg_client
    if _ringg_client is None:
        _ringg_client = RinggClient()
    return _ringg_client
