"""Pydantic schemas shared between the API and the provider clients.

These schemas are provider-agnostic views of what ElevenLabs, Ringg and
Perplexity return. Provider-specific payload parsing lives in the client
modules; routes only ever see these models.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Phone Numbers
# =============================================================================

# E.164: plus sign, no leading zero, up to 15 digits
E164_REGEX = re.compile(r"^\+[1-9]\d{6,14}$")


def is_e164(phone: str) -> bool:
    """Validate phone number is in E.164 format."""
    return bool(E164_REGEX.match(phone))


def normalize_phone(phone: str | None, default_country_code: str = "91") -> str | None:
    """Normalize a user-entered phone number to E.164.

    Accepts the loose formats the dashboard sends: spaces, dashes,
    parentheses, a leading ``00`` international prefix, a national
    trunk ``0`` or a bare 10-digit local number.

    Args:
        phone: Raw phone number as typed.
        default_country_code: Country code (digits only) for local numbers.

    Returns:
        The E.164 string, or None if the input has no digits at all.
    """
    if phone is None:
        return None

    raw = phone.strip()
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return None

    if raw.startswith("+"):
        return f"+{digits}"
    if digits.startswith("00"):
        return f"+{digits[2:]}"
    if len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]
    if len(digits) == 10:
        return f"+{default_country_code}{digits}"
    return f"+{digits}"


# =============================================================================
# Voice Providers
# =============================================================================


class CallProvider(str, Enum):
    """Which voice provider placed a call."""

    ELEVENLABS = "elevenlabs"
    RINGG = "ringg"


class AssignedAgent(BaseModel):
    """Agent a provider phone number is bound to."""

    agent_id: str
    agent_name: str | None = None


class PhoneNumber(BaseModel):
    """A telephony number registered with the voice provider."""

    phone_number_id: str
    phone_number: str
    label: str | None = None
    provider: str | None = None
    supports_outbound: bool | None = None
    supports_inbound: bool | None = None
    assigned_agent: AssignedAgent | None = None


class ProviderAgent(BaseModel):
    """A conversational agent as known to ElevenLabs."""

    agent_id: str
    name: str
    description: str | None = None
    created_at: datetime | None = None


class OutboundCallResult(BaseModel):
    """Result of asking a provider to place an outbound call."""

    success: bool
    message: str | None = None
    conversation_id: str | None = None
    call_sid: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class TranscriptTurn(BaseModel):
    """A single utterance in a call transcript."""

    role: str
    message: str | None = None
    time_in_call_secs: float | None = None


class Conversation(BaseModel):
    """A provider conversation (one phone call) with optional details.

    List endpoints fill only the summary fields; the detail endpoint
    and post-call webhooks add transcript, analysis and metadata.
    """

    conversation_id: str
    agent_id: str | None = None
    agent_name: str | None = None
    status: str | None = None
    start_time: datetime | None = None
    duration_secs: int | None = None
    call_successful: str | None = None
    transcript: list[TranscriptTurn] = Field(default_factory=list)
    summary: str | None = None
    phone: str | None = None
    dynamic_variables: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @staticmethod
    def from_unix(seconds: int | float | None) -> datetime | None:
        """Convert a provider unix timestamp to an aware datetime."""
        if seconds is None:
            return None
        return datetime.fromtimestamp(seconds, tz=timezone.utc)


# =============================================================================
# Listing Search (Perplexity)
# =============================================================================


class SearchResult(BaseModel):
    """A raw web search hit."""

    title: str | None = None
    url: str
    snippet: str | None = None
    date: str | None = None


class Listing(BaseModel):
    """A structured rental/sale listing extracted from search results."""

    title: str | None = None
    project_name: str | None = None
    price: str | None = None
    area_sqft: str | None = None
    location: str | None = None
    bhk_configuration: str | None = None
    source_url: str | None = None
