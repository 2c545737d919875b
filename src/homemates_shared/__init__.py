"""Provider clients and shared schemas for the Homemates API."""

from homemates_shared.elevenlabs import (
    ElevenLabsClient,
    ElevenLabsConfig,
    get_elevenlabs_client,
)
from homemates_shared.errors import ProviderError, ProviderNotConfiguredError
from homemates_shared.google_oauth import (
    TOOL_SCOPES,
    GoogleOAuthClient,
    GoogleOAuthConfig,
    OAuthTokens,
    get_google_oauth_client,
)
from homemates_shared.perplexity import (
    PerplexityClient,
    PerplexityConfig,
    dedupe_results,
    get_perplexity_client,
    ingest_queries,
)
from homemates_shared.ringg import (
    CALL_ID_KEY,
    RinggCallResult,
    RinggClient,
    RinggConfig,
    get_ringg_client,
)
from homemates_shared.schemas import (
    CallProvider,
    Conversation,
    Listing,
    OutboundCallResult,
    PhoneNumber,
    ProviderAgent,
    SearchResult,
    TranscriptTurn,
    is_e164,
    normalize_phone,
)

__all__ = [
    "CALL_ID_KEY",
    "TOOL_SCOPES",
    "CallProvider",
    "Conversation",
    "ElevenLabsClient",
    "ElevenLabsConfig",
    "GoogleOAuthClient",
    "GoogleOAuthConfig",
    "Listing",
    "OAuthTokens",
    "OutboundCallResult",
    "PerplexityClient",
    "PerplexityConfig",
    "PhoneNumber",
    "ProviderAgent",
    "ProviderError",
    "ProviderNotConfiguredError",
    "RinggCallResult",
    "RinggClient",
    "RinggConfig",
    "SearchResult",
    "TranscriptTurn",
    "dedupe_results",
    "get_elevenlabs_client",
    "get_google_oauth_client",
    "get_perplexity_client",
    "get_ringg_client",
    "ingest_queries",
    "is_e164",
    "normalize_phone",
]
