"""Provider client tests against mocked HTTP transports."""

import hashlib
import hmac
import json

import httpx
import pytest

from homemates.main import app
from homemates_shared.elevenlabs import ElevenLabsClient, ElevenLabsConfig
from homemates_shared.errors import ProviderError, ProviderNotConfiguredError
from homemates_shared.google_oauth import GoogleOAuthClient, GoogleOAuthConfig
from homemates_shared.perplexity import PerplexityClient, PerplexityConfig, get_perplexity_client
from homemates_shared.ringg import CALL_ID_KEY, RinggClient, RinggConfig
from homemates_shared.schemas import SearchResult


def recorder(handler):
    """Wrap a handler so tests can inspect the requests it received."""
    requests: list[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.MockTransport(_handle), requests


# =============================================================================
# ElevenLabs
# =============================================================================


def elevenlabs_client(handler, **config):
    transport, requests = recorder(handler)
    client = ElevenLabsClient(ElevenLabsConfig(api_key="xi-key", **config), transport=transport)
    return client, requests


class TestElevenLabsClient:
    async def test_list_agents(self):
        client, requests = elevenlabs_client(
            lambda r: httpx.Response(
                200,
                json={"agents": [{"agent_id": "a1", "name": "Asha", "created_at_unix_secs": 1700000000}]},
            )
        )
        agents = await client.list_agents()

        assert agents[0].agent_id == "a1"
        assert agents[0].created_at.year == 2023
        assert requests[0].headers["xi-api-key"] == "xi-key"
        assert requests[0].url.path == "/v1/convai/agents"

    async def test_get_agent_missing_returns_none(self):
        client, _ = elevenlabs_client(
            lambda r: httpx.Response(404, json={"detail": {"status": "agent_not_found"}})
        )
        assert await client.get_agent("nope") is None

    async def test_get_agent_description_from_prompt(self):
        body = {
            "agent_id": "a1",
            "name": "Asha",
            "conversation_config": {"agent": {"prompt": {"prompt": "You help tenants find flats."}}},
        }
        client, _ = elevenlabs_client(lambda r: httpx.Response(200, json=body))
        agent = await client.get_agent("a1")
        assert agent.description == "You help tenants find flats."

    async def test_server_error_raises(self):
        client, _ = elevenlabs_client(
            lambda r: httpx.Response(500, json={"detail": {"message": "boom"}})
        )
        with pytest.raises(ProviderError) as excinfo:
            await client.list_agents()
        assert excinfo.value.status_code == 500
        assert excinfo.value.message == "boom"

    async def test_list_phone_numbers(self):
        body = [
            {
                "phone_number_id": "pn_1",
                "phone_number": "+14155550100",
                "provider": "twilio",
                "supports_outbound": True,
                "assigned_agent": {"agent_id": "a1", "agent_name": "Asha"},
            },
            {"phone_number": "+1000"},
        ]
        client, _ = elevenlabs_client(lambda r: httpx.Response(200, json=body))
        numbers = await client.list_phone_numbers()

        assert len(numbers) == 1
        assert numbers[0].assigned_agent.agent_id == "a1"

    async def test_outbound_call_body(self):
        client, requests = elevenlabs_client(
            lambda r: httpx.Response(
                200,
                json={"success": True, "message": "ok", "conversation_id": "conv_1", "callSid": "CA1"},
            )
        )
        result = await client.initiate_outbound_call(
            "a1", "pn_1", "+919876543210", dynamic_variables={"customer_name": "Priya"}
        )

        assert result.conversation_id == "conv_1"
        assert result.call_sid == "CA1"
        sent = json.loads(requests[0].content)
        assert requests[0].url.path == "/v1/convai/twilio/outbound-call"
        assert sent["conversation_initiation_client_data"] == {
            "dynamic_variables": {"customer_name": "Priya"}
        }

    async def test_outbound_call_sip_trunk(self):
        client, requests = elevenlabs_client(
            lambda r: httpx.Response(200, json={"success": True, "sip_call_id": "sip-1"})
        )
        result = await client.initiate_outbound_call("a1", "pn_1", "+1", telephony="sip_trunk")
        assert requests[0].url.path == "/v1/convai/sip-trunk/outbound-call"
        assert result.call_sid == "sip-1"

    async def test_get_conversation(self):
        body = {
            "conversation_id": "conv_1",
            "agent_id": "a1",
            "status": "done",
            "transcript": [{"role": "agent", "message": "Hello", "time_in_call_secs": 0}],
            "metadata": {
                "start_time_unix_secs": 1767261600,
                "call_duration_secs": 30,
                "phone_call": {"external_number": "+919876543210"},
            },
            "analysis": {"call_successful": "success", "transcript_summary": "Short call"},
        }
        client, _ = elevenlabs_client(lambda r: httpx.Response(200, json=body))
        conversation = await client.get_conversation("conv_1")

        assert conversation.duration_secs == 30
        assert conversation.summary == "Short call"
        assert conversation.phone == "+919876543210"
        assert conversation.transcript[0].message == "Hello"

    async def test_not_configured(self):
        client = ElevenLabsClient(ElevenLabsConfig(api_key=""))
        with pytest.raises(ProviderNotConfiguredError):
            await client.list_agents()

    async def test_request_error_wrapped(self):
        def fail(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = elevenlabs_client(fail)
        with pytest.raises(ProviderError):
            await client.list_phone_numbers()


class TestWebhookSignature:
    def sign(self, body: bytes, secret="whsec", timestamp=1000):
        digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + body, hashlib.sha256).hexdigest()
        return f"t={timestamp},v0={digest}"

    def test_valid(self):
        client = ElevenLabsClient(ElevenLabsConfig(api_key="k", webhook_secret="whsec"))
        assert client.verify_webhook_signature(b"{}", self.sign(b"{}"), now=1010)

    def test_tampered_body(self):
        client = ElevenLabsClient(ElevenLabsConfig(api_key="k", webhook_secret="whsec"))
        assert not client.verify_webhook_signature(b'{"a":1}', self.sign(b"{}"), now=1010)

    def test_expired(self):
        client = ElevenLabsClient(ElevenLabsConfig(api_key="k", webhook_secret="whsec"))
        assert not client.verify_webhook_signature(b"{}", self.sign(b"{}"), now=1000 + 3600)

    def test_malformed_header(self):
        client = ElevenLabsClient(ElevenLabsConfig(api_key="k", webhook_secret="whsec"))
        assert not client.verify_webhook_signature(b"{}", "garbage", now=1000)
        assert not client.verify_webhook_signature(b"{}", None, now=1000)

    def test_no_secret_accepts(self):
        client = ElevenLabsClient(ElevenLabsConfig(api_key="k"))
        assert client.verify_webhook_signature(b"{}", None)


# =============================================================================
# Ringg
# =============================================================================


class TestRinggClient:
    async def test_initiate_call(self):
        transport, requests = recorder(
            lambda r: httpx.Response(200, json={"data": {"call_id": "r-1", "status": "queued"}})
        )
        client = RinggClient(
            RinggConfig(api_key="rk", agent_id="ra", from_number_id="fn"), transport=transport
        )
        result = await client.initiate_call("Priya", "+919876543210", {"callee_name": "Priya"})

        assert result.call_id == "r-1"
        assert result.payload[CALL_ID_KEY] == "r-1"
        sent = json.loads(requests[0].content)
        assert sent["agent_id"] == "ra"
        assert sent["from_number_id"] == "fn"
        assert requests[0].headers["X-API-KEY"] == "rk"

    async def test_error(self):
        transport, _ = recorder(lambda r: httpx.Response(400, json={"message": "Invalid number"}))
        client = RinggClient(RinggConfig(api_key="rk", agent_id="ra"), transport=transport)
        with pytest.raises(ProviderError) as excinfo:
            await client.initiate_call("P", "+1")
        assert excinfo.value.message == "Invalid number"

    async def test_not_configured(self):
        client = RinggClient(RinggConfig(api_key="rk", agent_id=""))
        with pytest.raises(ProviderNotConfiguredError):
            await client.initiate_call("P", "+1")

    def test_webhook_secret(self):
        client = RinggClient(RinggConfig(api_key="rk", agent_id="ra", webhook_secret="s"))
        assert client.verify_webhook_secret("s")
        assert not client.verify_webhook_secret("t")
        assert not client.verify_webhook_secret(None)


# =============================================================================
# Perplexity
# =============================================================================


def perplexity_client(handler):
    transport, requests = recorder(handler)
    return PerplexityClient(PerplexityConfig(api_key="pk"), transport=transport), requests


class TestPerplexityClient:
    async def test_search_clamps_and_skips_urlless(self):
        client, requests = perplexity_client(
            lambda r: httpx.Response(
                200,
                json={"results": [{"title": "A", "url": "https://a"}, {"title": "No URL"}]},
            )
        )
        results = await client.search("flats", max_results=50)

        assert [r.url for r in results] == ["https://a"]
        assert json.loads(requests[0].content)["max_results"] == 20

    async def test_extract_listings_from_fenced_json(self):
        content = '```json\n{"listings": [{"title": "2 BHK", "price": 30000}, {"price": "1"}]}\n```'
        client, requests = perplexity_client(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": content}}]})
        )
        listings = await client.extract_listings(
            [SearchResult(title="2 BHK", url="https://a")], city="Hyderabad"
        )

        assert len(listings) == 1
        assert listings[0].price == "30000"
        prompt = json.loads(requests[0].content)["messages"][1]["content"]
        assert "in Hyderabad" in prompt

    async def test_extract_malformed(self):
        client, _ = perplexity_client(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": "no json"}}]})
        )
        with pytest.raises(ProviderError):
            await client.extract_listings([SearchResult(url="https://a")])

    async def test_extract_bare_array(self):
        content = '[{"title": "1 BHK", "location": "Kondapur"}, "noise"]'
        client, _ = perplexity_client(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": content}}]})
        )
        listings = await client.extract_listings([SearchResult(url="https://a")])
        assert [listing.title for listing in listings] == ["1 BHK"]

    async def test_extract_wrong_shape(self):
        content = '{"listings": "none found"}'
        client, _ = perplexity_client(
            lambda r: httpx.Response(200, json={"choices": [{"message": {"content": content}}]})
        )
        with pytest.raises(ProviderError):
            await client.extract_listings([SearchResult(url="https://a")])

    async def test_extract_nothing_skips_request(self):
        client, requests = perplexity_client(lambda r: httpx.Response(500))
        assert await client.extract_listings([]) == []
        assert requests == []

    def test_unconfigured_search_returns_503(self, client):
        app.dependency_overrides[get_perplexity_client] = lambda: PerplexityClient(
            PerplexityConfig(api_key="")
        )
        response = client.post("/api/database/search", json={"query": "flats"})
        assert response.status_code == 503
        assert "PERPLEXITY_API_KEY" in response.json()["message"]

    def test_provider_failure_returns_502(self, client):
        app.dependency_overrides[get_perplexity_client] = lambda: perplexity_client(
            lambda r: httpx.Response(429, json={"error": {"message": "rate limited"}})
        )[0]
        response = client.post("/api/database/search", json={"query": "flats"})
        assert response.status_code == 502
        assert "rate limited" in response.json()["message"]


# =============================================================================
# Google OAuth
# =============================================================================


def google_client(handler):
    transport, requests = recorder(handler)
    config = GoogleOAuthConfig(client_id="cid", client_secret="secret", redirect_uri="http://x/cb")
    return GoogleOAuthClient(config, transport=transport), requests


class TestGoogleOAuthClient:
    def test_auth_url(self):
        client, _ = google_client(lambda r: httpx.Response(200))
        url = client.build_auth_url("gmail", "state-token")

        query = httpx.URL(url).params
        assert query["state"] == "state-token"
        assert query["access_type"] == "offline"
        assert "gmail" in query["scope"]

    async def test_exchange_code(self):
        client, requests = google_client(
            lambda r: httpx.Response(
                200,
                json={
                    "access_token": "at",
                    "refresh_token": "rt",
                    "expires_in": 3599,
                    "scope": "a b",
                },
            )
        )
        tokens = await client.exchange_code("code-1")

        assert tokens.refresh_token == "rt"
        assert tokens.scopes == ["a", "b"]
        assert tokens.expires_at is not None
        assert b"grant_type=authorization_code" in requests[0].content

    async def test_exchange_error(self):
        client, _ = google_client(
            lambda r: httpx.Response(400, json={"error": "invalid_grant", "error_description": "Bad code"})
        )
        with pytest.raises(ProviderError) as excinfo:
            await client.exchange_code("bad")
        assert excinfo.value.message == "Bad code"

    async def test_exchange_error_page_not_json(self):
        client, _ = google_client(
            lambda r: httpx.Response(502, text="<html>Bad Gateway</html>")
        )
        with pytest.raises(ProviderError) as excinfo:
            await client.exchange_code("code-1")
        assert excinfo.value.status_code == 502
        assert "Bad Gateway" in excinfo.value.message

    async def test_exchange_without_access_token(self):
        client, _ = google_client(lambda r: httpx.Response(200, json={"scope": "a"}))
        with pytest.raises(ProviderError):
            await client.exchange_code("code-1")

    async def test_revoke_failure_is_soft(self):
        client, _ = google_client(lambda r: httpx.Response(400))
        assert await client.revoke("token") is False

    def test_not_configured(self):
        client = GoogleOAuthClient(GoogleOAuthConfig(client_id="", client_secret="", redirect_uri=""))
        with pytest.raises(ProviderNotConfiguredError):
            client.build_auth_url("gmail", "s")

