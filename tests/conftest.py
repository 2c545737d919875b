"""Shared fixtures for the Homemates API tests.

The environment is pointed at a throwaway SQLite database and upload
directory before any ``homemates`` module is imported.
"""

import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

_tmp = Path(tempfile.mkdtemp(prefix="homemates-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp / 'test.db'}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-at-least-32-bytes"
os.environ["DATA_DIR"] = str(_tmp / "data")
os.environ["UPLOAD_DIR"] = str(_tmp / "uploads")
os.environ["DEFAULT_CITY"] = "Hyderabad"
os.environ["DEFAULT_COUNTRY_CODE"] = "91"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from homemates.calls.store import store  # noqa: E402
from homemates.db.database import drop_db, init_db  # noqa: E402
from homemates.main import app  # noqa: E402
from homemates_shared.elevenlabs import (  # noqa: E402
    ElevenLabsClient,
    ElevenLabsConfig,
    get_elevenlabs_client,
)
from homemates_shared.errors import ProviderError  # noqa: E402
from homemates_shared.google_oauth import OAuthTokens, get_google_oauth_client  # noqa: E402
from homemates_shared.perplexity import get_perplexity_client  # noqa: E402
from homemates_shared.ringg import (  # noqa: E402
    RinggCallResult,
    RinggClient,
    RinggConfig,
    get_ringg_client,
)
from homemates_shared.schemas import (  # noqa: E402
    Conversation,
    Listing,
    OutboundCallResult,
    PhoneNumber,
    ProviderAgent,
    SearchResult,
)


# =============================================================================
# Provider Fakes
# =============================================================================


class FakeElevenLabs(ElevenLabsClient):
    """ElevenLabs client that records calls instead of hitting the network."""

    def __init__(self, webhook_secret: str = ""):
        super().__init__(ElevenLabsConfig(api_key="test-key", webhook_secret=webhook_secret))
        self.agents = {
            "agent_abc": ProviderAgent(agent_id="agent_abc", name="Asha", description="Rental assistant"),
        }
        self.phone_numbers = [
            PhoneNumber(
                phone_number_id="pn_1",
                phone_number="+14155550100",
                provider="twilio",
                supports_outbound=True,
            )
        ]
        self.conversations: dict[str, Conversation] = {}
        self.outbound_calls: list[dict] = []
        self.next_conversation_id = "conv_1"

    async def list_agents(self):
        return list(self.agents.values())

    async def get_agent(self, agent_id):
        return self.agents.get(agent_id)

    async def list_phone_numbers(self):
        return list(self.phone_numbers)

    async def initiate_outbound_call(
        self,
        agent_id,
        agent_phone_number_id,
        to_number,
        dynamic_variables=None,
        telephony="twilio",
    ):
        self.outbound_calls.append(
            {
                "agent_id": agent_id,
                "agent_phone_number_id": agent_phone_number_id,
                "to_number": to_number,
                "dynamic_variables": dynamic_variables,
                "telephony": telephony,
            }
        )
        return OutboundCallResult(
            success=True,
            message="Call started",
            conversation_id=self.next_conversation_id,
            call_sid="CA123",
        )

    async def list_conversations(self, agent_id=None, page_size=30):
        return [c for c in self.conversations.values() if agent_id in (None, c.agent_id)]

    async def get_conversation(self, conversation_id):
        if conversation_id not in self.conversations:
            raise ProviderError("ElevenLabs", "Conversation not found", status_code=404)
        return self.conversations[conversation_id]

    async def get_conversation_audio(self, conversation_id):
        return b"ID3-fake-mp3"


class FakeRingg(RinggClient):
    def __init__(self, webhook_secret: str = ""):
        super().__init__(
            RinggConfig(api_key="ringg-key", agent_id="ringg_agent", webhook_secret=webhook_secret)
        )
        self.calls: list[dict] = []

    async def initiate_call(self, name, mobile_number, custom_args_values=None):
        self.calls.append(
            {"name": name, "mobile_number": mobile_number, "custom_args_values": custom_args_values}
        )
        call_id = f"ringg_{len(self.calls)}"
        return RinggCallResult(
            call_id=call_id,
            payload={"Unique Call ID": call_id, "status": "queued"},
        )


class FakePerplexity:
    def __init__(self):
        self.queries: list[str] = []

    async def search(self, query, max_results=10):
        self.queries.append(query)
        return [
            SearchResult(title="2 BHK in Gachibowli", url="https://example.com/a", snippet="Rs 30,000"),
            SearchResult(title="3 BHK in Kondapur", url="https://example.com/b/", snippet="Rs 45,000"),
        ]

    async def extract_listings(self, results, city=None):
        return [
            Listing(title=r.title, price=r.snippet, location=city, source_url=r.url)
            for r in results
        ]


class FakeGoogleOAuth:
    def __init__(self):
        self.revoked: list[str] = []

    def build_auth_url(self, tool_type, state):
        return f"https://accounts.google.com/o/oauth2/v2/auth?tool={tool_type}&state={state}"

    async def exchange_code(self, code):
        return OAuthTokens(
            access_token=f"access-{code}",
            refresh_token="refresh-token",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
            scopes=["https://www.googleapis.com/auth/calendar.events"],
        )

    async def revoke(self, token):
        self.revoked.append(token)
        return True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh tables and rate-limit windows for every test."""

    async def _reset():
        await drop_db()
        await init_db()
        await store.reset()

    asyncio.run(_reset())
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def elevenlabs():
    fake = FakeElevenLabs()
    app.dependency_overrides[get_elevenlabs_client] = lambda: fake
    return fake


@pytest.fixture
def ringg():
    fake = FakeRingg()
    app.dependency_overrides[get_ringg_client] = lambda: fake
    return fake


@pytest.fixture
def perplexity():
    fake = FakePerplexity()
    app.dependency_overrides[get_perplexity_client] = lambda: fake
    return fake


@pytest.fixture
def google_oauth():
    fake = FakeGoogleOAuth()
    app.dependency_overrides[get_google_oauth_client] = lambda: fake
    return fake


@pytest.fixture
def client():
    """Create a test client (runs the app lifespan)."""
    with TestClient(app) as test_client:
        yield test_client


def register(client, email="owner@example.com", user_type="owner", phone=None, name="Ravi"):
    """Register a user and return the auth response body."""
    payload = {
        "email": email,
        "password": "supersecret",
        "name": name,
        "user_type": user_type,
    }
    if phone:
        payload["phone"] = phone
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(body: dict) -> dict:
    return {"Authorization": f"Bearer {body['token']}"}


@pytest.fixture
def owner(client):
    """Registered owner auth body."""
    return register(client)


@pytest.fixture
def owner_headers(owner):
    return auth_headers(owner)


@pytest.fixture
def tenant_headers(client):
    return auth_headers(register(client, email="tenant@example.com", user_type="tenant"))


def make_property(client, headers, **overrides):
    payload = {
        "title": "2 BHK near Metro",
        "city": "Hyderabad",
        "locality": "Gachibowli",
        "rent": "28,000",
        "bedrooms": "2 BHK",
        "amenities": "Parking; Lift",
    }
    payload.update(overrides)
    response = client.post("/api/properties", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["property"]


def make_tenant(client, **overrides):
    payload = {
        "name": "Priya",
        "phone": "98765 43210",
        "city": "Hyderabad",
        "localities": "Gachibowli, Kondapur",
        "budget_max": "30000",
        "bedrooms": "2",
        "amenities": "Parking",
    }
    payload.update(overrides)
    response = client.post("/api/tenants", json=payload)
    assert response.status_code == 200, response.text
    return response.json()
