"""Voice agent API tests."""

from conftest import auth_headers, register


class TestAgents:
    """Tests for /api/agents."""

    def test_create_agent(self, client, owner_headers, elevenlabs):
        response = client.post(
            "/api/agents/create",
            json={"eleven_agent_id": "agent_abc", "tone": "luxury", "personality": "Warm"},
            headers=owner_headers,
        )
        assert response.status_code == 201, response.text
        agent = response.json()["agent"]
        assert agent["agent_id"] == "agent_abc"
        assert agent["name"] == "Asha"
        assert agent["tone"] == "luxury"
        assert agent["agent_type"] == "outbound"
        assert agent["description"] == "Rental assistant"

    def test_custom_name_wins(self, client, owner_headers, elevenlabs):
        client.post(
            "/api/agents/create",
            json={"eleven_agent_id": "agent_abc", "name": "Leasing Desk"},
            headers=owner_headers,
        )
        agents = client.get("/api/agents", headers=owner_headers).json()["agents"]
        assert agents[0]["name"] == "Leasing Desk"

    def test_duplicate_conflicts(self, client, owner_headers, elevenlabs):
        payload = {"eleven_agent_id": "agent_abc"}
        client.post("/api/agents/create", json=payload, headers=owner_headers)
        response = client.post("/api/agents/create", json=payload, headers=owner_headers)
        assert response.status_code == 409

    def test_unknown_elevenlabs_agent(self, client, owner_headers, elevenlabs):
        response = client.post(
            "/api/agents/create", json={"eleven_agent_id": "agent_nope"}, headers=owner_headers
        )
        assert response.status_code == 404

    def test_same_agent_for_two_owners(self, client, owner_headers, elevenlabs):
        """Agents are scoped per owner."""
        other = auth_headers(register(client, email="other@example.com"))
        payload = {"eleven_agent_id": "agent_abc"}
        assert client.post("/api/agents/create", json=payload, headers=owner_headers).status_code == 201
        assert client.post("/api/agents/create", json=payload, headers=other).status_code == 201

        assert len(client.get("/api/agents", headers=other).json()["agents"]) == 1

    def test_list_shows_live_name(self, client, owner_headers, elevenlabs):
        client.post(
            "/api/agents/create", json={"eleven_agent_id": "agent_abc"}, headers=owner_headers
        )
        elevenlabs.agents["agent_abc"].name = "Asha v2"

        agents = client.get("/api/agents", headers=owner_headers).json()["agents"]
        assert agents[0]["name"] == "Asha v2"

    def test_delete(self, client, owner_headers, elevenlabs):
        client.post(
            "/api/agents/create", json={"eleven_agent_id": "agent_abc"}, headers=owner_headers
        )
        response = client.delete("/api/agents/agent_abc", headers=owner_headers)
        assert response.status_code == 200
        assert client.get("/api/agents", headers=owner_headers).json()["agents"] == []

        assert client.delete("/api/agents/agent_abc", headers=owner_headers).status_code == 404

    def test_requires_owner(self, client, tenant_headers, elevenlabs):
        response = client.get("/api/agents", headers=tenant_headers)
        assert response.status_code == 403


class TestInboundAgent:
    """Tests for /api/public/agents/inbound."""

    def test_not_configured(self, client, monkeypatch):
        monkeypatch.delenv("INBOUND_AGENT_ID", raising=False)
        monkeypatch.delenv("INBOUND_AGENT_API_KEY", raising=False)
        response = client.get("/api/public/agents/inbound")
        assert response.status_code == 503

    def test_widget_config(self, client, monkeypatch):
        monkeypatch.setenv("INBOUND_AGENT_ID", "agent_inbound")
        monkeypatch.setenv("INBOUND_AGENT_API_KEY", "widget-key")
        response = client.get(
            "/api/public/agents/inbound",
            params={"callee_name": "Priya", "property_code": "GAC-001"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["agent_id"] == "agent_inbound"
        assert body["cdn_version"] == "1.0.3"
        assert body["variables"] == {"callee_name": "Priya", "property_code": "GAC-001"}
