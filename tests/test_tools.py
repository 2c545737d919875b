"""Google tool integration API tests."""

import logging

from conftest import auth_headers, register


def auth_state(client, headers, tool_type="calendar"):
    response = client.get("/api/tools/oauth/google", params={"tool_type": tool_type}, headers=headers)
    assert response.status_code == 200
    return response.json()


def connect(client, headers, tool_type="calendar", **body):
    payload = {"code": "auth-code"}
    payload.update(body)
    return client.post(f"/api/tools/{tool_type}/connect", json=payload, headers=headers)


class TestConnect:
    """Tests for the OAuth connect flow."""

    def test_auth_url_carries_state(self, client, owner_headers, google_oauth):
        body = auth_state(client, owner_headers)
        assert body["state"]
        assert body["state"] in body["auth_url"]
        assert "tool=calendar" in body["auth_url"]

    def test_unknown_tool(self, client, owner_headers, google_oauth):
        response = client.get("/api/tools/oauth/google", params={"tool_type": "slack"}, headers=owner_headers)
        assert response.status_code == 422

    def test_connect_with_state(self, client, owner_headers, google_oauth):
        state = auth_state(client, owner_headers)["state"]
        response = connect(client, owner_headers, state=state)

        assert response.status_code == 200, response.text
        integration = response.json()["integration"]
        assert integration["tool_type"] == "calendar"
        assert integration["status"] == "connected"
        assert integration["scopes"] == ["https://www.googleapis.com/auth/calendar.events"]
        assert integration["last_sync"] is not None
        assert "access_token" not in integration
        assert "refresh_token" not in integration

    def test_state_for_other_tool_rejected(self, client, owner_headers, google_oauth):
        state = auth_state(client, owner_headers, tool_type="gmail")["state"]
        response = connect(client, owner_headers, tool_type="calendar", state=state)
        assert response.status_code == 400

    def test_state_for_other_user_rejected(self, client, owner_headers, google_oauth):
        state = auth_state(client, owner_headers)["state"]
        other = auth_headers(register(client, email="other@example.com"))
        assert connect(client, other, state=state).status_code == 400

    def test_garbage_state_rejected(self, client, owner_headers, google_oauth):
        assert connect(client, owner_headers, state="not-a-token").status_code == 400

    def test_connect_without_state_is_logged(self, client, owner_headers, google_oauth, caplog):
        with caplog.at_level(logging.WARNING, logger="homemates-tools"):
            response = connect(client, owner_headers)

        assert response.status_code == 200
        assert "without an OAuth state" in caplog.text

    def test_reconnect_updates_single_row(self, client, owner_headers, google_oauth):
        connect(client, owner_headers)
        connect(client, owner_headers, code="second")

        integrations = client.get("/api/tools", headers=owner_headers).json()["integrations"]
        assert len(integrations) == 1


class TestDisconnect:
    """Tests for DELETE /api/tools/{tool_type}."""

    def test_disconnect_revokes_refresh_token(self, client, owner_headers, google_oauth):
        connect(client, owner_headers, tool_type="gmail")
        response = client.delete("/api/tools/gmail", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "gmail disconnected"
        assert google_oauth.revoked == ["refresh-token"]

        integration = client.get("/api/tools", headers=owner_headers).json()["integrations"][0]
        assert integration["status"] == "disconnected"
        assert integration["token_expires_at"] is None

    def test_disconnect_twice(self, client, owner_headers, google_oauth):
        connect(client, owner_headers, tool_type="gmail")
        client.delete("/api/tools/gmail", headers=owner_headers)
        assert client.delete("/api/tools/gmail", headers=owner_headers).status_code == 404

    def test_disconnect_never_connected(self, client, owner_headers, google_oauth):
        assert client.delete("/api/tools/calendar", headers=owner_headers).status_code == 404
