"""Brand guide API tests."""

from pathlib import Path

from conftest import auth_headers, register
from homemates import config

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
MP3 = b"ID3" + b"\x00" * 64


def save(client, headers, files=None, **form):
    data = {
        "tone": "luxury",
        "description": "Premium gated communities",
        "keywords": "premium, trusted,  ,gated",
        "script_examples": "Namaste, this is Homemates calling about your enquiry.",
    }
    data.update(form)
    return client.post("/api/brand-guide", data=data, files=files or {}, headers=headers)


def stored_paths() -> set[Path]:
    return set(config.UPLOAD_DIR.glob("*")) if config.UPLOAD_DIR.exists() else set()


class TestBrandGuide:
    """Tests for GET/POST /api/brand-guide."""

    def test_empty_before_first_save(self, client, owner_headers):
        response = client.get("/api/brand-guide", headers=owner_headers)
        assert response.status_code == 200
        assert response.json() == {"brand_guide": None}

    def test_save_and_read_back(self, client, owner_headers):
        response = save(client, owner_headers)
        assert response.status_code == 200, response.text

        guide = client.get("/api/brand-guide", headers=owner_headers).json()["brand_guide"]
        assert guide["tone"] == "luxury"
        assert guide["keywords"] == ["premium", "trusted", "gated"]
        assert guide["description"] == "Premium gated communities"
        assert guide["logo_url"] is None
        assert guide["voice_note_url"] is None

    def test_save_overwrites_text(self, client, owner_headers):
        save(client, owner_headers)
        guide = save(client, owner_headers, tone="formal", description="", keywords="").json()[
            "brand_guide"
        ]
        assert guide["tone"] == "formal"
        assert guide["description"] is None
        assert guide["keywords"] == []

    def test_unknown_tone(self, client, owner_headers):
        assert save(client, owner_headers, tone="shouty").status_code == 422

    def test_owner_only(self, client, tenant_headers):
        assert client.get("/api/brand-guide", headers=tenant_headers).status_code == 403
        assert client.get("/api/brand-guide").status_code == 401

    def test_guides_are_per_owner(self, client, owner_headers):
        save(client, owner_headers)
        other = auth_headers(register(client, email="other@example.com"))
        assert client.get("/api/brand-guide", headers=other).json()["brand_guide"] is None


class TestBrandAssets:
    """Tests for logo and voice note uploads."""

    def test_upload_and_serve_assets(self, client, owner_headers):
        response = save(
            client,
            owner_headers,
            files={
                "logo": ("logo.png", PNG, "image/png"),
                "voice_note": ("intro.mp3", MP3, "audio/mpeg"),
            },
        )
        assert response.status_code == 200, response.text
        guide = response.json()["brand_guide"]

        logo = client.get(guide["logo_url"])
        assert logo.status_code == 200
        assert logo.content == PNG
        assert logo.headers["content-type"] == "image/png"

        voice = client.get(guide["voice_note_url"])
        assert voice.status_code == 200
        assert voice.headers["content-type"] == "audio/mpeg"

    def test_text_save_keeps_assets(self, client, owner_headers):
        save(client, owner_headers, files={"logo": ("logo.png", PNG, "image/png")})
        guide = save(client, owner_headers, tone="friendly").json()["brand_guide"]
        assert guide["logo_url"] is not None
        assert client.get(guide["logo_url"]).status_code == 200

    def test_replacing_logo_deletes_old_file(self, client, owner_headers):
        save(client, owner_headers, files={"logo": ("logo.png", PNG, "image/png")})
        before = stored_paths()

        save(client, owner_headers, files={"logo": ("new.jpg", b"\xff\xd8\xff", "image/jpeg")})
        after = stored_paths()

        assert len(after) == len(before)
        assert any(path.name.endswith("_new.jpg") for path in after)
        logo_url = client.get("/api/brand-guide", headers=owner_headers).json()["brand_guide"][
            "logo_url"
        ]
        assert client.get(logo_url).headers["content-type"] == "image/jpeg"

    def test_rejects_wrong_types(self, client, owner_headers):
        response = save(client, owner_headers, files={"logo": ("logo.gif", b"GIF89a", "image/gif")})
        assert response.status_code == 415

        response = save(
            client, owner_headers, files={"voice_note": ("intro.ogg", b"OggS", "audio/ogg")}
        )
        assert response.status_code == 415
        assert client.get("/api/brand-guide", headers=owner_headers).json()["brand_guide"] is None

    def test_logo_too_large(self, client, owner_headers, monkeypatch):
        monkeypatch.setattr(config, "MAX_LOGO_BYTES", 8)
        response = save(client, owner_headers, files={"logo": ("logo.png", PNG, "image/png")})
        assert response.status_code == 413

    def test_empty_logo(self, client, owner_headers):
        response = save(client, owner_headers, files={"logo": ("logo.png", b"", "image/png")})
        assert response.status_code == 400

    def test_missing_asset_404(self, client, owner, owner_headers):
        save(client, owner_headers)
        owner_id = owner["user"]["id"]
        assert client.get(f"/api/public/brand-guide/{owner_id}/logo").status_code == 404
        assert client.get(f"/api/public/brand-guide/{owner_id}/voice-note").status_code == 404


class TestAgentDefaults:
    """New agents inherit the brand voice."""

    def test_agent_takes_brand_tone(self, client, owner_headers, elevenlabs):
        save(client, owner_headers)
        agent = client.post(
            "/api/agents/create", json={"eleven_agent_id": "agent_abc"}, headers=owner_headers
        ).json()["agent"]

        assert agent["tone"] == "luxury"
        assert agent["personality"] == (
            "Premium gated communities\nKeywords: premium, trusted, gated"
        )

    def test_explicit_tone_wins(self, client, owner_headers, elevenlabs):
        save(client, owner_headers)
        agent = client.post(
            "/api/agents/create",
            json={"eleven_agent_id": "agent_abc", "tone": "conversational", "personality": "Calm"},
            headers=owner_headers,
        ).json()["agent"]

        assert agent["tone"] == "conversational"
        assert agent["personality"] == "Calm"

    def test_without_guide_defaults_friendly(self, client, owner_headers, elevenlabs):
        agent = client.post(
            "/api/agents/create", json={"eleven_agent_id": "agent_abc"}, headers=owner_headers
        ).json()["agent"]
        assert agent["tone"] == "friendly"
        assert agent["personality"] is None
