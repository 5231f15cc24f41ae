import json

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME, SAMPLE_CATALOG
from troubleshooter.main import app
from troubleshooter.playbooks import parse_catalog
from troubleshooter.script_store import ScriptStore
from troubleshooter.settings_store import SettingsStore


class FakeAIClient:
    """Stands in for the LLM client and records the messages it receives."""

    configured = True

    def __init__(self, text="A) Quick Triage\n- check DNS"):
        self.text = text
        self.calls = []

    async def chat(self, messages):
        self.calls.append(messages)
        return {
            "text": self.text,
            "model": "fake-model",
            "usage": {"prompt_tokens": 3, "completion_tokens": 4, "total_tokens": 7},
        }

    async def close(self):
        pass


@pytest.fixture()
def client(tmp_path):
    with TestClient(app) as test_client:
        app.state.settings_store = SettingsStore(tmp_path / "settings.json")
        app.state.script_store = ScriptStore(tmp_path / "scripts")
        app.state.catalog = parse_catalog(SAMPLE_CATALOG)
        app.state.ai_client = FakeAIClient()
        yield test_client


@pytest.fixture()
def auth_headers(client):
    response = client.post("/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


def upload(client, headers, content=b"ipconfig /all\n", filename="net.ps1", **form):
    return client.post(
        "/api/scripts",
        headers=headers,
        files={"file": (filename, content, "text/plain")},
        data=form,
    )


def test_service_info_and_health(client):
    info = client.get("/").json()
    assert info["status"] == "operational"
    assert info["version"] == "1.2.0"
    assert info["endpoints"]["chat"] == "POST /api/chat"

    health = client.get("/healthz").json()
    assert health["status"] == "ok"
    assert health["uptime"] >= 0


def test_login_success(client):
    response = client.post("/auth/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    body = response.json()
    assert body["ok"] is True
    assert body["expiresIn"] == "8h"
    assert body["token"]


def test_login_requires_both_fields(client):
    response = client.post("/auth/login", json={"username": ADMIN_USERNAME})
    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "Username and password are required", "detail": None}


def test_login_rejects_bad_credentials(client):
    response = client.post("/auth/login", json={"username": ADMIN_USERNAME, "password": "nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid credentials"


@pytest.mark.parametrize("headers, error", [
    ({}, "Unauthorized: Missing or invalid token"),
    ({"Authorization": "Basic abc"}, "Unauthorized: Missing or invalid token"),
    ({"Authorization": "Bearer not-a-jwt"}, "Unauthorized: Invalid token"),
])
def test_protected_routes_require_token(client, headers, error):
    response = client.get("/api/settings", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == error


def test_settings_defaults_and_update(client, auth_headers):
    response = client.get("/api/settings", headers=auth_headers)
    assert response.json()["settings"]["theme"] == "system"

    response = client.put(
        "/api/settings",
        headers=auth_headers,
        json={"settings": {"theme": "dark", "defaultPreset": "hardware", "bogus": True}},
    )
    assert response.status_code == 200
    assert response.json()["settings"]["theme"] == "dark"
    assert "bogus" not in response.json()["settings"]

    # bare settings object is accepted too
    client.put("/api/settings", headers=auth_headers, json={"theme": "light"})
    settings = client.get("/api/settings", headers=auth_headers).json()["settings"]
    assert settings["theme"] == "light"
    assert settings["defaultPreset"] == ""


def test_script_library_flow(client, auth_headers):
    response = upload(client, auth_headers, name="Net check", tags="network, windows")
    assert response.status_code == 200
    script = response.json()["script"]
    assert script["name"] == "Net check"
    assert script["language"] == "PowerShell"
    assert script["tags"] == ["network", "windows"]

    listing = client.get("/api/scripts", headers=auth_headers).json()
    assert listing["count"] == 1
    assert listing["scripts"][0]["id"] == script["id"]

    detail = client.get(f"/api/scripts/{script['id']}", headers=auth_headers).json()
    assert detail["content"] == "ipconfig /all\n"

    deleted = client.delete(f"/api/scripts/{script['id']}", headers=auth_headers)
    assert deleted.json() == {"ok": True, "message": "Script deleted successfully"}

    missing = client.get(f"/api/scripts/{script['id']}", headers=auth_headers)
    assert missing.status_code == 404
    assert missing.json()["error"] == "Script not found"
    assert client.delete(f"/api/scripts/{script['id']}", headers=auth_headers).status_code == 404


def test_script_tags_from_repeated_fields(client, auth_headers):
    response = upload(client, auth_headers, tags=["network", " windows ", "dns, vpn"])
    assert response.status_code == 200
    assert response.json()["script"]["tags"] == ["network", "windows", "dns", "vpn"]


def test_script_upload_validation(client, auth_headers):
    response = client.post("/api/scripts", headers=auth_headers, data={"name": "nothing"})
    assert response.status_code == 400
    assert response.json()["error"] == "No file uploaded"

    response = upload(client, auth_headers, content=b"MZ\x00\x00", filename="tool.exe")
    assert response.status_code == 400
    assert "binary" in response.json()["error"]

    response = upload(client, auth_headers, content=b"a" * (512 * 1024 + 1), filename="big.txt")
    assert response.status_code == 400


def test_chat_sends_scripts_history_and_approval(client, auth_headers):
    script = upload(client, auth_headers, content=b"Get-Service dns\n", filename="dns.ps1").json()["script"]
    history = [{"role": "user", "content": "hello"}, {"role": "system", "content": "drop me"}]

    response = client.post(
        "/api/chat",
        headers=auth_headers,
        data={
            "message": "APPROVAL: APPROVED\nDNS is down, fix it",
            "history": json.dumps(history),
            "selectedScriptIds": json.dumps([script["id"], "unknown-id"]),
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["text"].startswith("A) Quick Triage")
    assert body["model"] == "fake-model"
    assert body["usage"]["total_tokens"] == 7

    messages = app.state.ai_client.calls[-1]
    assert "APPROVAL STATUS: ✓ APPROVED" in messages[0]["content"]
    assert messages[1] == {"role": "user", "content": "hello"}
    assert len(messages) == 3
    user_content = messages[-1]["content"]
    assert "[ATTACHED SCRIPTS]" in user_content
    assert "--- SCRIPT: dns.ps1 (PowerShell) ---" in user_content
    assert "   1 | Get-Service dns" in user_content


def test_chat_with_image(client, auth_headers):
    response = client.post(
        "/api/chat",
        headers=auth_headers,
        data={"message": "what is this error?"},
        files={"image": ("shot.png", b"\x89PNG fake", "image/png")},
    )
    assert response.status_code == 200

    content = app.state.ai_client.calls[-1][-1]["content"]
    assert content[0]["text"] == "what is this error?"
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")


def test_chat_rejects_non_image_attachment(client, auth_headers):
    response = client.post(
        "/api/chat",
        headers=auth_headers,
        data={"message": "see file"},
        files={"image": ("notes.txt", b"text", "text/plain")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Only image files are allowed"


def test_chat_rejects_oversize_image(client, auth_headers):
    response = client.post(
        "/api/chat",
        headers=auth_headers,
        data={"message": "see screenshot"},
        files={"image": ("huge.png", b"\x00" * (6 * 1024 * 1024 + 1), "image/png")},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Image exceeds the 6MB size limit"
    assert app.state.ai_client.calls == []


def test_chat_without_api_key(client, auth_headers):
    class UnconfiguredClient(FakeAIClient):
        configured = False

    app.state.ai_client = UnconfiguredClient()
    response = client.post("/api/chat", headers=auth_headers, data={"message": "hi"})
    assert response.status_code == 500
    assert response.json()["error"] == "OpenAI API key not configured on server"
    assert app.state.ai_client.calls == []


def test_chat_requires_message(client, auth_headers):
    response = client.post("/api/chat", headers=auth_headers, data={"message": "   "})
    assert response.status_code == 400
    assert response.json()["error"] == "Message is required"


def test_chat_empty_reply_is_an_error(client, auth_headers):
    app.state.ai_client = FakeAIClient(text="")
    response = client.post("/api/chat", headers=auth_headers, data={"message": "hi"})
    assert response.status_code == 500
    assert response.json()["error"] == "No response generated from AI"


def test_chat_upstream_failure(client, auth_headers):
    class FailingClient(FakeAIClient):
        async def chat(self, messages):
            raise RuntimeError("Rate limit exceeded. Please try again later.")

    app.state.ai_client = FailingClient()
    response = client.post("/api/chat", headers=auth_headers, data={"message": "hi"})
    assert response.status_code == 503
    assert response.json()["error"] == "Rate limit exceeded. Please try again later."


def test_list_playbooks(client):
    body = client.get("/api/playbooks").json()
    assert body["categories"] == [{"category": "network", "playbooks": ["DNS Outage"]}]


def test_analyze_with_match(client):
    response = client.post("/api/analyze", json={
        "category": "network",
        "device": "Windows",
        "context": "HQ",
        "description": "DNS fails to resolve names, error seen",
    })
    body = response.json()

    assert body["match"]["name"] == "DNS Outage"
    assert body["match"]["score"] == 6
    assert body["match"]["commands"] == ["ipconfig /flushdns"]
    assert "Best Match Playbook: DNS Outage" in body["report"]
    assert "- ipconfig /flushdns" in body["report"]


def test_analyze_without_match(client):
    response = client.post("/api/analyze", json={
        "category": "network",
        "device": "Windows",
        "description": "error",
    })
    body = response.json()

    assert body["match"] is None
    assert "No strong playbook match found." in body["report"]
    assert "Recommended Steps" not in body["report"]
