"""Tests for the page routes that drive the chat controller."""
import json

from controller import error_reply
from models import ExchangeFailure, ExchangeSuccess, StructuredResponse


class TestStateRoutes:
    def test_initial_state(self, client):
        data = client.get("/ui/state").json()

        assert data["currentSessionId"] == "default"
        assert data["messages"] == []
        assert data["isLoading"] is False
        assert data["settings"]["model"] == "gemini-2.0-flash"
        assert [m["name"] for m in data["models"]] == ["gemini-2.0-flash", "gemini-1.5-flash"]

    def test_new_and_switch_session(self, client):
        created = client.post("/ui/sessions").json()
        assert created["currentSessionId"] != "default"
        assert len(created["sessions"]) == 2

        switched = client.post("/ui/sessions/default/switch").json()
        assert switched["currentSessionId"] == "default"

        unknown = client.post("/ui/sessions/missing/switch").json()
        assert unknown["currentSessionId"] == "default"


class TestSubmitRoute:
    def test_successful_scenario(self, client, controller):
        controller.transport.results = [ExchangeSuccess(content="4")]

        data = client.post("/ui/messages", json={"text": "2+2?"}).json()

        assert [m["content"] for m in data["messages"]] == ["2+2?", "4"]
        assert data["error"] is None
        state = client.get("/ui/state").json()
        assert [m["role"] for m in state["messages"]] == ["user", "assistant"]
        assert state["sessions"][0]["messageCount"] == 2

    def test_failure_shows_in_transcript(self, client, controller):
        controller.transport.results = [ExchangeFailure(status=500, error="down")]

        data = client.post("/ui/messages", json={"text": "hi"}).json()

        assert data["error"] == "down"
        assert data["messages"][1]["content"] == error_reply("down")

    def test_whitespace_submit(self, client, controller):
        data = client.post("/ui/messages", json={"text": "   "}).json()

        assert data["messages"] == []
        assert controller.transport.requests == []

    def test_busy_controller_rejects_submit(self, client, controller):
        controller.is_loading = True

        response = client.post("/ui/messages", json={"text": "hi"})

        assert response.status_code == 409
        assert "error" in response.json()

    def test_clear(self, client):
        client.post("/ui/messages", json={"text": "hi"})

        data = client.post("/ui/clear").json()

        assert data["messages"] == []
        assert data["sessions"][0]["messageCount"] == 0


class TestMessageRoutes:
    def test_get_and_render(self, client, controller):
        controller.transport.results = [
            ExchangeSuccess(content="full text", structured=StructuredResponse(summary="short")),
        ]
        reply = client.post("/ui/messages", json={"text": "hi"}).json()["messages"][1]

        assert client.get(f"/ui/messages/{reply['id']}").json()["content"] == "full text"

        rendered = client.get(f"/ui/messages/{reply['id']}/render").json()
        assert [s["kind"] for s in rendered["sections"]] == ["summary", "content"]

        html = client.get(f"/ui/messages/{reply['id']}/render", params={"format": "html"})
        assert html.headers["content-type"].startswith("text/html")
        assert "Summary" in html.text

    def test_unknown_message(self, client):
        response = client.get("/ui/messages/nope")

        assert response.status_code == 404
        assert response.json() == {"error": "Message not found: nope"}


class TestSettingsRoute:
    def test_update(self, client):
        data = client.put("/ui/settings", json={"temperature": 1.1, "systemMessage": ""}).json()

        assert data["settings"]["temperature"] == 1.1
        assert data["settings"]["systemMessage"] == ""

    def test_out_of_bounds(self, client):
        response = client.put("/ui/settings", json={"maxTokens": 999999})

        assert response.status_code == 400
        assert "maxTokens" in response.json()["error"]


class TestTransferRoutes:
    def test_export_download(self, client):
        client.post("/ui/messages", json={"text": "hi"})

        response = client.get("/ui/export")

        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="ai-chat-default-')
        assert len(response.json()["session"]["messages"]) == 2

    def test_import(self, client):
        client.post("/ui/messages", json={"text": "hi"})
        document = client.get("/ui/export").json()
        document["settings"]["temperature"] = 0.1

        data = client.post("/ui/import", content=json.dumps(document)).json()

        assert data["currentSessionId"] != "default"
        assert data["sessions"][-1]["name"] == "New Chat (Imported)"
        assert len(data["messages"]) == 2
        assert data["settings"]["temperature"] == 0.1

    def test_import_invalid(self, client):
        response = client.post("/ui/import", content=b"{broken")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid file format"}
        assert len(client.get("/ui/state").json()["sessions"]) == 1


class TestPageAssets:
    def test_page_loads_script(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert '<script src="/app.js">' in response.text

    def test_script_copies_message_content(self, client):
        script = client.get("/app.js").text

        assert "`/ui/messages/${button.dataset.id}`" in script
        assert "navigator.clipboard.writeText(message.content)" in script

    def test_startup_warns_without_credential(self, monkeypatch, caplog):
        from fastapi.testclient import TestClient
        from main import app

        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        with caplog.at_level("WARNING", logger="main"):
            with TestClient(app):
                pass

        assert "GEMINI_API_KEY is not set" in caplog.text


class TestImportRouteRejectsNonFinite:
    def test_nan_setting(self, client):
        response = client.post("/ui/import", content=b'{"settings": {"temperature": NaN}}')

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid file format"}
        assert client.get("/ui/state").json()["settings"]["temperature"] == 0.7
