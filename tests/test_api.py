"""
Tests for the HTTP endpoints.

These tests verify that:
1. /health and / answer without any configuration
2. POST /webhook answers with TwiML and persists the conversation
3. POST /webhook falls back to the flow's fallback message on unexpected errors
4. GET /webhook implements the verification handshake
5. /v1/conversation/turn is stateless: the client carries the state
6. The dashboard can list and update conversations
"""
import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

# Always run against the built-in flow
os.environ.pop("FLOW_SPEC_PATH", None)

from app import main as main_module
from app.main import app, get_max_history
from app.models import ConversationRecord
from app.store import InMemoryConversationStore, get_store
from engine.state import DEFAULT_MAX_HISTORY
from flows.specs import TRAVEL_CONCIERGE_SPEC

SENDER = "whatsapp:+12015550123"
IDENTITY = "+12015550123"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    """Fresh store per test, injected through the get_store dependency."""
    store = InMemoryConversationStore()
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_store, None)


@pytest.fixture
async def client(store):
    """Create async test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestHealthEndpoint:
    """Tests for GET /health and GET /"""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": main_module.APP_VERSION}

    @pytest.mark.asyncio
    async def test_root_banner(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"


class TestWebhook:
    """Tests for POST /webhook"""

    @pytest.mark.asyncio
    async def test_replies_with_twiml(self, client: AsyncClient, store):
        response = await client.post(
            "/webhook",
            data={"Body": "I'm planning a trip to Lisbon", "From": SENDER, "ProfileName": "Ana"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Response><Message>" in response.text
        assert "Lisbon sounds amazing!" in response.text

        record = await store.get(IDENTITY)
        assert record.user_name == "Ana"
        assert record.travel_info == {"destination": "Lisbon"}

    @pytest.mark.asyncio
    async def test_conversation_continues(self, client: AsyncClient, store):
        await client.post("/webhook", data={"Body": "Lisbon", "From": SENDER})
        response = await client.post("/webhook", data={"Body": "Boston", "From": SENDER})

        assert "traveling from Boston" in response.text
        assert "What dates work best for your trip to Lisbon?" in response.text

        record = await store.get(IDENTITY)
        assert record.travel_info == {"destination": "Lisbon", "departure_location": "Boston"}
        assert len(record.messages) == 2

    @pytest.mark.asyncio
    async def test_greeting(self, client: AsyncClient):
        response = await client.post("/webhook", data={"Body": "hi", "From": SENDER})

        assert "Where would you like to travel to?" in response.text

    @pytest.mark.asyncio
    async def test_unexpected_error_sends_greeting_fallback(self, client: AsyncClient, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("store is down")

        monkeypatch.setattr(main_module, "handle_inbound_message", broken)

        response = await client.post("/webhook", data={"Body": "Lisbon", "From": SENDER})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "Could you tell me where you" in response.text

    @pytest.mark.asyncio
    async def test_error_fallback_uses_active_flow_message(self, client: AsyncClient, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("store is down")

        flow = replace(TRAVEL_CONCIERGE_SPEC, fallback_message="Sorry, please try again shortly.")
        monkeypatch.setattr(main_module, "handle_inbound_message", broken)
        monkeypatch.setattr(main_module, "_active_flow_spec", flow)

        response = await client.post("/webhook", data={"Body": "Lisbon", "From": SENDER})

        assert response.status_code == 200
        assert "Sorry, please try again shortly." in response.text


class TestWebhookVerification:
    """Tests for GET /webhook"""

    @pytest.mark.asyncio
    async def test_valid_token_returns_challenge(self, client: AsyncClient, monkeypatch):
        monkeypatch.setenv("VERIFY_TOKEN", "secret")

        response = await client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "secret", "hub.challenge": "12345"},
        )

        assert response.status_code == 200
        assert response.text == "12345"

    @pytest.mark.asyncio
    async def test_wrong_token_forbidden(self, client: AsyncClient, monkeypatch):
        monkeypatch.setenv("VERIFY_TOKEN", "secret")

        response = await client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "12345"},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unconfigured_token_forbidden(self, client: AsyncClient, monkeypatch):
        monkeypatch.delenv("VERIFY_TOKEN", raising=False)

        response = await client.get("/webhook", params={"hub.mode": "subscribe", "hub.challenge": "1"})

        assert response.status_code == 403


class TestTurnEndpoint:
    """Tests for POST /v1/conversation/turn"""

    @pytest.mark.asyncio
    async def test_first_turn(self, client: AsyncClient):
        response = await client.post("/v1/conversation/turn", json={"message": "I'm planning a trip to Lisbon"})

        assert response.status_code == 200
        data = response.json()
        assert data["reply"] == "Lisbon sounds amazing! Where will you be traveling from, to Lisbon?"
        assert data["extractedData"] == {"destination": "Lisbon"}
        assert data["progress"] == 7
        assert data["nextFieldKey"] == "departure_location"
        assert data["phase"] == "COLLECTING"
        assert data["fallbackUsed"] is False
        assert data["state"]["slots"] == {"destination": "Lisbon"}
        assert data["state"]["expectedFieldKey"] == "departure_location"
        assert len(data["state"]["history"]) == 1

    @pytest.mark.asyncio
    async def test_client_carries_state(self, client: AsyncClient):
        first = (await client.post("/v1/conversation/turn", json={"message": "Lisbon"})).json()

        response = await client.post(
            "/v1/conversation/turn",
            json={"message": "Boston", "state": first["state"]},
        )

        data = response.json()
        assert data["state"]["slots"] == {"destination": "Lisbon", "departure_location": "Boston"}
        assert data["nextFieldKey"] == "journey_dates"
        assert len(data["state"]["history"]) == 2

    @pytest.mark.asyncio
    async def test_explicit_flow_id(self, client: AsyncClient):
        response = await client.post(
            "/v1/conversation/turn",
            json={"message": "family of 5", "flowId": "TRAVEL_CONCIERGE"},
        )

        assert response.json()["extractedData"] == {"travelers_count": "5"}

    @pytest.mark.asyncio
    async def test_unknown_flow_is_400(self, client: AsyncClient):
        response = await client.post("/v1/conversation/turn", json={"message": "hi", "flowId": "NOPE"})

        assert response.status_code == 400
        assert "Unknown flow" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_missing_message_is_422(self, client: AsyncClient):
        response = await client.post("/v1/conversation/turn", json={})
        assert response.status_code == 422


class TestDashboard:
    """Tests for /api/conversations"""

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, client: AsyncClient, store):
        now = datetime.now(timezone.utc)
        await store.save(ConversationRecord(id="old", phone_number="+1", last_activity=now - timedelta(hours=2)))
        await store.save(ConversationRecord(id="new", phone_number="+2", last_activity=now))

        response = await client.get("/api/conversations")

        assert response.status_code == 200
        assert [r["id"] for r in response.json()] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_list_after_webhook(self, client: AsyncClient):
        await client.post("/webhook", data={"Body": "Lisbon", "From": SENDER})

        records = (await client.get("/api/conversations")).json()

        assert len(records) == 1
        assert records[0]["phone_number"] == IDENTITY
        assert records[0]["travel_info"] == {"destination": "Lisbon"}
        assert records[0]["status"] == "collecting_info"
        assert records[0]["messages"][0]["user"] == "Lisbon"

    @pytest.mark.asyncio
    async def test_patch_status_and_notes(self, client: AsyncClient, store):
        before = datetime.now(timezone.utc) - timedelta(days=1)
        await store.save(ConversationRecord(id="c1", phone_number=IDENTITY, last_activity=before))

        response = await client.patch(
            "/api/conversations/c1",
            json={"status": "planning", "concierge_notes": "Call after 5pm"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "planning"
        assert data["concierge_notes"] == "Call after 5pm"

        saved = await store.get_by_id("c1")
        assert saved.status == "planning"
        assert saved.last_activity > before

    @pytest.mark.asyncio
    async def test_patch_notes_only_keeps_status(self, client: AsyncClient, store):
        await store.save(ConversationRecord(id="c1", phone_number=IDENTITY, status="ready_for_planning"))

        response = await client.patch("/api/conversations/c1", json={"concierge_notes": ""})

        assert response.json()["status"] == "ready_for_planning"
        assert response.json()["concierge_notes"] == ""

    @pytest.mark.asyncio
    async def test_patch_unknown_is_404(self, client: AsyncClient):
        response = await client.patch("/api/conversations/missing", json={"status": "planning"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_status_survives_next_turn(self, client: AsyncClient, store):
        await client.post("/webhook", data={"Body": "Lisbon", "From": SENDER})
        record = await store.get(IDENTITY)
        await client.patch(f"/api/conversations/{record.id}", json={"status": "contacted"})

        await client.post("/webhook", data={"Body": "Boston", "From": SENDER})

        assert (await store.get(IDENTITY)).status == "contacted"


class TestConfiguration:
    def test_max_history_default(self, monkeypatch):
        monkeypatch.delenv("MAX_HISTORY", raising=False)
        assert get_max_history() == DEFAULT_MAX_HISTORY

    def test_max_history_from_env(self, monkeypatch):
        monkeypatch.setenv("MAX_HISTORY", "5")
        assert get_max_history() == 5

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_bad_max_history_falls_back(self, monkeypatch, value):
        monkeypatch.setenv("MAX_HISTORY", value)
        assert get_max_history() == DEFAULT_MAX_HISTORY
