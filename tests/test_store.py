"""
Tests for the conversation store and the inbound message handler.

These tests verify that:
1. The in-memory store keeps one record per identity and copies records
2. Senders are normalized to E.164 identities
3. The handler persists slots, history and status across turns
4. Consecutive fallbacks are reported as an anomaly
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from app import conversation as conversation_module
from app.conversation import (
    DEFAULT_USER_NAME,
    _TurnMetrics,
    handle_inbound_message,
    normalize_sender,
)
from app.models import ConversationRecord, ConversationStatus
from app.store import InMemoryConversationStore
from engine.state import ConversationPhase
from flows.specs import TRAVEL_CONCIERGE_SPEC as SPEC

SENDER = "whatsapp:+12015550123"
IDENTITY = "+12015550123"
NOW = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryConversationStore()


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        record = ConversationRecord(id="c1", phone_number=IDENTITY)
        await store.save(record)

        loaded = await store.get(IDENTITY)

        assert loaded == record
        assert loaded is not record
        assert await store.get("+19999999999") is None

    @pytest.mark.asyncio
    async def test_records_are_copied(self, store):
        await store.save(ConversationRecord(id="c1", phone_number=IDENTITY))

        loaded = await store.get(IDENTITY)
        loaded.travel_info["destination"] = "Lisbon"

        assert (await store.get(IDENTITY)).travel_info == {}

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, store):
        await store.save(ConversationRecord(id="old", phone_number="+1", last_activity=NOW))
        await store.save(ConversationRecord(id="new", phone_number="+2", last_activity=NOW + timedelta(hours=1)))

        records = await store.list_all()

        assert [r.id for r in records] == ["new", "old"]

    @pytest.mark.asyncio
    async def test_get_by_id(self, store):
        await store.save(ConversationRecord(id="c1", phone_number=IDENTITY))

        assert (await store.get_by_id("c1")).phone_number == IDENTITY
        assert await store.get_by_id("missing") is None

    def test_one_lock_per_identity(self, store):
        assert store.lock_for(IDENTITY) is store.lock_for(IDENTITY)
        assert store.lock_for(IDENTITY) is not store.lock_for("+19999999999")

    def test_idle_lock_without_record_is_dropped(self, store):
        first = store.lock_for(IDENTITY)
        store.lock_for("+19999999999")

        assert store.lock_for(IDENTITY) is not first

    @pytest.mark.asyncio
    async def test_lock_kept_for_saved_identity(self, store):
        await store.save(ConversationRecord(id="c1", phone_number=IDENTITY))
        first = store.lock_for(IDENTITY)
        store.lock_for("+19999999999")

        assert store.lock_for(IDENTITY) is first

    @pytest.mark.asyncio
    async def test_held_lock_is_kept(self, store):
        first = store.lock_for(IDENTITY)
        async with first:
            store.lock_for("+19999999999")
            assert store.lock_for(IDENTITY) is first


class TestNormalizeSender:
    def test_whatsapp_prefix(self):
        assert normalize_sender(SENDER) == IDENTITY

    def test_national_format_uses_default_region(self):
        assert normalize_sender("(201) 555-0123", default_region="US") == IDENTITY

    def test_not_a_phone_number(self):
        assert normalize_sender("whatsapp:some-user") == "some-user"

    def test_empty(self):
        assert normalize_sender(None) == ""


class TestHandleInboundMessage:
    @pytest.mark.asyncio
    async def test_new_conversation(self, store):
        result = await handle_inbound_message(store, SPEC, SENDER, "I'm planning a trip to Lisbon", "Ana", now=NOW)

        record = await store.get(IDENTITY)
        assert result.reply == "Lisbon sounds amazing! Where will you be traveling from, to Lisbon?"
        assert record.user_name == "Ana"
        assert record.travel_info == {"destination": "Lisbon"}
        assert record.next_question_key == "departure_location"
        assert record.completion_percentage == 7
        assert record.status == ConversationStatus.COLLECTING_INFO
        assert record.phase == ConversationPhase.COLLECTING
        assert len(record.messages) == 1
        assert record.messages[0].user == "I'm planning a trip to Lisbon"
        assert record.messages[0].ai == result.reply

    @pytest.mark.asyncio
    async def test_default_user_name(self, store):
        await handle_inbound_message(store, SPEC, SENDER, "hi", None, now=NOW)
        assert (await store.get(IDENTITY)).user_name == DEFAULT_USER_NAME

    @pytest.mark.asyncio
    async def test_state_persists_between_turns(self, store):
        await handle_inbound_message(store, SPEC, SENDER, "Lisbon", now=NOW)
        result = await handle_inbound_message(store, SPEC, SENDER, "Boston", now=NOW + timedelta(minutes=1))

        record = await store.get(IDENTITY)
        assert result.extracted == {"departure_location": "Boston"}
        assert record.travel_info == {"destination": "Lisbon", "departure_location": "Boston"}
        assert record.next_question_key == "journey_dates"
        assert len(record.messages) == 2
        assert record.last_activity == NOW + timedelta(minutes=1)

    @pytest.mark.asyncio
    async def test_history_bounded_on_record(self, store):
        for message in ["hi", "hello", "hey", "ok"]:
            await handle_inbound_message(store, SPEC, SENDER, message, max_history=2, now=NOW)

        record = await store.get(IDENTITY)
        assert [m.user for m in record.messages] == ["hey", "ok"]

    @pytest.mark.asyncio
    async def test_identities_are_isolated(self, store):
        await handle_inbound_message(store, SPEC, SENDER, "Lisbon", now=NOW)
        await handle_inbound_message(store, SPEC, "whatsapp:+12015550124", "Rome", now=NOW)

        assert (await store.get(IDENTITY)).travel_info == {"destination": "Lisbon"}
        assert (await store.get("+12015550124")).travel_info == {"destination": "Rome"}

    @pytest.mark.asyncio
    async def test_ready_for_planning_when_complete(self, store):
        record = ConversationRecord(
            id="c1",
            phone_number=IDENTITY,
            travel_info={key: "x" for key in SPEC.get_field_keys()[:-1]},
            next_question_key="accessibility_requirements",
            phase=ConversationPhase.COLLECTING,
            last_activity=NOW,
        )
        await store.save(record)

        result = await handle_inbound_message(store, SPEC, SENDER, "none", now=NOW)

        saved = await store.get(IDENTITY)
        assert result.reply.endswith(SPEC.completion_message)
        assert saved.status == ConversationStatus.READY_FOR_PLANNING
        assert saved.phase == ConversationPhase.COMPLETE
        assert saved.completion_percentage == 100
        assert saved.next_question_key is None

    @pytest.mark.asyncio
    async def test_dashboard_status_kept_while_collecting(self, store):
        await store.save(ConversationRecord(id="c1", phone_number=IDENTITY, status="contacted", last_activity=NOW))

        await handle_inbound_message(store, SPEC, SENDER, "Lisbon", now=NOW)

        assert (await store.get(IDENTITY)).status == "contacted"

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self, store):
        await asyncio.gather(
            handle_inbound_message(store, SPEC, SENDER, "Lisbon", now=NOW),
            handle_inbound_message(store, SPEC, SENDER, "hello", now=NOW),
        )

        record = await store.get(IDENTITY)
        assert len(record.messages) == 2


class TestTurnMetrics:
    def test_anomaly_after_three_fallbacks(self, caplog):
        metrics = _TurnMetrics()
        with caplog.at_level(logging.WARNING, logger=conversation_module.__name__):
            metrics.record_turn(fallback=True)
            metrics.record_turn(fallback=True)
            assert "[TURN-ANOMALY]" not in caplog.text
            metrics.record_turn(fallback=True)

        assert "[TURN-ANOMALY]" in caplog.text
        assert metrics.max_consecutive_fallbacks == 3

    def test_success_resets_streak(self):
        metrics = _TurnMetrics()
        metrics.record_turn(fallback=True)
        metrics.record_turn(fallback=False)

        assert metrics.consecutive_fallbacks == 0
        assert metrics.fallback_used == 1
        assert metrics.total_turns == 2

    @pytest.mark.asyncio
    async def test_summary_logged_every_interval(self, store, monkeypatch, caplog):
        metrics = _TurnMetrics()
        metrics.SUMMARY_INTERVAL = 2
        monkeypatch.setattr(conversation_module, "_metrics", metrics)

        with caplog.at_level(logging.INFO, logger=conversation_module.__name__):
            await handle_inbound_message(store, SPEC, SENDER, "Lisbon", now=NOW)
            assert "[TURN-METRICS]" not in caplog.text
            await handle_inbound_message(store, SPEC, SENDER, "Boston", now=NOW)

        assert "[TURN-METRICS] total=2 new=1 completed=0 fallback_rate=0.0%" in caplog.text
