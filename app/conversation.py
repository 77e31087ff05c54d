"""
Inbound message handling for the messaging webhook.

This module glues the transport to the engine:
1. Normalizes the sender into a conversation identity (E.164)
2. Loads (or creates) the ConversationRecord from the store
3. Rebuilds the engine's ConversationState from the record
4. Runs one turn (engine.turn.process_turn never raises)
5. Writes the new state back into the record and saves it

Turns for the same identity are serialized with the store's per-identity lock.
"""
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException

from engine.state import DEFAULT_MAX_HISTORY, ConversationPhase, ConversationState, HistoryEntry
from engine.turn import TurnResult, process_turn
from flows.specs import FlowSpec
from .models import ConversationRecord, ConversationStatus, MessageEntry
from .store import ConversationStore

logger = logging.getLogger(__name__)

DEFAULT_USER_NAME = "Unknown Traveler"
WHATSAPP_PREFIX = "whatsapp:"


def _preview(text: Optional[str], limit: int = 50) -> str:
    text = text or ""
    return text[:limit] + "..." if len(text) > limit else text


def normalize_sender(sender: Optional[str], default_region: Optional[str] = None) -> str:
    """
    Normalize an inbound sender into a conversation identity.

    "whatsapp:+1 415 555 2671" -> "+14155552671". Numbers that phonenumbers
    can not parse or validate are kept as the stripped raw sender.

    Args:
        sender: Raw From value of the webhook
        default_region: Region for numbers without a country code
            (defaults to DEFAULT_PHONE_REGION, then "US")
    """
    raw = (sender or "").strip()
    if raw.lower().startswith(WHATSAPP_PREFIX):
        raw = raw[len(WHATSAPP_PREFIX):].strip()
    if not raw:
        return raw

    region = default_region or os.getenv("DEFAULT_PHONE_REGION", "US")
    try:
        parsed = phonenumbers.parse(raw, region)
    except NumberParseException as e:
        logger.debug(f"Sender {raw!r} is not a phone number: {e}")
        return raw

    if not phonenumbers.is_valid_number(parsed):
        logger.debug(f"Sender {raw!r} is not a valid phone number")
        return raw

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


# =============================================================================
# Record <-> ConversationState
# =============================================================================

def new_record(
    identity: str,
    profile_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ConversationRecord:
    """Fresh record for an identity seen for the first time."""
    record = ConversationRecord(
        id=uuid.uuid4().hex,
        phone_number=identity,
        user_name=profile_name or DEFAULT_USER_NAME,
    )
    if now is not None:
        record = record.model_copy(update={"created_at": now, "last_activity": now})
    return record


def state_from_record(record: ConversationRecord) -> ConversationState:
    return ConversationState(
        slots=dict(record.travel_info),
        history=tuple(
            HistoryEntry(user_text=m.user, system_text=m.ai, timestamp=m.timestamp)
            for m in record.messages
        ),
        expected_field_key=record.next_question_key,
        phase=record.phase,
        last_activity=record.last_activity,
    )


def apply_turn_to_record(record: ConversationRecord, result: TurnResult) -> ConversationRecord:
    """Copy the turn's new state into the record (returns a new record)."""
    state = result.state

    if state.phase == ConversationPhase.COMPLETE:
        status = ConversationStatus.READY_FOR_PLANNING
    else:
        # A status set from the dashboard survives while we keep collecting
        status = record.status or ConversationStatus.COLLECTING_INFO

    return record.model_copy(update={
        "messages": [
            MessageEntry(timestamp=h.timestamp or state.last_activity, user=h.user_text, ai=h.system_text)
            for h in state.history
        ],
        "travel_info": dict(state.slots),
        "completion_percentage": result.progress,
        "status": status,
        "phase": state.phase,
        "next_question_key": state.expected_field_key,
        "last_activity": state.last_activity or record.last_activity,
    })


# =============================================================================
# Internal Metrics Counters (for anomaly detection, not exposed via API)
# =============================================================================
class _TurnMetrics:
    """
    Simple in-memory counters for webhook turns.

    For internal logging only. Counters reset on server restart.
    """

    ANOMALY_THRESHOLD = 3
    SUMMARY_INTERVAL = 100

    def __init__(self):
        self.total_turns = 0
        self.fallback_used = 0
        self.completed_conversations = 0
        self.new_conversations = 0
        # Anomaly detection
        self.consecutive_fallbacks = 0
        self.max_consecutive_fallbacks = 0

    def record_turn(self, fallback: bool, completed: bool = False, new: bool = False):
        self.total_turns += 1
        if new:
            self.new_conversations += 1
        if completed:
            self.completed_conversations += 1

        if fallback:
            self.fallback_used += 1
            self.consecutive_fallbacks += 1
            self.max_consecutive_fallbacks = max(
                self.max_consecutive_fallbacks,
                self.consecutive_fallbacks,
            )
            if self.consecutive_fallbacks >= self.ANOMALY_THRESHOLD:
                logger.warning(
                    f"[TURN-ANOMALY] consecutive_fallbacks={self.consecutive_fallbacks} "
                    f"(threshold={self.ANOMALY_THRESHOLD}, max_seen={self.max_consecutive_fallbacks})"
                )
        else:
            self.consecutive_fallbacks = 0

    def log_summary(self):
        if self.total_turns == 0:
            return
        fallback_rate = (self.fallback_used / self.total_turns) * 100
        logger.info(
            f"[TURN-METRICS] "
            f"total={self.total_turns} "
            f"new={self.new_conversations} "
            f"completed={self.completed_conversations} "
            f"fallback_rate={fallback_rate:.1f}%"
        )


# Global metrics instance
_metrics = _TurnMetrics()


def _log_turn_summary(
    conversation_id: str,
    identity: str,
    result: TurnResult,
) -> None:
    """Single-line summary of one webhook turn."""
    logger.info(
        "[TURN-SUMMARY] "
        f"id={conversation_id} "
        f"from={identity} "
        f"phase={result.state.phase.value} "
        f"extracted={list(result.extracted.keys())} "
        f"next={result.next_field.key if result.next_field else 'none'} "
        f"progress={result.progress}% "
        f"fallback={result.fallback_used}"
    )


async def handle_inbound_message(
    store: ConversationStore,
    spec: FlowSpec,
    sender: str,
    body: Optional[str],
    profile_name: Optional[str] = None,
    max_history: int = DEFAULT_MAX_HISTORY,
    now: Optional[datetime] = None,
) -> TurnResult:
    """
    Run one webhook turn for a sender and persist the result.

    Args:
        store: Conversation store
        spec: Flow specification driving the conversation
        sender: Raw sender (e.g. "whatsapp:+14155552671")
        body: Message text
        profile_name: Display name supplied by the messaging provider
        max_history: Exchanges kept on the record
        now: Turn timestamp (defaults to current UTC time)

    Returns:
        TurnResult of the processed turn
    """
    identity = normalize_sender(sender)
    logger.info(f"Message from {identity}: '{_preview(body)}'")

    async with store.lock_for(identity):
        record = await store.get(identity)
        is_new = record is None
        if record is None:
            logger.info(f"New conversation started for {identity}")
            record = new_record(identity, profile_name, now)

        result = process_turn(
            spec,
            body or "",
            state_from_record(record),
            now=now,
            max_history=max_history,
        )

        updated = apply_turn_to_record(record, result)
        await store.save(updated)

    _log_turn_summary(updated.id, identity, result)
    _metrics.record_turn(
        fallback=result.fallback_used,
        completed=record.phase != ConversationPhase.COMPLETE and updated.phase == ConversationPhase.COMPLETE,
        new=is_new,
    )

    # Log metrics summary every SUMMARY_INTERVAL turns
    if _metrics.total_turns % _metrics.SUMMARY_INTERVAL == 0:
        _metrics.log_summary()

    return result
