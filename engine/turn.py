"""
Conversation state machine: one turn.

process_turn is the only entry point the transport layer needs:
    (message, ConversationState) -> TurnResult(reply, new ConversationState)

Flow:
1. Resolve the expected field (stored on the state, or the next unfilled one)
2. Extract values from the message
3. Merge into slots (first write wins)
4. Recompute next field and progress
5. Compose the reply
6. Append the exchange to bounded history
7. Return the new state

GUARANTEE: no exception escapes process_turn. Any fault inside a turn is
logged and converted into a fallback turn that re-asks the next missing
field with slots left unchanged.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from flows.specs import DEFAULT_FALLBACK_MESSAGE, FieldDefinition, FlowSpec
from .compose import compose_reply
from .extract import extract_slots
from .planner import calculate_progress, get_next_field, is_slot_filled
from .state import (
    DEFAULT_MAX_HISTORY,
    ConversationState,
    HistoryEntry,
    append_history,
    merge_slots,
    next_phase,
    utcnow,
)

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """Result of one processed turn."""
    reply: str
    state: ConversationState
    extracted: Dict[str, str] = field(default_factory=dict)
    progress: int = 0
    next_field: Optional[FieldDefinition] = None
    fallback_used: bool = False


def _advance_clock(previous: Optional[datetime], now: datetime) -> datetime:
    """last_activity only moves forward."""
    if previous is None:
        return now
    try:
        return max(previous, now)
    except TypeError:
        # Naive and aware datetimes do not compare
        return now


def _message_text(message: Any) -> str:
    if message is None:
        return ""
    return message if isinstance(message, str) else str(message)


def _run_turn(
    spec: FlowSpec,
    message: Any,
    state: ConversationState,
    now: datetime,
    max_history: int,
) -> TurnResult:
    prior_slots = dict(state.slots)

    # Step 1: Expected field
    expected_key = state.expected_field_key
    if expected_key is None:
        pending = get_next_field(spec, prior_slots)
        expected_key = pending.key if pending else None

    # Step 2: Extract
    extraction = extract_slots(spec, message, prior_slots, expected_key)

    # Step 3: Merge; only values that were actually accepted get acknowledged
    new_slots = merge_slots(prior_slots, extraction.extracted_data)
    accepted = {
        key: value
        for key, value in extraction.extracted_data.items()
        if not is_slot_filled(prior_slots, key) and new_slots.get(key) == value
    }

    # Step 4: Progress
    next_field = get_next_field(spec, new_slots)
    progress = calculate_progress(spec, new_slots)

    # Step 5: Reply
    reply = compose_reply(spec, accepted, prior_slots, next_field)

    # Step 6: History
    history = append_history(
        state.history,
        HistoryEntry(user_text=_message_text(message), system_text=reply, timestamp=now),
        max_history,
    )

    # Step 7: New state
    new_state = ConversationState(
        slots=new_slots,
        history=history,
        expected_field_key=next_field.key if next_field else None,
        phase=next_phase(spec, state.phase, new_slots),
        last_activity=_advance_clock(state.last_activity, now),
    )

    logger.info(
        f"Turn: expected={expected_key or 'none'} "
        f"extracted={list(accepted.keys())} "
        f"next={next_field.key if next_field else 'none'} "
        f"progress={progress}% phase={new_state.phase.value}"
    )

    return TurnResult(
        reply=reply,
        state=new_state,
        extracted=accepted,
        progress=progress,
        next_field=next_field,
    )


def _fallback_turn(
    spec: FlowSpec,
    message: Any,
    state: ConversationState,
    now: datetime,
    max_history: int,
) -> TurnResult:
    """Safe turn: slots untouched, re-ask the next (or first) missing field."""
    try:
        slots = dict(state.slots)
        next_field = get_next_field(spec, slots)
        if next_field is not None:
            reply = f"Thanks! {next_field.prompt}"
        else:
            reply = spec.completion_message

        history = append_history(
            state.history,
            HistoryEntry(user_text=_message_text(message), system_text=reply, timestamp=now),
            max_history,
        )
        new_state = replace(
            state,
            history=history,
            expected_field_key=next_field.key if next_field else None,
            last_activity=_advance_clock(state.last_activity, now),
        )
        return TurnResult(
            reply=reply,
            state=new_state,
            progress=calculate_progress(spec, slots),
            next_field=next_field,
            fallback_used=True,
        )
    except Exception as e:
        logger.error(f"Fallback turn failed: {e}", exc_info=True)
        return TurnResult(
            reply=getattr(spec, "fallback_message", None) or DEFAULT_FALLBACK_MESSAGE,
            state=state,
            fallback_used=True,
        )


def process_turn(
    spec: FlowSpec,
    message: Any,
    state: Optional[ConversationState] = None,
    now: Optional[datetime] = None,
    max_history: int = DEFAULT_MAX_HISTORY,
) -> TurnResult:
    """
    Process one conversation turn.

    Args:
        spec: Flow specification
        message: The inbound user message
        state: State from the previous turn (None for a new conversation)
        now: Timestamp of this turn (defaults to current UTC time)
        max_history: Exchanges kept in history; oldest are evicted first

    Returns:
        TurnResult with the reply text and the new state
    """
    now = now or utcnow()
    if state is None:
        state = ConversationState.initial(now)

    try:
        return _run_turn(spec, message, state, now, max_history)
    except Exception as e:
        logger.error(f"Turn failed, using fallback: {e}", exc_info=True)
        return _fallback_turn(spec, message, state, now, max_history)
