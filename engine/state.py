"""
Conversation state and the phase transition function.

ConversationState is an immutable value: a turn receives one and returns a
new one. Persistence between turns belongs to the caller.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from flows.specs import FlowSpec
from .planner import count_filled_fields, get_next_field, is_slot_filled

DEFAULT_MAX_HISTORY = 20


class ConversationPhase(str, Enum):
    """Closed set of conversation phases. COMPLETE is absorbing."""
    GREETING = "GREETING"
    COLLECTING = "COLLECTING"
    COMPLETE = "COMPLETE"


_PHASE_RANK = {
    ConversationPhase.GREETING: 0,
    ConversationPhase.COLLECTING: 1,
    ConversationPhase.COMPLETE: 2,
}


@dataclass(frozen=True)
class HistoryEntry:
    """One exchange: what the user said and what we replied."""
    user_text: str
    system_text: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ConversationState:
    """State carried between turns for one conversation identity."""
    slots: Dict[str, str] = field(default_factory=dict)
    history: Tuple[HistoryEntry, ...] = ()
    expected_field_key: Optional[str] = None
    phase: ConversationPhase = ConversationPhase.GREETING
    last_activity: Optional[datetime] = None

    @classmethod
    def initial(cls, now: Optional[datetime] = None) -> "ConversationState":
        """Empty state for a new conversation identity."""
        return cls(last_activity=now or utcnow())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_phase(
    spec: FlowSpec,
    previous: ConversationPhase,
    slots: Mapping[str, Any],
) -> ConversationPhase:
    """
    Compute the phase after a turn from the merged slots.

    Phases never move backwards: the result is never earlier than previous,
    and COMPLETE stays COMPLETE for the life of the conversation.
    """
    if previous == ConversationPhase.COMPLETE:
        return ConversationPhase.COMPLETE

    if get_next_field(spec, slots) is None:
        computed = ConversationPhase.COMPLETE
    elif count_filled_fields(spec, slots) == 0:
        computed = ConversationPhase.GREETING
    else:
        computed = ConversationPhase.COLLECTING

    if _PHASE_RANK[computed] < _PHASE_RANK[previous]:
        return previous
    return computed


def merge_slots(existing: Mapping[str, Any], extracted: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Merge this turn's extraction into the existing slots.

    First write wins: a filled key is never overwritten. Blank extracted
    values are dropped. Returns a new dict.
    """
    merged = dict(existing)
    for key, value in extracted.items():
        if is_slot_filled(merged, key):
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        merged[key] = value
    return merged


def append_history(
    history: Tuple[HistoryEntry, ...],
    entry: HistoryEntry,
    max_history: int = DEFAULT_MAX_HISTORY,
) -> Tuple[HistoryEntry, ...]:
    """Append an exchange, evicting the oldest beyond max_history."""
    limit = max(1, max_history)
    updated = tuple(history) + (entry,)
    return updated[-limit:]
