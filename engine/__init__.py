"""
Conversation engine - extractor, progress tracker, composer and turn state machine.
"""
from .planner import (
    is_slot_filled,
    get_next_field,
    get_missing_fields,
    calculate_progress,
)
from .extract import (
    ExtractionResult,
    extract_slots,
    is_trivial_message,
)
from .compose import (
    build_question,
    compose_reply,
)
from .state import (
    ConversationPhase,
    ConversationState,
    HistoryEntry,
    merge_slots,
    next_phase,
)
from .turn import (
    TurnResult,
    process_turn,
)

__all__ = [
    "is_slot_filled",
    "get_next_field",
    "get_missing_fields",
    "calculate_progress",
    "ExtractionResult",
    "extract_slots",
    "is_trivial_message",
    "build_question",
    "compose_reply",
    "ConversationPhase",
    "ConversationState",
    "HistoryEntry",
    "merge_slots",
    "next_phase",
    "TurnResult",
    "process_turn",
]
