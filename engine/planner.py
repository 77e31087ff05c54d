"""
Deterministic progress tracker.

This module is the SINGLE SOURCE OF TRUTH for "what is filled" and "what to
ask next". It uses FlowSpec to determine:
- Whether a slot counts as filled
- Which field to ask for next
- How far along the conversation is (0..100)

Slot keys that are not part of the FlowSpec are carried along by callers but
never counted here: they neither raise progress nor get asked for.
"""
import logging
from typing import Any, List, Mapping, Optional

from flows.specs import FieldDefinition, FlowSpec

logger = logging.getLogger(__name__)


def is_slot_filled(slots: Mapping[str, Any], key: str) -> bool:
    """
    Check if a slot has a valid (non-empty) value.

    A slot is considered filled if:
    - It exists in the slots mapping
    - Its value is not None
    - Its value is not a blank string
    """
    value = slots.get(key)
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    return True


def get_next_field(spec: FlowSpec, slots: Mapping[str, Any]) -> Optional[FieldDefinition]:
    """
    Get the next field that needs to be filled.

    Returns the first field in schema order that is not yet filled,
    or None if every field is filled.
    """
    for field_def in spec.fields_in_order:
        if not is_slot_filled(slots, field_def.key):
            return field_def
    return None


def get_missing_fields(spec: FlowSpec, slots: Mapping[str, Any]) -> List[str]:
    """Keys of all unfilled fields, in schema order."""
    return [f.key for f in spec.fields_in_order if not is_slot_filled(slots, f.key)]


def count_filled_fields(spec: FlowSpec, slots: Mapping[str, Any]) -> int:
    """Number of schema fields that are filled. Unknown keys are ignored."""
    return sum(1 for f in spec.fields_in_order if is_slot_filled(slots, f.key))


def calculate_progress(spec: FlowSpec, slots: Mapping[str, Any]) -> int:
    """
    Completion percentage, 0..100.

    round(100 * filled schema fields / schema fields). A flow with no fields
    is complete by definition.
    """
    total = len(spec.fields_in_order)
    if total == 0:
        return 100
    return round(100 * count_filled_fields(spec, slots) / total)
