"""
Slot extraction logic.

This module handles extracting field values from user messages.
It uses a tiered approach:
1. Triviality filter: greetings and bare acknowledgments carry no field data
2. Tier A (Expected field): a direct answer to the question just asked is
   mapped with the heuristic for that field's kind
3. Tier B (Generic scan): every unfilled field with a registered recognizer
   is matched against the raw message

Extraction is additive. Keys already filled in the existing slots are never
produced again, so a later message can not overwrite an earlier answer.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from flows.specs import FlowSpec
from .planner import is_slot_filled
from .recognizers import Recognizer, get_heuristic, get_recognizer

logger = logging.getLogger(__name__)

# Shorter (stripped) messages are trivial
MIN_MESSAGE_LENGTH = 1

TRIVIAL_MESSAGES = frozenset({
    "hi", "hii", "hello", "hey", "heya", "hiya", "yo", "hola", "howdy",
    "good morning", "good afternoon", "good evening",
    "ok", "okay", "k", "kk", "okie", "alright", "all right",
    "thanks", "thank you", "thx", "ty", "cheers", "thanks a lot", "thank you so much",
    "yes", "yeah", "yep", "yup", "sure", "cool", "great", "nice", "awesome",
    "perfect", "got it", "sounds good", "hmm", "hm", "lol",
})

_EDGE_PUNCTUATION = re.compile(r"^[\W_]+|[\W_]+$")


@dataclass
class ExtractionResult:
    """Result of slot extraction for one turn (not merged)."""
    extracted_data: Dict[str, str] = field(default_factory=dict)
    matched_by: Dict[str, str] = field(default_factory=dict)  # key -> "expected" or recognizer name

    @property
    def is_empty(self) -> bool:
        return not self.extracted_data


def normalize_message(message: str) -> str:
    """Lowercase, collapse whitespace and trim punctuation at both ends."""
    collapsed = " ".join(message.lower().split())
    return _EDGE_PUNCTUATION.sub("", collapsed)


def is_trivial_message(message: Any) -> bool:
    """
    True for messages that can not carry field information: non-text,
    blank, no alphanumerics, too short, or a bare greeting/acknowledgment.
    """
    if not isinstance(message, str):
        return True
    stripped = message.strip()
    if len(stripped) < MIN_MESSAGE_LENGTH:
        return True
    if not any(ch.isalnum() for ch in stripped):
        return True
    return normalize_message(stripped) in TRIVIAL_MESSAGES


def _apply(func: Optional[Recognizer], message: str, label: str) -> Optional[str]:
    """Run one recognizer; a failing recognizer is logged and skipped."""
    if func is None:
        return None
    try:
        value = func(message)
    except Exception as e:
        logger.warning(f"Recognizer {label} failed on message: {e}")
        return None
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def extract_slots(
    spec: FlowSpec,
    user_message: Any,
    existing_slots: Optional[Mapping[str, Any]] = None,
    expected_key: Optional[str] = None,
) -> ExtractionResult:
    """
    Extract field values from a user message.

    Args:
        spec: Flow specification
        user_message: The user's message
        existing_slots: Already collected slots (never re-extracted)
        expected_key: The field we are currently asking for (if known)

    Returns:
        ExtractionResult with only this turn's new values
    """
    if existing_slots is None:
        existing_slots = {}

    result = ExtractionResult()

    if is_trivial_message(user_message):
        logger.debug(f"Trivial message ignored: {user_message!r}")
        return result

    message = user_message.strip()

    # Tier A: direct answer to the expected field
    if expected_key and not is_slot_filled(existing_slots, expected_key):
        field_def = spec.get_field_by_key(expected_key)
        if field_def is not None and "?" not in message:
            value = _apply(get_heuristic(field_def.kind), message, field_def.kind.value)
            if value:
                result.extracted_data[field_def.key] = value
                result.matched_by[field_def.key] = "expected"
                logger.info(f"Expected-field extraction: {field_def.key}={value}")

    # Tier B: generic scan over every other unfilled field
    for field_def in spec.fields_in_order:
        if field_def.recognizer is None:
            continue
        if field_def.key in result.extracted_data or is_slot_filled(existing_slots, field_def.key):
            continue

        recognizer = get_recognizer(field_def.recognizer)
        if recognizer is None:
            logger.warning(f"Field {field_def.key} names unknown recognizer {field_def.recognizer}")
            continue

        value = _apply(recognizer, message, field_def.recognizer)
        if value:
            result.extracted_data[field_def.key] = value
            result.matched_by[field_def.key] = field_def.recognizer
            logger.info(f"Pattern extraction: {field_def.key}={value}")

    logger.debug(f"Extracted: {result.extracted_data}")
    return result
