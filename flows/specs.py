"""
FlowSpec and FieldDefinition definitions.

This module defines the declarative Field Schema for each conversation flow.
The extractor, progress tracker and response composer read these specs to
drive the dialogue deterministically, without per-field branching logic.

Field order is the default question order. Reordering fields never unsets
slots that are already filled, since slots are stored apart from the schema.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

# Reply used when a turn can not be processed at all
DEFAULT_FALLBACK_MESSAGE = (
    "Thanks for your message! I'm here to help plan your perfect trip. "
    "Could you tell me where you'd like to travel?"
)


class FieldKind(str, Enum):
    """Kinds of fields. Selects the heuristic used for direct answers."""
    LOCATION = "LOCATION"
    DATES = "DATES"
    COUNT = "COUNT"
    BUDGET = "BUDGET"
    TEXT = "TEXT"


@dataclass(frozen=True)
class FieldDefinition:
    """
    Specification for a single field to collect.

    Attributes:
        key: The slot key (e.g., "destination", "budget")
        prompt: The generic question for this field
        kind: Which direct-answer heuristic applies
        acknowledgment_template: Reply fragment once filled, with a {value} placeholder
        singular_acknowledgment: Replaces the template when the value is "1"
        followup_prompt: Friendlier phrasing of the question for conversational replies
        contextual_prompt: Question template referencing other slot keys, e.g. {destination}
        recognizer: Name of the generic recognizer scanning every message for this field
        description: Human-readable description for debugging
    """
    key: str
    prompt: str
    kind: FieldKind = FieldKind.TEXT
    acknowledgment_template: Optional[str] = None
    singular_acknowledgment: Optional[str] = None
    followup_prompt: Optional[str] = None
    contextual_prompt: Optional[str] = None
    recognizer: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class FlowSpec:
    """
    Complete specification for a conversation flow.

    This drives extraction, progress and reply composition without any
    per-flow if/else branching.
    """
    flow_id: str
    title: str

    # Fields in collection order
    fields_in_order: Tuple[FieldDefinition, ...]

    # Flow-level reply texts
    completion_message: str = (
        "Perfect! I have everything I need. Let me connect you with our travel "
        "expert to create your personalized itinerary! 🎉"
    )
    neutral_acknowledgment: str = "Thanks for sharing that!"
    progress_note: Optional[str] = "We're making great progress!"
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE

    def get_field_by_key(self, key: str) -> Optional[FieldDefinition]:
        """Get a field definition by key."""
        for field_def in self.fields_in_order:
            if field_def.key == key:
                return field_def
        return None

    def get_field_keys(self) -> List[str]:
        """Get all field keys in order."""
        return [f.key for f in self.fields_in_order]

    def get_first_field(self) -> Optional[FieldDefinition]:
        """Get the first field in order, if any."""
        return self.fields_in_order[0] if self.fields_in_order else None


# =============================================================================
# FLOW REGISTRY
# =============================================================================

TRAVEL_CONCIERGE_SPEC = FlowSpec(
    flow_id="TRAVEL_CONCIERGE",
    title="Travel Concierge",

    fields_in_order=(
        FieldDefinition(
            key="destination",
            prompt="Where would you like to travel to?",
            kind=FieldKind.LOCATION,
            acknowledgment_template="{value} sounds amazing!",
            recognizer="destination",
            description="Where the trip goes",
        ),
        FieldDefinition(
            key="departure_location",
            prompt="Where will you be traveling from?",
            kind=FieldKind.LOCATION,
            acknowledgment_template="Great, traveling from {value}.",
            contextual_prompt="Where will you be traveling from, to {destination}?",
            recognizer="departure",
            description="Where the trip starts",
        ),
        FieldDefinition(
            key="journey_dates",
            prompt="When would you like to travel?",
            kind=FieldKind.DATES,
            acknowledgment_template="Perfect timing for {value}.",
            followup_prompt="What dates work best for your trip?",
            contextual_prompt="What dates work best for your trip to {destination}?",
            recognizer="dates",
            description="Travel dates or period",
        ),
        FieldDefinition(
            key="travelers_count",
            prompt="How many people will be traveling?",
            kind=FieldKind.COUNT,
            acknowledgment_template="Lovely, {value} travelers.",
            singular_acknowledgment="A solo adventure!",
            followup_prompt="How many people will be joining you?",
            recognizer="travelers",
            description="Head count, 1 to 20",
        ),
        FieldDefinition(
            key="budget",
            prompt="What's your approximate budget for this trip?",
            kind=FieldKind.BUDGET,
            acknowledgment_template="Got it, working with a {value} budget.",
            followup_prompt="What's your budget range for this trip?",
            recognizer="budget",
            description="Budget, with currency symbol when given",
        ),
        FieldDefinition(
            key="travel_style",
            prompt="What type of experience are you looking for? (adventure, relaxation, culture, luxury, etc.)",
            acknowledgment_template="A {value} trip, love it.",
            followup_prompt="What kind of experience are you hoping for? (adventure, relaxation, culture, luxury, etc.)",
        ),
        FieldDefinition(
            key="accommodation_preference",
            prompt="What's your accommodation preference? (budget, comfort, luxury, unique)",
            acknowledgment_template="Noted, {value} accommodation.",
            followup_prompt="Any preference for your accommodation style? (budget, comfort, luxury, unique)",
        ),
        FieldDefinition(
            key="interests",
            prompt="What interests you most? (culture, food, nightlife, nature, shopping, history, etc.)",
            acknowledgment_template="Great, we'll plan around {value}.",
        ),
        FieldDefinition(
            key="travel_pace",
            prompt="Do you prefer a relaxed, balanced, or busy travel pace?",
            acknowledgment_template="A {value} pace it is.",
            recognizer="travel_pace",
        ),
        FieldDefinition(
            key="spending_priorities",
            prompt="Where would you like to prioritize spending? (accommodation, food, activities, shopping)",
            acknowledgment_template="Understood, we'll prioritize {value}.",
        ),
        FieldDefinition(
            key="accommodation_type",
            prompt="What type of accommodation do you prefer? (hotel, resort, apartment, villa, etc.)",
            acknowledgment_template="Noted, {value} it is.",
            recognizer="accommodation_type",
        ),
        FieldDefinition(
            key="location_preference",
            prompt="Where would you prefer to stay? (city center, near beach, quiet area, etc.)",
            acknowledgment_template="Staying {value}, got it.",
        ),
        FieldDefinition(
            key="important_amenities",
            prompt="What amenities are important to you? (wifi, pool, gym, spa, etc.)",
            acknowledgment_template="We'll look for {value}.",
            recognizer="amenities",
        ),
        FieldDefinition(
            key="dietary_restrictions",
            prompt="Do you have any dietary restrictions?",
            acknowledgment_template="Noted on dietary needs: {value}.",
        ),
        FieldDefinition(
            key="accessibility_requirements",
            prompt="Any accessibility requirements we should know about?",
            acknowledgment_template="Thank you, noted: {value}.",
        ),
    ),
)


FLOWS: Dict[str, FlowSpec] = {
    "TRAVEL_CONCIERGE": TRAVEL_CONCIERGE_SPEC,
}

DEFAULT_FLOW_ID = "TRAVEL_CONCIERGE"


def get_flow_spec(flow_id: str) -> FlowSpec:
    """
    Get the FlowSpec for a given flow id.

    Raises:
        ValueError: If flow id is not found in registry.
    """
    spec = FLOWS.get(flow_id)
    if spec is None:
        raise ValueError(f"Unknown flow: {flow_id}. Valid flows: {list(FLOWS.keys())}")
    return spec
