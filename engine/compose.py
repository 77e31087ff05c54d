"""
Response composer.

Builds the outbound reply for a turn: one acknowledgment per newly extracted
field (or a neutral one when nothing was extracted), an optional progress
note, then exactly one trailing question or the flow's completion message.

NO I/O and no LLM calls are made in this module.
"""
import logging
from string import Formatter
from typing import Dict, List, Mapping, Optional

from flows.specs import FieldDefinition, FlowSpec
from .planner import calculate_progress, is_slot_filled

logger = logging.getLogger(__name__)

# The progress note is added once completion passes this percentage
PROGRESS_NOTE_THRESHOLD = 20


def _placeholders(template: str) -> List[str]:
    return [name for _, name, _, _ in Formatter().parse(template) if name]


def build_acknowledgment(
    spec: FlowSpec,
    field_def: FieldDefinition,
    value: str,
    context: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Acknowledge one extracted value.

    Uses the singular phrasing for a value of "1" when the field has one,
    otherwise the field's template, otherwise the flow's neutral text.
    """
    if value == "1" and field_def.singular_acknowledgment:
        return field_def.singular_acknowledgment

    template = field_def.acknowledgment_template
    if not template:
        return spec.neutral_acknowledgment

    values = dict(context or {})
    values["value"] = value
    try:
        return template.format(**values)
    except (KeyError, IndexError, ValueError) as e:
        logger.warning(f"Acknowledgment template for {field_def.key} failed: {e}")
        return spec.neutral_acknowledgment


def build_question(field_def: FieldDefinition, context: Optional[Mapping[str, str]] = None) -> str:
    """
    Build the question text for a field.

    The contextual prompt is used when every slot it references is filled in
    context ("Where will you be traveling from, to Lisbon?"). Otherwise the
    followup phrasing, otherwise the schema prompt.
    """
    context = context or {}
    template = field_def.contextual_prompt
    if template:
        names = _placeholders(template)
        if names and all(is_slot_filled(context, name) for name in names):
            try:
                return template.format(**{name: context[name] for name in names})
            except (KeyError, IndexError, ValueError) as e:
                logger.warning(f"Contextual prompt for {field_def.key} failed: {e}")
                return field_def.prompt
    return field_def.followup_prompt or field_def.prompt


def compose_reply(
    spec: FlowSpec,
    extracted: Mapping[str, str],
    prior_slots: Mapping[str, str],
    next_field: Optional[FieldDefinition],
) -> str:
    """
    Compose the reply for one turn.

    Args:
        spec: Flow specification
        extracted: Values newly extracted this turn
        prior_slots: Slots as they were before this turn
        next_field: The field to ask for next, or None when the flow is complete

    Returns:
        Acknowledgment(s) followed by exactly one question or the completion message
    """
    context: Dict[str, str] = {**prior_slots, **extracted}
    parts: List[str] = []

    for field_def in spec.fields_in_order:
        if field_def.key in extracted:
            parts.append(build_acknowledgment(spec, field_def, extracted[field_def.key], context))

    if not parts:
        parts.append(spec.neutral_acknowledgment)
    elif next_field is not None and spec.progress_note:
        if calculate_progress(spec, context) > PROGRESS_NOTE_THRESHOLD:
            parts.append(spec.progress_note)

    if next_field is None:
        parts.append(spec.completion_message)
    else:
        parts.append(build_question(next_field, context))

    return " ".join(parts)
