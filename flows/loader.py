"""
Load a FlowSpec from a JSON Field Schema document.

Document shape:
    {
      "flow_id": "...", "title": "...",
      "completion_message": "...",          (optional)
      "neutral_acknowledgment": "...",      (optional)
      "progress_note": "...",               (optional, null disables it)
      "fallback_message": "...",            (optional)
      "fields": [
        {"key": "...", "prompt": "...", "kind": "TEXT",
         "acknowledgment_template": "...", "singular_acknowledgment": "...",
         "followup_prompt": "...", "contextual_prompt": "...", "recognizer": "..."}
      ]
    }
"""
import logging
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .specs import FieldDefinition, FieldKind, FlowSpec

logger = logging.getLogger(__name__)


class FlowConfigError(ValueError):
    """Raised when a Field Schema document is unreadable or invalid."""


class FieldConfig(BaseModel):
    key: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    kind: FieldKind = FieldKind.TEXT
    acknowledgment_template: Optional[str] = None
    singular_acknowledgment: Optional[str] = None
    followup_prompt: Optional[str] = None
    contextual_prompt: Optional[str] = None
    recognizer: Optional[str] = None
    description: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def _upper_kind(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value


class FlowConfig(BaseModel):
    flow_id: str = Field(min_length=1)
    title: str = ""
    completion_message: Optional[str] = None
    neutral_acknowledgment: Optional[str] = None
    progress_note: Optional[str] = FlowSpec.progress_note
    fallback_message: Optional[str] = None
    fields: List[FieldConfig] = Field(min_length=1)

    @field_validator("fields")
    @classmethod
    def _unique_keys(cls, fields: List[FieldConfig]) -> List[FieldConfig]:
        seen = set()
        for field_config in fields:
            if field_config.key in seen:
                raise ValueError(f"Duplicate field key: {field_config.key}")
            seen.add(field_config.key)
        return fields


def build_flow_spec(config: FlowConfig) -> FlowSpec:
    """
    Build a FlowSpec from a validated FlowConfig.

    Raises:
        FlowConfigError: If a field names a recognizer that is not registered.
    """
    from engine.recognizers import available_recognizers

    known = set(available_recognizers())
    fields = []
    for fc in config.fields:
        if fc.recognizer is not None and fc.recognizer not in known:
            raise FlowConfigError(
                f"Field '{fc.key}' uses unknown recognizer '{fc.recognizer}'. "
                f"Available: {sorted(known)}"
            )
        fields.append(FieldDefinition(**fc.model_dump()))

    # Unset flow texts keep the FlowSpec defaults
    overrides = {
        name: getattr(config, name)
        for name in ("completion_message", "neutral_acknowledgment", "fallback_message")
        if getattr(config, name) is not None
    }

    return FlowSpec(
        flow_id=config.flow_id,
        title=config.title or config.flow_id,
        fields_in_order=tuple(fields),
        progress_note=config.progress_note,
        **overrides,
    )


def load_flow_spec(path: Union[str, Path]) -> FlowSpec:
    """
    Read and validate a Field Schema JSON file.

    Args:
        path: Location of the JSON document

    Returns:
        The FlowSpec described by the document

    Raises:
        FlowConfigError: If the file cannot be read or fails validation
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FlowConfigError(f"Cannot read flow spec {path}: {e}") from e

    try:
        config = FlowConfig.model_validate_json(raw)
    except ValidationError as e:
        raise FlowConfigError(f"Invalid flow spec {path}: {e}") from e

    spec = build_flow_spec(config)
    logger.info(f"Loaded flow spec {spec.flow_id} from {path} ({len(spec.fields_in_order)} fields)")
    return spec
