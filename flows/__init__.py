"""
Field Schema definitions and registry.
"""
from .specs import (
    FieldKind,
    FieldDefinition,
    FlowSpec,
    FLOWS,
    DEFAULT_FLOW_ID,
    DEFAULT_FALLBACK_MESSAGE,
    TRAVEL_CONCIERGE_SPEC,
    get_flow_spec,
)
from .loader import (
    FlowConfigError,
    load_flow_spec,
)

__all__ = [
    "FieldKind",
    "FieldDefinition",
    "FlowSpec",
    "FLOWS",
    "DEFAULT_FLOW_ID",
    "DEFAULT_FALLBACK_MESSAGE",
    "TRAVEL_CONCIERGE_SPEC",
    "get_flow_spec",
    "FlowConfigError",
    "load_flow_spec",
]
