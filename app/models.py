"""
Pydantic models for the concierge API and the persisted conversation record.
Python 3.9 compatible - uses typing.List, typing.Dict, typing.Optional
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from engine.state import ConversationPhase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStatus:
    """Status values the turn handler writes. The dashboard may set any other string."""
    COLLECTING_INFO = "collecting_info"
    READY_FOR_PLANNING = "ready_for_planning"


# ============================================================
# Persisted conversation record (webhook + dashboard)
# ============================================================

class MessageEntry(BaseModel):
    """One exchange as shown on the dashboard."""
    timestamp: datetime = Field(default_factory=_utcnow)
    user: str
    ai: str


class ConversationRecord(BaseModel):
    id: str
    phone_number: str
    user_name: Optional[str] = None
    messages: List[MessageEntry] = Field(default_factory=list)
    travel_info: Dict[str, str] = Field(default_factory=dict)
    completion_percentage: int = 0
    status: str = ConversationStatus.COLLECTING_INFO
    phase: ConversationPhase = ConversationPhase.GREETING
    next_question_key: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    last_activity: datetime = Field(default_factory=_utcnow)
    concierge_notes: str = ""


class ConversationUpdateRequest(BaseModel):
    """Dashboard update. Only the fields that are set are applied."""
    status: Optional[str] = None
    concierge_notes: Optional[str] = None


# ============================================================
# Stateless turn endpoint
# ============================================================

class HistoryEntryModel(BaseModel):
    user: str
    system: str
    timestamp: Optional[datetime] = None


class TurnState(BaseModel):
    """Wire form of ConversationState. The client carries it between turns."""
    slots: Dict[str, str] = Field(default_factory=dict)
    history: List[HistoryEntryModel] = Field(default_factory=list)
    expectedFieldKey: Optional[str] = None
    phase: ConversationPhase = ConversationPhase.GREETING
    lastActivity: Optional[datetime] = None


class TurnRequest(BaseModel):
    message: str
    state: Optional[TurnState] = None
    flowId: Optional[str] = None


class TurnResponse(BaseModel):
    reply: str
    state: TurnState
    extractedData: Dict[str, str] = Field(default_factory=dict)
    progress: int
    nextFieldKey: Optional[str] = None
    phase: ConversationPhase
    fallbackUsed: bool = False
