"""
Conversation store.

Records are keyed by conversation identity (the normalized sender). The
in-memory implementation is acceptable for a single process; swap in a
database-backed ConversationStore for anything longer-lived.

Python 3.9 compatible - uses typing.Dict, typing.List, typing.Optional
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import ConversationRecord

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """Persistence for conversation records, one per identity."""

    @abstractmethod
    async def get(self, identity: str) -> Optional[ConversationRecord]:
        """Record for an identity, or None for a new conversation."""

    @abstractmethod
    async def save(self, record: ConversationRecord) -> None:
        """Insert or replace the record for record.phone_number."""

    @abstractmethod
    async def list_all(self) -> List[ConversationRecord]:
        """All records, most recent activity first."""

    @abstractmethod
    async def get_by_id(self, conversation_id: str) -> Optional[ConversationRecord]:
        """Record by its id (as shown on the dashboard)."""

    @abstractmethod
    def lock_for(self, identity: str) -> asyncio.Lock:
        """Lock that serializes turns for one identity."""


class InMemoryConversationStore(ConversationStore):
    """Process-local store. Records are copied on the way in and out."""

    def __init__(self):
        self._records: Dict[str, ConversationRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get(self, identity: str) -> Optional[ConversationRecord]:
        record = self._records.get(identity)
        return record.model_copy(deep=True) if record else None

    async def save(self, record: ConversationRecord) -> None:
        self._records[record.phone_number] = record.model_copy(deep=True)
        logger.debug(f"Saved conversation {record.id} for {record.phone_number}")

    async def list_all(self) -> List[ConversationRecord]:
        records = sorted(self._records.values(), key=lambda r: r.last_activity, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    async def get_by_id(self, conversation_id: str) -> Optional[ConversationRecord]:
        for record in self._records.values():
            if record.id == conversation_id:
                return record.model_copy(deep=True)
        return None

    def lock_for(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            self._prune_locks()
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def _prune_locks(self) -> None:
        """Drop idle locks of identities that never saved a record."""
        stale = [
            identity for identity, lock in self._locks.items()
            if identity not in self._records and not lock.locked()
        ]
        for identity in stale:
            del self._locks[identity]


# Singleton instance (created on first use)
_store: Optional[ConversationStore] = None


def get_store() -> ConversationStore:
    """Get or create the ConversationStore singleton. Used as a FastAPI dependency."""
    global _store
    if _store is None:
        _store = InMemoryConversationStore()
    return _store
