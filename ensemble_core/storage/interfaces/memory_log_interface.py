"""
Abstract interface for the persistent long-term memory log.

This module defines the contract that durable memory backends must follow. The
log is append-only and keyed by (persona, conversation); reads always come back
newest-first and callers reorder as they need.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List


@dataclass(frozen=True)
class MemoryKey:
    """Identifies one persona's memory within one conversation."""
    persona_id: str
    conversation_id: str

    def __str__(self) -> str:
        return f"{self.persona_id}/{self.conversation_id}"


class MemoryLogInterface(ABC):
    """
    Abstract base class for long-term memory backends.

    Records are plain dictionaries with at least ``role``, ``content`` and
    ``timestamp``. Backends raise on failure; the agent layer decides how much
    a storage outage matters.
    """

    # Connection Management
    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the storage backend."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connection to the storage backend."""
        pass

    # Memory entries
    @abstractmethod
    async def append(self, key: MemoryKey, record: Dict[str, Any]) -> None:
        """
        Append one memory record.

        Args:
            key: Persona and conversation the record belongs to
            record: Serializable record with role, content and timestamp
        """
        pass

    @abstractmethod
    async def query_recent(self, key: MemoryKey, limit: int) -> List[Dict[str, Any]]:
        """
        Return up to ``limit`` records for ``key``, newest first.
        """
        pass

    async def query_window(self, key: MemoryKey, window_size: int) -> List[Dict[str, Any]]:
        """
        Return the newest ``window_size`` records for ``key``, newest first.

        Backends with a cheaper scan for wide windows may override this.
        """
        return await self.query_recent(key, window_size)

    # Audit
    @abstractmethod
    async def record_orchestration(self, conversation_id: str, record: Dict[str, Any]) -> None:
        """
        Store an immutable audit record of one orchestration.

        Args:
            conversation_id: Conversation the orchestration ran in
            record: Serialized orchestration result
        """
        pass
