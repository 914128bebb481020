"""
Per-persona, per-conversation agent memory.

Each AgentMemory owns a small in-process buffer of recent entries and, optionally,
a reference to the durable memory log. The buffer answers recency recall whenever
it has anything in it; the log is only read on a cold start or for relevance
search, and it is written best-effort on every append.

Memory improves generation but is never required for it, so every storage failure
here degrades to an empty result or a skipped write plus a MemoryDegradedWarning.
"""

import json
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from ensemble_core.llm.interfaces.llm_provider_interface import Message, MessageRole
from ensemble_core.storage.interfaces.memory_log_interface import MemoryLogInterface, MemoryKey
from ensemble_core.monitoring.structured_logger import get_logger

DEFAULT_BUFFER_SIZE = 10
DEFAULT_SEARCH_WINDOW = 50


@dataclass(frozen=True)
class MemoryEntry:
    """One remembered message."""
    role: str
    content: str
    timestamp: float = field(default_factory=time.time)

    def to_record(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "MemoryEntry":
        return cls(
            role=record["role"],
            content=record["content"],
            timestamp=record.get("timestamp") or 0.0,
        )

    def to_message(self) -> Message:
        return Message(MessageRole(self.role), self.content)


@dataclass
class MemoryDegradedWarning:
    """Record of a memory operation that fell back because storage failed."""
    persona_id: str
    conversation_id: str
    operation: str
    cause: str
    timestamp: float = field(default_factory=time.time)


class AgentMemory:
    """
    Memory for one (persona, conversation) pair.

    The buffer is guarded by a per-instance lock that is never held across an
    await, so instances for different keys never contend and store I/O never
    blocks other writers.
    """

    def __init__(
        self,
        key: MemoryKey,
        store: Optional[MemoryLogInterface] = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        search_window: int = DEFAULT_SEARCH_WINDOW,
    ):
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be at least 1, got {buffer_size}")

        self.key = key
        self.store = store
        self.buffer_size = buffer_size
        self.search_window = search_window
        self.last_degradation: Optional[MemoryDegradedWarning] = None

        # deque(maxlen) evicts the oldest entry on overflow
        self._buffer: Deque[MemoryEntry] = deque(maxlen=buffer_size)
        self._lock = threading.Lock()

        self.logger = get_logger(__name__, component="agent_memory").with_context(
            persona=key.persona_id, conversation=key.conversation_id
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def _snapshot(self) -> List[MemoryEntry]:
        with self._lock:
            return list(self._buffer)

    def _degrade(self, operation: str, error: Exception) -> None:
        self.last_degradation = MemoryDegradedWarning(
            persona_id=self.key.persona_id,
            conversation_id=self.key.conversation_id,
            operation=operation,
            cause=f"{type(error).__name__}: {error}",
        )
        self.logger.warning(
            "Memory degraded",
            operation=operation,
            error=self.last_degradation.cause,
        )

    async def append(self, entry: MemoryEntry) -> None:
        """
        Remember ``entry``.

        The buffer is updated first and always; the durable write may fail
        without affecting the caller.
        """
        with self._lock:
            self._buffer.append(entry)

        if self.store is None:
            return

        try:
            await self.store.append(self.key, entry.to_record())
        except Exception as e:
            self._degrade("append", e)

    async def add(self, role: str, content: str) -> MemoryEntry:
        """Build an entry stamped now and append it."""
        entry = MemoryEntry(role=role, content=content)
        await self.append(entry)
        return entry

    async def recent(self, limit: int = DEFAULT_BUFFER_SIZE) -> List[MemoryEntry]:
        """
        Up to ``limit`` most recent entries, oldest first.

        Reads the durable log only when the buffer is empty.
        """
        if limit <= 0:
            return []

        snapshot = self._snapshot()
        if snapshot:
            return snapshot[-limit:]

        if self.store is None:
            return []

        try:
            records = await self.store.query_recent(self.key, limit)
            # The log answers newest-first
            return [MemoryEntry.from_record(record) for record in reversed(records)]
        except Exception as e:
            self._degrade("recent", e)
            return []

    async def search(self, query: str, limit: int = 5) -> List[MemoryEntry]:
        """
        Rank entries by how many query terms they contain.

        Each whitespace-separated, lowercased term scores one point if it occurs
        anywhere in the entry's JSON serialization. Ties go to the more recent
        entry. This is a plain lexical heuristic, not semantic search.
        """
        if limit <= 0:
            return []

        candidates = self._snapshot()
        if not candidates and self.store is not None:
            try:
                records = await self.store.query_window(self.key, self.search_window)
                candidates = [MemoryEntry.from_record(record) for record in reversed(records)]
            except Exception as e:
                self._degrade("search", e)
                return []

        terms = query.lower().split()
        scored = []
        for position, entry in enumerate(candidates):
            serialized = json.dumps(entry.to_record(), ensure_ascii=False).lower()
            score = sum(1 for term in terms if term in serialized)
            scored.append((score, position, entry))

        scored.sort(key=lambda item: (-item[0], -item[1]))
        return [entry for _, _, entry in scored[:limit]]

    def clear(self) -> None:
        """Empty the in-process buffer; the durable log is left untouched."""
        with self._lock:
            self._buffer.clear()
