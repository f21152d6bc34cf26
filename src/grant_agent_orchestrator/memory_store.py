"""
Shared memory store for notes exchanged between agents.
"""

import logging
from typing import Any, Iterable, List, Optional

from .models import AgentRole, MemoryType, SharedMemoryEntry


DEFAULT_CAPACITY = 100


class SharedMemoryStore:
    """
    Bounded store of shared memory entries.

    Eviction keeps the ``capacity`` entries with the highest relevance, so an
    old but highly relevant entry outlives newer low-relevance ones. After an
    eviction the internal order is relevance descending (ties keep their
    previous relative order); before any eviction it is insertion order.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, logger: Optional[logging.Logger] = None):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.logger = logger or logging.getLogger("grant_agent_orchestrator")
        self._entries: List[SharedMemoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        type: MemoryType,
        source: AgentRole,
        content: Any = None,
        tags: Optional[Iterable[str]] = None,
        relevance: float = 0.5,
    ) -> SharedMemoryEntry:
        """Store a new entry, evicting the least relevant ones above capacity."""
        entry = SharedMemoryEntry(
            type=type,
            source=source,
            content=content,
            tags=list(tags or []),
            relevance=relevance,
        )
        self._entries.append(entry)

        if len(self._entries) > self.capacity:
            self._entries.sort(key=lambda item: item.relevance, reverse=True)
            evicted = self._entries[self.capacity:]
            self._entries = self._entries[:self.capacity]
            self.logger.debug(f"Shared memory evicted {len(evicted)} entries below relevance {self._entries[-1].relevance}")

        return entry

    def query(
        self,
        type: Optional[MemoryType] = None,
        tags: Optional[Iterable[str]] = None,
        source: Optional[AgentRole] = None,
    ) -> List[SharedMemoryEntry]:
        """Entries matching every given filter; tags match on any overlap."""
        wanted_tags = set(tags) if tags is not None else None
        results = []
        for entry in self._entries:
            if type is not None and entry.type != type:
                continue
            if source is not None and entry.source != source:
                continue
            if wanted_tags is not None and not wanted_tags.intersection(entry.tags):
                continue
            results.append(entry)
        return results

    def entries(self) -> List[SharedMemoryEntry]:
        return [entry.model_copy(deep=True) for entry in self._entries]

    def clear(self) -> None:
        self._entries = []
