"""
Per-session memory store.

Evaluators append short insights (lessons, discoveries, progress notes) after
every decision; the memory provider reads them back when assembling the next
prompt.

Design principle: keep the store bounded. When capacity is reached the least
important entry is evicted, and among equally important entries the oldest
goes first.
"""

from __future__ import annotations

import threading
from typing import Iterable, List, Optional

from playagent.config import Config
from playagent.schemas import MemoryEntry


class MemoryStore:
    """Bounded, importance-aware list of MemoryEntry objects."""

    def __init__(
        self,
        capacity: Optional[int] = None,
        *,
        recency_weight: float = 0.65,
        importance_weight: float = 0.35,
    ) -> None:
        self.capacity = max(capacity or Config.MEMORY_CAPACITY, 1)
        self.recency_weight = recency_weight
        self.importance_weight = importance_weight
        self._entries: List[MemoryEntry] = []
        self._lock = threading.Lock()

    def add(
        self,
        content: str,
        importance: int = 5,
        tags: Optional[Iterable[str]] = None,
    ) -> MemoryEntry:
        entry = MemoryEntry(content=content, importance=importance, tags=tuple(tags or ()))
        self.append(entry)
        return entry

    def append(self, entry: MemoryEntry) -> None:
        with self._lock:
            self._entries.append(entry)
            while len(self._entries) > self.capacity:
                self._evict_one()

    def extend(self, entries: Iterable[MemoryEntry]) -> None:
        for entry in entries:
            self.append(entry)

    def _evict_one(self) -> None:
        # min() returns the first minimum, i.e. the oldest least-important entry.
        victim = min(range(len(self._entries)), key=lambda i: self._entries[i].importance)
        del self._entries[victim]

    def all(self) -> List[MemoryEntry]:
        with self._lock:
            return list(self._entries)

    def recent(self, limit: int = 10) -> List[MemoryEntry]:
        """Most recent entries, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            return list(reversed(self._entries[-limit:]))

    def top(self, k: int) -> List[MemoryEntry]:
        """Top-k entries by importance, newer first among ties."""
        if k <= 0:
            return []
        with self._lock:
            indexed = list(enumerate(self._entries))
        indexed.sort(key=lambda pair: (pair[1].importance, pair[0]), reverse=True)
        return [entry for _, entry in indexed[:k]]

    def with_tag(self, tag: str) -> List[MemoryEntry]:
        with self._lock:
            return [entry for entry in self._entries if tag in entry.tags]

    def has_tag(self, tag: str) -> bool:
        with self._lock:
            return any(tag in entry.tags for entry in self._entries)

    def relevant(self, query: str, limit: int = 5) -> List[MemoryEntry]:
        """Rank entries by a blend of recency and importance plus keyword hits.

        An empty query degrades to plain recency/importance ranking. Entries
        with no keyword hit are dropped when the query has terms, unless nothing
        matches at all.
        """

        with self._lock:
            candidates = list(self._entries)
        if not candidates or limit <= 0:
            return []

        terms = [term for term in query.lower().replace(",", " ").split() if term]
        newest = len(candidates) - 1

        scored: List[tuple[float, int, MemoryEntry]] = []
        for index, entry in enumerate(candidates):
            recency = 1.0 / (1.0 + (newest - index))
            importance = entry.importance / 10.0
            score = self.recency_weight * recency + self.importance_weight * importance

            if terms:
                text = entry.content.lower()
                tag_text = " ".join(entry.tags).lower()
                hits = 0.0
                for term in terms:
                    if term in text:
                        hits += 2.0
                    if term in tag_text:
                        hits += 1.0
                if hits <= 0.0:
                    continue
                score += hits

            scored.append((score, index, entry))

        if not scored:
            return self.top(limit)

        scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in scored[:limit]]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
