"""
PersistenceStrategy interface for archiving finished sessions.

Persistence is OPTIONAL. The runtime keeps live sessions in memory only; a
persistence strategy receives a complete archive (snapshot, event log,
memories, statistics) when a session ends, expires, or the runtime shuts
down.

Two included implementations:
1. InMemoryPersistence - dict-based, data lost on exit (tests, prototyping)
2. JsonPersistence - one pretty-printed JSON file per session

Usage pattern:
    persistence = JsonPersistence()  # Config.ARCHIVE_DIR
    await persistence.initialize()
    await persistence.save_session(archive)
    archive = await persistence.load_session(session_id)
    await persistence.close()
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from playagent.config import Config
from playagent.schemas import Event, MemoryEntry, SessionSnapshot, SessionStatistics


class SessionArchive(BaseModel):
    """Everything recorded for one session, ready to store."""

    snapshot: SessionSnapshot
    events: List[Event] = Field(default_factory=list)
    memories: List[MemoryEntry] = Field(default_factory=list)
    statistics: SessionStatistics = Field(default_factory=SessionStatistics)

    @property
    def session_id(self) -> str:
        return self.snapshot.session_id


class PersistenceStrategy(ABC):
    """Abstract storage backend for session archives."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create directories, open connections)."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def save_session(self, archive: SessionArchive) -> None:
        """Store (or overwrite) the archive for ``archive.session_id``."""

    @abstractmethod
    async def load_session(self, session_id: str) -> Optional[SessionArchive]:
        """Return the stored archive, or None if unknown."""

    @abstractmethod
    async def list_sessions(self) -> List[str]:
        """Return the ids of all archived sessions."""


class InMemoryPersistence(PersistenceStrategy):
    """Dict-backed archive store. Data is lost when the process exits."""

    def __init__(self) -> None:
        self.archives: Dict[str, SessionArchive] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def save_session(self, archive: SessionArchive) -> None:
        self.archives[archive.session_id] = archive.model_copy(deep=True)

    async def load_session(self, session_id: str) -> Optional[SessionArchive]:
        archive = self.archives.get(session_id)
        return archive.model_copy(deep=True) if archive else None

    async def list_sessions(self) -> List[str]:
        return sorted(self.archives)


class JsonPersistence(PersistenceStrategy):
    """File-based archive store.

    Directory structure:
    ```
    {base_path}/
      {session_id}.json
    ```

    File I/O runs in a worker thread (asyncio.to_thread) so archiving never
    blocks other sessions.
    """

    def __init__(self, base_path: Optional[Path | str] = None) -> None:
        self.base_path = Path(base_path) if base_path else Config.ARCHIVE_DIR

    async def initialize(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

    async def close(self) -> None:
        pass

    def _path(self, session_id: str) -> Path:
        return self.base_path / f"{session_id}.json"

    async def save_session(self, archive: SessionArchive) -> None:
        payload = archive.model_dump_json(indent=2)
        await asyncio.to_thread(self._path(archive.session_id).write_text, payload, encoding="utf-8")

    async def load_session(self, session_id: str) -> Optional[SessionArchive]:
        path = self._path(session_id)
        if not path.exists():
            return None
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        return SessionArchive.model_validate_json(raw)

    async def list_sessions(self) -> List[str]:
        if not self.base_path.exists():
            return []
        return sorted(path.stem for path in self.base_path.glob("*.json"))


__all__ = ["SessionArchive", "PersistenceStrategy", "InMemoryPersistence", "JsonPersistence"]
