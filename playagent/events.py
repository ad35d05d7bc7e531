"""Append-only per-session event log with XML export."""

from __future__ import annotations

import re
import threading
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence
from xml.etree import ElementTree as ET

from playagent.config import Config
from playagent.schemas import Event, EventPayload, EventType, utc_now

# Anything outside the XML 1.0 Char production makes the export unparseable.
_INVALID_XML_CHARS = re.compile("[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


class EventLog:
    """Ordered record of everything that happened in one session.

    Events are never mutated, removed or reordered. Timestamps are clamped so
    they never go backwards within a log, which keeps append order and
    timestamp order identical even if the wall clock steps back.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def append(self, payload: EventPayload, *, source: str) -> Event:
        with self._lock:
            timestamp = utc_now()
            if self._events and timestamp < self._events[-1].timestamp:
                timestamp = self._events[-1].timestamp
            event = Event(
                type=EventType(payload.kind),
                timestamp=timestamp,
                payload=payload,
                source=source,
            )
            self._events.append(event)
            return event

    def events(self, types: Optional[Iterable[EventType | str]] = None) -> List[Event]:
        wanted = _normalize_types(types)
        with self._lock:
            snapshot = list(self._events)
        if wanted is None:
            return snapshot
        return [event for event in snapshot if event.type in wanted]

    def count(self, event_type: EventType | str) -> int:
        return len(self.events([event_type]))

    def counts_by_type(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for event in self.events():
            counts[event.type.value] = counts.get(event.type.value, 0) + 1
        return counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events())

    def export_xml(
        self,
        event_types: Optional[Sequence[EventType | str]] = None,
        limit: Optional[int] = None,
    ) -> str:
        """Serialize the log as an ``<events>`` document.

        Events are filtered to ``event_types`` (when given) first, then only the
        most recent ``limit`` are kept, in chronological order. A missing or
        non-positive limit falls back to ``Config.EVENT_EXPORT_LIMIT``.
        """

        if limit is None or limit <= 0:
            limit = Config.EVENT_EXPORT_LIMIT

        selected = self.events(event_types)[-limit:]

        root = ET.Element("events", {"session": _clean_text(self.session_id), "count": str(len(selected))})
        for event in selected:
            element = ET.SubElement(
                root,
                "event",
                {
                    "type": event.type.value,
                    "timestamp": event.timestamp.isoformat(),
                    "id": event.id,
                    "source": _clean_text(event.source),
                },
            )
            payload = event.payload.model_dump(mode="json", exclude={"kind"})
            for key, value in payload.items():
                _append_value(element, key, value)

        ET.indent(root)
        return ET.tostring(root, encoding="unicode", xml_declaration=True)


def _normalize_types(types: Optional[Iterable[EventType | str]]) -> Optional[set[EventType]]:
    if types is None:
        return None
    return {EventType(t) for t in types}


def _append_value(parent: ET.Element, tag: str, value: Any) -> None:
    child = ET.SubElement(parent, _safe_tag(tag))
    if isinstance(value, dict):
        for key, nested in value.items():
            _append_value(child, key, nested)
    elif isinstance(value, list):
        for item in value:
            _append_value(child, "item", item)
    elif value is None:
        child.text = ""
    elif isinstance(value, bool):
        child.text = "true" if value else "false"
    elif isinstance(value, datetime):
        child.text = value.isoformat()
    else:
        child.text = _clean_text(str(value))


def _clean_text(text: str) -> str:
    return _INVALID_XML_CHARS.sub("\ufffd", text)


def _safe_tag(name: str) -> str:
    # Payload keys come from pydantic fields or game-supplied dict keys.
    cleaned = "".join(ch if ch.isalnum() or ch in "_-." else "_" for ch in str(name))
    if not cleaned or not (cleaned[0].isalpha() or cleaned[0] == "_"):
        cleaned = f"_{cleaned}"
    return cleaned
