"""Tests for the append-only event log and its XML export."""

import xml.etree.ElementTree as ET

from playagent.events import EventLog
from playagent.schemas import (
    ErrorPayload,
    EventType,
    SessionStatus,
    SessionUpdatePayload,
    ThoughtPayload,
    ToolCallPayload,
)


def _filled_log(n_thoughts: int = 3) -> EventLog:
    log = EventLog("s-1")
    for i in range(n_thoughts):
        log.append(ThoughtPayload(content=f"thought {i}", cycle=1), source="model")
        log.append(ToolCallPayload(tool="move", arguments={"direction": "north"}, cycle=1), source="tool_invoker")
    log.append(SessionUpdatePayload(status=SessionStatus.RUNNING, reason="decision_complete"), source="decision_loop")
    return log


def test_append_assigns_type_and_non_decreasing_timestamps():
    log = _filled_log()
    events = log.events()

    assert len(log) == 7
    assert events[0].type is EventType.THOUGHT
    assert all(a.timestamp <= b.timestamp for a, b in zip(events, events[1:]))
    assert log.count("tool_call") == 3
    assert log.counts_by_type() == {"thought": 3, "tool_call": 3, "session_update": 1}
    assert events[-1].type is EventType.SESSION_UPDATE


def test_export_xml_structure():
    log = EventLog("s-1")
    log.append(ToolCallPayload(tool="move", arguments={"direction": "north", "distance": 2}, cycle=1), source="tool_invoker")
    log.append(ErrorPayload(error_kind="provider_failure", component="goals", message="boom"), source="goals")

    root = ET.fromstring(log.export_xml())
    assert root.tag == "events"
    assert root.get("count") == "2"

    first, second = list(root)
    assert first.get("type") == "tool_call"
    assert first.get("timestamp")
    assert first.find("tool").text == "move"
    assert first.find("arguments/direction").text == "north"
    assert first.find("kind") is None
    assert second.get("source") == "goals"
    assert second.find("component").text == "goals"


def test_export_filters_then_keeps_most_recent():
    log = _filled_log(n_thoughts=5)

    root = ET.fromstring(log.export_xml(event_types=["thought"], limit=2))
    contents = [event.find("content").text for event in root]

    assert contents == ["thought 3", "thought 4"]
    assert all(event.get("type") == "thought" for event in root)


def test_export_limit_bounds_and_subset():
    log = _filled_log(n_thoughts=40)
    full_ids = [event.id for event in log.events()]

    root = ET.fromstring(log.export_xml(limit=10))
    ids = [event.get("id") for event in root]
    stamps = [event.get("timestamp") for event in root]

    assert len(ids) == 10
    assert ids == full_ids[-10:]
    assert stamps == sorted(stamps)


def test_export_non_positive_limit_uses_default():
    log = _filled_log(n_thoughts=40)

    root = ET.fromstring(log.export_xml(limit=0))
    assert len(root) == 50


def test_export_empty_log():
    root = ET.fromstring(EventLog("empty").export_xml())
    assert root.get("count") == "0"
    assert list(root) == []


def test_export_replaces_characters_xml_cannot_carry():
    log = EventLog("s-1")
    log.append(ThoughtPayload(content="bad \x01 char\x0b", cycle=1), source="mo\x00del")
    log.append(ToolCallPayload(tool="say", arguments={"text": "tab\tand\nnewline"}, cycle=1), source="tool_invoker")

    root = ET.fromstring(log.export_xml())

    thought, call = root.findall("event")
    assert thought.findtext("content") == "bad � char�"
    assert thought.get("source") == "mo�del"
    assert call.find("arguments").findtext("text") == "tab\tand\nnewline"
