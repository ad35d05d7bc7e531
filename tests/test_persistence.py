"""Tests for session archive persistence backends."""

import pytest

from playagent.persistence import InMemoryPersistence, JsonPersistence, SessionArchive
from playagent.schemas import Decision, EventType, SessionStatus, ThoughtPayload
from playagent.sessions import Session


def make_archive(config_factory, state_factory) -> SessionArchive:
    session = Session(config_factory(), state_factory())
    session.transition(SessionStatus.RUNNING)
    session.event_log.append(ThoughtPayload(content="Checking the chest.", cycle=1), source="model")
    session.memory.add("The chest holds herbs", importance=6, tags=("entity:chest_1",))
    session.record_decision(Decision(cycle=1, rationale="Checking the chest."))
    session.add_reward(1.25)
    return SessionArchive(
        snapshot=session.snapshot(),
        events=session.event_log.events(),
        memories=session.memory.all(),
        statistics=session.statistics(),
    )


@pytest.mark.asyncio
async def test_in_memory_round_trip(config_factory, state_factory):
    persistence = InMemoryPersistence()
    await persistence.initialize()
    archive = make_archive(config_factory, state_factory)

    await persistence.save_session(archive)
    loaded = await persistence.load_session(archive.session_id)

    assert loaded == archive
    assert loaded is not archive
    assert await persistence.list_sessions() == [archive.session_id]
    assert await persistence.load_session("unknown") is None
    await persistence.close()


@pytest.mark.asyncio
async def test_in_memory_stores_copies(config_factory, state_factory):
    persistence = InMemoryPersistence()
    archive = make_archive(config_factory, state_factory)
    await persistence.save_session(archive)

    archive.snapshot.game_state.stats["health"] = 0

    loaded = await persistence.load_session(archive.session_id)
    assert loaded.snapshot.game_state.stats["health"] == 100


@pytest.mark.asyncio
async def test_json_round_trip(tmp_path, config_factory, state_factory):
    persistence = JsonPersistence(tmp_path / "archive")
    assert await persistence.list_sessions() == []
    await persistence.initialize()
    archive = make_archive(config_factory, state_factory)

    await persistence.save_session(archive)
    loaded = await persistence.load_session(archive.session_id)

    assert (tmp_path / "archive" / f"{archive.session_id}.json").exists()
    assert loaded.snapshot.session_id == archive.session_id
    assert loaded.snapshot.total_reward == 1.25
    assert loaded.snapshot.action_history[0].rationale == "Checking the chest."
    assert [e.type for e in loaded.events] == [EventType.THOUGHT]
    assert isinstance(loaded.events[0].payload, ThoughtPayload)
    assert loaded.memories[0].tags == ("entity:chest_1",)
    assert loaded.statistics.total_actions == 1
    assert await persistence.list_sessions() == [archive.session_id]


@pytest.mark.asyncio
async def test_json_missing_session(tmp_path):
    persistence = JsonPersistence(tmp_path)
    await persistence.initialize()
    assert await persistence.load_session("nope") is None
