"""Tests for the bounded per-session memory store."""

from playagent.memory import MemoryStore


def test_recent_is_newest_first():
    memory = MemoryStore(capacity=10)
    for i in range(4):
        memory.add(f"note {i}")

    assert [m.content for m in memory.recent(2)] == ["note 3", "note 2"]
    assert memory.recent(0) == []


def test_top_orders_by_importance_then_recency():
    memory = MemoryStore(capacity=10)
    memory.add("old important", importance=8)
    memory.add("trivial", importance=2)
    memory.add("new important", importance=8)

    assert [m.content for m in memory.top(2)] == ["new important", "old important"]


def test_eviction_drops_least_important_oldest_first():
    memory = MemoryStore(capacity=3)
    memory.add("keep high", importance=9)
    memory.add("low one", importance=2)
    memory.add("low two", importance=2)
    memory.add("incoming", importance=5)

    contents = [m.content for m in memory.all()]
    assert len(memory) == 3
    assert "low one" not in contents
    assert contents == ["keep high", "low two", "incoming"]


def test_tags():
    memory = MemoryStore(capacity=5)
    memory.add("Reached the crypt", tags=["discovery", "location:crypt"])

    assert memory.has_tag("location:crypt")
    assert not memory.has_tag("location:forest")
    assert len(memory.with_tag("discovery")) == 1


def test_relevant_prefers_keyword_hits():
    memory = MemoryStore(capacity=10)
    memory.add("Goblins guard the bridge", importance=4, tags=["danger"])
    memory.add("The merchant sells potions", importance=6)
    memory.add("Weather is foggy", importance=3)

    results = memory.relevant("goblins bridge", limit=2)
    assert results[0].content == "Goblins guard the bridge"
    assert all("Weather" not in m.content for m in results)


def test_relevant_falls_back_to_top_without_matches():
    memory = MemoryStore(capacity=10)
    memory.add("a", importance=3)
    memory.add("b", importance=7)

    assert [m.content for m in memory.relevant("dragon", limit=1)] == ["b"]
