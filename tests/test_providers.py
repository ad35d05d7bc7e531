"""Tests for the five context providers and their pipeline."""

from playagent.cognition.providers import GoalsProvider, ProviderPipeline
from playagent.schemas import DialogueContext, Entity, EventType, Quest, QuestObjective
from playagent.sessions import Session


def _session(config_factory, state_factory, **state_overrides) -> Session:
    return Session(config_factory(), state_factory(**state_overrides))


def test_fixed_provider_order(config_factory, state_factory):
    session = _session(config_factory, state_factory)
    fragments = ProviderPipeline().collect(session)

    assert [f.name for f in fragments] == ["game_state", "goals", "memory", "social", "history"]


def test_collect_is_deterministic(config_factory, state_factory):
    session = _session(config_factory, state_factory)
    pipeline = ProviderPipeline()

    assert pipeline.collect(session) == pipeline.collect(session)


def test_game_state_fragment_contents(config_factory, state_factory):
    session = _session(config_factory, state_factory)
    text = ProviderPipeline().collect(session)[0].text

    assert "Environment: cave_entrance" in text
    assert "health 100/100" in text
    assert "Old Chest (id=chest_1; chest)" in text
    assert "Bandage x1 (id=bandage)" in text


def test_goals_and_social_fragments(config_factory, state_factory):
    session = _session(
        config_factory,
        state_factory,
        entities=[Entity(id="mara", type="merchant", name="Mara")],
        relationships={"mara": "friendly", "old_hermit": "wary"},
        dialogue=DialogueContext(npc_id="mara", npc_name="Mara", conversation_history=["Mara: Welcome!"]),
        active_quests=[
            Quest(
                id="q1",
                name="Herbalist",
                objectives=[
                    QuestObjective(id="o1", description="Collect herbs", progress=1, target=3),
                    QuestObjective(id="o2", description="Return", completed=True),
                ],
            )
        ],
    )
    fragments = {f.name: f.text for f in ProviderPipeline().collect(session)}

    assert "Primary: Explore the cave" in fragments["goals"]
    assert "Quest 'Herbalist' (1/2 objectives)" in fragments["goals"]
    assert "[ ] Collect herbs (1/3)" in fragments["goals"]
    assert "Talking with Mara" in fragments["social"]
    assert "- Mara (id=mara): friendly" in fragments["social"]
    assert "old_hermit=wary" in fragments["social"]


def test_empty_memory_and_history(config_factory, state_factory):
    session = _session(config_factory, state_factory)
    fragments = {f.name: f.text for f in ProviderPipeline().collect(session)}

    assert fragments["memory"] == "No memories yet."
    assert fragments["history"] == "No actions taken yet."


def test_memory_fragment_uses_top_entries(config_factory, state_factory):
    session = _session(config_factory, state_factory)
    session.memory.add("Goblins hit hard", importance=9)
    session.memory.add("Trivia", importance=1)

    text = ProviderPipeline().collect(session)[2].text
    assert text.splitlines()[0] == "- (9/10) Goblins hit hard"


def test_provider_failure_is_isolated(monkeypatch, config_factory, state_factory):
    session = _session(config_factory, state_factory)

    def broken(self, session):
        raise RuntimeError("quest data malformed")

    monkeypatch.setattr(GoalsProvider, "render", broken)
    fragments = ProviderPipeline().collect(session)

    assert [f.name for f in fragments] == ["game_state", "goals", "memory", "social", "history"]
    assert fragments[1].text == ""
    assert fragments[0].text and fragments[2].text

    errors = session.event_log.events([EventType.ERROR])
    assert len(errors) == 1
    assert errors[0].source == "goals"
    assert errors[0].payload.component == "goals"
    assert "quest data malformed" in errors[0].payload.message
