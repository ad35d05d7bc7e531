"""Dungeon crawl demonstrating single and autonomous decision streams.

By default the example runs the deterministic rule-based agent (no LLM calls):

    python examples/dungeon/run.py --steps 6

To let an LLM drive the agent (requires provider, model, API key), pass
`--llm`:

    python examples/dungeon/run.py --llm --steps 4

Environment variables expected when `--llm` is used:
- `LLM_PROVIDER` (e.g., `openai`, `anthropic`, `ollama`)
- `LLM_MODEL` (e.g., `gpt-4o-mini`)
- Provider-specific API key (e.g., `OPENAI_API_KEY`)
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from playagent import (
    AgentRuntime,
    ChunkType,
    JsonPersistence,
    LLMModelClient,
    RuleBasedModelClient,
    ScenarioLoader,
)
from playagent.config import Config

SCENARIOS_DIR = Path(__file__).resolve().parent.parent / "scenarios"

CHUNK_PREFIX = {
    ChunkType.PROVIDER_CONTEXT: "  [context]",
    ChunkType.THOUGHT: "  [think]",
    ChunkType.TOOL_CALL: "  [tool]",
    ChunkType.TOOL_RESULT: "  [result]",
    ChunkType.SESSION_UPDATE: "[session]",
    ChunkType.ERROR: "[error]",
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dungeon crawl with a game-playing agent")
    parser.add_argument("--llm", action="store_true", help="Use an LLM instead of the rule-based agent")
    parser.add_argument("--steps", type=int, default=5, help="Maximum autonomous actions")
    parser.add_argument("--scenario", default="goblin_cave", help="Scenario name under examples/scenarios")
    parser.add_argument("--context", action="store_true", help="Print provider context fragments")
    parser.add_argument("--archive", type=Path, default=None, help="Directory for JSON session archives")
    parser.add_argument("--export", action="store_true", help="Print the XML event log at the end")
    return parser.parse_args()


def print_chunk(chunk, show_context: bool) -> None:
    if chunk.type is ChunkType.PROVIDER_CONTEXT:
        if show_context and chunk.content:
            print(f"{CHUNK_PREFIX[chunk.type]} {chunk.data.get('provider')}:")
            for line in chunk.content.splitlines():
                print(f"      {line}")
        return
    if chunk.type is ChunkType.TOOL_CALL:
        print(f"{CHUNK_PREFIX[chunk.type]} {chunk.content}({chunk.data.get('arguments')})")
        return
    if chunk.type is ChunkType.SESSION_UPDATE:
        data = chunk.data
        print(
            f"{CHUNK_PREFIX[chunk.type]} {data.get('reason')}: actions={data.get('action_count')} "
            f"reward={data.get('total_reward'):+.2f} status={data.get('status')}"
        )
        return
    print(f"{CHUNK_PREFIX[chunk.type]} {chunk.content}")


async def main(args: argparse.Namespace) -> None:
    model_client = RuleBasedModelClient()
    if args.llm:
        try:
            Config.validate()
            model_client = LLMModelClient()
        except ValueError as exc:
            print(f"[warning] {exc}. Falling back to the rule-based agent.")

    config, game_state = ScenarioLoader(SCENARIOS_DIR).load(args.scenario)
    if args.llm and isinstance(model_client, LLMModelClient):
        config = config.model_copy(update={"model": Config.LLM_MODEL})

    persistence = JsonPersistence(args.archive) if args.archive else None
    async with AgentRuntime(model_client, persistence=persistence) as runtime:
        session_id = runtime.create_session(config, game_state)
        print(f"Session {session_id} for {config.personality.name} in {game_state.environment}")

        async for chunk in runtime.stream_decision(session_id, "autonomous", max_steps=args.steps):
            print_chunk(chunk, args.context)

        snapshot = runtime.get_session_snapshot(session_id)
        stats = runtime.session_statistics(session_id)
        print()
        print(f"Final environment: {snapshot.game_state.environment}")
        print(f"Inventory: {', '.join(item.name for item in snapshot.game_state.inventory) or '(empty)'}")
        print(
            f"Actions: {stats.total_actions}  Reward: {stats.total_reward:+.2f}  "
            f"Success rate: {stats.success_rate:.0%}"
        )

        if args.export:
            print(runtime.export_event_log(session_id, ["tool_call", "tool_result", "evaluator_insight"], limit=20))

        await runtime.control_session(session_id, "end")


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(main(args))
