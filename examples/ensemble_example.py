#!/usr/bin/env python3
"""
Agent Ensemble Example - personas, memory and multi-agent orchestration

This example builds an AgentEnsemble from configuration and shows:
- Single-persona generation with memory recall
- Provider failover when the preferred vendor is unavailable
- Multi-persona orchestration with a synthesized answer
- Provider status reporting

Without any API keys the example runs entirely on the scripted fake provider.
To use real vendors, set one or more of:
    - export OPENAI_API_KEY="your-key"
    - export ANTHROPIC_API_KEY="your-key"
    - export GOOGLE_API_KEY="your-key"
    - export LLM_PROVIDERS="openai,anthropic,gemini"

Usage:
    python examples/ensemble_example.py
"""

import asyncio
import json
import os

from ensemble_core.agents import AgentEnsemble, GenerationOptions, create_agent_ensemble
from ensemble_core.config.config_manager import AppConfig, LogLevel
from ensemble_core.monitoring.structured_logger import configure_logging


def build_config() -> AppConfig:
    config = AppConfig()
    if os.getenv("LLM_PROVIDERS"):
        config.llm.providers = [p.strip() for p in os.environ["LLM_PROVIDERS"].split(",") if p.strip()]
    else:
        config.llm.providers = ["fake"]
        config.llm.fake.default_response = "A scripted answer from the offline provider."
    config.storage.backend = "none"
    config.logging.level = LogLevel.WARNING
    return config


async def demonstrate_single_persona(ensemble: AgentEnsemble):
    print("=" * 60)
    print("SINGLE PERSONA WITH MEMORY")
    print("=" * 60)

    first = await ensemble.generate_agent_response(
        "market_research", "What matters most when pricing a B2B analytics tool?"
    )
    print(f"Provider: {first.provider_used} (attempts: {first.attempt_count})")
    print(f"Response: {first.text}")

    follow_up = await ensemble.generate_text(
        "market_research", "Summarize your previous answer in one sentence."
    )
    print(f"Follow-up: {follow_up}")

    memory = ensemble.get_agent("market_research").memory
    print(f"Entries in memory: {len(memory)}")


async def demonstrate_orchestration(ensemble: AgentEnsemble):
    print("\n" + "=" * 60)
    print("MULTI-PERSONA ORCHESTRATION")
    print("=" * 60)

    result = await ensemble.orchestrate_task(
        "Plan the launch of a privacy-focused note taking app",
        ["market_research", "creative_content", "ethics_advisor", "strategic_planning"],
        GenerationOptions(max_tokens=500),
    )

    for persona_id, text in result.contributions.items():
        print(f"\n## {persona_id}\n{text}")

    print(f"\nSynthesized by: {result.synthesized_by or 'first contribution'}")
    print(f"Synthesis:\n{result.synthesis}")
    if result.errors:
        print(f"Errors: {result.errors}")


async def main():
    config = build_config()
    configure_logging(config.logging.level, config.logging.json_format)
    ensemble = create_agent_ensemble(config)

    if not await ensemble.connect():
        print("No provider could be connected")
        return

    try:
        await demonstrate_single_persona(ensemble)
        await demonstrate_orchestration(ensemble)

        print("\n" + "=" * 60)
        print("PROVIDER STATUS")
        print("=" * 60)
        print(json.dumps(ensemble.router.get_provider_status(), indent=2, default=str))
    finally:
        await ensemble.close()


if __name__ == "__main__":
    asyncio.run(main())
