"""
Unit tests for AgentEnsemble.

These tests verify single-persona generation, orchestration fan-out, synthesis,
deferred memory write-back, cancellation and audit records.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ensemble_core.agents.engine import GenerationOptions
from ensemble_core.agents.ensemble import (
    AgentEnsemble,
    OrchestrationResult,
    build_agent_prompt,
    build_synthesis_prompt,
)
from ensemble_core.agents.errors import OrchestrationError
from ensemble_core.agents.personas import PersonaRegistry
from ensemble_core.config.config_manager import PersonaType
from ensemble_core.llm.interfaces.llm_provider_interface import ProviderError
from ensemble_core.llm.providers.fake.fake_provider import FakeLLMProvider
from ensemble_core.llm.retry import RetryPolicy
from ensemble_core.llm.router import AllProvidersExhaustedError, ProviderRouter
from ensemble_core.storage.backends.json_file.json_file_memory_log import JsonFileMemoryLog

TASK = "Launch a note-taking app in Japan"

A = PersonaType.MARKET_RESEARCH
B = PersonaType.CREATIVE_CONTENT
SYNTH = PersonaType.STRATEGIC_PLANNING


class ConcurrencyTracker:
    def __init__(self):
        self.active = 0
        self.peak = 0


class ScriptedProvider(FakeLLMProvider):
    """Echoing fake that refuses prompts containing any of ``fail_on``."""

    def __init__(self, name, fail_on=(), delay=0.0, tracker=None):
        super().__init__({"name": name, "delay": delay})
        self.fail_on = tuple(fail_on)
        self.tracker = tracker or ConcurrencyTracker()

    async def generate(self, request):
        self.tracker.active += 1
        self.tracker.peak = max(self.tracker.peak, self.tracker.active)
        try:
            text = await super().generate(request)
        finally:
            self.tracker.active -= 1

        if any(marker in request.last_user_content for marker in self.fail_on):
            raise ProviderError(f"{self.provider_name} refused", provider=self.provider_name)
        return text


def make_ensemble(fail_on=(), delay=0.0, tracker=None, store=None, **kwargs):
    tracker = tracker or ConcurrencyTracker()
    providers = {
        name: ScriptedProvider(name, fail_on=fail_on, delay=delay, tracker=tracker)
        for name in ("openai", "anthropic", "gemini")
    }
    router = ProviderRouter(providers, retry_policy=RetryPolicy(sleep=AsyncMock()))
    return AgentEnsemble(router, PersonaRegistry(), store=store, **kwargs)


def sent_prompts(ensemble):
    prompts = []
    for provider in ensemble.router.providers.values():
        prompts.extend(r.last_user_content for r in provider.requests)
    return prompts


class TestSinglePersonaGeneration:
    """Test generate_text and generate_agent_response."""

    @pytest.mark.asyncio
    async def test_generate_text_returns_string(self):
        ensemble = make_ensemble()

        text = await ensemble.generate_text("sales_negotiation", "Too expensive")

        assert text == "[anthropic] Too expensive"

    @pytest.mark.asyncio
    async def test_generate_agent_response_reports_provider(self):
        ensemble = make_ensemble()

        result = await ensemble.generate_agent_response(PersonaType.MARKET_RESEARCH, "Trends?")

        assert result.provider_used == "gemini"
        assert result.attempt_count == 1

    @pytest.mark.asyncio
    async def test_agents_are_cached_per_persona_and_conversation(self):
        ensemble = make_ensemble()

        first = ensemble.get_agent("ethics_advisor")
        again = ensemble.get_agent(PersonaType.ETHICS_ADVISOR)
        other_conversation = ensemble.get_agent("ethics_advisor", "conv-2")

        assert first is again
        assert first is not other_conversation
        assert other_conversation.memory.key.conversation_id == "conv-2"

    @pytest.mark.asyncio
    async def test_unknown_persona_uses_default(self):
        ensemble = make_ensemble()

        result = await ensemble.generate_agent_response("astrology", "Hello")

        assert result.provider_used == "gemini"
        assert ensemble.get_agent("astrology").persona.persona_id == PersonaType.TECHNICAL_ANALYSIS

    @pytest.mark.asyncio
    async def test_memory_is_scoped_by_conversation(self):
        ensemble = make_ensemble()

        await ensemble.generate_text(B, "first", GenerationOptions(conversation_id="c1"))

        assert len(ensemble.get_agent(B, "c1").memory) == 2
        assert len(ensemble.get_agent(B, "c2").memory) == 0

    def test_fan_out_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            make_ensemble(fan_out_limit=0)

    @pytest.mark.asyncio
    async def test_configured_failover_setting_survives_caller_options(self):
        ensemble = make_ensemble(failover_enabled=False)
        ensemble.router.providers["anthropic"].queue_failure(
            ProviderError("anthropic down", provider="anthropic", transient=False)
        )

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await ensemble.generate_text(
                "sales_negotiation", "Too expensive", GenerationOptions(max_tokens=200)
            )

        assert exc_info.value.providers_tried == ("anthropic",)
        assert ensemble.router.providers["openai"].call_count == 0

    @pytest.mark.asyncio
    async def test_explicit_failover_option_overrides_configured_setting(self):
        ensemble = make_ensemble(failover_enabled=False)
        ensemble.router.providers["anthropic"].queue_failure(
            ProviderError("anthropic down", provider="anthropic", transient=False)
        )

        result = await ensemble.generate_agent_response(
            "sales_negotiation", "Too expensive", GenerationOptions(failover_enabled=True)
        )

        assert result.provider_used == "openai"
        assert result.providers_tried == ("anthropic", "openai")


class TestOrchestration:
    """Test orchestrate_task."""

    @pytest.mark.asyncio
    async def test_failed_persona_gets_marker_and_is_left_out_of_synthesis(self):
        ensemble = make_ensemble(fail_on=("market research agent",))

        result = await ensemble.orchestrate_task(TASK, [A, B, SYNTH])

        assert list(result.contributions) == [A.value, B.value, SYNTH.value]
        assert result.contributions[A.value].startswith("[Error: ")
        assert A.value in result.errors

        b_text = f"[openai] {build_agent_prompt(TASK, B)}"
        assert result.contributions[B.value] == b_text

        expected_prompt = build_synthesis_prompt(TASK, [(B, b_text)])
        assert expected_prompt in sent_prompts(ensemble)
        assert result.synthesis == f"[openai] {expected_prompt}"
        assert result.synthesized_by == SYNTH.value

    def test_synthesis_prompt_format(self):
        prompt = build_synthesis_prompt("Do X", [(B, "idea one"), (A, "data two")])

        assert prompt == (
            "Task: Do X\n\n"
            "Agent contributions:\n"
            "## creative content agent:\nidea one\n\n"
            "## market research agent:\ndata two\n\n"
            "Please synthesize these perspectives into a comprehensive, coherent response "
            "that addresses the original task."
        )

    def test_agent_prompt_format(self):
        assert build_agent_prompt("Do X", PersonaType.LEGAL_COMPLIANCE) == (
            "Task: Do X\n\nProvide your specialized expertise as a legal compliance agent."
        )

    @pytest.mark.asyncio
    async def test_synthesis_call_excludes_memory(self):
        ensemble = make_ensemble()
        await ensemble.generate_text(SYNTH, "earlier chat")

        await ensemble.orchestrate_task(TASK, [B, SYNTH])

        synthesis_requests = [
            r for r in ensemble.router.providers["openai"].requests
            if "Agent contributions:" in r.last_user_content
        ]
        assert len(synthesis_requests) == 1
        assert len(synthesis_requests[0].messages) == 2

    @pytest.mark.asyncio
    async def test_without_synthesizer_first_success_is_synthesis(self):
        ensemble = make_ensemble(fail_on=("market research agent",))

        result = await ensemble.orchestrate_task(TASK, [A, B, PersonaType.ETHICS_ADVISOR])

        assert result.synthesis == result.contributions[B.value]
        assert result.synthesized_by is None
        assert not any("Agent contributions:" in p for p in sent_prompts(ensemble))

    @pytest.mark.asyncio
    async def test_synthesizer_alone_uses_its_own_contribution(self):
        ensemble = make_ensemble(fail_on=("market research agent",))

        result = await ensemble.orchestrate_task(TASK, [A, SYNTH])

        assert result.synthesis == result.contributions[SYNTH.value]
        assert result.synthesized_by is None

    @pytest.mark.asyncio
    async def test_failed_synthesis_falls_back_to_first_success(self):
        ensemble = make_ensemble(fail_on=("Agent contributions:",))

        result = await ensemble.orchestrate_task(TASK, [B, SYNTH])

        assert result.synthesis == result.contributions[B.value]
        assert result.synthesized_by is None
        assert result.errors == {}

    @pytest.mark.asyncio
    async def test_all_personas_failing_raises(self):
        ensemble = make_ensemble(fail_on=("Task:",))

        with pytest.raises(OrchestrationError) as exc_info:
            await ensemble.orchestrate_task(TASK, [A, B])

        assert set(exc_info.value.errors) == {A.value, B.value}

    @pytest.mark.asyncio
    async def test_no_valid_personas_raises(self):
        ensemble = make_ensemble()

        with pytest.raises(OrchestrationError, match="No valid personas"):
            await ensemble.orchestrate_task(TASK, ["astrology", "numerology"])

    @pytest.mark.asyncio
    async def test_unknown_and_duplicate_personas_are_dropped(self):
        ensemble = make_ensemble()

        result = await ensemble.orchestrate_task(
            TASK, ["creative_content", "astrology", B, "CREATIVE_CONTENT", A]
        )

        assert result.persona_ids == [B.value, A.value]
        assert ensemble.router.providers["openai"].call_count == 1

    @pytest.mark.asyncio
    async def test_fan_out_is_bounded(self):
        tracker = ConcurrencyTracker()
        ensemble = make_ensemble(delay=0.02, tracker=tracker, fan_out_limit=2)

        await ensemble.orchestrate_task(
            TASK,
            [A, B, PersonaType.ETHICS_ADVISOR, PersonaType.LEGAL_COMPLIANCE],
        )

        assert tracker.peak == 2

    @pytest.mark.asyncio
    async def test_memory_written_after_generation(self):
        ensemble = make_ensemble(fail_on=("market research agent",))

        await ensemble.orchestrate_task(TASK, [A, B, SYNTH])

        b_entries = await ensemble.get_agent(B).memory.recent(10)
        assert [e.role for e in b_entries] == ["user", "assistant"]
        assert b_entries[0].content == build_agent_prompt(TASK, B)

        synth_entries = await ensemble.get_agent(SYNTH).memory.recent(10)
        assert len(synth_entries) == 4
        assert synth_entries[2].content.startswith(f"Task: {TASK}\n\nAgent contributions:")

        assert len(ensemble.get_agent(A).memory) == 0

    @pytest.mark.asyncio
    async def test_store_in_memory_disabled(self):
        ensemble = make_ensemble()

        await ensemble.orchestrate_task(TASK, [B, SYNTH], GenerationOptions(store_in_memory=False))

        assert len(ensemble.get_agent(B).memory) == 0
        assert len(ensemble.get_agent(SYNTH).memory) == 0

    @pytest.mark.asyncio
    async def test_cancellation_leaves_memory_untouched(self):
        store = AsyncMock()
        ensemble = make_ensemble(delay=10.0, store=store)

        task = asyncio.create_task(ensemble.orchestrate_task(TASK, [A, B, SYNTH]))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        store.append.assert_not_awaited()
        store.record_orchestration.assert_not_awaited()
        for persona in (A, B, SYNTH):
            assert len(ensemble.get_agent(persona).memory) == 0

    @pytest.mark.asyncio
    async def test_result_carries_correlation_id(self):
        ensemble = make_ensemble()

        result = await ensemble.orchestrate_task(TASK, [B])

        assert result.correlation_id
        assert result.conversation_id == "default"
        assert result.elapsed_ms >= 0

    @pytest.mark.asyncio
    async def test_conversation_option_routes_memory(self):
        ensemble = make_ensemble()

        result = await ensemble.orchestrate_task(
            TASK, [B], GenerationOptions(conversation_id="launch")
        )

        assert result.conversation_id == "launch"
        assert len(ensemble.get_agent(B, "launch").memory) == 2
        assert len(ensemble.get_agent(B).memory) == 0


class TestOrchestrationAudit:
    """Test audit records and lifecycle."""

    @pytest.mark.asyncio
    async def test_audit_record_is_stored(self, tmp_path):
        store = JsonFileMemoryLog(directory=str(tmp_path))
        ensemble = make_ensemble(store=store)

        result = await ensemble.orchestrate_task(TASK, [B, SYNTH])

        records = await store.list_orchestrations("default")
        assert len(records) == 1
        assert records[0]["task"] == TASK
        assert records[0]["synthesis"] == result.synthesis
        assert records[0]["persona_ids"] == [B.value, SYNTH.value]

    @pytest.mark.asyncio
    async def test_audit_can_be_disabled(self):
        store = AsyncMock()
        ensemble = make_ensemble(store=store, audit_orchestrations=False)

        await ensemble.orchestrate_task(TASK, [B])

        store.record_orchestration.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_orchestration(self):
        store = AsyncMock()
        store.record_orchestration.side_effect = OSError("disk full")
        ensemble = make_ensemble(store=store)

        result = await ensemble.orchestrate_task(TASK, [B])

        assert result.synthesis == result.contributions[B.value]

    @pytest.mark.asyncio
    async def test_connect_and_close(self):
        store = AsyncMock()
        ensemble = make_ensemble(store=store)

        assert await ensemble.connect() is True
        await ensemble.close()

        store.connect.assert_awaited_once()
        store.close.assert_awaited_once()
        assert not any(p.is_connected for p in ensemble.router.providers.values())

    def test_result_to_dict(self):
        result = OrchestrationResult(
            task="t",
            contributions={"creative_content": "idea"},
            synthesis="idea",
            conversation_id="c",
        )

        data = result.to_dict()

        assert data["task"] == "t"
        assert data["persona_ids"] == ["creative_content"]
        assert data["contributions"] == {"creative_content": "idea"}
        assert data["errors"] == {}
        assert "timestamp" in data
