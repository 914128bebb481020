"""
Multi-agent ensemble.

The ensemble lazily creates one agent (persona config, memory and generation
engine) per (persona, conversation) pair and exposes single-persona generation
plus multi-persona orchestration with a synthesized result.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ensemble_core.config.config_manager import PersonaType
from ensemble_core.llm.interfaces.llm_provider_interface import GenerationResult, LLMError
from ensemble_core.llm.router import ProviderRouter
from ensemble_core.storage.interfaces.memory_log_interface import MemoryLogInterface, MemoryKey
from ensemble_core.agents.errors import EnsembleError, OrchestrationError
from ensemble_core.agents.personas import PersonaConfig, PersonaRegistry, PersonaRef
from ensemble_core.agents.memory import AgentMemory, DEFAULT_BUFFER_SIZE, DEFAULT_SEARCH_WINDOW
from ensemble_core.agents.engine import GenerationEngine, GenerationOptions, DEFAULT_RECALL_LIMIT
from ensemble_core.monitoring.structured_logger import get_logger, LoggingContext

SYNTHESIS_INSTRUCTION = (
    "Please synthesize these perspectives into a comprehensive, coherent response "
    "that addresses the original task."
)


def persona_label(persona_id: PersonaType) -> str:
    return persona_id.value.replace("_", " ")


def build_agent_prompt(task: str, persona_id: PersonaType) -> str:
    return f"Task: {task}\n\nProvide your specialized expertise as a {persona_label(persona_id)} agent."


def build_synthesis_prompt(task: str, contributions: Iterable[Tuple[PersonaType, str]]) -> str:
    sections = "\n\n".join(
        f"## {persona_label(persona_id)} agent:\n{text}" for persona_id, text in contributions
    )
    return f"Task: {task}\n\nAgent contributions:\n{sections}\n\n{SYNTHESIS_INSTRUCTION}"


def error_marker(error: BaseException) -> str:
    return f"[Error: {error}]"


@dataclass
class Agent:
    """One persona acting within one conversation."""
    persona: PersonaConfig
    memory: AgentMemory
    engine: GenerationEngine


@dataclass
class OrchestrationResult:
    """Outcome of fanning a task out to several personas."""
    task: str
    contributions: Dict[str, str]
    synthesis: str
    errors: Dict[str, str] = field(default_factory=dict)
    synthesized_by: Optional[str] = None
    conversation_id: Optional[str] = None
    correlation_id: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def persona_ids(self) -> List[str]:
        return list(self.contributions)

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "task": self.task,
            "persona_ids": self.persona_ids,
            "contributions": dict(self.contributions),
            "synthesis": self.synthesis,
            "errors": dict(self.errors),
            "synthesized_by": self.synthesized_by,
            "conversation_id": self.conversation_id,
            "correlation_id": self.correlation_id,
            "elapsed_ms": self.elapsed_ms,
            "timestamp": time.time(),
        }


class AgentEnsemble:
    """
    Entry point for persona generation and multi-persona orchestration.

    All collaborators are passed in; nothing here is a module-level singleton.
    """

    def __init__(
        self,
        router: ProviderRouter,
        registry: PersonaRegistry,
        store: Optional[MemoryLogInterface] = None,
        conversation_id: str = "default",
        synthesizer: PersonaRef = PersonaType.STRATEGIC_PLANNING,
        fan_out_limit: int = 4,
        max_tokens: int = 1000,
        failover_enabled: bool = True,
        audit_orchestrations: bool = True,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        recall_limit: int = DEFAULT_RECALL_LIMIT,
        search_window: int = DEFAULT_SEARCH_WINDOW,
    ):
        if fan_out_limit < 1:
            raise ValueError(f"fan_out_limit must be at least 1, got {fan_out_limit}")

        self.router = router
        self.registry = registry
        self.store = store
        self.conversation_id = conversation_id
        self.synthesizer = PersonaType.parse(synthesizer)
        self.fan_out_limit = fan_out_limit
        self.max_tokens = max_tokens
        self.failover_enabled = failover_enabled
        self.audit_orchestrations = audit_orchestrations
        self.buffer_size = buffer_size
        self.recall_limit = recall_limit
        self.search_window = search_window

        self._agents: Dict[Tuple[PersonaType, str], Agent] = {}
        self.logger = get_logger(__name__, component="agent_ensemble")

    def get_agent(self, persona_id: PersonaRef, conversation_id: Optional[str] = None) -> Agent:
        """
        Get or create the agent for a persona within a conversation.

        Unknown persona ids resolve to the registry's default persona.

        Raises:
            UnknownPersonaError: If the persona is unknown and there is no default
        """
        persona = self.registry.resolve(persona_id)
        conversation = conversation_id or self.conversation_id
        cache_key = (persona.persona_id, conversation)

        agent = self._agents.get(cache_key)
        if agent is None:
            memory = AgentMemory(
                MemoryKey(persona.persona_id.value, conversation),
                store=self.store,
                buffer_size=self.buffer_size,
                search_window=self.search_window,
            )
            engine = GenerationEngine(
                persona,
                self.router,
                memory,
                recall_limit=self.recall_limit,
                default_max_tokens=self.max_tokens,
                failover_enabled=self.failover_enabled,
            )
            agent = Agent(persona=persona, memory=memory, engine=engine)
            self._agents[cache_key] = agent
            self.logger.debug(
                "Created agent", persona=persona.name, conversation=conversation
            )
        return agent

    async def generate_agent_response(
        self,
        persona_id: PersonaRef,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """
        Generate a response from one persona, with memory recall and write-back.

        Raises:
            AllProvidersExhaustedError: If no provider answered
            UnknownPersonaError: If the persona is unknown and there is no default
        """
        options = options or GenerationOptions()
        agent = self.get_agent(persona_id, options.conversation_id)
        return await agent.engine.generate(prompt, options)

    async def generate_text(
        self,
        persona_id: PersonaRef,
        prompt: str,
        options: Optional[GenerationOptions] = None,
    ) -> str:
        """Generate a response from one persona and return only its text."""
        result = await self.generate_agent_response(persona_id, prompt, options)
        return result.text

    def _valid_personas(self, persona_ids: Iterable[PersonaRef]) -> List[PersonaType]:
        valid: List[PersonaType] = []
        for persona_id in persona_ids:
            if not self.registry.is_registered(persona_id):
                self.logger.warning("Skipping unknown persona", persona=str(persona_id))
                continue
            parsed = PersonaType.parse(persona_id)
            if parsed not in valid:
                valid.append(parsed)
        return valid

    async def orchestrate_task(
        self,
        task: str,
        persona_ids: Iterable[PersonaRef],
        options: Optional[GenerationOptions] = None,
    ) -> OrchestrationResult:
        """
        Fan a task out to several personas and synthesize their answers.

        Per-persona calls run concurrently, at most ``fan_out_limit`` at a time.
        If the synthesizer persona is among them, one more call combines every
        other successful contribution; otherwise the first successful contribution
        is the synthesis. Memory is written only after all generation finishes,
        so a cancelled orchestration leaves memory untouched.

        Raises:
            OrchestrationError: If no persona is valid or none succeeded
        """
        options = options or GenerationOptions()
        conversation = options.conversation_id or self.conversation_id
        personas = self._valid_personas(persona_ids)
        if not personas:
            raise OrchestrationError("No valid personas provided")

        start_time = time.monotonic()
        with LoggingContext() as logging_context:
            logger = self.logger.with_context(
                operation="orchestrate", conversation=conversation
            )
            logger.info("Starting orchestration", personas=[p.value for p in personas])

            per_persona_options = replace(
                options, conversation_id=conversation, store_in_memory=False
            )
            semaphore = asyncio.Semaphore(self.fan_out_limit)

            async def run_persona(persona_id: PersonaType):
                async with semaphore:
                    prompt = build_agent_prompt(task, persona_id)
                    try:
                        result = await self.generate_agent_response(
                            persona_id, prompt, per_persona_options
                        )
                    except (LLMError, EnsembleError) as e:
                        logger.warning(
                            "Persona failed", persona=persona_id.value, error=str(e)
                        )
                        return persona_id, prompt, None, e
                    return persona_id, prompt, result.text, None

            outcomes = await asyncio.gather(*(run_persona(p) for p in personas))

            contributions: Dict[str, str] = {}
            errors: Dict[str, str] = {}
            successes: List[Tuple[PersonaType, str, str]] = []
            for persona_id, prompt, text, error in outcomes:
                if error is not None:
                    contributions[persona_id.value] = error_marker(error)
                    errors[persona_id.value] = str(error)
                else:
                    contributions[persona_id.value] = text
                    successes.append((persona_id, prompt, text))

            if not successes:
                logger.error("Orchestration failed for every persona", errors=errors)
                raise OrchestrationError("No persona produced a contribution", errors=errors)

            synthesis, synthesized_by, synthesis_write = await self._synthesize(
                task, personas, successes, options, conversation, logger
            )

            # Deferred write-back, in request order
            if options.store_in_memory:
                for persona_id, prompt, text in successes:
                    await self.get_agent(persona_id, conversation).engine.remember(prompt, text)
                if synthesis_write is not None:
                    await self.get_agent(self.synthesizer, conversation).engine.remember(
                        *synthesis_write
                    )

            result = OrchestrationResult(
                task=task,
                contributions=contributions,
                synthesis=synthesis,
                errors=errors,
                synthesized_by=synthesized_by,
                conversation_id=conversation,
                correlation_id=logging_context.correlation_id,
                elapsed_ms=(time.monotonic() - start_time) * 1000.0,
            )

            await self._audit(result, logger)
            logger.info(
                "Orchestration complete",
                succeeded=len(successes),
                failed=len(errors),
                synthesized_by=synthesized_by,
            )
            return result

    async def _synthesize(
        self,
        task: str,
        personas: List[PersonaType],
        successes: List[Tuple[PersonaType, str, str]],
        options: GenerationOptions,
        conversation: str,
        logger,
    ) -> Tuple[str, Optional[str], Optional[Tuple[str, str]]]:
        """
        Returns:
            (synthesis text, persona that synthesized it, pending memory write)
        """
        first_success = successes[0][2]
        if self.synthesizer not in personas:
            return first_success, None, None

        others = [(p, text) for p, _, text in successes if p != self.synthesizer]
        if not others:
            return first_success, None, None

        synthesis_prompt = build_synthesis_prompt(task, others)
        synthesis_options = replace(
            options,
            conversation_id=conversation,
            include_memory=False,
            store_in_memory=False,
        )
        try:
            result = await self.generate_agent_response(
                self.synthesizer, synthesis_prompt, synthesis_options
            )
        except (LLMError, EnsembleError) as e:
            logger.warning(
                "Synthesis failed, using first contribution",
                persona=self.synthesizer.value,
                error=str(e),
            )
            return first_success, None, None

        return result.text, self.synthesizer.value, (synthesis_prompt, result.text)

    async def _audit(self, result: OrchestrationResult, logger) -> None:
        if not self.audit_orchestrations or self.store is None:
            return
        try:
            await self.store.record_orchestration(result.conversation_id, result.to_dict())
        except Exception as e:
            logger.warning("Failed to record orchestration", error=str(e))

    async def connect(self) -> bool:
        """Connect providers and the memory store; True if any provider is usable."""
        connected = await self.router.connect()
        if self.store is not None:
            await self.store.connect()
        return connected

    async def close(self) -> None:
        """Disconnect providers and close the memory store."""
        await self.router.disconnect()
        if self.store is not None:
            await self.store.close()
        self.logger.info("Agent ensemble closed")
