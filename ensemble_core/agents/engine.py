"""
Per-persona generation engine.

The engine assembles the message sequence for one persona (system prompt,
engine context, recalled memory, user prompt), hands it to the provider router
with the persona's preferred provider as primary, and writes the exchange back
to the persona's memory.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

from ensemble_core.llm.interfaces.llm_provider_interface import (
    GenerationRequest,
    GenerationResult,
    LLMValidationError,
    Message,
    MessageRole,
)
from ensemble_core.llm.router import ProviderRouter
from ensemble_core.agents.memory import AgentMemory, MemoryEntry
from ensemble_core.agents.personas import PersonaConfig
from ensemble_core.monitoring.structured_logger import get_logger

DEFAULT_RECALL_LIMIT = 5
CONTEXT_LIMIT = 10


@dataclass
class GenerationOptions:
    """Caller overrides for one generation call."""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    include_memory: bool = True
    store_in_memory: bool = True
    conversation_id: Optional[str] = None
    # None defers to the engine (and ensemble) setting
    failover_enabled: Optional[bool] = None


class GenerationEngine:
    """Generation façade for one (persona, conversation) agent."""

    def __init__(
        self,
        persona: PersonaConfig,
        router: ProviderRouter,
        memory: AgentMemory,
        recall_limit: int = DEFAULT_RECALL_LIMIT,
        default_max_tokens: int = 1000,
        failover_enabled: bool = True,
    ):
        self.persona = persona
        self.router = router
        self.memory = memory
        self.recall_limit = recall_limit
        self.default_max_tokens = default_max_tokens
        self.failover_enabled = failover_enabled
        self._context: Deque[str] = deque(maxlen=CONTEXT_LIMIT)

        self.logger = get_logger(__name__, component="generation_engine").with_context(
            persona=persona.name, conversation=memory.key.conversation_id
        )

    @property
    def context(self) -> Tuple[str, ...]:
        return tuple(self._context)

    def add_to_context(self, content: str) -> None:
        """Add standing context for later calls; the oldest item drops past the cap."""
        self._context.append(content)

    def clear_context(self) -> None:
        self._context.clear()

    async def build_request(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> GenerationRequest:
        """
        Assemble ``system prompt -> context -> recalled memory -> user prompt``.

        Raises:
            LLMValidationError: If the prompt is empty or an override is out of range
        """
        options = options or GenerationOptions()
        if not prompt or not prompt.strip():
            raise LLMValidationError("Prompt cannot be empty")

        messages: List[Message] = [Message.system(self.persona.system_prompt)]

        if self._context:
            context_text = "\n\n".join(self._context)
            messages.append(Message.system(f"Additional context: {context_text}"))

        if options.include_memory and self.recall_limit > 0:
            recalled = await self.memory.recent(self.recall_limit)
            if recalled:
                history = "\n\n".join(f"{entry.role}: {entry.content}" for entry in recalled)
                messages.append(Message.system(f"Previous conversation:\n{history}"))

        messages.append(Message.user(prompt))

        return GenerationRequest(
            messages=tuple(messages),
            temperature=(
                self.persona.temperature if options.temperature is None else options.temperature
            ),
            max_tokens=options.max_tokens or self.default_max_tokens,
            model=self.persona.model_name,
        )

    async def generate(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> GenerationResult:
        """
        Generate a response as this persona.

        Raises:
            AllProvidersExhaustedError: If no provider answered; memory is untouched
        """
        options = options or GenerationOptions()
        request = await self.build_request(prompt, options)

        self.logger.debug(
            "Routing generation request",
            operation="generate",
            provider=self.persona.preferred_provider,
        )
        result = await self.router.route(
            request,
            primary=self.persona.preferred_provider,
            failover_enabled=(
                self.failover_enabled
                if options.failover_enabled is None
                else options.failover_enabled
            ),
        )

        if result.fallback_used:
            self.logger.warning(
                "Generation served by backup provider",
                operation="generate",
                provider=result.provider_used,
                providers_tried=list(result.providers_tried),
            )

        if options.store_in_memory:
            await self.remember(prompt, result.text)

        return result

    async def remember(self, prompt: str, text: str) -> None:
        """Append the user prompt and the assistant reply, in that order."""
        await self.memory.append(MemoryEntry(role=MessageRole.USER.value, content=prompt))
        await self.memory.append(MemoryEntry(role=MessageRole.ASSISTANT.value, content=text))
