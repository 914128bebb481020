"""
Abstract interface for Large Language Model (LLM) providers.

This module defines the normalized generation contract that every vendor adapter
implements, so the provider router can treat OpenAI, Anthropic, Gemini, Ollama and
the fake test adapter interchangeably.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


class MessageRole(Enum):
    """Roles for conversation messages."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class Message:
    """A message in a conversation with an LLM."""
    role: MessageRole
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(MessageRole.ASSISTANT, content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class LLMError(Exception):
    """Base exception for LLM layer errors."""
    pass


class LLMValidationError(LLMError):
    """Raised when a generation request is malformed."""
    pass


class ProviderError(LLMError):
    """
    Raised when a single vendor call fails.

    ``transient`` tells the retry policy whether retrying the same provider is
    worthwhile (rate limits, network blips) or not (bad credentials).
    """

    transient = True

    def __init__(self, message: str, provider: Optional[str] = None,
                 transient: Optional[bool] = None):
        super().__init__(message)
        self.provider = provider
        if transient is not None:
            self.transient = transient


class LLMConnectionError(ProviderError):
    """Raised when connection to LLM provider fails."""
    pass


class LLMTimeoutError(ProviderError):
    """Raised when a provider call exceeds its time budget."""
    pass


class LLMRateLimitError(ProviderError):
    """Raised when rate limit is exceeded."""
    pass


class LLMAuthenticationError(ProviderError):
    """Raised when the provider rejects the configured credentials."""
    transient = False


@dataclass(frozen=True)
class GenerationRequest:
    """
    Normalized generation request.

    Built fresh for every call and never persisted. ``model`` is only honoured by
    the provider the request was built for; backups fall back to their own default.
    """
    messages: Tuple[Message, ...]
    temperature: float = 0.7
    max_tokens: int = 1000
    stop_sequences: Optional[FrozenSet[str]] = None
    model: Optional[str] = None

    def __post_init__(self):
        # Accept any iterable of messages but store an immutable tuple
        object.__setattr__(self, "messages", tuple(self.messages))
        if self.stop_sequences is not None:
            object.__setattr__(self, "stop_sequences", frozenset(self.stop_sequences))

        if not self.messages:
            raise LLMValidationError("Messages cannot be empty")
        if not 0.0 <= self.temperature <= 2.0:
            raise LLMValidationError(
                f"Temperature must be between 0 and 2, got {self.temperature}"
            )
        if not isinstance(self.max_tokens, int) or self.max_tokens <= 0:
            raise LLMValidationError(f"max_tokens must be a positive integer, got {self.max_tokens}")

    @classmethod
    def build(cls, messages: Iterable[Message], **kwargs) -> "GenerationRequest":
        return cls(messages=tuple(messages), **kwargs)

    @property
    def system_text(self) -> str:
        """All system messages joined, for vendors that take a single instruction."""
        return "\n\n".join(m.content for m in self.messages if m.role == MessageRole.SYSTEM)

    @property
    def conversation(self) -> Tuple[Message, ...]:
        """The non-system messages in order."""
        return tuple(m for m in self.messages if m.role != MessageRole.SYSTEM)

    @property
    def last_user_content(self) -> str:
        for message in reversed(self.messages):
            if message.role == MessageRole.USER:
                return message.content
        return ""


@dataclass
class GenerationResult:
    """Outcome of a routed generation request."""
    text: str
    provider_used: str
    attempt_count: int
    elapsed_ms: float
    providers_tried: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def fallback_used(self) -> bool:
        return bool(self.providers_tried) and self.providers_tried[0] != self.provider_used

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "text": self.text,
            "provider_used": self.provider_used,
            "attempt_count": self.attempt_count,
            "elapsed_ms": self.elapsed_ms,
            "providers_tried": list(self.providers_tried),
        }


class LLMProviderInterface(ABC):
    """
    Abstract interface for LLM providers.

    An adapter only translates a ``GenerationRequest`` into its vendor's wire
    shape and the reply back into plain text. It performs no retry and no memory
    access; both belong to the router and the agent layer.
    """

    provider_name: str = "base"

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize the LLM provider.

        Args:
            config: Provider-specific configuration dictionary
        """
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self._is_connected = False

        # Extract common configuration
        self.model_name = config.get("model_name") or self.get_default_model()
        self.temperature = config.get("temperature", 0.7)
        self.max_tokens = config.get("max_tokens", 1000)
        self.timeout = config.get("timeout", 30)

    @property
    def is_connected(self) -> bool:
        """Check if the provider is connected and ready."""
        return self._is_connected

    @abstractmethod
    def get_default_model(self) -> str:
        """
        Get the default model name for this provider.

        Returns:
            Default model name
        """
        pass

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> str:
        """
        Generate text for a normalized request.

        Args:
            request: Messages and sampling parameters

        Returns:
            Generated text

        Raises:
            ProviderError: On any transport, authentication or vendor-side failure
        """
        pass

    async def connect(self) -> bool:
        """Mark the provider ready. Vendors with a handshake override this."""
        self._is_connected = True
        return True

    async def disconnect(self) -> bool:
        """Release client resources."""
        self._is_connected = False
        return True

    def resolve_model(self, request: GenerationRequest) -> str:
        return request.model or self.model_name

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform a health check on the LLM provider.

        Returns:
            Health status information
        """
        try:
            request = GenerationRequest(
                messages=(Message.user("Test connection. Respond with 'OK'."),),
                temperature=0.0,
                max_tokens=5,
            )
            text = await self.generate(request)
            return {
                "provider": self.provider_name,
                "model": self.model_name,
                "connected": self.is_connected,
                "test_passed": bool(text),
            }
        except LLMError as e:
            return {
                "provider": self.provider_name,
                "model": self.model_name,
                "connected": False,
                "test_passed": False,
                "error": str(e),
            }

    def get_provider_info(self) -> Dict[str, Any]:
        """
        Get information about this provider.

        Returns:
            Provider information dictionary
        """
        return {
            "provider": self.provider_name,
            "name": self.__class__.__name__,
            "model": self.model_name,
            "connected": self.is_connected,
            "config": {
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
                "timeout": self.timeout,
            },
        }

    def estimate_tokens(self, text: str) -> int:
        """
        Estimate token count for given text.

        Args:
            text: Input text

        Returns:
            Estimated token count
        """
        # Simple estimation: ~4 characters per token
        return len(text) // 4
