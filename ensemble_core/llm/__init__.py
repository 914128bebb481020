"""
LLM provider layer for the agent ensemble.

Features:
- Interchangeable provider adapters (OpenAI, Anthropic, Gemini, Ollama, fake)
- Provider factory building adapters from configuration
- Bounded exponential-backoff retry around each provider
- Router with deterministic primary-then-failover selection
"""

from .interfaces.llm_provider_interface import (
    LLMProviderInterface,
    MessageRole,
    Message,
    GenerationRequest,
    GenerationResult,
    LLMError,
    LLMValidationError,
    ProviderError,
    LLMConnectionError,
    LLMTimeoutError,
    LLMRateLimitError,
    LLMAuthenticationError,
)
from .retry import RetryPolicy
from .router import (
    ProviderRouter,
    ProviderAttempt,
    RouteState,
    AllProvidersExhaustedError,
)
from .factory import LLMProviderFactory

__all__ = [
    # Interfaces and types
    'LLMProviderInterface',
    'MessageRole',
    'Message',
    'GenerationRequest',
    'GenerationResult',
    'LLMError',
    'LLMValidationError',
    'ProviderError',
    'LLMConnectionError',
    'LLMTimeoutError',
    'LLMRateLimitError',
    'LLMAuthenticationError',

    # Retry and routing
    'RetryPolicy',
    'ProviderRouter',
    'ProviderAttempt',
    'RouteState',
    'AllProvidersExhaustedError',

    # Factory
    'LLMProviderFactory',
]
