"""
LLM provider interfaces package.

This package contains the abstract provider interface and the normalized
request/response types shared by every adapter.
"""

from .llm_provider_interface import (
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

__all__ = [
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
]
