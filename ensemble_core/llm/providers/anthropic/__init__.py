"""
Anthropic LLM provider module.

This module provides the Anthropic Claude adapter for the provider interface.
"""

from .anthropic_provider import AnthropicLLMProvider

__all__ = ['AnthropicLLMProvider']
