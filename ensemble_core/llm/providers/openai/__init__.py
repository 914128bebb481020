"""
OpenAI LLM provider module.

This module provides the OpenAI GPT adapter for the provider interface.
"""

from .openai_provider import OpenAILLMProvider

__all__ = ['OpenAILLMProvider']
