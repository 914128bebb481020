"""
Ollama LLM provider module.

This module provides the adapter for models served by a local Ollama instance.
"""

from .ollama_provider import OllamaLLMProvider

__all__ = ['OllamaLLMProvider']
