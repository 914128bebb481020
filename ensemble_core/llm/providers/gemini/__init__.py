"""
Gemini LLM provider module.

This module provides the Google Gemini adapter for the provider interface.
"""

from .gemini_provider import GeminiLLMProvider

__all__ = ['GeminiLLMProvider']
