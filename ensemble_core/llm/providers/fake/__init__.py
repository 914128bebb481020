"""
Fake LLM provider module.
"""

from .fake_provider import FakeLLMProvider

__all__ = ['FakeLLMProvider']
