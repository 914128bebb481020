"""
Shared fixtures for the agent ensemble test suite.

Providers are scripted fakes and retry sleeps are recorded instead of awaited,
so no test touches the network or the wall clock.
"""

import random
from unittest.mock import AsyncMock

import pytest

from ensemble_core.llm.providers.fake.fake_provider import FakeLLMProvider
from ensemble_core.llm.retry import RetryPolicy
from ensemble_core.llm.router import ProviderRouter
from ensemble_core.agents.personas import PersonaRegistry


@pytest.fixture
def fake_sleep():
    """Stand-in for asyncio.sleep that records requested delays."""
    return AsyncMock()


@pytest.fixture
def retry_policy(fake_sleep):
    """Default three-attempt policy with deterministic jitter and no real sleeping."""
    return RetryPolicy(sleep=fake_sleep, rng=random.Random(0))


@pytest.fixture
def fake_providers():
    """Three fake providers named after the real vendors, in default registration order."""
    return {
        name: FakeLLMProvider({"name": name})
        for name in ("openai", "anthropic", "gemini")
    }


@pytest.fixture
def router(fake_providers, retry_policy):
    return ProviderRouter(fake_providers, retry_policy=retry_policy, timeout=5.0)


@pytest.fixture
def registry():
    return PersonaRegistry()
