"""
Unit tests for the Anthropic Claude LLM provider.

These tests verify system-message lifting, temperature clamping and error
classification against a mocked SDK client.
"""

import httpx
import anthropic
import pytest
from unittest.mock import AsyncMock, Mock, patch

from ensemble_core.llm.providers.anthropic.anthropic_provider import AnthropicLLMProvider
from ensemble_core.llm.interfaces.llm_provider_interface import (
    GenerationRequest,
    LLMAuthenticationError,
    LLMRateLimitError,
    Message,
    ProviderError,
)

API_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class MockAnthropicResponse:
    """Mock response object for Anthropic API."""

    def __init__(self, *texts):
        self.content = [Mock(type="text", text=text) for text in texts]


def status_error(cls, status_code, message="error"):
    return cls(message, response=httpx.Response(status_code, request=API_REQUEST), body=None)


@pytest.fixture
def mock_client():
    with patch(
        "ensemble_core.llm.providers.anthropic.anthropic_provider.AsyncAnthropic"
    ) as client_cls:
        client = Mock()
        client.messages.create = AsyncMock(return_value=MockAnthropicResponse("Certainly."))
        client.close = AsyncMock()
        client_cls.return_value = client
        yield client_cls


@pytest.fixture
def provider(mock_client):
    return AnthropicLLMProvider({"api_key": "ak-test"})


class TestAnthropicProviderInitialization:
    """Test provider initialization and configuration."""

    def test_missing_api_key(self, mock_client):
        with pytest.raises(LLMAuthenticationError, match="Anthropic API key is required"):
            AnthropicLLMProvider({"model_name": "claude-3-haiku-20240307"})

    def test_default_model(self, provider):
        assert provider.get_default_model() == "claude-3-opus-20240229"
        assert provider.model_name == "claude-3-opus-20240229"

    def test_custom_configuration(self, mock_client):
        provider = AnthropicLLMProvider({
            "api_key": "custom-key",
            "model_name": "claude-3-haiku-20240307",
            "timeout": 60,
            "base_url": "https://custom.api.url",
        })

        assert provider.model_name == "claude-3-haiku-20240307"
        mock_client.assert_called_once_with(
            api_key="custom-key", timeout=60, max_retries=0, base_url="https://custom.api.url"
        )


class TestAnthropicGeneration:
    """Test request translation."""

    @pytest.mark.asyncio
    async def test_system_messages_are_lifted(self, provider):
        request = GenerationRequest(messages=(
            Message.system("You are a negotiator."),
            Message.system("Additional context: enterprise plan"),
            Message.user("Too expensive"),
        ))

        text = await provider.generate(request)

        assert text == "Certainly."
        kwargs = provider.client.messages.create.await_args.kwargs
        assert kwargs["system"] == "You are a negotiator.\n\nAdditional context: enterprise plan"
        assert kwargs["messages"] == [{"role": "user", "content": "Too expensive"}]
        assert kwargs["model"] == "claude-3-opus-20240229"
        assert kwargs["max_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_no_system_parameter_without_system_messages(self, provider):
        await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))

        assert "system" not in provider.client.messages.create.await_args.kwargs

    @pytest.mark.asyncio
    async def test_temperature_is_clamped(self, provider):
        request = GenerationRequest(messages=(Message.user("Hi"),), temperature=1.8)

        await provider.generate(request)

        assert provider.client.messages.create.await_args.kwargs["temperature"] == 1.0

    @pytest.mark.asyncio
    async def test_stop_sequences(self, provider):
        request = GenerationRequest(messages=(Message.user("Hi"),), stop_sequences={"\n\nHuman:"})

        await provider.generate(request)

        assert provider.client.messages.create.await_args.kwargs["stop_sequences"] == ["\n\nHuman:"]

    @pytest.mark.asyncio
    async def test_text_blocks_are_joined(self, provider):
        provider.client.messages.create.return_value = MockAnthropicResponse("Part one. ", "Part two.")

        text = await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))

        assert text == "Part one. Part two."

    @pytest.mark.asyncio
    async def test_empty_content(self, provider):
        provider.client.messages.create.return_value = MockAnthropicResponse()

        with pytest.raises(ProviderError, match="Empty response"):
            await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))


class TestAnthropicErrorMapping:
    """Test SDK exception classification."""

    @pytest.mark.asyncio
    async def test_rate_limit(self, provider):
        provider.client.messages.create.side_effect = status_error(anthropic.RateLimitError, 429)

        with pytest.raises(LLMRateLimitError):
            await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))

    @pytest.mark.asyncio
    async def test_authentication(self, provider):
        provider.client.messages.create.side_effect = status_error(
            anthropic.AuthenticationError, 401
        )

        with pytest.raises(LLMAuthenticationError):
            await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))

    @pytest.mark.asyncio
    async def test_overloaded_is_transient(self, provider):
        provider.client.messages.create.side_effect = status_error(anthropic.APIStatusError, 529)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))
        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_bad_request_is_not_transient(self, provider):
        provider.client.messages.create.side_effect = status_error(anthropic.BadRequestError, 400)

        with pytest.raises(ProviderError) as exc_info:
            await provider.generate(GenerationRequest(messages=(Message.user("Hi"),)))
        assert exc_info.value.transient is False
