"""
Unit tests for the Ollama LLM provider.

The aiohttp session is replaced with a mock, so no Ollama server is needed.
"""

import asyncio

import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock

from ensemble_core.llm.providers.ollama.ollama_provider import OllamaLLMProvider
from ensemble_core.llm.interfaces.llm_provider_interface import (
    GenerationRequest,
    LLMConnectionError,
    LLMRateLimitError,
    LLMTimeoutError,
    Message,
    ProviderError,
)


def mock_response(status=200, json_data=None, text=""):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data or {})
    response.text = AsyncMock(return_value=text)
    return response


@pytest.fixture
def ollama_provider():
    return OllamaLLMProvider({"base_url": "http://ollama.local:11434/", "model_name": "mistral"})


@pytest.fixture
def session(ollama_provider):
    mock_session = MagicMock()
    mock_session.closed = False
    mock_session.close = AsyncMock()
    ollama_provider._session = mock_session
    return mock_session


@pytest.fixture
def request_():
    return GenerationRequest(
        messages=(Message.system("Be brief."), Message.user("Hello")),
        temperature=0.2,
        max_tokens=64,
    )


class TestOllamaProvider:
    """Test request translation and error handling."""

    def test_configuration(self, ollama_provider):
        assert ollama_provider.base_url == "http://ollama.local:11434"
        assert ollama_provider.model_name == "mistral"
        assert ollama_provider.keep_alive == "5m"

    def test_default_model(self):
        assert OllamaLLMProvider({}).model_name == "llama2"

    @pytest.mark.asyncio
    async def test_generate(self, ollama_provider, session, request_):
        session.post.return_value.__aenter__.return_value = mock_response(
            json_data={"message": {"role": "assistant", "content": "Hi!"}, "eval_count": 3}
        )

        text = await ollama_provider.generate(request_)

        assert text == "Hi!"
        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "http://ollama.local:11434/api/chat"
        assert payload["model"] == "mistral"
        assert payload["stream"] is False
        assert payload["options"] == {"temperature": 0.2, "num_predict": 64}
        assert payload["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hello"},
        ]

    @pytest.mark.asyncio
    async def test_rate_limited(self, ollama_provider, session, request_):
        session.post.return_value.__aenter__.return_value = mock_response(status=429)

        with pytest.raises(LLMRateLimitError):
            await ollama_provider.generate(request_)

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, ollama_provider, session, request_):
        session.post.return_value.__aenter__.return_value = mock_response(
            status=500, text="model crashed"
        )

        with pytest.raises(ProviderError, match="model crashed") as exc_info:
            await ollama_provider.generate(request_)
        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_missing_model_is_not_transient(self, ollama_provider, session, request_):
        session.post.return_value.__aenter__.return_value = mock_response(
            status=404, text="model not found"
        )

        with pytest.raises(ProviderError) as exc_info:
            await ollama_provider.generate(request_)
        assert exc_info.value.transient is False

    @pytest.mark.asyncio
    async def test_empty_content(self, ollama_provider, session, request_):
        session.post.return_value.__aenter__.return_value = mock_response(json_data={"message": {}})

        with pytest.raises(ProviderError, match="Empty response"):
            await ollama_provider.generate(request_)

    @pytest.mark.asyncio
    async def test_timeout(self, ollama_provider, session, request_):
        session.post.side_effect = asyncio.TimeoutError()

        with pytest.raises(LLMTimeoutError):
            await ollama_provider.generate(request_)

    @pytest.mark.asyncio
    async def test_connection_error(self, ollama_provider, session, request_):
        session.post.side_effect = aiohttp.ClientConnectionError("refused")

        with pytest.raises(LLMConnectionError):
            await ollama_provider.generate(request_)

    @pytest.mark.asyncio
    async def test_connect_checks_version(self, ollama_provider, session):
        session.get.return_value.__aenter__.return_value = mock_response(
            json_data={"version": "0.1.32"}
        )

        assert await ollama_provider.connect() is True
        assert ollama_provider.is_connected
        assert session.get.call_args.args[0] == "http://ollama.local:11434/api/version"

    @pytest.mark.asyncio
    async def test_connect_failure(self, ollama_provider, session):
        session.get.return_value.__aenter__.return_value = mock_response(status=503)

        with pytest.raises(LLMConnectionError):
            await ollama_provider.connect()

    @pytest.mark.asyncio
    async def test_disconnect(self, ollama_provider, session):
        assert await ollama_provider.disconnect() is True
        session.close.assert_awaited_once()
        assert not ollama_provider.is_connected
